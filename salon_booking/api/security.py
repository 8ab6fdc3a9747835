"""
Security Utilities for Booking APIs

Provides rate limiting, honeypot validation, input sanitization and the
identity helpers shared by the client and admin endpoints.
"""

import re
import frappe
from frappe import _
from frappe.utils import cint

from salon_booking.salon_booking.scheduling.exceptions import error_payload
from salon_booking.salon_booking.scheduling.store import Actor, get_actor, require_manager


# Errors raised by the booking engine; re-raised untouched so the request
# handler renders them with their own HTTP status.
BOOKING_ERRORS = (
    frappe.ValidationError,
    frappe.PermissionError,
    frappe.DoesNotExistError,
)


# ===================
# Rate Limiting
# ===================

def check_rate_limit(action: str, limit: int = 10, seconds: int = 60) -> None:
    """
    Check rate limit for an action by IP address.

    Uses Frappe's cache (Redis) to track request counts per IP.
    Calls outside an HTTP request (background jobs, console, tests) are
    not limited.

    Args:
        action: Identifier for the action being rate limited
        limit: Maximum number of requests allowed
        seconds: Time window in seconds

    Raises:
        frappe.TooManyRequestsError: If rate limit exceeded
    """
    if not getattr(frappe.local, "request", None):
        return

    ip = get_client_ip()
    cache_key = f"rate_limit:salon_booking:{action}:{ip}"

    # Get current count from cache
    current = cint(frappe.cache.get_value(cache_key) or 0)

    if current >= limit:
        frappe.log_error(
            title=_("Rate Limit Exceeded"),
            message=f"IP: {ip}, Action: {action}, Limit: {limit}/{seconds}s"
        )
        frappe.throw(
            _("Too many requests. Please wait a moment and try again."),
            frappe.TooManyRequestsError
        )

    frappe.cache.set_value(cache_key, current + 1, expires_in_sec=seconds)


def get_client_ip() -> str:
    """
    Get the real client IP address, handling proxies.

    Returns:
        str: Client IP address
    """
    request = getattr(frappe.local, "request", None)
    if not request:
        return "unknown"

    # X-Forwarded-For can contain multiple IPs, take the first one
    forwarded_for = request.headers.get('X-Forwarded-For', '')
    if forwarded_for:
        return forwarded_for.split(',')[0].strip()

    real_ip = request.headers.get('X-Real-IP', '')
    if real_ip:
        return real_ip.strip()

    return request.remote_addr or 'unknown'


# ===================
# Honeypot Validation
# ===================

def check_honeypot(honeypot_value: str = None) -> None:
    """
    Check honeypot field to detect bot submissions.

    Args:
        honeypot_value: Value of the honeypot field

    Raises:
        frappe.ValidationError: If honeypot is filled (bot detected)
    """
    if honeypot_value:
        ip = get_client_ip()
        frappe.log_error(
            title=_("Bot Detected (Honeypot)"),
            message=f"IP: {ip}, Honeypot value: {honeypot_value[:100]}"
        )
        # Generic error to not reveal detection
        frappe.throw(_("Invalid request"), frappe.ValidationError)


# ===================
# Input Sanitization
# ===================

def sanitize_string(value: str, max_length: int = 500) -> str:
    """
    General string sanitization.

    Args:
        value: String to sanitize
        max_length: Maximum allowed length

    Returns:
        str: Sanitized string
    """
    if not value:
        return None

    value = str(value).strip()

    if len(value) > max_length:
        value = value[:max_length]

    # Remove null bytes and other control characters
    value = re.sub(r'[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]', '', value)

    return value


# ===================
# Identity
# ===================

def current_actor() -> Actor:
    """Actor of the logged-in session; Guest is rejected."""
    return get_actor(frappe.session.user)


def current_manager() -> Actor:
    """Actor of the logged-in session; must hold the manager role."""
    actor = current_actor()
    require_manager(actor)
    return actor


# ===================
# Error Payload
# ===================

def attach_error_payload(exc: Exception) -> None:
    """
    Add the stable {kind, message, retriable} payload to the error response.

    Frappe serialises frappe.local.response into the JSON body it returns
    for the exception.
    """
    frappe.local.response["error"] = error_payload(exc)
