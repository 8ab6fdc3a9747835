"""
Shared utilities for Salon Booking API.

Re-exports the security helpers and booking-specific validators used by
both the client and the admin endpoints.
"""

from salon_booking.api.security import (
    # Rate limiting
    check_rate_limit,
    get_client_ip,
    # Security
    check_honeypot,
    sanitize_string,
    # Identity
    current_actor,
    current_manager,
    # Errors
    attach_error_payload,
    BOOKING_ERRORS,
)

from .validators import (
    validate_date_string,
    validate_time_string,
    validate_docname,
    parse_service_ids,
)

__all__ = [
    "check_rate_limit",
    "get_client_ip",
    "check_honeypot",
    "sanitize_string",
    "current_actor",
    "current_manager",
    "attach_error_payload",
    "BOOKING_ERRORS",
    "validate_date_string",
    "validate_time_string",
    "validate_docname",
    "parse_service_ids",
]
