"""
Booking-specific Validators

Validation utilities for the salon booking endpoints.
"""

import re
from typing import List, Union

import frappe
from frappe import _


def validate_date_string(date_str: str, field_name: str = "date") -> str:
    """
    Validate date string format (YYYY-MM-DD).

    Args:
        date_str: Date string to validate
        field_name: Name of field for error messages

    Returns:
        str: Validated date string

    Raises:
        frappe.ValidationError: If date format is invalid
    """
    if not date_str:
        frappe.throw(_("{0} is required").format(field_name), frappe.ValidationError)

    date_str = str(date_str).strip()

    if not re.match(r"^\d{4}-\d{2}-\d{2}$", date_str):
        frappe.throw(
            _("Invalid {0} format. Use YYYY-MM-DD").format(field_name), frappe.ValidationError
        )

    return date_str


def validate_time_string(time_str: str, field_name: str = "time") -> str:
    """
    Validate time string format (HH:MM, 24h).

    Args:
        time_str: Time string to validate
        field_name: Name of field for error messages

    Returns:
        str: Validated time string

    Raises:
        frappe.ValidationError: If time format is invalid
    """
    if not time_str:
        frappe.throw(_("{0} is required").format(field_name), frappe.ValidationError)

    time_str = str(time_str).strip()

    if not re.match(r"^([01]\d|2[0-3]):[0-5]\d$", time_str):
        frappe.throw(
            _("Invalid {0} format. Use HH:MM").format(field_name), frappe.ValidationError
        )

    return time_str


def validate_docname(name: str, field_name: str = "name") -> str:
    """
    Validate a document name (ID).

    Ensures the name is not too long and doesn't contain injection patterns.

    Args:
        name: Document name to validate
        field_name: Name of field for error messages

    Returns:
        str: Validated document name

    Raises:
        frappe.ValidationError: If name is invalid
    """
    if not name:
        frappe.throw(_("{0} is required").format(field_name), frappe.ValidationError)

    name = str(name).strip()

    if len(name) > 140:
        frappe.throw(_("{0} is too long").format(field_name), frappe.ValidationError)

    # Block obvious injection attempts
    dangerous_patterns = [
        r"<script",
        r"javascript:",
        r"onclick",
        r"onerror",
        r"SELECT\s+",
        r"INSERT\s+",
        r"UPDATE\s+",
        r"DELETE\s+",
        r"DROP\s+",
        r"UNION\s+",
        r"--",
        r";",
    ]

    for pattern in dangerous_patterns:
        if re.search(pattern, name, re.IGNORECASE):
            frappe.throw(_("Invalid {0}").format(field_name), frappe.ValidationError)

    return name


def parse_service_ids(services: Union[str, List[str]], field_name: str = "services") -> List[str]:
    """
    Parse the list of service IDs sent by the client.

    Accepts a JSON array string, a comma-separated string or a list.

    Returns:
        list[str]: Validated, de-duplicated service IDs in request order

    Raises:
        frappe.ValidationError: If the list is empty or malformed
    """
    if isinstance(services, str):
        services = services.strip()
        if services.startswith("["):
            try:
                services = frappe.parse_json(services)
            except ValueError:
                frappe.throw(_("Invalid {0} list").format(field_name), frappe.ValidationError)
        else:
            services = [s for s in services.split(",")]

    if not isinstance(services, (list, tuple)):
        frappe.throw(_("Invalid {0} list").format(field_name), frappe.ValidationError)

    ids = [validate_docname(str(s).strip(), field_name) for s in services if str(s).strip()]
    if not ids:
        frappe.throw(_("At least one service is required"), frappe.ValidationError)

    return list(dict.fromkeys(ids))
