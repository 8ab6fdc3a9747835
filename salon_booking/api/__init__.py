"""
Salon Booking API

Structure:
    api/
    ├── __init__.py              # This file
    ├── appointment_api.py       # Client endpoints (availability, booking, cancel)
    ├── admin_api.py             # Manager endpoints (status, rescheduling, stats, calendar)
    ├── security.py              # Rate limiting, honeypot, identity, error payload
    └── shared/                  # Re-exports + booking-specific validators
        ├── __init__.py
        └── validators.py

Usage:
    frappe.call("salon_booking.api.appointment_api.get_availability", {date: "2026-03-02"})
    frappe.call("salon_booking.api.admin_api.get_appointment_stats")
"""

from . import shared

__all__ = [
    "shared",
]
