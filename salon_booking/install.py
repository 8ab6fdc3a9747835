"""
Installation

Creates the records the booking engine expects on a fresh site:
- the Salon Manager role
- a default Salon Calendar (Mon-Fri 09:00-13:00 / 15:00-19:00, weekend closed)
- Salon Booking Settings with their defaults
"""

import frappe

from salon_booking.salon_booking.scheduling.calendar import WEEKDAYS, Weekday
from salon_booking.salon_booking.scheduling.store import CALENDAR, DEFAULT_MANAGER_ROLE, SETTINGS

WORKING_DAYS = (Weekday.MONDAY, Weekday.TUESDAY, Weekday.WEDNESDAY, Weekday.THURSDAY, Weekday.FRIDAY)

DEFAULT_HOURS = {
	"morning_open": "09:00:00",
	"morning_close": "13:00:00",
	"afternoon_open": "15:00:00",
	"afternoon_close": "19:00:00",
}


def after_install() -> None:
	create_manager_role()
	create_default_calendar()
	create_default_settings()
	frappe.db.commit()


def before_tests() -> None:
	"""Prepara un sitio de pruebas con la configuración por defecto."""
	after_install()


def create_manager_role() -> None:
	if frappe.db.exists("Role", DEFAULT_MANAGER_ROLE):
		return

	frappe.get_doc({
		"doctype": "Role",
		"role_name": DEFAULT_MANAGER_ROLE,
		"desk_access": 1,
	}).insert(ignore_permissions=True)


def create_default_calendar() -> None:
	"""Crea el horario por defecto solo si el calendario está vacío."""
	calendar = frappe.get_doc(CALENDAR)
	if calendar.weekly_hours:
		return

	for weekday in WEEKDAYS:
		if weekday in WORKING_DAYS:
			calendar.append("weekly_hours", {"weekday": weekday.value, "closed": 0, **DEFAULT_HOURS})
		else:
			calendar.append("weekly_hours", {"weekday": weekday.value, "closed": 1})

	calendar.save(ignore_permissions=True)
	frappe.logger("salon_booking").info("Default Salon Calendar created")


def create_default_settings() -> None:
	settings = frappe.get_doc(SETTINGS)
	if settings.manager_role:
		return

	settings.update({
		"booking_horizon_months": 2,
		"slot_granularity_minutes": 30,
		"rebooking_horizon_days": 7,
		"lock_timeout_seconds": 5,
		"auto_confirm": 0,
		"send_notifications": 1,
		"reminder_hours_before": 24,
		"manager_role": DEFAULT_MANAGER_ROLE,
	})
	settings.save(ignore_permissions=True)
