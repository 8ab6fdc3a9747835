"""
Test fixtures shared by the site-bound tests.
"""

from datetime import date, timedelta

import frappe

from salon_booking.salon_booking.scheduling.calendar import WEEKDAYS
from salon_booking.salon_booking.scheduling.store import (
	CALENDAR,
	DEFAULT_MANAGER_ROLE,
	SERVICE,
	Actor,
	business_now,
	load_calendar,
)

CLIENT = "salon-client@example.com"
OTHER_CLIENT = "salon-other@example.com"
MANAGER = "salon-manager@example.com"

SERVICES = {
	"_Test Corte": 30,
	"_Test Color": 60,
	"_Test Peinado": 90,
}


def ensure_services() -> None:
	for name, duration in SERVICES.items():
		if not frappe.db.exists(SERVICE, name):
			frappe.get_doc({
				"doctype": SERVICE,
				"service_name": name,
				"duration_minutes": duration,
				"price": 20,
				"is_active": 1,
			}).insert(ignore_permissions=True)


def ensure_user(email: str, roles=()) -> str:
	if not frappe.db.exists("Role", DEFAULT_MANAGER_ROLE):
		frappe.get_doc({"doctype": "Role", "role_name": DEFAULT_MANAGER_ROLE}).insert(ignore_permissions=True)

	if not frappe.db.exists("User", email):
		frappe.get_doc({
			"doctype": "User",
			"email": email,
			"first_name": email.split("@")[0],
			"send_welcome_email": 0,
		}).insert(ignore_permissions=True)

	if roles:
		frappe.get_doc("User", email).add_roles(*roles)

	return email


def ensure_users() -> None:
	ensure_user(CLIENT)
	ensure_user(OTHER_CLIENT)
	ensure_user(MANAGER, roles=(DEFAULT_MANAGER_ROLE,))


def open_every_day() -> None:
	"""Salon Calendar abierto los 7 días, 09:00-13:00 y 15:00-19:00, sin overrides."""
	calendar = frappe.get_doc(CALENDAR)
	calendar.timezone = None
	calendar.set("weekly_hours", [])
	for weekday in WEEKDAYS:
		calendar.append("weekly_hours", {
			"weekday": weekday.value,
			"closed": 0,
			"morning_open": "09:00:00",
			"morning_close": "13:00:00",
			"afternoon_open": "15:00:00",
			"afternoon_close": "19:00:00",
		})
	calendar.set("overrides", [])
	calendar.save(ignore_permissions=True)


def close_day(day: date, reason: str = "Cerrado por pruebas") -> None:
	calendar = frappe.get_doc(CALENDAR)
	calendar.append("overrides", {"date": day, "reason": reason, "closed": 1})
	calendar.save(ignore_permissions=True)


def booking_day(days_ahead: int = 1) -> date:
	"""Fecha futura en la zona del negocio."""
	return business_now(load_calendar()).date() + timedelta(days=days_ahead)


def client_actor(user: str = CLIENT) -> Actor:
	return Actor(user=user, roles=frozenset({"All"}), is_manager=False)


def manager_actor() -> Actor:
	return Actor(user=MANAGER, roles=frozenset({DEFAULT_MANAGER_ROLE}), is_manager=True)


def setup_salon() -> None:
	ensure_services()
	ensure_users()
	open_every_day()
