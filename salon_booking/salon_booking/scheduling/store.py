"""
Reservation Store

Database bindings for the scheduling core:
- Loading the Salon Calendar and Salon Booking Settings singles
- Service catalog lookup
- Reservation queries keyed by (date, time) and by (user, date)
- Identity of the acting user
"""

from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import Any, Dict, Iterable, List, Optional, Set

import frappe
import pytz
from frappe import _
from frappe.utils import cint, get_system_timezone, getdate

from .calendar import Calendar, to_time
from .exceptions import BookingPermissionError, ConfigurationError, NotFoundError, UnknownServiceError
from .lifecycle import ACTIVE_STATUSES

APPOINTMENT = "Salon Appointment"
APPOINTMENT_SERVICE = "Salon Appointment Service"
CALENDAR = "Salon Calendar"
SETTINGS = "Salon Booking Settings"
SERVICE = "Salon Service"

DEFAULT_MANAGER_ROLE = "Salon Manager"

# MariaDB: can't connect, server has gone away, lost connection during query
LOST_CONNECTION_CODES = (2003, 2006, 2013)


@dataclass
class BookingSettings:
	booking_horizon_months: int = 2
	slot_granularity_minutes: int = 30
	rebooking_horizon_days: int = 7
	lock_timeout_seconds: int = 5
	auto_confirm: bool = False
	send_notifications: bool = True
	reminder_hours_before: int = 24
	manager_role: str = DEFAULT_MANAGER_ROLE


@dataclass(frozen=True)
class ServiceRef:
	id: str
	name: str
	duration_minutes: int


@dataclass(frozen=True)
class Actor:
	"""Usuario autenticado que ejecuta la operación."""

	user: str
	email: Optional[str] = None
	full_name: Optional[str] = None
	roles: frozenset = field(default_factory=frozenset)
	is_manager: bool = False


# ===== CONFIGURATION =====

def get_booking_settings() -> BookingSettings:
	"""Lee Salon Booking Settings aplicando defaults a campos vacíos."""
	doc = frappe.get_cached_doc(SETTINGS)
	defaults = BookingSettings()

	return BookingSettings(
		booking_horizon_months=cint(doc.booking_horizon_months) or defaults.booking_horizon_months,
		slot_granularity_minutes=cint(doc.slot_granularity_minutes) or defaults.slot_granularity_minutes,
		rebooking_horizon_days=cint(doc.rebooking_horizon_days) or defaults.rebooking_horizon_days,
		lock_timeout_seconds=cint(doc.lock_timeout_seconds) or defaults.lock_timeout_seconds,
		auto_confirm=bool(cint(doc.auto_confirm)),
		send_notifications=bool(cint(doc.send_notifications)),
		reminder_hours_before=cint(doc.reminder_hours_before) or defaults.reminder_hours_before,
		manager_role=doc.manager_role or defaults.manager_role,
	)


def load_calendar() -> Calendar:
	"""
	Carga el Salon Calendar como valor inmutable.

	Se lee siempre de la base de datos (sin cache) para que una reserva
	valide contra el calendario vigente al momento de confirmar.
	"""
	doc = frappe.get_doc(CALENDAR)

	try:
		calendar = Calendar.from_rows(
			doc.get("weekly_hours") or [],
			doc.get("overrides") or [],
			timezone=doc.timezone or None,
			version=str(doc.modified) if doc.modified else None,
		)
	except ValueError as e:
		frappe.throw(_("Salon Calendar is misconfigured: {0}").format(str(e)), ConfigurationError)

	missing = calendar.missing_weekdays()
	if missing:
		frappe.logger("salon_booking").warning(
			f"Salon Calendar has no opening hours for {', '.join(w.value for w in missing)}; "
			"those days are treated as closed"
		)

	return calendar


def get_business_timezone(calendar: Calendar) -> pytz.BaseTzInfo:
	"""Zona horaria del negocio (o la del sistema si no está configurada)."""
	tz_name = calendar.timezone or get_system_timezone()

	try:
		return pytz.timezone(tz_name)
	except pytz.UnknownTimeZoneError:
		frappe.log_error(
			f"Invalid timezone '{tz_name}' for Salon Calendar, usando UTC",
			"Salon Calendar"
		)
		return pytz.UTC


def business_now(calendar: Calendar) -> datetime:
	"""Fecha y hora actual en la zona del negocio (naive, sin segundos)."""
	tz = get_business_timezone(calendar)
	return datetime.now(tz).replace(tzinfo=None, second=0, microsecond=0)


# ===== SERVICE CATALOG =====

def find_services_by_ids(service_ids: Iterable[str]) -> List[ServiceRef]:
	"""
	Busca servicios activos por ID, preservando el orden pedido.

	Raises:
		UnknownServiceError: si algún ID no existe o no está activo
	"""
	ids = list(dict.fromkeys(s for s in service_ids if s))
	if not ids:
		frappe.throw(_("At least one service is required"), UnknownServiceError)

	rows = frappe.get_all(
		SERVICE,
		filters={"name": ["in", ids], "is_active": 1},
		fields=["name", "service_name", "duration_minutes"]
	)
	by_name = {row.name: row for row in rows}

	missing = [service_id for service_id in ids if service_id not in by_name]
	if missing:
		frappe.throw(
			_("Unknown service(s): {0}").format(", ".join(missing)),
			UnknownServiceError
		)

	return [
		ServiceRef(
			id=by_name[service_id].name,
			name=by_name[service_id].service_name or by_name[service_id].name,
			duration_minutes=cint(by_name[service_id].duration_minutes),
		)
		for service_id in ids
	]


# ===== RESERVATIONS =====

def slot_key(day: date, start: time) -> str:
	"""Clave única (date, time) de una reserva activa."""
	return f"{getdate(day).strftime('%Y-%m-%d')} {to_time(start).strftime('%H:%M')}"


def get_booked_times(day: date, exclude_appointment: Optional[str] = None) -> Set[time]:
	"""Horas de inicio ocupadas por reservas activas en una fecha."""
	filters: Dict[str, Any] = {
		"appointment_date": getdate(day),
		"status": ["in", list(ACTIVE_STATUSES)],
	}
	if exclude_appointment:
		filters["name"] = ["!=", exclude_appointment]

	times = frappe.get_all(APPOINTMENT, filters=filters, pluck="appointment_time")
	return {to_time(value) for value in times if value is not None}


def get_slot_holder(day: date, start: time) -> Optional[str]:
	"""Nombre de la reserva activa que ocupa (date, time), si existe."""
	return frappe.db.get_value(APPOINTMENT, {"slot_key": slot_key(day, start)}, "name")


@contextmanager
def lock_timeout(seconds: int):
	"""
	Limita la espera por locks dentro del bloque y restaura el valor anterior.

	MariaDB: la variable es de sesión; se restaura siempre.
	Postgres: SET LOCAL; un ROLLBACK TO SAVEPOINT ya la deshace, así que
	solo se restaura cuando el bloque termina bien.
	"""
	seconds = max(1, cint(seconds))

	if frappe.db.db_type == "mariadb":
		previous = frappe.db.sql("SELECT @@SESSION.innodb_lock_wait_timeout")[0][0]
		frappe.db.sql("SET SESSION innodb_lock_wait_timeout = %s", (seconds,))
		try:
			yield
		finally:
			_restore_lock_timeout("SET SESSION innodb_lock_wait_timeout = %s", previous)

	elif frappe.db.db_type == "postgres":
		previous = frappe.db.sql("SHOW lock_timeout")[0][0]
		frappe.db.sql(f"SET LOCAL lock_timeout = '{seconds}s'")
		yield
		_restore_lock_timeout("SET LOCAL lock_timeout = %s", previous)

	else:
		yield


def _restore_lock_timeout(statement: str, previous) -> None:
	try:
		frappe.db.sql(statement, (previous,))
	except Exception as e:
		# Conexión perdida: la sesión ya no existe
		frappe.logger("salon_booking").warning(f"Could not restore lock wait timeout: {str(e)}")


def is_store_unavailable(exc: Exception) -> bool:
	"""
	True si el error indica contención de locks o conexión perdida con la
	base de datos, es decir, si reintentar puede funcionar.
	"""
	if isinstance(exc, (frappe.QueryTimeoutError, frappe.QueryDeadlockError)):
		return True

	db = getattr(frappe.local, "db", None)
	if db is None:
		return False

	if db.is_interface_error(exc):
		return True

	if db.db_type == "mariadb":
		return bool(exc.args) and exc.args[0] in LOST_CONNECTION_CODES

	if db.db_type == "postgres":
		# Clase SQLSTATE 08: connection exception
		if str(getattr(exc, "pgcode", None) or "").startswith("08"):
			return True
		conn = getattr(db, "_conn", None)
		return bool(conn is not None and getattr(conn, "closed", 0))

	return False


def get_appointment(appointment_name: str):
	"""
	Obtiene un Salon Appointment.

	Raises:
		NotFoundError: si no existe
	"""
	if not appointment_name or not frappe.db.exists(APPOINTMENT, appointment_name):
		frappe.throw(_("Appointment {0} not found").format(appointment_name), NotFoundError)
	return frappe.get_doc(APPOINTMENT, appointment_name)


def appointment_records(
	filters: Optional[Any] = None,
	order_by: str = "appointment_date asc, appointment_time asc",
	limit: Optional[int] = None,
) -> List[Dict[str, Any]]:
	"""
	Lista reservas como dicts con su tabla de servicios incluida.

	Returns:
		list[dict]: registros listos para views.to_view
	"""
	records = frappe.get_all(
		APPOINTMENT,
		filters=filters or {},
		fields=[
			"name",
			"user",
			"appointment_date",
			"appointment_time",
			"total_duration",
			"status",
			"cancellation_reason",
			"notes",
			"reminder_sent",
			"rescheduled_from",
			"creation",
			"modified",
		],
		order_by=order_by,
		limit_page_length=limit or 0,
	)
	if not records:
		return []

	service_rows = frappe.get_all(
		APPOINTMENT_SERVICE,
		filters={"parenttype": APPOINTMENT, "parent": ["in", [r.name for r in records]]},
		fields=["parent", "service", "service_name", "duration_minutes"],
		order_by="idx asc",
	)
	services_by_parent: Dict[str, List[Dict[str, Any]]] = {}
	for row in service_rows:
		services_by_parent.setdefault(row.parent, []).append(row)

	for record in records:
		record["services"] = services_by_parent.get(record.name, [])

	return records


# ===== IDENTITY =====

def get_actor(user: Optional[str] = None) -> Actor:
	"""
	Construye el Actor a partir de la sesión de Frappe.

	Raises:
		BookingPermissionError: si la sesión es de Guest
	"""
	user = user or frappe.session.user
	if not user or user == "Guest":
		frappe.throw(_("Please log in to manage appointments"), BookingPermissionError)

	roles = frozenset(frappe.get_roles(user))
	manager_role = get_booking_settings().manager_role
	details = frappe.db.get_value("User", user, ["email", "full_name"], as_dict=True) or {}

	return Actor(
		user=user,
		email=details.get("email"),
		full_name=details.get("full_name"),
		roles=roles,
		is_manager=manager_role in roles or "System Manager" in roles,
	)


def require_manager(actor: Actor) -> None:
	if not actor.is_manager:
		frappe.throw(_("Only salon managers can perform this action"), BookingPermissionError)
