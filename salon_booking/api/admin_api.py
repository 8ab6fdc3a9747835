"""
Admin API Endpoints

Whitelisted functions for salon managers:
- Appointment status changes (confirm, complete) and manual rescheduling
- Appointment listing and statistics
- Business calendar read/update
"""

import frappe
from frappe import _
from frappe.utils import add_months, get_first_day, getdate
from typing import Dict, List, Any, Optional

from salon_booking.salon_booking.scheduling.booking import (
	complete_appointment as complete_booking,
	confirm_appointment as confirm_booking,
)
from salon_booking.salon_booking.scheduling.calendar import to_time
from salon_booking.salon_booking.scheduling.conflicts import reschedule_appointment as reschedule_booking
from salon_booking.salon_booking.scheduling.exceptions import UnresolvableConflictError
from salon_booking.salon_booking.scheduling.lifecycle import ACTIVE_STATUSES, STATUSES
from salon_booking.salon_booking.scheduling.slots import format_time
from salon_booking.salon_booking.scheduling.store import (
	APPOINTMENT,
	CALENDAR,
	appointment_records,
	business_now,
	load_calendar,
)
from salon_booking.salon_booking.scheduling.views import to_view

from salon_booking.api.shared import (
	BOOKING_ERRORS,
	attach_error_payload,
	check_rate_limit,
	current_manager,
	validate_date_string,
	validate_docname,
)

WINDOW_FIELDS = ("morning_open", "morning_close", "afternoon_open", "afternoon_close")

STATS_MONTHS = 6


@frappe.whitelist(methods=['POST', 'PUT'])
def confirm_appointment(appointment_name: str) -> Dict[str, Any]:
	"""
	Pending -> Confirmed.

	Returns:
		dict: {"success": bool, "action": "confirmed" | "none", "appointment": AppointmentView}
	"""
	return _change_status(appointment_name, confirm_booking, "confirmed")


@frappe.whitelist(methods=['POST', 'PUT'])
def complete_appointment(appointment_name: str) -> Dict[str, Any]:
	"""
	Confirmed -> Completed.

	Returns:
		dict: {"success": bool, "action": "completed" | "none", "appointment": AppointmentView}
	"""
	return _change_status(appointment_name, complete_booking, "completed")


@frappe.whitelist(methods=['POST', 'PUT'])
def reschedule_appointment(appointment_name: str) -> Dict[str, Any]:
	"""
	Mueve una cita al próximo slot libre usando el Conflict Resolver.

	Si no hay slot libre dentro de rebooking_horizon_days, la cita queda en
	Needs Rescheduling y se responde con success = False.

	Returns:
		dict: {
			"success": bool,
			"action": "rescheduled" | "needs_rescheduling",
			"message": str,
			"appointment": AppointmentView | None
		}
	"""
	check_rate_limit("admin_reschedule_appointment", limit=30, seconds=60)

	appointment_name = validate_docname(appointment_name, "appointment_name")

	try:
		actor = current_manager()

		try:
			appointment = reschedule_booking(appointment_name, actor)
		except UnresolvableConflictError as e:
			frappe.clear_messages()
			# El cambio a Needs Rescheduling se conserva
			frappe.db.commit()
			return {
				"success": False,
				"action": "needs_rescheduling",
				"message": str(e),
				"appointment": None,
			}

		frappe.db.commit()

		return {
			"success": True,
			"action": "rescheduled",
			"message": _("Cita reprogramada para {0} {1}").format(
				appointment.appointment_date, format_time(to_time(appointment.appointment_time))
			),
			"appointment": to_view(appointment.as_dict()).as_dict(),
		}

	except BOOKING_ERRORS as e:
		attach_error_payload(e)
		raise
	except Exception as e:
		frappe.log_error(f"Error in reschedule_appointment: {str(e)}", "API Error")
		frappe.throw(_("Error al reprogramar la cita"))


@frappe.whitelist(methods=['GET'])
def get_all_appointments(
	from_date: Optional[str] = None,
	to_date: Optional[str] = None,
	status: Optional[str] = None
) -> List[Dict[str, Any]]:
	"""
	Lista citas filtradas, ordenadas por fecha y hora.

	Args:
		from_date: fecha inicial (YYYY-MM-DD)
		to_date: fecha final (YYYY-MM-DD)
		status: uno o varios status separados por coma

	Returns:
		list[dict]: AppointmentView + user_name y user_email
	"""
	check_rate_limit("admin_get_all_appointments", limit=60, seconds=60)

	filters: List[List[Any]] = []
	if from_date:
		from_date = validate_date_string(from_date, "from_date")
		filters.append([APPOINTMENT, "appointment_date", ">=", from_date])
	if to_date:
		to_date = validate_date_string(to_date, "to_date")
		filters.append([APPOINTMENT, "appointment_date", "<=", to_date])
	if from_date and to_date and getdate(from_date) > getdate(to_date):
		frappe.throw(_("from_date debe ser menor o igual que to_date"), frappe.ValidationError)

	if status:
		statuses = [s.strip() for s in status.split(",") if s.strip()]
		invalid = [s for s in statuses if s not in STATUSES]
		if invalid:
			frappe.throw(_("Invalid status: {0}").format(", ".join(invalid)), frappe.ValidationError)
		filters.append([APPOINTMENT, "status", "in", statuses])

	try:
		current_manager()

		records = appointment_records(filters)

		users = {r.user for r in records}
		user_details = {
			u.name: u
			for u in frappe.get_all(
				"User",
				filters={"name": ["in", list(users)]},
				fields=["name", "full_name", "email"],
			)
		} if users else {}

		result = []
		for record in records:
			view = to_view(record).as_dict()
			details = user_details.get(record.user) or {}
			view["user_name"] = details.get("full_name")
			view["user_email"] = details.get("email")
			result.append(view)

		return result

	except BOOKING_ERRORS as e:
		attach_error_payload(e)
		raise
	except Exception as e:
		frappe.log_error(f"Error in get_all_appointments: {str(e)}", "API Error")
		frappe.throw(_("Error al obtener citas"))


@frappe.whitelist(methods=['GET'])
def get_appointment_stats() -> Dict[str, Any]:
	"""
	Estadísticas para el panel de administración.

	Returns:
		dict: {
			"today": int,                       # citas activas hoy
			"by_status": {"Pending": 3, ...},
			"monthly": [{"month": "2026-01", "count": 12}, ...]  # últimos 6 meses
		}
	"""
	check_rate_limit("admin_get_appointment_stats", limit=30, seconds=60)

	try:
		current_manager()

		today = business_now(load_calendar()).date()
		active = list(ACTIVE_STATUSES)

		today_count = frappe.db.count(
			APPOINTMENT,
			{"appointment_date": today, "status": ["in", active]}
		)

		by_status = {status: 0 for status in STATUSES}
		for row in frappe.db.sql(
			"""
			SELECT status, COUNT(*) AS count
			FROM `tabSalon Appointment`
			GROUP BY status
			""",
			as_dict=True,
		):
			by_status[row.status] = row.count

		first_month = getdate(get_first_day(add_months(today, -(STATS_MONTHS - 1))))
		monthly_rows = frappe.db.sql(
			"""
			SELECT
				EXTRACT(YEAR FROM appointment_date) AS year,
				EXTRACT(MONTH FROM appointment_date) AS month,
				COUNT(*) AS count
			FROM `tabSalon Appointment`
			WHERE appointment_date >= %(from_date)s
			AND appointment_date <= %(to_date)s
			AND status IN %(statuses)s
			GROUP BY year, month
			""",
			{"from_date": first_month, "to_date": today, "statuses": tuple(active)},
			as_dict=True,
		)
		counts = {(int(r.year), int(r.month)): r.count for r in monthly_rows}

		monthly = []
		for offset in range(STATS_MONTHS):
			month_start = getdate(add_months(first_month, offset))
			monthly.append({
				"month": month_start.strftime("%Y-%m"),
				"count": counts.get((month_start.year, month_start.month), 0),
			})

		return {
			"today": today_count,
			"by_status": by_status,
			"monthly": monthly,
		}

	except BOOKING_ERRORS as e:
		attach_error_payload(e)
		raise
	except Exception as e:
		frappe.log_error(f"Error in get_appointment_stats: {str(e)}", "API Error")
		frappe.throw(_("Error al obtener estadísticas"))


@frappe.whitelist(methods=['GET'])
def get_schedule() -> Dict[str, Any]:
	"""
	Horario semanal y overrides del Salon Calendar.

	Returns:
		dict: {
			"timezone": str | None,
			"version": str,
			"weekly_hours": [{"weekday", "closed", "morning_open", ...}],
			"overrides": [{"date", "reason", "closed", "morning_open", ...}]
		}
	"""
	try:
		current_manager()
		return _schedule_as_dict(frappe.get_doc(CALENDAR))

	except BOOKING_ERRORS as e:
		attach_error_payload(e)
		raise
	except Exception as e:
		frappe.log_error(f"Error in get_schedule: {str(e)}", "API Error")
		frappe.throw(_("Error al obtener el horario"))


@frappe.whitelist(methods=['POST', 'PUT'])
def update_schedule(
	weekly_hours: Any = None,
	overrides: Any = None,
	timezone: Optional[str] = None
) -> Dict[str, Any]:
	"""
	Reemplaza el horario semanal y/o los overrides del Salon Calendar.

	Las citas existentes no se tocan; reschedule_displaced_appointments
	reubica las que queden fuera del nuevo horario.

	Args:
		weekly_hours: lista de filas (JSON) o None para no modificar
		overrides: lista de filas (JSON) o None para no modificar
		timezone: zona horaria del negocio o None para no modificar

	Returns:
		dict: el horario actualizado (ver get_schedule)
	"""
	check_rate_limit("admin_update_schedule", limit=10, seconds=60)

	try:
		current_manager()

		calendar_doc = frappe.get_doc(CALENDAR)

		if weekly_hours is not None:
			calendar_doc.set("weekly_hours", [])
			for row in frappe.parse_json(weekly_hours) or []:
				calendar_doc.append("weekly_hours", _schedule_row(row, ("weekday",)))

		if overrides is not None:
			calendar_doc.set("overrides", [])
			for row in frappe.parse_json(overrides) or []:
				calendar_doc.append("overrides", _schedule_row(row, ("date", "reason")))

		if timezone is not None:
			calendar_doc.timezone = timezone or None

		calendar_doc.save(ignore_permissions=True)
		frappe.db.commit()

		frappe.logger("salon_booking").info(
			f"Salon Calendar updated by {frappe.session.user}"
		)

		return _schedule_as_dict(calendar_doc)

	except BOOKING_ERRORS as e:
		attach_error_payload(e)
		raise
	except Exception as e:
		frappe.log_error(f"Error in update_schedule: {str(e)}", "API Error")
		frappe.throw(_("Error al actualizar el horario"))


def _change_status(appointment_name: str, operation, action: str) -> Dict[str, Any]:
	check_rate_limit(f"admin_{action}_appointment", limit=60, seconds=60)

	appointment_name = validate_docname(appointment_name, "appointment_name")

	try:
		actor = current_manager()

		appointment, changed = operation(appointment_name, actor)
		if changed:
			frappe.db.commit()

		return {
			"success": True,
			"action": action if changed else "none",
			"appointment": to_view(appointment.as_dict()).as_dict(),
		}

	except BOOKING_ERRORS as e:
		attach_error_payload(e)
		raise
	except Exception as e:
		frappe.log_error(f"Error in {action} appointment: {str(e)}", "API Error")
		frappe.throw(_("Error al actualizar la cita"))


def _schedule_row(row: Dict[str, Any], key_fields) -> Dict[str, Any]:
	if not isinstance(row, dict):
		frappe.throw(_("Each schedule row must be an object"), frappe.ValidationError)

	values = {field: row.get(field) for field in key_fields}
	values["closed"] = 1 if row.get("closed") else 0
	for field in WINDOW_FIELDS:
		values[field] = None if values["closed"] else (row.get(field) or None)
	return values


def _schedule_as_dict(calendar_doc) -> Dict[str, Any]:
	def windows(row) -> Dict[str, Any]:
		return {
			field: format_time(to_time(row.get(field))) if row.get(field) else None
			for field in WINDOW_FIELDS
		}

	return {
		"timezone": calendar_doc.timezone or None,
		"version": str(calendar_doc.modified) if calendar_doc.modified else None,
		"weekly_hours": [
			{"weekday": row.weekday, "closed": bool(row.closed), **windows(row)}
			for row in calendar_doc.weekly_hours
		],
		"overrides": [
			{
				"date": getdate(row.date).isoformat(),
				"reason": row.reason,
				"closed": bool(row.closed),
				**windows(row),
			}
			for row in calendar_doc.overrides
		],
	}
