"""
Appointment API Endpoints

Whitelisted functions for the booking frontend.
Calendar queries allow guest access; booking, cancelling and listing
require a logged-in user. Security protections:
- Rate limiting by IP address
- Honeypot validation for bot detection
- Input sanitization
"""

import frappe
from frappe import _
from frappe.utils import add_months, cint, getdate
from typing import Dict, List, Any, Optional

from salon_booking.salon_booking.scheduling.availability import available_start_times, partition_days
from salon_booking.salon_booking.scheduling.booking import book, cancel_appointment as cancel_booking
from salon_booking.salon_booking.scheduling.store import (
	business_now,
	find_services_by_ids,
	get_booked_times,
	get_booking_settings,
	load_calendar,
	appointment_records,
)
from salon_booking.salon_booking.scheduling.views import to_view

from salon_booking.api.shared import (
	BOOKING_ERRORS,
	attach_error_payload,
	check_honeypot,
	check_rate_limit,
	current_actor,
	parse_service_ids,
	sanitize_string,
	validate_date_string,
	validate_docname,
	validate_time_string,
)

MAX_HORIZON_MONTHS = 12


@frappe.whitelist(allow_guest=True, methods=['GET'])
def get_available_days(horizon_months: Optional[int] = None) -> List[str]:
	"""
	Días abiertos entre hoy y hoy + horizon_months.

	Rate limited: 30 requests per minute per IP.

	Args:
		horizon_months: meses a cubrir (default booking_horizon_months)

	Returns:
		list[str]: fechas "YYYY-MM-DD" en orden ascendente

	Example:
		```javascript
		frappe.call({
			method: "salon_booking.api.appointment_api.get_available_days",
			callback: function(r) {
				console.log(r.message); // ["2026-03-02", "2026-03-03", ...]
			}
		});
		```
	"""
	check_rate_limit("get_available_days", limit=30, seconds=60)

	try:
		open_days, _closed = _partition_horizon(horizon_months)
		return [day.isoformat() for day in open_days]

	except BOOKING_ERRORS as e:
		attach_error_payload(e)
		raise
	except Exception as e:
		frappe.log_error(f"Error in get_available_days: {str(e)}", "API Error")
		frappe.throw(_("Error al obtener días disponibles"))


@frappe.whitelist(allow_guest=True, methods=['GET'])
def get_unavailable_days(horizon_months: Optional[int] = None) -> List[str]:
	"""
	Días cerrados (patrón semanal u override) entre hoy y hoy + horizon_months.

	Rate limited: 30 requests per minute per IP.

	Returns:
		list[str]: fechas "YYYY-MM-DD" en orden ascendente
	"""
	check_rate_limit("get_unavailable_days", limit=30, seconds=60)

	try:
		_open, closed_days = _partition_horizon(horizon_months)
		return [day.isoformat() for day in closed_days]

	except BOOKING_ERRORS as e:
		attach_error_payload(e)
		raise
	except Exception as e:
		frappe.log_error(f"Error in get_unavailable_days: {str(e)}", "API Error")
		frappe.throw(_("Error al obtener días no disponibles"))


@frappe.whitelist(allow_guest=True, methods=['GET'])
def get_availability(date: str, services: Optional[str] = None) -> Dict[str, Any]:
	"""
	Horas de inicio disponibles para una fecha.

	Si se indican servicios, la duración requerida es la suma de sus
	duraciones; si no, la granularidad de slots.

	Rate limited: 30 requests per minute per IP.

	Args:
		date: fecha (YYYY-MM-DD)
		services: IDs de Salon Service (JSON array o separados por coma)

	Returns:
		dict: {
			"date": "2026-03-02",
			"open": True,
			"slots": ["09:00", "09:30", ...],
			"reason": str | None,
			"out_of_range": False,   # fuera del horizonte: open según el calendario, slots vacío
			"message": str,
			"configuration_error": False
		}
	"""
	check_rate_limit("get_availability", limit=30, seconds=60)

	date = validate_date_string(date, "date")
	service_ids = parse_service_ids(services) if services else []

	try:
		day = getdate(date)
		settings = get_booking_settings()
		calendar = load_calendar()

		if service_ids:
			duration = sum(s.duration_minutes for s in find_services_by_ids(service_ids))
		else:
			duration = settings.slot_granularity_minutes

		now = business_now(calendar)
		last_day = getdate(add_months(now.date(), settings.booking_horizon_months))

		if not now.date() <= day <= last_day:
			# open sigue siendo la respuesta del calendario; solo no hay slots reservables
			schedule = calendar.schedule_for(day)
			return {
				"date": date,
				"open": not schedule.closed,
				"slots": [],
				"reason": schedule.reason,
				"out_of_range": True,
				"message": _("Solo se puede reservar entre {0} y {1}").format(now.date(), last_day),
				"configuration_error": schedule.misconfigured,
			}

		result = available_start_times(
			calendar,
			day,
			duration,
			booked_times=get_booked_times(day),
			granularity_minutes=settings.slot_granularity_minutes,
			not_before=now.time() if day == now.date() else None,
		)

		if result.configuration_error:
			frappe.log_error(
				f"Salon Calendar has no opening hours configured for {day:%A} ({date})",
				"Salon Calendar Configuration"
			)

		response = result.as_dict()
		response["date"] = date
		response["out_of_range"] = False
		if not result.open:
			response["message"] = result.reason or _("El salón está cerrado este día")
		elif not result.slots:
			response["message"] = _("No quedan horarios disponibles este día")
		else:
			response["message"] = result.reason or _("Día disponible")

		return response

	except BOOKING_ERRORS as e:
		attach_error_payload(e)
		raise
	except Exception as e:
		frappe.log_error(f"Error in get_availability: {str(e)}", "API Error")
		frappe.throw(_("Error al obtener disponibilidad"))


@frappe.whitelist(methods=['POST'])
def create_appointment(
	services: Any,
	date: str,
	time: str,
	notes: Optional[str] = None,
	honeypot: Optional[str] = None
) -> Dict[str, Any]:
	"""
	Reserva una cita para el usuario logueado.

	Rate limited: 5 requests per minute per IP.

	Args:
		services: IDs de Salon Service (JSON array o separados por coma)
		date: fecha (YYYY-MM-DD)
		time: hora de inicio (HH:MM)
		notes: nota opcional del cliente
		honeypot: campo oculto anti-bots (debe llegar vacío)

	Returns:
		dict: AppointmentView de la cita creada

	Example:
		```javascript
		frappe.call({
			method: "salon_booking.api.appointment_api.create_appointment",
			args: {
				services: ["Corte", "Barba"],
				date: "2026-03-02",
				time: "10:00"
			},
			callback: function(r) {
				console.log(r.message.status); // "Pending"
			}
		});
		```
	"""
	# Security checks
	check_honeypot(honeypot)
	check_rate_limit("create_appointment", limit=5, seconds=60)

	# Validate and sanitize inputs
	service_ids = parse_service_ids(services)
	date = validate_date_string(date, "date")
	time = validate_time_string(time, "time")
	if notes:
		notes = sanitize_string(notes, 1000)

	try:
		actor = current_actor()

		appointment = book(actor.user, service_ids, date, time, notes=notes)

		frappe.db.commit()

		return to_view(appointment.as_dict()).as_dict()

	except BOOKING_ERRORS as e:
		attach_error_payload(e)
		raise
	except Exception as e:
		frappe.log_error(f"Error in create_appointment: {str(e)}", "API Error")
		frappe.throw(_("Error al crear la cita"))


@frappe.whitelist(methods=['POST', 'PUT'])
def cancel_appointment(appointment_name: str, reason: Optional[str] = None) -> Dict[str, Any]:
	"""
	Cancela una cita propia (o cualquiera, si el usuario es manager).

	Cancelar una cita ya cancelada no es un error.

	Args:
		appointment_name: nombre del Salon Appointment
		reason: motivo opcional

	Returns:
		dict: {
			"success": bool,
			"action": "cancelled" | "none",
			"message": str
		}
	"""
	check_rate_limit("cancel_appointment", limit=10, seconds=60)

	appointment_name = validate_docname(appointment_name, "appointment_name")
	if reason:
		reason = sanitize_string(reason, 500)

	try:
		actor = current_actor()

		appointment, changed = cancel_booking(appointment_name, actor, reason)

		if not changed:
			return {
				"success": True,
				"action": "none",
				"message": _("La cita ya estaba cancelada"),
			}

		frappe.db.commit()

		return {
			"success": True,
			"action": "cancelled",
			"message": _("Cita {0} cancelada exitosamente").format(appointment.name),
		}

	except BOOKING_ERRORS as e:
		attach_error_payload(e)
		raise
	except Exception as e:
		frappe.log_error(f"Error in cancel_appointment: {str(e)}", "API Error")
		frappe.throw(_("Error al cancelar la cita"))


@frappe.whitelist(methods=['GET'])
def get_my_appointments() -> List[Dict[str, Any]]:
	"""
	Citas del usuario logueado, ordenadas por fecha y hora ascendente.

	Returns:
		list[dict]: AppointmentView de cada cita
	"""
	check_rate_limit("get_my_appointments", limit=30, seconds=60)

	try:
		actor = current_actor()

		records = appointment_records(
			{"user": actor.user},
			order_by="appointment_date asc, appointment_time asc",
		)
		return [to_view(record).as_dict() for record in records]

	except BOOKING_ERRORS as e:
		attach_error_payload(e)
		raise
	except Exception as e:
		frappe.log_error(f"Error in get_my_appointments: {str(e)}", "API Error")
		frappe.throw(_("Error al obtener tus citas"))


def _partition_horizon(horizon_months: Optional[int] = None):
	settings = get_booking_settings()
	calendar = load_calendar()

	months = cint(horizon_months) or settings.booking_horizon_months
	months = max(1, min(months, MAX_HORIZON_MONTHS))

	today = business_now(calendar).date()
	last_day = getdate(add_months(today, months))

	return partition_days(calendar, today, last_day)
