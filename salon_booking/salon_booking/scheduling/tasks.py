"""
Scheduled Tasks

Background tasks that run periodically:
- send_appointment_reminders: Emails clients ahead of upcoming appointments
- reschedule_displaced_appointments: Moves appointments the calendar no longer allows
"""

from datetime import datetime, timedelta
from typing import Dict

import frappe
from frappe.utils import getdate

from salon_booking.salon_booking.notifications.appointment import send_appointment_reminder

from .availability import is_generated_slot
from .calendar import to_time
from .conflicts import resolve_displaced
from .exceptions import UnresolvableConflictError
from .lifecycle import CONFIRMED, PENDING
from .store import APPOINTMENT, business_now, get_booking_settings, load_calendar


def send_appointment_reminders() -> int:
	"""
	Envía recordatorios de citas que empiezan dentro de reminder_hours_before.
	Se ejecuta cada hora (configurado en hooks.py).

	Algoritmo:
		1. Buscar citas Pending/Confirmed con reminder_sent = 0 entre
		   ahora y ahora + reminder_hours_before
		2. Para cada una, enviar el email y marcar reminder_sent
		3. Un error en una cita no detiene el resto

	Returns:
		int: Cantidad de recordatorios enviados
	"""
	settings = get_booking_settings()
	if not settings.send_notifications:
		return 0

	calendar = load_calendar()
	current_time = business_now(calendar)
	until = current_time + timedelta(hours=settings.reminder_hours_before)

	# 1. Candidatas por fecha; la hora se filtra abajo
	candidates = frappe.get_all(
		APPOINTMENT,
		filters={
			"status": ["in", [PENDING, CONFIRMED]],
			"reminder_sent": 0,
			"appointment_date": ["between", [current_time.date(), until.date()]],
		},
		fields=["name", "appointment_date", "appointment_time"],
		order_by="appointment_date asc, appointment_time asc",
	)

	sent_count = 0

	# 2. Enviar
	for candidate in candidates:
		starts_at = datetime.combine(
			getdate(candidate.appointment_date), to_time(candidate.appointment_time)
		)
		if not current_time <= starts_at <= until:
			continue

		try:
			if send_appointment_reminder(candidate.name):
				frappe.db.set_value(
					APPOINTMENT, candidate.name, "reminder_sent", 1, update_modified=False
				)
				sent_count += 1

		except Exception as e:
			frappe.log_error(
				message=f"Error al enviar recordatorio de {candidate.name}: {str(e)}",
				title="Salon Booking Reminder Failed"
			)
			continue

	if sent_count > 0:
		frappe.logger("salon_booking").info(
			f"send_appointment_reminders: {sent_count} recordatorios enviados"
		)

	frappe.db.commit()

	return sent_count


def reschedule_displaced_appointments() -> Dict[str, int]:
	"""
	Reubica citas futuras cuyo slot ya no ofrece el calendario
	(p. ej. tras agregar un día cerrado). Se ejecuta diariamente.

	Algoritmo:
		1. Buscar citas Pending/Confirmed desde hoy en adelante
		2. Descartar las que siguen siendo un slot generado
		3. Pasar el resto al Conflict Resolver; si no hay slot libre,
		   la cita queda en Needs Rescheduling

	Returns:
		dict: {"rescheduled": int, "needs_rescheduling": int}
	"""
	settings = get_booking_settings()
	calendar = load_calendar()
	today = business_now(calendar).date()

	upcoming = frappe.get_all(
		APPOINTMENT,
		filters={
			"status": ["in", [PENDING, CONFIRMED]],
			"appointment_date": [">=", today],
		},
		fields=["name", "appointment_date", "appointment_time", "total_duration"],
		order_by="appointment_date asc, appointment_time asc",
	)

	result = {"rescheduled": 0, "needs_rescheduling": 0}

	for row in upcoming:
		if is_generated_slot(
			calendar,
			getdate(row.appointment_date),
			to_time(row.appointment_time),
			row.total_duration,
			settings.slot_granularity_minutes,
		):
			continue

		try:
			appointment = frappe.get_doc(APPOINTMENT, row.name)
			new_appointment = resolve_displaced(appointment)
			result["rescheduled"] += 1

			frappe.logger("salon_booking").info(
				f"Cita desplazada {row.name} reprogramada como {new_appointment.name}"
			)

		except UnresolvableConflictError:
			frappe.clear_messages()
			result["needs_rescheduling"] += 1

		except Exception as e:
			frappe.logger("salon_booking").error(
				f"Error al reprogramar cita desplazada {row.name}: {str(e)}"
			)
			continue

	if result["rescheduled"] or result["needs_rescheduling"]:
		frappe.logger("salon_booking").info(
			f"reschedule_displaced_appointments: {result['rescheduled']} reprogramadas, "
			f"{result['needs_rescheduling']} requieren reprogramación manual"
		)

	frappe.db.commit()

	return result
