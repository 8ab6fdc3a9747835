# Copyright (c) 2026, Sebastian Ortiz Valencia and contributors
# For license information, please see license.txt

"""
Appointment Notification Service

Sends email notifications for appointment events:
  - booking confirmation (after a reservation is committed)
  - rescheduling notice (after the Conflict Resolver moves a reservation)
  - reminder (from the hourly scheduler task)

Confirmation and rescheduling emails run as background jobs enqueued after
commit; a failure to enqueue or send is logged and never undoes the booking.
"""

from typing import Any, Dict, List, Optional

import frappe
from frappe import _
from frappe.utils import format_date, get_url, getdate

from salon_booking.salon_booking.scheduling.calendar import to_time
from salon_booking.salon_booking.scheduling.slots import format_time

NOTIFICATIONS_MODULE = "salon_booking.salon_booking.notifications.appointment"


def has_outgoing_email() -> bool:
	"""Return True if at least one outgoing Email Account is configured in Frappe."""
	return bool(frappe.db.count("Email Account", {"enable_outgoing": 1}))


# ===== ENQUEUE =====

def enqueue_booking_confirmation(appointment_name: str) -> None:
	_enqueue("send_booking_confirmation", appointment_name=appointment_name)


def enqueue_rescheduling_notice(appointment_name: str, old_date: str, old_time: str) -> None:
	_enqueue(
		"send_rescheduling_notice",
		appointment_name=appointment_name,
		old_date=old_date,
		old_time=old_time,
	)


def _enqueue(method: str, **kwargs) -> None:
	try:
		frappe.enqueue(
			f"{NOTIFICATIONS_MODULE}.{method}",
			queue="short",
			enqueue_after_commit=True,
			**kwargs
		)
	except Exception as e:
		frappe.log_error(
			message=f"Failed to enqueue {method} for {kwargs.get('appointment_name')}: {str(e)}",
			title="Salon Booking Notification Failed"
		)


# ===== JOBS =====

def send_booking_confirmation(appointment_name: str) -> None:
	"""
	Envía el email de confirmación de reserva al cliente.

	Args:
		appointment_name: Salon Appointment recién creado
	"""
	try:
		if not _can_send(appointment_name):
			return

		appointment = frappe.get_doc("Salon Appointment", appointment_name)
		recipient = get_recipient(appointment.user)
		if not recipient:
			return

		context = build_appointment_context(appointment)
		frappe.sendmail(
			recipients=[recipient["email"]],
			subject=_("[Reserva Confirmada] {0} - {1}").format(
				context["date"], context["time"]
			),
			template="salon_appointment_confirmation",
			args=context,
		)

		frappe.logger("salon_booking").info(
			f"Booking confirmation sent for {appointment_name} to {recipient['email']}"
		)

	except Exception as e:
		frappe.log_error(
			message=f"Failed to send booking confirmation for {appointment_name}: {str(e)}",
			title="Salon Booking Notification Failed"
		)


def send_rescheduling_notice(appointment_name: str, old_date: str, old_time: str) -> None:
	"""
	Avisa al cliente que su cita fue movida por el Conflict Resolver.

	Args:
		appointment_name: nueva Salon Appointment
		old_date: fecha original ("YYYY-MM-DD")
		old_time: hora original ("HH:MM")
	"""
	try:
		if not _can_send(appointment_name):
			return

		appointment = frappe.get_doc("Salon Appointment", appointment_name)
		recipient = get_recipient(appointment.user)
		if not recipient:
			return

		context = build_appointment_context(appointment)
		context.update({
			"old_date": format_date(getdate(old_date)),
			"old_time": old_time,
		})

		frappe.sendmail(
			recipients=[recipient["email"]],
			subject=_("[Cita Reprogramada] {0} {1} -> {2} {3}").format(
				context["old_date"], old_time, context["date"], context["time"]
			),
			template="salon_appointment_rescheduled",
			args=context,
		)

		frappe.logger("salon_booking").info(
			f"Rescheduling notice sent for {appointment_name} to {recipient['email']}"
		)

	except Exception as e:
		frappe.log_error(
			message=f"Failed to send rescheduling notice for {appointment_name}: {str(e)}",
			title="Salon Booking Notification Failed"
		)


def send_appointment_reminder(appointment_name: str) -> bool:
	"""
	Envía el recordatorio de una cita próxima.

	A diferencia de los otros envíos, los errores se propagan: la tarea
	programada decide si marcar reminder_sent.

	Returns:
		bool: True si el email se envió
	"""
	if not has_outgoing_email():
		frappe.logger("salon_booking").warning(
			f"Reminder skipped for {appointment_name}: no outgoing Email Account configured"
		)
		return False

	appointment = frappe.get_doc("Salon Appointment", appointment_name)
	recipient = get_recipient(appointment.user)
	if not recipient:
		return False

	context = build_appointment_context(appointment)
	frappe.sendmail(
		recipients=[recipient["email"]],
		subject=_("[Recordatorio] Tu cita del {0} a las {1}").format(
			context["date"], context["time"]
		),
		template="salon_appointment_reminder",
		args=context,
	)
	return True


# ===== CONTEXT =====

def get_recipient(user: str) -> Optional[Dict[str, Any]]:
	details = frappe.db.get_value("User", user, ["email", "full_name"], as_dict=True)
	if not details or not details.email:
		frappe.logger("salon_booking").info(f"No email address for {user}, skipping notification")
		return None
	return details


def build_appointment_context(appointment) -> Dict[str, Any]:
	"""Variables de plantilla comunes a todos los emails de citas."""
	recipient = get_recipient(appointment.user) or {}
	services: List[str] = [row.service_name or row.service for row in appointment.services]

	return {
		"appointment_name": appointment.name,
		"appointment_url": f"{get_url()}/app/salon-appointment/{appointment.name}",
		"client_name": recipient.get("full_name") or appointment.user,
		"date": format_date(getdate(appointment.appointment_date)),
		"time": format_time(to_time(appointment.appointment_time)),
		"services": services,
		"total_duration": appointment.total_duration,
		"status": appointment.status,
		"notes": appointment.notes or "",
	}


def _can_send(appointment_name: str) -> bool:
	if not has_outgoing_email():
		frappe.logger("salon_booking").warning(
			f"Notification skipped for {appointment_name}: "
			"no outgoing Email Account configured in Frappe."
		)
		return False
	return True
