"""
Conflict Resolver

Moves an appointment whose slot was lost (taken by a concurrent booking, or
no longer offered after a calendar change) to the earliest free slot within
`rebooking_horizon_days`. When nothing is free the displaced appointment is
flagged as Needs Rescheduling for manual follow-up.
"""

from datetime import date, time
from typing import Iterable, Optional, Tuple

import frappe
from frappe import _
from frappe.utils import getdate

from salon_booking.salon_booking.notifications.appointment import enqueue_rescheduling_notice

from .availability import next_available_slot
from .calendar import to_time
from .exceptions import InvalidTransitionError, SlotConflictError, UnresolvableConflictError
from .lifecycle import CANCELLED, CONFIRMED, NEEDS_RESCHEDULING, PENDING
from .slots import format_time
from .store import (
	APPOINTMENT,
	Actor,
	business_now,
	find_services_by_ids,
	get_appointment,
	get_booked_times,
	get_booking_settings,
	load_calendar,
	require_manager,
)

# Reintentos si otro booker toma el slot encontrado antes de insertarlo
MAX_RESOLVE_ATTEMPTS = 3

RESCHEDULABLE_STATUSES = (PENDING, CONFIRMED, NEEDS_RESCHEDULING)


def find_next_available_slot(
	from_date,
	from_time,
	duration: int,
	max_days_ahead: Optional[int] = None,
) -> Optional[Tuple[date, time]]:
	"""
	Próximo slot libre desde (from_date, from_time).

	Args:
		from_date: fecha original
		from_time: hora original; en esa fecha solo se consideran horas posteriores
		duration: duración total en minutos
		max_days_ahead: días a recorrer (default rebooking_horizon_days)

	Returns:
		(fecha, hora) o None
	"""
	settings = get_booking_settings()
	calendar = load_calendar()
	if max_days_ahead is None:
		max_days_ahead = settings.rebooking_horizon_days

	from_date = getdate(from_date)
	from_time = to_time(from_time)

	# No proponer horas que ya pasaron
	now = business_now(calendar)
	if from_date < now.date():
		from_date, from_time = now.date(), now.time()
	elif from_date == now.date() and from_time < now.time():
		from_time = now.time()

	return next_available_slot(
		calendar,
		from_date,
		from_time,
		duration,
		booked_times_for=get_booked_times,
		granularity_minutes=settings.slot_granularity_minutes,
		max_days_ahead=max_days_ahead,
	)


def resolve_conflict(
	user: str,
	service_ids: Iterable[str],
	from_date,
	from_time,
	displaced: Optional[str] = None,
	max_days_ahead: Optional[int] = None,
):
	"""
	Reubica una reserva en el próximo slot libre.

	Args:
		user: dueño de la reserva
		service_ids: servicios de la reserva
		from_date: fecha original
		from_time: hora original
		displaced: cita existente que se reemplaza (si la hay)
		max_days_ahead: horizonte de búsqueda en días

	Returns:
		Salon Appointment nuevo, en estado Confirmed

	Raises:
		UnresolvableConflictError: no hay slot libre en el horizonte; la
			cita desplazada queda en Needs Rescheduling
	"""
	from .booking import book

	service_ids = list(service_ids)
	services = find_services_by_ids(service_ids)
	duration = sum(s.duration_minutes for s in services)
	from_date = getdate(from_date)
	from_time = to_time(from_time)

	appointment = None
	for attempt in range(MAX_RESOLVE_ATTEMPTS):
		next_slot = find_next_available_slot(from_date, from_time, duration, max_days_ahead)
		if not next_slot:
			break

		new_date, new_time = next_slot
		try:
			appointment = book(
				user,
				service_ids,
				new_date,
				new_time,
				status=CONFIRMED,
				notes=_("Automatically rescheduled from {0} {1} due to a scheduling conflict").format(
					from_date, format_time(from_time)
				),
				rescheduled_from=displaced,
				notify=False,
				enforce_horizon=False,
			)
			break
		except SlotConflictError:
			frappe.clear_messages()
			frappe.logger("salon_booking").info(
				f"Slot {new_date} {format_time(new_time)} taken while rescheduling "
				f"(intento {attempt + 1}/{MAX_RESOLVE_ATTEMPTS})"
			)

	if appointment is None:
		if displaced:
			_mark_needs_rescheduling(displaced)
		frappe.log_error(
			f"No free slot within the rebooking horizon for {user} "
			f"(from {from_date} {format_time(from_time)}, {duration} min, displaced: {displaced})",
			"Salon Booking Conflict"
		)
		frappe.throw(
			_("No free slot was found after {0} {1}; the appointment needs manual rescheduling").format(
				from_date, format_time(from_time)
			),
			UnresolvableConflictError
		)

	if displaced:
		_release_displaced(displaced, appointment.name)

	frappe.logger("salon_booking").info(
		f"Conflict resolved for {user}: {from_date} {format_time(from_time)} -> "
		f"{appointment.appointment_date} {appointment.appointment_time} ({appointment.name})"
	)

	if get_booking_settings().send_notifications:
		enqueue_rescheduling_notice(appointment.name, str(from_date), format_time(from_time))

	return appointment


def resolve_displaced(appointment):
	"""Reubica una cita existente usando sus propios servicios y horario."""
	return resolve_conflict(
		appointment.user,
		[row.service for row in appointment.services],
		appointment.appointment_date,
		appointment.appointment_time,
		displaced=appointment.name,
	)


def reschedule_appointment(appointment_name: str, actor: Actor):
	"""
	Reprograma manualmente una cita al próximo slot libre. Solo managers.

	Raises:
		InvalidTransitionError: la cita ya está completada o cancelada
		UnresolvableConflictError: no hay slot libre en el horizonte
	"""
	require_manager(actor)
	appointment = get_appointment(appointment_name)

	if appointment.status not in RESCHEDULABLE_STATUSES:
		frappe.throw(
			_("Appointment {0} is {1} and cannot be rescheduled").format(
				appointment.name, appointment.status
			),
			InvalidTransitionError
		)

	return resolve_displaced(appointment)


def _release_displaced(appointment_name: str, replacement: str) -> None:
	appointment = frappe.get_doc(APPOINTMENT, appointment_name)
	if appointment.status == CANCELLED:
		return

	appointment.status = CANCELLED
	appointment.cancellation_reason = _("Rescheduled to {0}").format(replacement)
	appointment.save(ignore_permissions=True)


def _mark_needs_rescheduling(appointment_name: str) -> None:
	appointment = frappe.get_doc(APPOINTMENT, appointment_name)
	if appointment.status == NEEDS_RESCHEDULING:
		return

	appointment.status = NEEDS_RESCHEDULING
	appointment.flags.by_conflict_resolver = True
	appointment.save(ignore_permissions=True)
