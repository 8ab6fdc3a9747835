"""
Booking Service

Creates reservations and applies status changes to them.

A booking runs four checks in order:
1. The requested date lies inside the booking horizon
2. Every requested service exists (total duration = sum of durations)
3. The requested time is a slot the current calendar offers for that duration
4. No active reservation holds the same (date, time)

Checks 3-4 and the insert run inside a savepoint with a bounded lock wait.
The unique `slot_key` column is the final arbiter between concurrent
bookings of the same slot: the losing insert surfaces as SlotConflictError.
Lock contention and a lost database connection surface as TransientError.
"""

from datetime import date, time
from typing import Iterable, List, Optional, Tuple

import frappe
from frappe import _
from frappe.utils import add_months, getdate

from salon_booking.salon_booking.notifications.appointment import enqueue_booking_confirmation

from .availability import is_generated_slot, is_within_horizon
from .calendar import Calendar, to_time
from .exceptions import (
	BookingPermissionError,
	BookingValidationError,
	OutOfRangeError,
	SlotConflictError,
	SlotUnavailableError,
	TransientError,
)
from .lifecycle import CANCELLED, COMPLETED, CONFIRMED, INITIAL_STATUSES, PENDING
from .slots import format_time
from .store import (
	APPOINTMENT,
	Actor,
	BookingSettings,
	ServiceRef,
	business_now,
	find_services_by_ids,
	get_appointment,
	get_booking_settings,
	get_slot_holder,
	is_store_unavailable,
	load_calendar,
	lock_timeout,
	require_manager,
)

MIN_TOTAL_DURATION = 1
MAX_TOTAL_DURATION = 480

BOOKING_SAVEPOINT = "salon_booking_reserve"


def book(
	user: str,
	service_ids: Iterable[str],
	appointment_date,
	appointment_time,
	*,
	status: Optional[str] = None,
	notes: Optional[str] = None,
	rescheduled_from: Optional[str] = None,
	auto_rebook: bool = False,
	notify: bool = True,
	enforce_horizon: bool = True,
):
	"""
	Crea una reserva validando horizonte, servicios, slot y exclusividad.

	Args:
		user: usuario dueño de la cita
		service_ids: IDs de Salon Service
		appointment_date: fecha (date o "YYYY-MM-DD")
		appointment_time: hora de inicio (time o "HH:MM")
		status: Pending o Confirmed (default según auto_confirm)
		notes: nota libre guardada en la cita
		rescheduled_from: cita desplazada que esta reserva reemplaza
		auto_rebook: si el slot está tomado, delegar al Conflict Resolver
		notify: encolar email de confirmación tras el commit
		enforce_horizon: False para reubicaciones del Conflict Resolver

	Returns:
		Salon Appointment creado

	Raises:
		OutOfRangeError, UnknownServiceError, BookingValidationError,
		SlotUnavailableError, SlotConflictError, TransientError
	"""
	day = getdate(appointment_date)
	start = to_time(appointment_time)

	try:
		settings = get_booking_settings()
		calendar = load_calendar()

		# 1. Horizonte
		if enforce_horizon:
			check_booking_horizon(calendar, settings, day, start)

		# 2. Servicios
		services = find_services_by_ids(service_ids)
	except Exception as e:
		_raise_if_store_unavailable(e, day, start)
		raise

	total_duration = validate_total_duration(services)

	if status is None:
		status = CONFIRMED if settings.auto_confirm else PENDING
	if status not in INITIAL_STATUSES:
		frappe.throw(
			_("New appointments must start as Pending or Confirmed, not {0}").format(status),
			BookingValidationError
		)

	try:
		frappe.db.savepoint(BOOKING_SAVEPOINT)
		with lock_timeout(settings.lock_timeout_seconds):
			appointment = _reserve(
				user,
				services,
				day,
				start,
				total_duration,
				status,
				notes=notes,
				rescheduled_from=rescheduled_from,
				settings=settings,
			)
	except SlotConflictError:
		_undo_reservation()
		if not auto_rebook:
			raise

		frappe.clear_messages()
		frappe.logger("salon_booking").info(
			f"Slot {day} {format_time(start)} taken, buscando alternativa para {user}"
		)
		from .conflicts import resolve_conflict

		return resolve_conflict(user, [s.id for s in services], day, start)
	except Exception as e:
		# Un deadlock en InnoDB ya deshizo la transacción y sus savepoints
		_undo_reservation(full_rollback=isinstance(e, frappe.QueryDeadlockError))
		_raise_if_store_unavailable(e, day, start)
		raise

	frappe.db.release_savepoint(BOOKING_SAVEPOINT)

	frappe.logger("salon_booking").info(
		f"Appointment {appointment.name} booked for {user} on {day} {format_time(start)} "
		f"({total_duration} min, {status})"
	)

	if notify and settings.send_notifications:
		enqueue_booking_confirmation(appointment.name)

	return appointment


def _reserve(
	user: str,
	services: List[ServiceRef],
	day: date,
	start: time,
	total_duration: int,
	status: str,
	notes: Optional[str],
	rescheduled_from: Optional[str],
	settings: BookingSettings,
):
	"""Checks 3-4 e inserción. Debe ejecutarse dentro del savepoint."""
	# 3. Re-validar contra el calendario vigente
	calendar = load_calendar()
	if not is_generated_slot(calendar, day, start, total_duration, settings.slot_granularity_minutes):
		frappe.throw(
			_("{0} at {1} is not an available slot for a {2} minute appointment").format(
				day, format_time(start), total_duration
			),
			SlotUnavailableError
		)

	# 4. Exclusividad
	holder = get_slot_holder(day, start)
	if holder:
		frappe.throw(
			_("The slot {0} {1} is already booked").format(day, format_time(start)),
			SlotConflictError
		)

	appointment = frappe.get_doc({
		"doctype": APPOINTMENT,
		"user": user,
		"appointment_date": day,
		"appointment_time": format_time(start),
		"status": status,
		"notes": notes,
		"rescheduled_from": rescheduled_from,
		"services": [
			{
				"service": service.id,
				"service_name": service.name,
				"duration_minutes": service.duration_minutes,
			}
			for service in services
		],
	})

	try:
		appointment.insert(ignore_permissions=True)
	except frappe.UniqueValidationError:
		# Otra transacción ganó el slot entre el check 4 y el insert
		frappe.clear_messages()
		frappe.throw(
			_("The slot {0} {1} is already booked").format(day, format_time(start)),
			SlotConflictError
		)

	return appointment


def _undo_reservation(full_rollback: bool = False) -> None:
	"""Deshace la reserva en curso sin ocultar el error original."""
	try:
		if full_rollback:
			frappe.db.rollback()
		else:
			frappe.db.rollback(save_point=BOOKING_SAVEPOINT)
	except Exception as e:
		# Savepoint descartado por el servidor o conexión perdida
		frappe.logger("salon_booking").warning(f"Could not roll back booking savepoint: {str(e)}")


def _raise_if_store_unavailable(exc: Exception, day: date, start: time) -> None:
	if not is_store_unavailable(exc):
		return

	frappe.logger("salon_booking").warning(
		f"Store unavailable booking {day} {format_time(start)}: {str(exc)}"
	)
	frappe.throw(
		_("The booking could not be completed right now, please try again"),
		TransientError
	)


def check_booking_horizon(
	calendar: Calendar,
	settings: BookingSettings,
	day: date,
	start: Optional[time] = None,
) -> None:
	"""
	Valida que la fecha esté entre hoy y hoy + booking_horizon_months.

	En el día en curso, las horas ya pasadas tampoco se aceptan.

	Raises:
		OutOfRangeError: fecha u hora fuera del horizonte
	"""
	now = business_now(calendar)
	today = now.date()
	last_day = getdate(add_months(today, settings.booking_horizon_months))

	if not is_within_horizon(day, today, last_day):
		frappe.throw(
			_("Appointments can only be booked between {0} and {1}").format(today, last_day),
			OutOfRangeError
		)

	if start is not None and day == today and start <= now.time():
		frappe.throw(
			_("{0} has already passed today").format(format_time(start)),
			OutOfRangeError
		)


def validate_total_duration(services: List[ServiceRef]) -> int:
	"""Suma las duraciones y valida el rango permitido."""
	total = sum(service.duration_minutes for service in services)
	if not MIN_TOTAL_DURATION <= total <= MAX_TOTAL_DURATION:
		frappe.throw(
			_("Total duration must be between {0} and {1} minutes, got {2}").format(
				MIN_TOTAL_DURATION, MAX_TOTAL_DURATION, total
			),
			BookingValidationError
		)
	return total


# ===== STATUS CHANGES =====

def cancel_appointment(
	appointment_name: str,
	actor: Actor,
	reason: Optional[str] = None,
) -> Tuple[object, bool]:
	"""
	Cancela una cita. Solo el dueño o un manager pueden hacerlo.

	Cancelar una cita ya cancelada no hace nada.

	Returns:
		(appointment, changed)
	"""
	appointment = get_appointment(appointment_name)

	if appointment.user != actor.user and not actor.is_manager:
		frappe.throw(_("You can only cancel your own appointments"), BookingPermissionError)

	if appointment.status == CANCELLED:
		return appointment, False

	appointment.status = CANCELLED
	appointment.cancellation_reason = reason or (
		_("Cancelled by the salon") if appointment.user != actor.user else _("Cancelled by the client")
	)
	appointment.save(ignore_permissions=True)

	frappe.logger("salon_booking").info(
		f"Appointment {appointment.name} cancelled by {actor.user}"
	)
	return appointment, True


def confirm_appointment(appointment_name: str, actor: Actor) -> Tuple[object, bool]:
	"""Pending -> Confirmed. Solo managers."""
	return _change_status(appointment_name, actor, CONFIRMED)


def complete_appointment(appointment_name: str, actor: Actor) -> Tuple[object, bool]:
	"""Confirmed -> Completed. Solo managers."""
	return _change_status(appointment_name, actor, COMPLETED)


def _change_status(appointment_name: str, actor: Actor, target: str) -> Tuple[object, bool]:
	require_manager(actor)
	appointment = get_appointment(appointment_name)

	if appointment.status == target:
		return appointment, False

	# La validación de la transición vive en el controller
	appointment.status = target
	appointment.save(ignore_permissions=True)

	frappe.logger("salon_booking").info(
		f"Appointment {appointment.name} -> {target} by {actor.user}"
	)
	return appointment, True
