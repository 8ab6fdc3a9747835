# Copyright (c) 2026, Sebastian Ortiz Valencia and contributors
# For license information, please see license.txt

"""
Salon Appointment DocType

A client's reservation of one (date, time) slot for one or more services.
Reservations are created through scheduling.booking.book and are never
deleted; cancelling frees the slot.
"""

import frappe
from frappe import _
from frappe.model.document import Document
from frappe.utils import cint, getdate

from salon_booking.salon_booking.scheduling.booking import MAX_TOTAL_DURATION, MIN_TOTAL_DURATION
from salon_booking.salon_booking.scheduling.calendar import to_time
from salon_booking.salon_booking.scheduling.exceptions import (
	BookingValidationError,
	InvalidTransitionError,
	OutOfRangeError,
)
from salon_booking.salon_booking.scheduling.lifecycle import (
	INITIAL_STATUSES,
	STATUSES,
	can_transition,
	holds_slot,
)
from salon_booking.salon_booking.scheduling.store import business_now, load_calendar, slot_key


class SalonAppointment(Document):
	"""
	Flujo:
	1. book() valida horizonte, servicios, slot y exclusividad, e inserta
	2. El status avanza según lifecycle.TRANSITIONS
	3. slot_key (único) solo tiene valor mientras el status ocupa el slot
	"""

	def validate(self) -> None:
		"""
		Validación antes de guardar.

		Ejecuta:
		1. Campos requeridos
		2. user y (date, time) no cambian después de crear
		3. total_duration = suma de servicios, dentro de 1..480
		4. Fecha no pasada al crear
		5. Transición de status válida
		6. Calcular slot_key
		"""
		self._validate_required_fields()
		self._validate_immutable_fields()
		self._set_total_duration()
		self._validate_date_not_in_past()
		self._validate_status_transition()
		self._set_slot_key()

	def on_trash(self) -> None:
		frappe.throw(_("Appointments cannot be deleted, cancel them instead"))

	# ===== VALIDATION METHODS =====

	def _validate_required_fields(self) -> None:
		if not self.user:
			frappe.throw(_("User is required"), BookingValidationError)
		if not self.appointment_date or not self.appointment_time:
			frappe.throw(_("Appointment date and time are required"), BookingValidationError)
		if not self.services:
			frappe.throw(_("At least one service is required"), BookingValidationError)
		if self.status not in STATUSES:
			frappe.throw(_("Invalid status {0}").format(self.status), BookingValidationError)

	def _validate_immutable_fields(self) -> None:
		"""Reprogramar crea una cita nueva; la existente no se mueve."""
		if self.is_new():
			return

		before = self.get_doc_before_save()
		if not before:
			return

		if before.user != self.user:
			frappe.throw(_("The appointment owner cannot be changed"), BookingValidationError)

		if (
			getdate(before.appointment_date) != getdate(self.appointment_date)
			or to_time(before.appointment_time) != to_time(self.appointment_time)
		):
			frappe.throw(
				_("Appointment date and time cannot be changed, reschedule it instead"),
				BookingValidationError
			)

	def _set_total_duration(self) -> None:
		self.total_duration = sum(cint(row.duration_minutes) for row in self.services)

		if not MIN_TOTAL_DURATION <= self.total_duration <= MAX_TOTAL_DURATION:
			frappe.throw(
				_("Total duration must be between {0} and {1} minutes").format(
					MIN_TOTAL_DURATION, MAX_TOTAL_DURATION
				),
				BookingValidationError
			)

	def _validate_date_not_in_past(self) -> None:
		if not self.is_new():
			return

		today = business_now(load_calendar()).date()
		if getdate(self.appointment_date) < today:
			frappe.throw(
				_("Cannot create an appointment on a past date ({0})").format(self.appointment_date),
				OutOfRangeError
			)

	def _validate_status_transition(self) -> None:
		"""
		Valida el cambio de status contra el ciclo de vida.

		Needs Rescheduling solo se acepta con flags.by_conflict_resolver.
		"""
		if self.is_new():
			if self.status not in INITIAL_STATUSES:
				frappe.throw(
					_("New appointments must start as Pending or Confirmed"),
					InvalidTransitionError
				)
			return

		before = self.get_doc_before_save()
		if not before or before.status == self.status:
			return

		if not can_transition(
			before.status,
			self.status,
			by_conflict_resolver=bool(self.flags.by_conflict_resolver),
		):
			frappe.throw(
				_("Cannot change appointment status from {0} to {1}").format(before.status, self.status),
				InvalidTransitionError
			)

	def _set_slot_key(self) -> None:
		"""slot_key solo existe mientras la cita ocupa su slot."""
		if holds_slot(self.status):
			self.slot_key = slot_key(self.appointment_date, self.appointment_time)
		else:
			self.slot_key = None

		self.appointment_time = to_time(self.appointment_time).strftime("%H:%M:%S")


def on_doctype_update():
	frappe.db.add_index("Salon Appointment", ["appointment_date", "appointment_time"])
	frappe.db.add_index("Salon Appointment", ["user", "appointment_date"])
