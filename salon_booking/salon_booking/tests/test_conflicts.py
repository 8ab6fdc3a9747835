"""
Tests for scheduling/conflicts.py

Tests the Conflict Resolver: next free slot search, displaced appointment
release and the Needs Rescheduling fallback.
"""

import unittest
from datetime import time
from unittest.mock import patch

import frappe

from salon_booking.salon_booking.scheduling.booking import book, cancel_appointment
from salon_booking.salon_booking.scheduling.conflicts import (
	find_next_available_slot,
	reschedule_appointment,
	resolve_conflict,
)
from salon_booking.salon_booking.scheduling.exceptions import (
	BookingPermissionError,
	InvalidTransitionError,
	UnresolvableConflictError,
)
from salon_booking.salon_booking.scheduling.store import APPOINTMENT

from salon_booking.salon_booking.tests.utils import (
	CLIENT,
	OTHER_CLIENT,
	booking_day,
	client_actor,
	manager_actor,
	setup_salon,
)

CONFLICTS = "salon_booking.salon_booking.scheduling.conflicts"


class TestConflictResolver(unittest.TestCase):
	"""Tests for resolve_conflict and reschedule_appointment."""

	def setUp(self):
		setup_salon()
		self.day = booking_day(2)

		patchers = [
			patch("salon_booking.salon_booking.scheduling.booking.enqueue_booking_confirmation"),
			patch(f"{CONFLICTS}.enqueue_rescheduling_notice"),
		]
		self.enqueue_confirmation, self.enqueue_notice = [p.start() for p in patchers]
		for p in patchers:
			self.addCleanup(p.stop)

		self.appointment = book(CLIENT, ["_Test Corte"], self.day, "10:00")

	def tearDown(self):
		frappe.db.rollback()

	def test_next_slot_skips_booked_times(self):
		book(OTHER_CLIENT, ["_Test Corte"], self.day, "10:30")

		next_slot = find_next_available_slot(self.day, "10:00", 30)

		self.assertEqual(next_slot, (self.day, time(11, 0)))

	def test_next_slot_none_when_horizon_is_full(self):
		# 480 min no entra en ninguna ventana de 4 horas
		self.assertIsNone(find_next_available_slot(self.day, "09:00", 480, max_days_ahead=2))

	def test_resolve_moves_displaced_appointment(self):
		new_appointment = resolve_conflict(
			CLIENT,
			["_Test Corte"],
			self.day,
			"10:00",
			displaced=self.appointment.name,
		)

		self.assertEqual(new_appointment.status, "Confirmed")
		self.assertEqual(new_appointment.rescheduled_from, self.appointment.name)
		self.assertEqual(str(new_appointment.appointment_time)[:5], "10:30")
		self.assertIn("rescheduled", new_appointment.notes)

		displaced = frappe.get_doc(APPOINTMENT, self.appointment.name)
		self.assertEqual(displaced.status, "Cancelled")
		self.assertIn(new_appointment.name, displaced.cancellation_reason)
		self.assertIsNone(displaced.slot_key)

		self.enqueue_notice.assert_called_once_with(new_appointment.name, str(self.day), "10:00")
		self.enqueue_confirmation.assert_called_once_with(self.appointment.name)

	def test_unresolvable_conflict_flags_appointment(self):
		with patch(f"{CONFLICTS}.find_next_available_slot", return_value=None), \
			patch("frappe.log_error") as log_error:
			with self.assertRaises(UnresolvableConflictError):
				resolve_conflict(
					CLIENT,
					["_Test Corte"],
					self.day,
					"10:00",
					displaced=self.appointment.name,
				)

		self.assertEqual(
			frappe.db.get_value(APPOINTMENT, self.appointment.name, "status"),
			"Needs Rescheduling"
		)
		log_error.assert_called_once()
		self.enqueue_notice.assert_not_called()

	def test_manager_reschedules_appointment(self):
		new_appointment = reschedule_appointment(self.appointment.name, manager_actor())

		self.assertEqual(new_appointment.rescheduled_from, self.appointment.name)
		self.assertEqual(
			frappe.db.get_value(APPOINTMENT, self.appointment.name, "status"),
			"Cancelled"
		)

	def test_client_cannot_reschedule(self):
		with self.assertRaises(BookingPermissionError):
			reschedule_appointment(self.appointment.name, client_actor())

	def test_cancelled_appointment_cannot_be_rescheduled(self):
		cancel_appointment(self.appointment.name, client_actor())

		with self.assertRaises(InvalidTransitionError):
			reschedule_appointment(self.appointment.name, manager_actor())
