"""
Tests for scheduling/tasks.py

Tests the scheduled reminder and displaced appointment sweeps.
"""

import unittest
from unittest.mock import patch

import frappe

from salon_booking.salon_booking.scheduling.booking import book
from salon_booking.salon_booking.scheduling.store import APPOINTMENT, BookingSettings
from salon_booking.salon_booking.scheduling.tasks import (
	reschedule_displaced_appointments,
	send_appointment_reminders,
)

from salon_booking.salon_booking.tests.utils import (
	CLIENT,
	booking_day,
	close_day,
	setup_salon,
)

TASKS = "salon_booking.salon_booking.scheduling.tasks"


class TestTasks(unittest.TestCase):
	"""Tests for scheduled task functions."""

	def setUp(self):
		setup_salon()

		patchers = [
			patch("salon_booking.salon_booking.scheduling.booking.enqueue_booking_confirmation"),
			patch("salon_booking.salon_booking.scheduling.conflicts.enqueue_rescheduling_notice"),
			patch.object(frappe.db, "commit"),
		]
		for p in patchers:
			p.start()
			self.addCleanup(p.stop)

	def tearDown(self):
		frappe.db.rollback()

	def test_reminders_mark_appointment(self):
		appointment = book(CLIENT, ["_Test Corte"], booking_day(1), "12:00")

		settings = BookingSettings(reminder_hours_before=48)
		with patch(f"{TASKS}.get_booking_settings", return_value=settings), \
			patch(f"{TASKS}.send_appointment_reminder", return_value=True) as send:
			sent = send_appointment_reminders()

		self.assertGreaterEqual(sent, 1)
		send.assert_any_call(appointment.name)
		self.assertEqual(frappe.db.get_value(APPOINTMENT, appointment.name, "reminder_sent"), 1)

	def test_reminders_are_not_sent_twice(self):
		appointment = book(CLIENT, ["_Test Corte"], booking_day(1), "12:30")
		frappe.db.set_value(APPOINTMENT, appointment.name, "reminder_sent", 1)

		settings = BookingSettings(reminder_hours_before=48)
		with patch(f"{TASKS}.get_booking_settings", return_value=settings), \
			patch(f"{TASKS}.send_appointment_reminder", return_value=True) as send:
			send_appointment_reminders()

		self.assertNotIn(appointment.name, [c.args[0] for c in send.call_args_list])

	def test_reminder_failure_does_not_stop_the_sweep(self):
		book(CLIENT, ["_Test Corte"], booking_day(1), "11:00")

		settings = BookingSettings(reminder_hours_before=48)
		with patch(f"{TASKS}.get_booking_settings", return_value=settings), \
			patch(f"{TASKS}.send_appointment_reminder", side_effect=Exception("smtp down")), \
			patch("frappe.log_error") as log_error:
			sent = send_appointment_reminders()

		self.assertEqual(sent, 0)
		log_error.assert_called()

	def test_reminders_disabled(self):
		with patch(f"{TASKS}.get_booking_settings", return_value=BookingSettings(send_notifications=False)):
			self.assertEqual(send_appointment_reminders(), 0)

	def test_displaced_appointment_is_rescheduled(self):
		day = booking_day(3)
		appointment = book(CLIENT, ["_Test Corte"], day, "10:00")

		close_day(day)
		result = reschedule_displaced_appointments()

		self.assertGreaterEqual(result["rescheduled"], 1)
		self.assertEqual(frappe.db.get_value(APPOINTMENT, appointment.name, "status"), "Cancelled")

		replacement = frappe.get_all(
			APPOINTMENT,
			filters={"rescheduled_from": appointment.name},
			fields=["status", "appointment_date"],
		)
		self.assertEqual(len(replacement), 1)
		self.assertEqual(replacement[0].status, "Confirmed")
		self.assertGreater(replacement[0].appointment_date, day)

	def test_offered_appointments_are_left_alone(self):
		appointment = book(CLIENT, ["_Test Corte"], booking_day(3), "15:00")

		reschedule_displaced_appointments()

		self.assertEqual(frappe.db.get_value(APPOINTMENT, appointment.name, "status"), "Pending")
