"""
Tests for scheduling/booking.py

Booking checks, exclusivity, contention and status changes.
"""

import unittest
from datetime import timedelta
from unittest.mock import patch

import frappe
import pymysql
from frappe.utils import add_months

from salon_booking.salon_booking.scheduling.booking import (
	book,
	cancel_appointment,
	complete_appointment,
	confirm_appointment,
)
from salon_booking.salon_booking.scheduling.exceptions import (
	BookingPermissionError,
	InvalidTransitionError,
	OutOfRangeError,
	SlotConflictError,
	SlotUnavailableError,
	TransientError,
	UnknownServiceError,
)
from salon_booking.salon_booking.scheduling.store import APPOINTMENT, BookingSettings, is_store_unavailable

from salon_booking.salon_booking.tests.utils import (
	CLIENT,
	OTHER_CLIENT,
	booking_day,
	client_actor,
	manager_actor,
	setup_salon,
)

BOOKING = "salon_booking.salon_booking.scheduling.booking"


class TestBooking(unittest.TestCase):
	"""Tests for book()."""

	def setUp(self):
		setup_salon()
		self.day = booking_day(2)
		patcher = patch(f"{BOOKING}.enqueue_booking_confirmation")
		self.enqueue = patcher.start()
		self.addCleanup(patcher.stop)

	def tearDown(self):
		frappe.db.rollback()

	def test_books_pending_appointment(self):
		appointment = book(CLIENT, ["_Test Corte", "_Test Color"], self.day, "10:00")

		self.assertEqual(appointment.status, "Pending")
		self.assertEqual(appointment.total_duration, 90)
		self.assertEqual(appointment.slot_key, f"{self.day.isoformat()} 10:00")
		self.assertEqual([row.service for row in appointment.services], ["_Test Corte", "_Test Color"])
		self.enqueue.assert_called_once_with(appointment.name)

	def test_auto_confirm_setting(self):
		with patch(f"{BOOKING}.get_booking_settings", return_value=BookingSettings(auto_confirm=True)):
			appointment = book(CLIENT, ["_Test Corte"], self.day, "09:00")

		self.assertEqual(appointment.status, "Confirmed")

	def test_horizon_rejected_before_store_access(self):
		far_day = add_months(self.day, 3)

		with patch(f"{BOOKING}.find_services_by_ids") as find_services, \
			patch(f"{BOOKING}.get_slot_holder") as slot_holder:
			with self.assertRaises(OutOfRangeError):
				book(CLIENT, ["_Test Corte"], far_day, "10:00")

		find_services.assert_not_called()
		slot_holder.assert_not_called()

	def test_past_date_rejected(self):
		with self.assertRaises(OutOfRangeError):
			book(CLIENT, ["_Test Corte"], self.day - timedelta(days=5), "10:00")

	def test_unknown_service(self):
		with self.assertRaises(UnknownServiceError):
			book(CLIENT, ["_Test Corte", "_Test Inexistente"], self.day, "10:00")

	def test_off_grid_time_is_unavailable(self):
		with self.assertRaises(SlotUnavailableError):
			book(CLIENT, ["_Test Corte"], self.day, "10:15")

	def test_service_longer_than_remaining_window(self):
		# 12:30 + 60 min pasa del cierre de las 13:00
		with self.assertRaises(SlotUnavailableError):
			book(CLIENT, ["_Test Color"], self.day, "12:30")

	def test_same_slot_conflicts(self):
		book(CLIENT, ["_Test Corte"], self.day, "11:00")

		with self.assertRaises(SlotConflictError):
			book(OTHER_CLIENT, ["_Test Color"], self.day, "11:00")

		self.assertEqual(
			frappe.db.count(APPOINTMENT, {"appointment_date": self.day, "appointment_time": "11:00:00"}),
			1
		)

	def test_cancelled_appointment_frees_slot(self):
		first = book(CLIENT, ["_Test Corte"], self.day, "11:00")
		cancel_appointment(first.name, client_actor())

		second = book(OTHER_CLIENT, ["_Test Corte"], self.day, "11:00")

		self.assertEqual(second.slot_key, first.slot_key)
		self.assertIsNone(frappe.db.get_value(APPOINTMENT, first.name, "slot_key"))

	def test_unique_index_backstops_concurrent_insert(self):
		# Simula que ambas transacciones pasaron el check de exclusividad
		with patch(f"{BOOKING}.get_slot_holder", return_value=None):
			book(CLIENT, ["_Test Corte"], self.day, "15:00")
			with self.assertRaises(SlotConflictError):
				book(OTHER_CLIENT, ["_Test Corte"], self.day, "15:00")

		self.assertEqual(
			frappe.db.count(APPOINTMENT, {"slot_key": f"{self.day.isoformat()} 15:00"}),
			1
		)

	def test_lock_timeout_is_transient(self):
		with patch(f"{BOOKING}._reserve", side_effect=frappe.QueryTimeoutError("Lock wait timeout")):
			with self.assertRaises(TransientError) as ctx:
				book(CLIENT, ["_Test Corte"], self.day, "16:00")

		self.assertTrue(ctx.exception.retriable)
		self.assertFalse(frappe.db.exists(APPOINTMENT, {"slot_key": f"{self.day.isoformat()} 16:00"}))

	def test_deadlock_is_transient(self):
		real_rollback = frappe.db.rollback

		def rollback(**kwargs):
			# InnoDB descarta la transacción completa, savepoints incluidos
			if kwargs.get("save_point"):
				raise Exception("SAVEPOINT salon_booking_reserve does not exist")
			return real_rollback(**kwargs)

		with patch(f"{BOOKING}._reserve", side_effect=frappe.QueryDeadlockError("Deadlock found")), \
			patch.object(frappe.db, "rollback", side_effect=rollback) as rollback_mock:
			with self.assertRaises(TransientError) as ctx:
				book(CLIENT, ["_Test Corte"], self.day, "16:30")

		self.assertTrue(ctx.exception.retriable)
		rollback_mock.assert_called_once_with()

	def test_lost_connection_reading_services_is_transient(self):
		if frappe.db.db_type != "mariadb":
			self.skipTest("MariaDB error codes")

		lost = pymysql.err.OperationalError(2013, "Lost connection to MySQL server during query")
		with patch(f"{BOOKING}.find_services_by_ids", side_effect=lost):
			with self.assertRaises(TransientError) as ctx:
				book(CLIENT, ["_Test Corte"], self.day, "17:00")

		self.assertTrue(ctx.exception.retriable)

	def test_lost_connection_inside_savepoint_is_transient(self):
		if frappe.db.db_type != "mariadb":
			self.skipTest("MariaDB error codes")

		gone = pymysql.err.OperationalError(2006, "MySQL server has gone away")
		with patch(f"{BOOKING}.get_slot_holder", side_effect=gone):
			with self.assertRaises(TransientError):
				book(CLIENT, ["_Test Corte"], self.day, "17:30")

		self.assertFalse(frappe.db.exists(APPOINTMENT, {"slot_key": f"{self.day.isoformat()} 17:30"}))

	def test_failed_rollback_keeps_original_error(self):
		with patch(f"{BOOKING}._reserve", side_effect=ValueError("broken row")), \
			patch.object(frappe.db, "rollback", side_effect=Exception("connection closed")):
			with self.assertRaises(ValueError):
				book(CLIENT, ["_Test Corte"], self.day, "18:00")

	def test_lock_wait_timeout_is_restored(self):
		if frappe.db.db_type != "mariadb":
			self.skipTest("innodb_lock_wait_timeout is MariaDB only")

		def session_timeout():
			return frappe.db.sql("SELECT @@SESSION.innodb_lock_wait_timeout")[0][0]

		previous = session_timeout()

		book(CLIENT, ["_Test Corte"], self.day, "18:30")
		self.assertEqual(session_timeout(), previous)

		with self.assertRaises(SlotConflictError):
			book(OTHER_CLIENT, ["_Test Corte"], self.day, "18:30")
		self.assertEqual(session_timeout(), previous)

	def test_store_unavailable_classification(self):
		self.assertTrue(is_store_unavailable(frappe.QueryTimeoutError("Lock wait timeout")))
		self.assertTrue(is_store_unavailable(frappe.QueryDeadlockError("Deadlock found")))
		self.assertFalse(is_store_unavailable(frappe.ValidationError("bad input")))
		self.assertFalse(is_store_unavailable(ValueError("broken row")))

	def test_slot_key_is_unique_in_schema(self):
		self.assertTrue(frappe.get_meta(APPOINTMENT).get_field("slot_key").unique)

	def test_auto_rebook_moves_to_next_free_slot(self):
		book(CLIENT, ["_Test Corte"], self.day, "17:00")

		with patch("salon_booking.salon_booking.scheduling.conflicts.enqueue_rescheduling_notice"):
			moved = book(OTHER_CLIENT, ["_Test Corte"], self.day, "17:00", auto_rebook=True)

		self.assertEqual(moved.status, "Confirmed")
		self.assertEqual(str(moved.appointment_time)[:5], "17:30")
		self.assertIn("rescheduled", moved.notes)


class TestBookingNotifications(unittest.TestCase):
	def setUp(self):
		setup_salon()
		self.day = booking_day(3)

	def tearDown(self):
		frappe.db.rollback()

	def test_enqueue_failure_keeps_the_booking(self):
		with patch("frappe.enqueue", side_effect=Exception("redis down")), \
			patch("frappe.log_error") as log_error:
			appointment = book(CLIENT, ["_Test Corte"], self.day, "10:00")

		self.assertTrue(frappe.db.exists(APPOINTMENT, appointment.name))
		log_error.assert_called_once()

	def test_notify_false_skips_enqueue(self):
		with patch(f"{BOOKING}.enqueue_booking_confirmation") as enqueue:
			book(CLIENT, ["_Test Corte"], self.day, "10:30", notify=False)

		enqueue.assert_not_called()


class TestStatusChanges(unittest.TestCase):
	"""Tests for cancel / confirm / complete."""

	def setUp(self):
		setup_salon()
		self.day = booking_day(4)
		with patch(f"{BOOKING}.enqueue_booking_confirmation"):
			self.appointment = book(CLIENT, ["_Test Corte"], self.day, "09:30")

	def tearDown(self):
		frappe.db.rollback()

	def test_cancel_is_idempotent(self):
		_doc, changed = cancel_appointment(self.appointment.name, client_actor(), "No puedo asistir")
		self.assertTrue(changed)

		doc, changed = cancel_appointment(self.appointment.name, client_actor())
		self.assertFalse(changed)
		self.assertEqual(doc.status, "Cancelled")
		self.assertEqual(doc.cancellation_reason, "No puedo asistir")

	def test_only_owner_or_manager_can_cancel(self):
		with self.assertRaises(BookingPermissionError):
			cancel_appointment(self.appointment.name, client_actor(OTHER_CLIENT))

		_doc, changed = cancel_appointment(self.appointment.name, manager_actor())
		self.assertTrue(changed)

	def test_confirm_then_complete(self):
		doc, changed = confirm_appointment(self.appointment.name, manager_actor())
		self.assertTrue(changed)
		self.assertEqual(doc.status, "Confirmed")

		doc, changed = complete_appointment(self.appointment.name, manager_actor())
		self.assertTrue(changed)
		self.assertEqual(doc.status, "Completed")

		# Completed sigue ocupando el slot
		self.assertEqual(doc.slot_key, f"{self.day.isoformat()} 09:30")

	def test_pending_cannot_be_completed(self):
		with self.assertRaises(InvalidTransitionError):
			complete_appointment(self.appointment.name, manager_actor())

	def test_client_cannot_confirm(self):
		with self.assertRaises(BookingPermissionError):
			confirm_appointment(self.appointment.name, client_actor())

	def test_cancelled_cannot_be_completed(self):
		cancel_appointment(self.appointment.name, client_actor())

		with self.assertRaises(InvalidTransitionError):
			complete_appointment(self.appointment.name, manager_actor())
