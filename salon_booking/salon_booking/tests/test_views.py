"""
Tests for scheduling/views.py
"""

import unittest
from datetime import date, datetime, timedelta

from salon_booking.salon_booking.scheduling.views import AppointmentView, to_view


class TestAppointmentView(unittest.TestCase):
	def setUp(self):
		self.record = {
			"name": "SA-2024-00001",
			"user": "client@example.com",
			"appointment_date": date(2024, 1, 1),
			"appointment_time": timedelta(hours=9, minutes=30),
			"total_duration": 75,
			"status": "Pending",
			"notes": "",
			"reminder_sent": 0,
			"creation": datetime(2023, 12, 20, 18, 5, 1, 123456),
			"modified": "2023-12-20 18:05:01.123456",
			"services": [
				{"service": "Corte", "service_name": "Corte", "duration_minutes": 45},
				{"service": "Barba", "service_name": None, "duration_minutes": 30},
			],
		}

	def test_maps_record_fields(self):
		view = to_view(self.record)

		self.assertIsInstance(view, AppointmentView)
		self.assertEqual(view.id, "SA-2024-00001")
		self.assertEqual(view.date, "2024-01-01")
		self.assertEqual(view.time, "09:30")
		self.assertEqual(view.total_duration, 75)
		self.assertIsNone(view.notes)
		self.assertFalse(view.reminder_sent)
		self.assertEqual(view.created, "2023-12-20 18:05:01")

	def test_services_keep_order_and_fall_back_to_id(self):
		view = to_view(self.record)

		self.assertEqual([s.id for s in view.services], ["Corte", "Barba"])
		self.assertEqual(view.services[1].name, "Barba")

	def test_as_dict_is_plain(self):
		data = to_view(self.record).as_dict()

		self.assertEqual(data["services"][0], {"id": "Corte", "name": "Corte", "duration_minutes": 45})
		self.assertEqual(data["status"], "Pending")

	def test_string_time_and_missing_optional_fields(self):
		record = dict(self.record, appointment_time="14:00:00", services=None)
		del record["creation"]

		view = to_view(record)

		self.assertEqual(view.time, "14:00")
		self.assertEqual(view.services, ())
		self.assertIsNone(view.created)
		self.assertIsNone(view.rescheduled_from)
