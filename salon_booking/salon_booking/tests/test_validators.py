"""
Tests for api/shared/validators.py
"""

import unittest

import frappe

from salon_booking.api.shared.validators import (
	parse_service_ids,
	validate_date_string,
	validate_time_string,
)


class TestValidators(unittest.TestCase):
	def tearDown(self):
		frappe.clear_messages()

	def test_service_ids_from_json_array(self):
		self.assertEqual(
			parse_service_ids('["_Test Corte", "_Test Color", "_Test Corte"]'),
			["_Test Corte", "_Test Color"]
		)

	def test_service_ids_from_comma_string_and_list(self):
		self.assertEqual(parse_service_ids("_Test Corte, _Test Color"), ["_Test Corte", "_Test Color"])
		self.assertEqual(parse_service_ids(["_Test Color"]), ["_Test Color"])

	def test_malformed_service_list(self):
		with self.assertRaises(frappe.ValidationError):
			parse_service_ids('["_Test Corte"')
		with self.assertRaises(frappe.ValidationError):
			parse_service_ids("[]")

	def test_date_and_time_strings(self):
		self.assertEqual(validate_time_string("09:30"), "09:30")
		with self.assertRaises(frappe.ValidationError):
			validate_time_string("9h30")
		with self.assertRaises(frappe.ValidationError):
			validate_date_string("02-03-2026")
