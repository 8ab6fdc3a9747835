# Copyright (c) 2026, Sebastian Ortiz Valencia and contributors
# For license information, please see license.txt

import frappe
from frappe import _
from frappe.model.document import Document
from frappe.utils import cint


class SalonBookingSettings(Document):
	def validate(self) -> None:
		"""Valida que los parámetros numéricos sean positivos."""
		for fieldname in (
			"booking_horizon_months",
			"slot_granularity_minutes",
			"rebooking_horizon_days",
			"lock_timeout_seconds",
			"reminder_hours_before",
		):
			if cint(self.get(fieldname)) <= 0:
				frappe.throw(
					_("{0} debe ser mayor que 0").format(self.meta.get_label(fieldname))
				)

		if 24 * 60 % cint(self.slot_granularity_minutes):
			frappe.msgprint(
				_("Slot Granularity de {0} minutos no divide el día en partes iguales").format(
					self.slot_granularity_minutes
				),
				indicator="orange",
				alert=True
			)