# Copyright (c) 2026, Sebastian Ortiz Valencia and contributors
# For license information, please see license.txt

import frappe
from frappe import _
from frappe.model.document import Document
from frappe.utils import cint

from salon_booking.salon_booking.scheduling.booking import MAX_TOTAL_DURATION, MIN_TOTAL_DURATION


class SalonService(Document):
	def validate(self) -> None:
		"""Valida que la duración esté en el rango permitido."""
		duration = cint(self.duration_minutes)
		if not MIN_TOTAL_DURATION <= duration <= MAX_TOTAL_DURATION:
			frappe.throw(
				_("Duration must be between {0} and {1} minutes").format(
					MIN_TOTAL_DURATION, MAX_TOTAL_DURATION
				)
			)

		if self.price is not None and self.price < 0:
			frappe.throw(_("Price cannot be negative"))
