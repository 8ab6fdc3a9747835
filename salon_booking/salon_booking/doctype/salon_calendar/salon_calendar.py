# Copyright (c) 2026, Sebastian Ortiz Valencia and contributors
# For license information, please see license.txt

"""
Salon Calendar DocType

Single document holding the business calendar: the weekly opening hours
(one row per weekday, up to two windows per day) and dated overrides that
replace the weekly pattern for a specific date.
"""

import frappe
import pytz
from frappe import _
from frappe.model.document import Document
from frappe.utils import getdate

from salon_booking.salon_booking.scheduling.calendar import WEEKDAYS, DaySchedule


class SalonCalendar(Document):
	"""
	Validations:
	- timezone válida (si está presente)
	- Un solo registro por weekday
	- Ventanas: open < close, mañana antes que tarde, sin solapamiento
	- Overrides: última fila gana por fecha, ordenados por fecha
	- Aviso si falta algún weekday (se trata como cerrado)
	"""

	def validate(self) -> None:
		"""
		Validación antes de guardar.
		"""
		self._validate_timezone()
		self._validate_weekly_hours()
		self._dedupe_overrides()
		self._validate_overrides()
		self._warn_missing_weekdays()

	def _validate_timezone(self) -> None:
		if self.timezone and self.timezone not in pytz.all_timezones_set:
			frappe.throw(_("Timezone {0} no es válida").format(self.timezone))

	def _validate_weekly_hours(self) -> None:
		"""Valida un registro por weekday y la forma de sus ventanas."""
		seen = set()
		for idx, row in enumerate(self.weekly_hours, 1):
			if not row.weekday:
				frappe.throw(_("Fila {0}: Weekday es requerido").format(idx))

			if row.weekday in seen:
				frappe.throw(_("Fila {0}: {1} está repetido").format(idx, row.weekday))
			seen.add(row.weekday)

			self._validate_row_windows(row, _("Fila {0} ({1})").format(idx, row.weekday))

	def _dedupe_overrides(self) -> None:
		"""Si hay varias filas para la misma fecha, gana la última."""
		latest = {}
		for row in self.overrides:
			if not row.date:
				frappe.throw(_("Override: Date es requerido"))
			latest[getdate(row.date)] = row

		rows = sorted(latest.values(), key=lambda r: getdate(r.date))
		if len(rows) != len(self.overrides):
			frappe.msgprint(
				_("Se eliminaron overrides duplicados; se conservó la última fila de cada fecha."),
				indicator="orange",
				alert=True
			)

		self.set("overrides", rows)
		for idx, row in enumerate(self.overrides, 1):
			row.idx = idx

	def _validate_overrides(self) -> None:
		for row in self.overrides:
			self._validate_row_windows(row, _("Override {0}").format(getdate(row.date)))

	def _warn_missing_weekdays(self) -> None:
		configured = {row.weekday for row in self.weekly_hours}
		missing = [w.value for w in WEEKDAYS if w.value not in configured]
		if missing:
			frappe.msgprint(
				_("No hay horario para: {0}. Esos días se tratan como cerrados.").format(", ".join(missing)),
				indicator="orange",
				alert=True
			)

	def _validate_row_windows(self, row, label: str) -> None:
		try:
			DaySchedule.from_row(row)
		except ValueError as e:
			frappe.throw(_("{0}: {1}").format(label, str(e)))

		if row.closed:
			return

		# Una ventana con solo uno de sus extremos es un error de captura
		for prefix in ("morning", "afternoon"):
			if bool(row.get(f"{prefix}_open")) != bool(row.get(f"{prefix}_close")):
				frappe.throw(
					_("{0}: {1} window needs both open and close times").format(label, prefix.title())
				)
