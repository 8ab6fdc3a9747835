"""
Appointment projection

Typed API representation of a stored Salon Appointment, produced by a
pure mapping from the record (doc.as_dict() or a frappe._dict row).
"""

from dataclasses import asdict, dataclass
from datetime import date, datetime
from typing import Any, Dict, Mapping, Optional, Tuple

from .calendar import to_time
from .slots import format_time


@dataclass(frozen=True)
class ServiceView:
	id: str
	name: str
	duration_minutes: int


@dataclass(frozen=True)
class AppointmentView:
	id: str
	user: str
	services: Tuple[ServiceView, ...]
	date: str
	time: str
	total_duration: int
	status: str
	cancellation_reason: Optional[str]
	notes: Optional[str]
	reminder_sent: bool
	rescheduled_from: Optional[str]
	created: Optional[str]
	modified: Optional[str]

	def as_dict(self) -> Dict[str, Any]:
		data = asdict(self)
		data["services"] = [asdict(s) for s in self.services]
		return data


def to_view(record: Mapping[str, Any]) -> AppointmentView:
	"""Proyecta un registro de Salon Appointment a su vista de API."""
	services = tuple(
		ServiceView(
			id=row.get("service"),
			name=row.get("service_name") or row.get("service"),
			duration_minutes=int(row.get("duration_minutes") or 0),
		)
		for row in (record.get("services") or [])
	)

	return AppointmentView(
		id=record.get("name"),
		user=record.get("user"),
		services=services,
		date=_format_date(record.get("appointment_date")),
		time=_format_time(record.get("appointment_time")),
		total_duration=int(record.get("total_duration") or 0),
		status=record.get("status"),
		cancellation_reason=record.get("cancellation_reason") or None,
		notes=record.get("notes") or None,
		reminder_sent=bool(record.get("reminder_sent")),
		rescheduled_from=record.get("rescheduled_from") or None,
		created=_format_datetime(record.get("creation")),
		modified=_format_datetime(record.get("modified")),
	)


def _format_date(value: Any) -> Optional[str]:
	if value is None:
		return None
	if isinstance(value, (date, datetime)):
		return value.strftime("%Y-%m-%d")
	return str(value)[:10]


def _format_time(value: Any) -> Optional[str]:
	if value is None:
		return None
	return format_time(to_time(value))


def _format_datetime(value: Any) -> Optional[str]:
	if value is None:
		return None
	if isinstance(value, datetime):
		return value.isoformat(sep=" ", timespec="seconds")
	return str(value)
