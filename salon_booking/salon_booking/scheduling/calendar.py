"""
Business Calendar

Pure representation of the salon's opening hours:
- Weekly pattern (one DaySchedule per weekday)
- Dated overrides (holidays, special hours)

No database access here: `store.load_calendar()` builds a Calendar from the
Salon Calendar DocType and passes it into every query.
"""

from dataclasses import dataclass, field, replace
from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union


class Weekday(Enum):
	MONDAY = "Monday"
	TUESDAY = "Tuesday"
	WEDNESDAY = "Wednesday"
	THURSDAY = "Thursday"
	FRIDAY = "Friday"
	SATURDAY = "Saturday"
	SUNDAY = "Sunday"


# Mismo orden que date.weekday() (lunes = 0)
WEEKDAYS: List[Weekday] = list(Weekday)


def weekday_of(day: date) -> Weekday:
	"""Retorna el Weekday de una fecha."""
	return WEEKDAYS[day.weekday()]


def to_time(time_value: Union[time, timedelta, str]) -> time:
	"""
	Convierte diferentes formatos de tiempo a datetime.time.

	Args:
		time_value: puede ser time, timedelta (desde medianoche), o string HH:MM[:SS]

	Returns:
		datetime.time object
	"""
	if isinstance(time_value, datetime):
		return time_value.time().replace(second=0, microsecond=0)
	if isinstance(time_value, time):
		return time_value.replace(second=0, microsecond=0)
	elif isinstance(time_value, timedelta):
		# timedelta representa tiempo desde medianoche (campos Time de MariaDB)
		return (datetime.min + time_value).time().replace(second=0, microsecond=0)
	elif isinstance(time_value, str):
		value = time_value.strip()
		for fmt in ("%H:%M:%S", "%H:%M", "%H:%M:%S.%f"):
			try:
				return datetime.strptime(value, fmt).time().replace(second=0, microsecond=0)
			except ValueError:
				continue
		raise ValueError(f"Invalid time value: {time_value!r}")
	else:
		raise ValueError(f"Cannot convert {type(time_value)} to time")


@dataclass(frozen=True)
class Window:
	"""Intervalo abierto contiguo dentro de un día (mañana o tarde)."""

	open: time
	close: time

	def __post_init__(self) -> None:
		if self.open >= self.close:
			raise ValueError(
				f"Window open ({self.open:%H:%M}) must be before close ({self.close:%H:%M})"
			)

	def overlaps(self, other: "Window") -> bool:
		return self.open < other.close and other.open < self.close


@dataclass(frozen=True)
class DaySchedule:
	"""
	Horario de un día.

	Si closed es True las ventanas se ignoran. misconfigured marca un día
	cerrado por falta de configuración semanal (no por decisión del negocio).
	"""

	closed: bool = False
	morning: Optional[Window] = None
	afternoon: Optional[Window] = None
	reason: Optional[str] = None
	misconfigured: bool = False

	@property
	def windows(self) -> List[Window]:
		if self.closed:
			return []
		return [w for w in (self.morning, self.afternoon) if w is not None]

	def validate(self) -> "DaySchedule":
		"""Valida que mañana preceda a tarde y que no se solapen."""
		if self.closed:
			return self
		if self.afternoon and not self.morning:
			raise ValueError("Afternoon window requires a morning window")
		if self.morning and self.afternoon:
			if self.morning.overlaps(self.afternoon) or self.afternoon.open < self.morning.close:
				raise ValueError("Morning window must end before the afternoon window starts")
		return self

	@classmethod
	def from_row(cls, row: Mapping[str, Any], reason: Optional[str] = None) -> "DaySchedule":
		"""
		Construye un DaySchedule desde una fila de DocType (o dict).

		Campos: closed, morning_open, morning_close, afternoon_open, afternoon_close
		"""
		if _truthy(row.get("closed")):
			return cls(closed=True, reason=reason)

		morning = _window(row.get("morning_open"), row.get("morning_close"))
		afternoon = _window(row.get("afternoon_open"), row.get("afternoon_close"))
		return cls(morning=morning, afternoon=afternoon, reason=reason).validate()


CLOSED_DAY = DaySchedule(closed=True)


@dataclass(frozen=True)
class Calendar:
	"""
	Calendario de apertura del negocio.

	Precedencia: un override para la fecha exacta gana sobre el patrón semanal.
	"""

	weekly: Dict[Weekday, DaySchedule]
	overrides: Dict[date, DaySchedule] = field(default_factory=dict)
	timezone: Optional[str] = None
	version: Optional[str] = None

	def schedule_for(self, day: date) -> DaySchedule:
		if day in self.overrides:
			return self.overrides[day]

		schedule = self.weekly.get(weekday_of(day))
		if schedule is None:
			# Configuración incompleta: el día se trata como cerrado
			return DaySchedule(closed=True, misconfigured=True)
		return schedule

	def is_open(self, day: date) -> bool:
		return not self.schedule_for(day).closed

	def with_override(self, day: date, schedule: DaySchedule) -> "Calendar":
		"""Retorna un nuevo Calendar con el override aplicado (last-write-wins)."""
		overrides = dict(self.overrides)
		overrides[day] = schedule.validate()
		return replace(self, overrides=overrides)

	def missing_weekdays(self) -> List[Weekday]:
		return [weekday for weekday in WEEKDAYS if weekday not in self.weekly]

	@classmethod
	def from_rows(
		cls,
		weekly_rows: Iterable[Mapping[str, Any]],
		override_rows: Iterable[Mapping[str, Any]] = (),
		timezone: Optional[str] = None,
		version: Optional[str] = None,
	) -> "Calendar":
		"""
		Construye el Calendar desde las tablas hijas del Salon Calendar.

		Args:
			weekly_rows: filas de Salon Opening Hours (weekday + ventanas)
			override_rows: filas de Salon Calendar Override (date + reason + ventanas)
			timezone: zona horaria del negocio
			version: marca de versión (modified del documento)
		"""
		weekly: Dict[Weekday, DaySchedule] = {}
		for row in weekly_rows:
			weekly[Weekday(row.get("weekday"))] = DaySchedule.from_row(row)

		overrides: Dict[date, DaySchedule] = {}
		for row in override_rows:
			# Filas posteriores para la misma fecha reemplazan a las anteriores
			overrides[_to_date(row.get("date"))] = DaySchedule.from_row(row, reason=row.get("reason"))

		return cls(weekly=weekly, overrides=overrides, timezone=timezone, version=version)


def _window(open_value: Any, close_value: Any) -> Optional[Window]:
	if not open_value or not close_value:
		return None
	return Window(to_time(open_value), to_time(close_value))


def _to_date(value: Union[date, str]) -> date:
	if isinstance(value, datetime):
		return value.date()
	if isinstance(value, date):
		return value
	return datetime.strptime(str(value).strip(), "%Y-%m-%d").date()


def _truthy(value: Any) -> bool:
	if isinstance(value, str):
		return value.strip() not in ("", "0", "false", "False")
	return bool(value)
