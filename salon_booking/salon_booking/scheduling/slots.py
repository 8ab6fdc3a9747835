"""
Slot Generation Service

Generates discrete bookable start times from a day's opening windows,
considering:
- Slot granularity (step between start times)
- Required service duration (a slot never spills past its window's close)
"""

from dataclasses import dataclass
from datetime import time
from typing import Iterator, List

from .calendar import DaySchedule, Window

DEFAULT_GRANULARITY_MINUTES = 30


@dataclass(frozen=True, order=True)
class Slot:
	"""Hora de inicio candidata; end = start + duration_minutes."""

	start: time
	duration_minutes: int

	@property
	def end(self) -> time:
		return time_from_minutes(minutes_of(self.start) + self.duration_minutes)


def minutes_of(value: time) -> int:
	"""Minutos desde medianoche."""
	return value.hour * 60 + value.minute


def time_from_minutes(minutes: int) -> time:
	if minutes >= 24 * 60:
		# Un slot que termina exactamente a medianoche
		return time(23, 59)
	return time(minutes // 60, minutes % 60)


def format_time(value: time) -> str:
	return value.strftime("%H:%M")


def generate_slots(
	day_schedule: DaySchedule,
	granularity_minutes: int = DEFAULT_GRANULARITY_MINUTES,
	service_duration: int = DEFAULT_GRANULARITY_MINUTES,
) -> List[Slot]:
	"""
	Genera los slots reservables de un día.

	Args:
		day_schedule: horario del día (ventanas de mañana y tarde)
		granularity_minutes: paso entre horas de inicio (30 por defecto)
		service_duration: duración requerida en minutos

	Returns:
		list[Slot]: slots ordenados por hora de inicio (mañana antes que tarde)

	Algoritmo:
		1. Si el día está cerrado, retornar []
		2. Para cada ventana (open, close), avanzar desde open en pasos de granularity
		   mientras el paso sea <= close - granularity
		3. Emitir el paso solo si start + duration <= close
		   (nunca se extiende hacia el hueco entre ventanas)
	"""
	if granularity_minutes <= 0:
		raise ValueError("granularity_minutes must be positive")
	if service_duration <= 0:
		raise ValueError("service_duration must be positive")

	slots: List[Slot] = []
	for window in day_schedule.windows:
		slots.extend(_window_slots(window, granularity_minutes, service_duration))

	return slots


def _window_slots(window: Window, granularity_minutes: int, service_duration: int) -> Iterator[Slot]:
	open_minutes = minutes_of(window.open)
	close_minutes = minutes_of(window.close)

	current = open_minutes
	while current <= close_minutes - granularity_minutes:
		if current + service_duration <= close_minutes:
			yield Slot(time_from_minutes(current), service_duration)
		current += granularity_minutes
