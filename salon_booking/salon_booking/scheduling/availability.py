"""
Availability Service

Answers "which start times remain open on day D", considering:
- Business Calendar (weekly pattern + dated overrides)
- Slot generation for the required duration
- Start times already claimed by active reservations

Everything here is pure computation; reservation state is passed in by
the caller (see store.py for the database bindings).
"""

from dataclasses import dataclass, field
from datetime import date, time, timedelta
from typing import Callable, Iterable, Iterator, List, Optional, Set, Tuple

from .calendar import Calendar
from .slots import DEFAULT_GRANULARITY_MINUTES, format_time, generate_slots


@dataclass
class DayAvailability:
	"""Resultado de la consulta de disponibilidad para un día."""

	day: date
	open: bool
	slots: List[time] = field(default_factory=list)
	reason: Optional[str] = None
	configuration_error: bool = False

	def as_dict(self) -> dict:
		return {
			"date": self.day.isoformat(),
			"open": self.open,
			"slots": [format_time(t) for t in self.slots],
			"reason": self.reason,
			"configuration_error": self.configuration_error,
		}


def available_start_times(
	calendar: Calendar,
	day: date,
	service_duration: int,
	booked_times: Iterable[time] = (),
	granularity_minutes: int = DEFAULT_GRANULARITY_MINUTES,
	not_before: Optional[time] = None,
) -> DayAvailability:
	"""
	Calcula las horas de inicio disponibles para un día.

	Args:
		calendar: calendario del negocio
		day: fecha consultada
		service_duration: duración total requerida (minutos)
		booked_times: horas de inicio ya reservadas ese día
		granularity_minutes: paso entre slots
		not_before: si se indica, solo horas estrictamente posteriores (día en curso)

	Returns:
		DayAvailability con slots en orden ascendente

	Nota:
		El descarte de reservas es por igualdad exacta de hora de inicio,
		no por solapamiento de intervalos.
	"""
	schedule = calendar.schedule_for(day)

	if schedule.closed:
		return DayAvailability(
			day=day,
			open=False,
			reason=schedule.reason,
			configuration_error=schedule.misconfigured,
		)

	booked: Set[time] = set(booked_times)
	slots = [
		slot.start
		for slot in generate_slots(schedule, granularity_minutes, service_duration)
		if slot.start not in booked and (not_before is None or slot.start > not_before)
	]
	slots.sort()

	return DayAvailability(day=day, open=True, slots=slots, reason=schedule.reason)


def is_generated_slot(
	calendar: Calendar,
	day: date,
	start: time,
	service_duration: int,
	granularity_minutes: int = DEFAULT_GRANULARITY_MINUTES,
) -> bool:
	"""True si start es un slot que el calendario ofrece para esa duración."""
	schedule = calendar.schedule_for(day)
	if schedule.closed:
		return False
	return any(
		slot.start == start
		for slot in generate_slots(schedule, granularity_minutes, service_duration)
	)


def next_available_slot(
	calendar: Calendar,
	from_date: date,
	from_time: time,
	service_duration: int,
	booked_times_for: Callable[[date], Iterable[time]],
	granularity_minutes: int = DEFAULT_GRANULARITY_MINUTES,
	max_days_ahead: int = 7,
) -> Optional[Tuple[date, time]]:
	"""
	Busca el próximo slot libre a partir de (from_date, from_time).

	Args:
		calendar: calendario del negocio
		from_date: fecha original de la cita desplazada
		from_time: hora original
		service_duration: duración total en minutos
		booked_times_for: función fecha -> horas de inicio ya reservadas
		granularity_minutes: paso entre slots
		max_days_ahead: días a recorrer después de from_date (inclusive)

	Returns:
		(fecha, hora) más temprana disponible, o None si no hay dentro del horizonte

	Algoritmo:
		1. Recorrer from_date .. from_date + max_days_ahead
		2. Primer día: solo slots estrictamente posteriores a from_time
		3. Días siguientes: todos los slots generados
		4. Restar horas ya reservadas y retornar el primer candidato
	"""
	for offset in range(max_days_ahead + 1):
		day = from_date + timedelta(days=offset)
		if not calendar.is_open(day):
			continue

		result = available_start_times(
			calendar,
			day,
			service_duration,
			booked_times=booked_times_for(day),
			granularity_minutes=granularity_minutes,
			not_before=from_time if offset == 0 else None,
		)
		if result.slots:
			return day, result.slots[0]

	return None


def is_within_horizon(day: date, today: date, last_day: date) -> bool:
	return today <= day <= last_day


def day_range(start: date, end: date) -> Iterator[date]:
	"""Fechas de start a end, ambas inclusive."""
	current = start
	while current <= end:
		yield current
		current += timedelta(days=1)


def partition_days(calendar: Calendar, start: date, end: date) -> Tuple[List[date], List[date]]:
	"""
	Separa el rango en días abiertos y cerrados.

	Returns:
		(open_days, closed_days)
	"""
	open_days: List[date] = []
	closed_days: List[date] = []
	for day in day_range(start, end):
		if calendar.is_open(day):
			open_days.append(day)
		else:
			closed_days.append(day)
	return open_days, closed_days
