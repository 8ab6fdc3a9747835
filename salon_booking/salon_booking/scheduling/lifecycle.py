"""
Appointment Lifecycle

State machine for Salon Appointment status:

	Pending -> Confirmed -> Completed
	Pending | Confirmed -> Cancelled
	Pending | Confirmed -> Needs Rescheduling (Conflict Resolver only)
	Needs Rescheduling -> Cancelled

Nothing ever goes back to Pending.
"""

from typing import Dict, FrozenSet

PENDING = "Pending"
CONFIRMED = "Confirmed"
COMPLETED = "Completed"
CANCELLED = "Cancelled"
NEEDS_RESCHEDULING = "Needs Rescheduling"

STATUSES = (PENDING, CONFIRMED, COMPLETED, CANCELLED, NEEDS_RESCHEDULING)

# Estados que ocupan el slot (date, time)
ACTIVE_STATUSES: FrozenSet[str] = frozenset({PENDING, CONFIRMED, COMPLETED})

TERMINAL_STATUSES: FrozenSet[str] = frozenset({COMPLETED, CANCELLED})

# Estados en los que una cita puede crearse
INITIAL_STATUSES: FrozenSet[str] = frozenset({PENDING, CONFIRMED})

TRANSITIONS: Dict[str, FrozenSet[str]] = {
	PENDING: frozenset({CONFIRMED, CANCELLED, NEEDS_RESCHEDULING}),
	CONFIRMED: frozenset({COMPLETED, CANCELLED, NEEDS_RESCHEDULING}),
	NEEDS_RESCHEDULING: frozenset({CANCELLED}),
	COMPLETED: frozenset(),
	CANCELLED: frozenset(),
}


def can_transition(current: str, target: str, by_conflict_resolver: bool = False) -> bool:
	"""
	Indica si el cambio de estado current -> target es válido.

	Needs Rescheduling solo puede asignarlo el Conflict Resolver.
	"""
	if target == NEEDS_RESCHEDULING and not by_conflict_resolver:
		return False
	return target in TRANSITIONS.get(current, frozenset())


def holds_slot(status: str) -> bool:
	return status in ACTIVE_STATUSES


def is_terminal(status: str) -> bool:
	return status in TERMINAL_STATUSES
