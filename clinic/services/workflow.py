"""
Status machines for appointments and surgical cases.

Transitions only ever move forward; terminal states map to an empty
list. Services call :func:`ensure_transition` before changing a status
so an illegal move surfaces as :class:`InvalidTransition`.
"""
from clinic.exceptions import InvalidTransition
from clinic.models import Appointment, SurgicalCase

A = Appointment
APPOINTMENT_TRANSITIONS = {
    A.STATUS_PENDING: [A.STATUS_PENDING_DOCTOR_CONFIRMATION, A.STATUS_CONFIRMED, A.STATUS_SCHEDULED, A.STATUS_CANCELLED],
    A.STATUS_PENDING_DOCTOR_CONFIRMATION: [A.STATUS_SCHEDULED, A.STATUS_CANCELLED],
    A.STATUS_CONFIRMED: [A.STATUS_SCHEDULED, A.STATUS_CANCELLED],
    A.STATUS_SCHEDULED: [A.STATUS_COMPLETED, A.STATUS_NO_SHOW, A.STATUS_CANCELLED],
    A.STATUS_COMPLETED: [],
    A.STATUS_CANCELLED: [],
    A.STATUS_NO_SHOW: [],
}

S = SurgicalCase
SURGICAL_CASE_TRANSITIONS = {
    S.STATUS_DRAFT: [S.STATUS_PLANNING, S.STATUS_CANCELLED],
    S.STATUS_PLANNING: [S.STATUS_READY_FOR_SCHEDULING, S.STATUS_CANCELLED],
    S.STATUS_READY_FOR_SCHEDULING: [S.STATUS_SCHEDULED, S.STATUS_CANCELLED],
    S.STATUS_SCHEDULED: [S.STATUS_IN_PREP, S.STATUS_CANCELLED],
    S.STATUS_IN_PREP: [S.STATUS_IN_THEATER, S.STATUS_CANCELLED],
    S.STATUS_IN_THEATER: [S.STATUS_RECOVERY],
    S.STATUS_RECOVERY: [S.STATUS_COMPLETED],
    S.STATUS_COMPLETED: [],
    S.STATUS_CANCELLED: [],
}

_MACHINES = {
    'Appointment': APPOINTMENT_TRANSITIONS,
    'SurgicalCase': SURGICAL_CASE_TRANSITIONS,
}


def can_transition(entity: str, current: str, new: str) -> bool:
    """Return True if ``entity`` may move from ``current`` to ``new``."""
    return new in _MACHINES[entity].get(current, [])


def is_terminal(entity: str, current: str) -> bool:
    return not _MACHINES[entity].get(current)


def ensure_transition(entity: str, current: str, new: str) -> None:
    if not can_transition(entity, current, new):
        raise InvalidTransition(entity, current, new)
