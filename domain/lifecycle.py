"""
Meeting lifecycle state machine.

``ALLOWED_TRANSITIONS`` is the only definition of legal status edges; every
status write in the system is checked against it.
"""

from __future__ import annotations

from typing import Any, Dict, FrozenSet, Iterable

from domain.models import MeetingStatus
from shared_utils.error_handler import InvalidTransitionError


ALLOWED_TRANSITIONS: Dict[MeetingStatus, FrozenSet[MeetingStatus]] = {
    MeetingStatus.UPCOMING: frozenset({MeetingStatus.ACTIVE, MeetingStatus.CANCELLED}),
    MeetingStatus.ACTIVE: frozenset(
        {MeetingStatus.PROCESSING, MeetingStatus.COMPLETED, MeetingStatus.CANCELLED}
    ),
    MeetingStatus.PROCESSING: frozenset({MeetingStatus.COMPLETED}),
    MeetingStatus.COMPLETED: frozenset(),
    MeetingStatus.CANCELLED: frozenset(),
}


def can_transition(current: MeetingStatus, target: MeetingStatus) -> bool:
    """True if ``current -> target`` is an edge of the state machine."""
    return target in ALLOWED_TRANSITIONS[current]


def sources_for(target: MeetingStatus) -> FrozenSet[MeetingStatus]:
    """All statuses from which ``target`` is reachable in one step."""
    return frozenset(
        status for status, targets in ALLOWED_TRANSITIONS.items() if target in targets
    )


def is_terminal(status: MeetingStatus) -> bool:
    return not ALLOWED_TRANSITIONS[status]


# Fields only a lifecycle transition may write
TRANSITION_ONLY_FIELDS: FrozenSet[str] = frozenset({"status", "started_at", "ended_at"})


def ensure_edges(expected: Iterable[MeetingStatus], target: MeetingStatus) -> FrozenSet[MeetingStatus]:
    """Validate every ``expected -> target`` edge before a conditional write.

    Raises:
        InvalidTransitionError: On the first edge outside the state machine.
    """
    sources = frozenset(expected)
    if not sources:
        raise ValueError("expected statuses must not be empty")
    for source in sources:
        if not can_transition(source, target):
            raise InvalidTransitionError(source.value, target.value)
    return sources


def ensure_plain_changes(changes: Dict[str, Any]) -> None:
    """Reject field writes that would move the lifecycle outside a transition."""
    touched = TRANSITION_ONLY_FIELDS.intersection(changes)
    if touched:
        raise ValueError(f"fields {sorted(touched)} can only change through a transition")
