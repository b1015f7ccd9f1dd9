"""
Port interface for meeting record storage.

Implementations: DynamoMeetingStoreAdapter, InMemoryMeetingStoreAdapter (adapters/)
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional, Protocol, runtime_checkable

from domain.models import Meeting, MeetingStatus


@runtime_checkable
class MeetingStorePort(Protocol):
    """Abstract interface for meeting persistence."""

    def insert(self, meeting: Meeting) -> None:
        """Persist a newly created meeting.

        Raises:
            ExternalServiceError: If the store is unreachable.
        """
        ...

    def get(self, meeting_id: str, user_id: Optional[str] = None) -> Optional[Meeting]:
        """Retrieve a meeting by id.

        Args:
            meeting_id: Primary key.
            user_id: When given, only a meeting owned by this user matches.

        Returns:
            Meeting if found (and owned), None otherwise.
        """
        ...

    def list(
        self,
        user_id: str,
        status: Optional[MeetingStatus] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[Meeting]:
        """List a user's meetings, newest first.

        Args:
            user_id: Owner.
            status: Optional status filter.
            limit: Page size.
            offset: Number of records to skip.
        """
        ...

    def count_by_agent(self, agent_id: str) -> int:
        """Number of meetings referencing an agent."""
        ...

    def count_by_status(self, user_id: str) -> Dict[MeetingStatus, int]:
        """Per-status counts of a user's meetings. Absent statuses may be omitted."""
        ...

    def update_fields(
        self,
        meeting_id: str,
        changes: Dict[str, Any],
        user_id: Optional[str] = None,
        expected_statuses: Optional[Iterable[MeetingStatus]] = None,
        require_unset: Iterable[str] = (),
    ) -> Optional[Meeting]:
        """Conditionally write non-status fields.

        ``changes`` must not contain any of
        ``domain.lifecycle.TRANSITION_ONLY_FIELDS``.

        Returns:
            The updated meeting, or None when the record is missing, not
            owned, or a condition did not hold.

        Raises:
            ValueError: If ``changes`` touches a transition-only field.
        """
        ...

    def transition(
        self,
        meeting_id: str,
        expected: Iterable[MeetingStatus],
        target: MeetingStatus,
        changes: Optional[Dict[str, Any]] = None,
        user_id: Optional[str] = None,
        require_unset: Iterable[str] = (),
    ) -> Optional[Meeting]:
        """Compare-and-set the status.

        Applies ``status = target`` plus ``changes`` iff the current status is
        in ``expected`` and every field named in ``require_unset`` is null.

        Returns:
            The updated meeting, or None if any condition failed.

        Raises:
            InvalidTransitionError: If some ``expected -> target`` edge is not
                part of the state machine.
        """
        ...

    def delete(self, meeting_id: str, user_id: str) -> bool:
        """Delete an owned meeting. Returns False if nothing matched."""
        ...
