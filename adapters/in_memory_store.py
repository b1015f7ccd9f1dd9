"""
In-memory meeting, agent and user stores for local development and tests.

Implements MeetingStorePort, AgentStorePort and UserDirectoryPort with plain
dicts. Conditional writes hold a lock for the whole check-and-write, giving
the same compare-and-set semantics as the DynamoDB adapter.

NOT for production: no persistence across restarts.
"""

from __future__ import annotations

import threading
from typing import Any, Dict, Iterable, List, Optional

from domain.lifecycle import ensure_edges, ensure_plain_changes
from domain.models import Agent, Meeting, MeetingStatus, utc_now
from shared_utils.constants import Defaults, LogScope
from shared_utils.logging_utils import get_scoped_logger


logger = get_scoped_logger(LogScope.ADAPTER)


class InMemoryMeetingStoreAdapter:
    """Dict-backed implementation of MeetingStorePort."""

    def __init__(self) -> None:
        self._meetings: Dict[str, Meeting] = {}
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # MeetingStorePort implementation
    # ------------------------------------------------------------------

    def insert(self, meeting: Meeting) -> None:
        with self._lock:
            if meeting.id in self._meetings:
                raise ValueError(f"meeting {meeting.id} already exists")
            self._meetings[meeting.id] = meeting.model_copy(deep=True)
        logger.info("inmemory_meeting_inserted", meeting_id=meeting.id)

    def get(self, meeting_id: str, user_id: Optional[str] = None) -> Optional[Meeting]:
        with self._lock:
            meeting = self._meetings.get(meeting_id)
            if meeting is None or (user_id is not None and meeting.user_id != user_id):
                return None
            return meeting.model_copy(deep=True)

    def list(
        self,
        user_id: str,
        status: Optional[MeetingStatus] = None,
        limit: int = Defaults.LIST_LIMIT,
        offset: int = 0,
    ) -> List[Meeting]:
        with self._lock:
            owned = [
                m for m in self._meetings.values()
                if m.user_id == user_id and (status is None or m.status == status)
            ]
            owned.sort(key=lambda m: m.created_at, reverse=True)
            return [m.model_copy(deep=True) for m in owned[offset:offset + limit]]

    def count_by_agent(self, agent_id: str) -> int:
        with self._lock:
            return sum(1 for m in self._meetings.values() if m.agent_id == agent_id)

    def count_by_status(self, user_id: str) -> Dict[MeetingStatus, int]:
        counts: Dict[MeetingStatus, int] = {}
        with self._lock:
            for meeting in self._meetings.values():
                if meeting.user_id == user_id:
                    counts[meeting.status] = counts.get(meeting.status, 0) + 1
        return counts

    def update_fields(
        self,
        meeting_id: str,
        changes: Dict[str, Any],
        user_id: Optional[str] = None,
        expected_statuses: Optional[Iterable[MeetingStatus]] = None,
        require_unset: Iterable[str] = (),
    ) -> Optional[Meeting]:
        ensure_plain_changes(changes)
        expected = frozenset(expected_statuses) if expected_statuses is not None else None
        return self._apply(meeting_id, dict(changes), user_id, expected, tuple(require_unset))

    def transition(
        self,
        meeting_id: str,
        expected: Iterable[MeetingStatus],
        target: MeetingStatus,
        changes: Optional[Dict[str, Any]] = None,
        user_id: Optional[str] = None,
        require_unset: Iterable[str] = (),
    ) -> Optional[Meeting]:
        sources = ensure_edges(expected, target)
        updates = dict(changes or {})
        updates["status"] = target
        updated = self._apply(meeting_id, updates, user_id, sources, tuple(require_unset))
        logger.info(
            "inmemory_transition",
            meeting_id=meeting_id,
            target=target.value,
            applied=updated is not None,
        )
        return updated

    def delete(self, meeting_id: str, user_id: str) -> bool:
        with self._lock:
            meeting = self._meetings.get(meeting_id)
            if meeting is None or meeting.user_id != user_id:
                return False
            del self._meetings[meeting_id]
        logger.info("inmemory_meeting_deleted", meeting_id=meeting_id)
        return True

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _apply(
        self,
        meeting_id: str,
        changes: Dict[str, Any],
        user_id: Optional[str],
        expected: Optional[frozenset],
        require_unset: tuple,
    ) -> Optional[Meeting]:
        with self._lock:
            current = self._meetings.get(meeting_id)
            if current is None:
                return None
            if user_id is not None and current.user_id != user_id:
                return None
            if expected is not None and current.status not in expected:
                return None
            if any(getattr(current, field) is not None for field in require_unset):
                return None

            changes["updated_at"] = utc_now()
            updated = current.model_copy(update=changes, deep=True)
            self._meetings[meeting_id] = updated
            return updated.model_copy(deep=True)


class InMemoryAgentStoreAdapter:
    """Dict-backed implementation of AgentStorePort."""

    def __init__(self) -> None:
        self._agents: Dict[str, Agent] = {}
        self._lock = threading.Lock()

    def put(self, agent: Agent) -> None:
        with self._lock:
            self._agents[agent.id] = agent.model_copy(deep=True)
        logger.info("inmemory_agent_stored", agent_id=agent.id)

    def get(self, agent_id: str, user_id: Optional[str] = None) -> Optional[Agent]:
        with self._lock:
            agent = self._agents.get(agent_id)
        if agent is None or (user_id is not None and agent.user_id != user_id):
            return None
        return agent.model_copy(deep=True)

    def list(self, user_id: str) -> List[Agent]:
        with self._lock:
            owned = [a for a in self._agents.values() if a.user_id == user_id]
        owned.sort(key=lambda a: a.created_at, reverse=True)
        return [a.model_copy(deep=True) for a in owned]

    def delete(self, agent_id: str) -> None:
        with self._lock:
            self._agents.pop(agent_id, None)


class InMemoryUserDirectoryAdapter:
    """Dict-backed implementation of UserDirectoryPort."""

    def __init__(self, names: Optional[Dict[str, str]] = None) -> None:
        self._names: Dict[str, str] = dict(names or {})

    def add_user(self, user_id: str, name: str) -> None:
        self._names[user_id] = name

    def get_display_names(self, user_ids: Iterable[str]) -> Dict[str, str]:
        return {uid: self._names[uid] for uid in user_ids if uid in self._names}
