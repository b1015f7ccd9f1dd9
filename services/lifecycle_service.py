"""
Meeting lifecycle service: the only writer of meeting status.

Every status change reads the meeting, checks the edge against
``domain.lifecycle.ALLOWED_TRANSITIONS`` and then issues a compare-and-set
through ``MeetingStorePort.transition`` expecting the status it just read. A
lost race re-reads and re-decides, so duplicate or reordered callers (user
requests, webhook deliveries, the worker) converge on one outcome.

Depends only on ports (protocol interfaces), never on concrete adapters.
"""

from __future__ import annotations

import uuid
from typing import Any, Callable, Dict, FrozenSet, List, Optional, Tuple

from domain.lifecycle import can_transition
from domain.models import (
    AuthenticatedCaller,
    Meeting,
    MeetingStats,
    MeetingStatus,
    MeetingWithAgent,
    ProcessingJobRequest,
    TranscriptEntry,
    TranscriptView,
    utc_now,
)
from ports.agent_store import AgentStorePort
from ports.call_platform import CallPlatformPort
from ports.job_queue import JobQueuePort
from ports.meeting_store import MeetingStorePort
from shared_utils.constants import Defaults, LogScope
from shared_utils.error_handler import (
    AppException,
    AuthenticationError,
    InvalidTransitionError,
    MeetingLockedError,
    NotFoundError,
    ValidationError,
)
from shared_utils.logging_utils import get_scoped_logger
from shared_utils.validation import InputValidator

logger = get_scoped_logger(LogScope.LIFECYCLE)

EDITABLE_FIELDS = frozenset({"name", "description", "scheduled_at"})

ChangeBuilder = Callable[[Meeting], Dict[str, Any]]


class LifecycleService:
    """Meeting CRUD plus the upcoming → active → processing → completed flow."""

    def __init__(
        self,
        meeting_store: MeetingStorePort,
        agent_store: AgentStorePort,
        job_queue: JobQueuePort,
        call_platform: Optional[CallPlatformPort] = None,
        transition_attempts: int = Defaults.TRANSITION_ATTEMPTS,
    ) -> None:
        self._meetings = meeting_store
        self._agents = agent_store
        self._jobs = job_queue
        self._calls = call_platform
        self._attempts = max(1, transition_attempts)

    # ------------------------------------------------------------------
    # User operations
    # ------------------------------------------------------------------

    def create(
        self,
        caller: AuthenticatedCaller,
        name: Any,
        agent_id: Any,
        description: Optional[str] = None,
        scheduled_at: Any = None,
    ) -> Meeting:
        """Create an ``upcoming`` meeting bound to one of the caller's agents.

        Raises:
            ValidationError: Blank name or agent id.
            NotFoundError: Agent missing or owned by someone else.
        """
        user_id = self._require_user(caller)
        name = InputValidator.validate_non_empty_string(name, "name")
        agent_id = InputValidator.validate_non_empty_string(agent_id, "agent_id")

        if self._agents.get(agent_id, user_id=user_id) is None:
            raise NotFoundError("Agent", context={"agent_id": agent_id})

        meeting = Meeting(
            id=str(uuid.uuid4()),
            user_id=user_id,
            agent_id=agent_id,
            name=name,
            description=InputValidator.normalize_optional_text(description),
            scheduled_at=InputValidator.parse_optional_datetime(scheduled_at),
        )
        self._meetings.insert(meeting)
        logger.info(
            "meeting_created",
            meeting_id=meeting.id,
            agent_id=agent_id,
            user_id=user_id,
            scheduled=meeting.scheduled_at is not None,
        )
        return meeting

    def start(
        self,
        caller: AuthenticatedCaller,
        meeting_id: str,
        create_call: bool = True,
    ) -> Meeting:
        """``upcoming → active``. Starting an active meeting is a no-op.

        ``create_call=False`` when the call already exists on the platform
        (the session-started webhook).
        """
        now = utc_now()
        meeting, previous = self._move(
            caller,
            meeting_id,
            MeetingStatus.ACTIVE,
            lambda current: {"started_at": now},
            already=frozenset({MeetingStatus.ACTIVE}),
        )
        if previous is None:
            logger.info("meeting_start_noop", meeting_id=meeting_id, status=meeting.status.value)
            return meeting

        logger.info("meeting_started", meeting_id=meeting_id, actor=self._actor(caller))
        if create_call:
            self._create_call(meeting)
        return meeting

    def end(
        self,
        caller: AuthenticatedCaller,
        meeting_id: str,
        notes: Optional[str] = None,
    ) -> Meeting:
        """Leave ``active``: to ``processing`` when the call platform has a
        transcript, ``completed`` otherwise.

        Ending a meeting that is already processing or completed is a no-op
        (notes, if any, are still stored).
        """
        notes = InputValidator.normalize_optional_text(notes)
        settled = frozenset({MeetingStatus.PROCESSING, MeetingStatus.COMPLETED})

        current = self._get_owned(caller, meeting_id)
        if current.status in settled:
            return self._store_notes(caller, current, notes)
        if current.status != MeetingStatus.ACTIVE:
            raise InvalidTransitionError(current.status.value, MeetingStatus.COMPLETED.value)

        self._end_call(meeting_id)
        transcript_url = self._lookup_transcript_url(meeting_id)
        target = MeetingStatus.PROCESSING if transcript_url else MeetingStatus.COMPLETED

        now = utc_now()
        changes: Dict[str, Any] = {"ended_at": now}
        if notes is not None:
            changes["user_notes"] = notes
        if transcript_url:
            changes["transcript_url"] = transcript_url

        meeting, previous = self._move(
            caller,
            meeting_id,
            target,
            lambda _current: dict(changes),
            already=settled,
        )
        if previous is None:
            # A webhook closed the session between our read and write
            return self._store_notes(caller, meeting, notes)

        logger.info(
            "meeting_ended",
            meeting_id=meeting_id,
            status=meeting.status.value,
            has_transcript=bool(transcript_url),
        )
        if meeting.status == MeetingStatus.PROCESSING:
            self._enqueue(meeting)
        return meeting

    def cancel(self, caller: AuthenticatedCaller, meeting_id: str) -> Meeting:
        """``upcoming|active → cancelled``. Cancelling twice is a no-op."""
        now = utc_now()

        def changes(current: Meeting) -> Dict[str, Any]:
            return {"ended_at": now} if current.status == MeetingStatus.ACTIVE else {}

        meeting, previous = self._move(
            caller,
            meeting_id,
            MeetingStatus.CANCELLED,
            changes,
            already=frozenset({MeetingStatus.CANCELLED}),
        )
        if previous is None:
            return meeting

        logger.info("meeting_cancelled", meeting_id=meeting_id, previous=previous.value)
        if previous == MeetingStatus.ACTIVE:
            self._end_call(meeting_id)
        return meeting

    def update(
        self,
        caller: AuthenticatedCaller,
        meeting_id: str,
        changes: Dict[str, Any],
    ) -> Meeting:
        """Edit metadata of an ``upcoming`` meeting.

        Only name, description and scheduled_at are accepted.

        Raises:
            ValidationError: Unknown/forbidden field or blank name.
            MeetingLockedError: Meeting is no longer upcoming.
        """
        forbidden = sorted(set(changes) - EDITABLE_FIELDS)
        if forbidden:
            raise ValidationError(
                f"Fields cannot be updated: {', '.join(forbidden)}",
                context={"fields": forbidden},
            )

        clean: Dict[str, Any] = {}
        if "name" in changes:
            clean["name"] = InputValidator.validate_non_empty_string(changes["name"], "name")
        if "description" in changes:
            clean["description"] = InputValidator.normalize_optional_text(changes["description"])
        if "scheduled_at" in changes:
            clean["scheduled_at"] = InputValidator.parse_optional_datetime(changes["scheduled_at"])

        current = self._get_owned(caller, meeting_id)
        if current.status != MeetingStatus.UPCOMING:
            raise MeetingLockedError(current.status.value, context={"meeting_id": meeting_id})
        if not clean:
            return current

        updated = self._meetings.update_fields(
            meeting_id,
            clean,
            user_id=caller.owner_filter,
            expected_statuses=[MeetingStatus.UPCOMING],
        )
        if updated is None:
            latest = self._get_owned(caller, meeting_id)
            raise MeetingLockedError(latest.status.value, context={"meeting_id": meeting_id})

        logger.info("meeting_updated", meeting_id=meeting_id, fields=sorted(clean))
        return updated

    def delete(self, caller: AuthenticatedCaller, meeting_id: str) -> Meeting:
        """Remove a meeting. Its agent is left untouched."""
        current = self._get_owned(caller, meeting_id)
        if not self._meetings.delete(meeting_id, user_id=current.user_id):
            raise NotFoundError("Meeting", context={"meeting_id": meeting_id})
        logger.info("meeting_deleted", meeting_id=meeting_id, status=current.status.value)
        return current

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list(
        self,
        caller: AuthenticatedCaller,
        status: Optional[MeetingStatus] = None,
        limit: int = Defaults.LIST_LIMIT,
        offset: int = 0,
    ) -> List[Meeting]:
        user_id = self._require_user(caller)
        limit = InputValidator.validate_positive_int(limit, "limit")
        offset = InputValidator.validate_positive_int(offset, "offset", allow_zero=True)
        if limit > Defaults.LIST_LIMIT_MAX:
            raise ValidationError(
                f"limit must be at most {Defaults.LIST_LIMIT_MAX}",
                context={"limit": limit},
            )
        return self._meetings.list(user_id, status=status, limit=limit, offset=offset)

    def get_by_id(self, caller: AuthenticatedCaller, meeting_id: str) -> MeetingWithAgent:
        meeting = self._get_owned(caller, meeting_id)
        agent = self._agents.get(meeting.agent_id)
        return MeetingWithAgent(meeting=meeting, agent=agent)

    def get_transcript(self, caller: AuthenticatedCaller, meeting_id: str) -> TranscriptView:
        meeting = self._get_owned(caller, meeting_id)
        if not meeting.transcript_entries:
            return TranscriptView()
        return TranscriptView(transcript=meeting.transcript_entries, source="stored")

    def get_stats(self, caller: AuthenticatedCaller) -> MeetingStats:
        user_id = self._require_user(caller)
        counts = self._meetings.count_by_status(user_id)
        return MeetingStats(
            total=sum(counts.values()),
            **{status.value: counts.get(status, 0) for status in MeetingStatus},
        )

    # ------------------------------------------------------------------
    # System operations (webhook ingress, processing worker)
    # ------------------------------------------------------------------

    def close_session(
        self,
        caller: AuthenticatedCaller,
        meeting_id: str,
        transcript_url: Optional[str],
    ) -> Optional[Meeting]:
        """Call ended on the platform side.

        Single CAS from ``active``; returns None when the meeting was not
        active (duplicate or late delivery). The processing job is enqueued
        only by the caller whose CAS succeeded.
        """
        changes: Dict[str, Any] = {"ended_at": utc_now()}
        if transcript_url:
            changes["transcript_url"] = transcript_url
            target = MeetingStatus.PROCESSING
        else:
            target = MeetingStatus.COMPLETED

        updated = self._meetings.transition(
            meeting_id,
            expected=[MeetingStatus.ACTIVE],
            target=target,
            changes=changes,
            user_id=caller.owner_filter,
        )
        if updated is None:
            logger.info("session_close_noop", meeting_id=meeting_id, actor=self._actor(caller))
            return None

        logger.info("session_closed", meeting_id=meeting_id, status=target.value)
        if target == MeetingStatus.PROCESSING:
            self._enqueue(updated)
        return updated

    def attach_transcript(
        self,
        caller: AuthenticatedCaller,
        meeting_id: str,
        transcript_url: str,
    ) -> Optional[Meeting]:
        """A transcript became available after (or instead of) session end.

        Acts only while the meeting has no summary and is not completed:
        ``active`` moves to ``processing``; ``processing`` without a stored
        URL gets the URL. Enqueues only when its own write succeeded.
        """
        current = self._meetings.get(meeting_id, user_id=caller.owner_filter)
        if current is None:
            logger.warning("transcript_for_unknown_meeting", meeting_id=meeting_id)
            return None
        if current.status == MeetingStatus.COMPLETED or current.summary is not None:
            return None

        if current.status == MeetingStatus.ACTIVE:
            updated = self._meetings.transition(
                meeting_id,
                expected=[MeetingStatus.ACTIVE],
                target=MeetingStatus.PROCESSING,
                changes={"ended_at": utc_now(), "transcript_url": transcript_url},
                user_id=caller.owner_filter,
                require_unset=("summary",),
            )
        elif current.status == MeetingStatus.PROCESSING and not current.transcript_url:
            # end() and close_session() store the URL with processing; only rows
            # written directly to the table (imports, manual repair) land here.
            updated = self._meetings.update_fields(
                meeting_id,
                {"transcript_url": transcript_url},
                user_id=caller.owner_filter,
                expected_statuses=[MeetingStatus.PROCESSING],
                require_unset=("summary", "transcript_url"),
            )
        else:
            return None

        if updated is None:
            logger.info("transcript_attach_noop", meeting_id=meeting_id)
            return None

        logger.info("transcript_attached", meeting_id=meeting_id, status=updated.status.value)
        self._enqueue(updated)
        return updated

    def complete_processing(
        self,
        caller: AuthenticatedCaller,
        meeting_id: str,
        summary: str,
        transcript_entries: List[TranscriptEntry],
    ) -> Optional[Meeting]:
        """``processing → completed`` with the job's results.

        Returns None if another run already completed the meeting.
        """
        updated = self._meetings.transition(
            meeting_id,
            expected=[MeetingStatus.PROCESSING],
            target=MeetingStatus.COMPLETED,
            changes={
                "summary": summary,
                "transcript_entries": transcript_entries,
                "processing_error": None,
            },
            user_id=caller.owner_filter,
            require_unset=("summary",),
        )
        if updated is None:
            logger.warning("processing_result_discarded", meeting_id=meeting_id)
        return updated

    def record_processing_failure(
        self,
        caller: AuthenticatedCaller,
        meeting_id: str,
        message: str,
    ) -> Optional[Meeting]:
        """Store the last job failure; the status stays ``processing``."""
        return self._meetings.update_fields(
            meeting_id,
            {"processing_error": message},
            user_id=caller.owner_filter,
            expected_statuses=[MeetingStatus.PROCESSING],
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _move(
        self,
        caller: AuthenticatedCaller,
        meeting_id: str,
        target: MeetingStatus,
        build_changes: ChangeBuilder,
        already: FrozenSet[MeetingStatus] = frozenset(),
    ) -> Tuple[Meeting, Optional[MeetingStatus]]:
        """Read, validate, compare-and-set; re-read on a lost race.

        Returns:
            (meeting, previous status). previous is None when the meeting was
            already in one of ``already`` and nothing was written.
        """
        current = self._get_owned(caller, meeting_id)
        for attempt in range(1, self._attempts + 1):
            if current.status in already:
                return current, None
            if not can_transition(current.status, target):
                raise InvalidTransitionError(
                    current.status.value, target.value, context={"meeting_id": meeting_id}
                )

            updated = self._meetings.transition(
                meeting_id,
                expected=[current.status],
                target=target,
                changes=build_changes(current),
                user_id=caller.owner_filter,
            )
            if updated is not None:
                return updated, current.status

            logger.info(
                "transition_conflict",
                meeting_id=meeting_id,
                expected=current.status.value,
                target=target.value,
                attempt=attempt,
            )
            current = self._get_owned(caller, meeting_id)

        if current.status in already:
            return current, None
        raise InvalidTransitionError(
            current.status.value, target.value, context={"meeting_id": meeting_id}
        )

    def _get_owned(self, caller: AuthenticatedCaller, meeting_id: str) -> Meeting:
        if not caller.is_system and not caller.user_id:
            raise AuthenticationError()
        meeting = self._meetings.get(meeting_id, user_id=caller.owner_filter)
        if meeting is None:
            raise NotFoundError("Meeting", context={"meeting_id": meeting_id})
        return meeting

    def _store_notes(
        self, caller: AuthenticatedCaller, meeting: Meeting, notes: Optional[str]
    ) -> Meeting:
        if notes is None or notes == meeting.user_notes:
            return meeting
        updated = self._meetings.update_fields(
            meeting.id, {"user_notes": notes}, user_id=caller.owner_filter
        )
        return updated or meeting

    def _enqueue(self, meeting: Meeting) -> None:
        request = ProcessingJobRequest(
            meeting_id=meeting.id,
            transcript_url=meeting.transcript_url or "",
        )
        try:
            self._jobs.enqueue(request)
            logger.info("processing_job_enqueued", meeting_id=meeting.id)
        except AppException as exc:
            logger.error(
                "processing_job_enqueue_failed",
                meeting_id=meeting.id,
                error=exc.message,
            )
            self._meetings.update_fields(
                meeting.id,
                {"processing_error": f"enqueue failed: {exc.message}"},
                expected_statuses=[MeetingStatus.PROCESSING],
            )

    def _create_call(self, meeting: Meeting) -> None:
        if self._calls is None:
            return
        agent = self._agents.get(meeting.agent_id)
        custom = {
            "meetingId": meeting.id,
            "agentId": meeting.agent_id,
            "agentName": agent.name if agent else "",
            "instructions": agent.instructions if agent else "",
            "userId": meeting.user_id,
        }
        try:
            self._calls.create_call(meeting.id, title=meeting.name, custom=custom)
        except AppException as exc:
            logger.warning("call_platform_create_failed", meeting_id=meeting.id, error=exc.message)

    def _end_call(self, meeting_id: str) -> None:
        if self._calls is None:
            return
        try:
            self._calls.end_call(meeting_id)
        except AppException as exc:
            logger.warning("call_platform_end_failed", meeting_id=meeting_id, error=exc.message)

    def _lookup_transcript_url(self, meeting_id: str) -> Optional[str]:
        if self._calls is None:
            return None
        try:
            return self._calls.get_transcript_url(meeting_id)
        except AppException as exc:
            logger.warning(
                "call_platform_transcript_lookup_failed",
                meeting_id=meeting_id,
                error=exc.message,
            )
            return None

    @staticmethod
    def _require_user(caller: AuthenticatedCaller) -> str:
        if not caller.user_id:
            raise AuthenticationError()
        return caller.user_id

    @staticmethod
    def _actor(caller: AuthenticatedCaller) -> str:
        return caller.name if caller.is_system else "user"
