"""
Pure domain models for the meeting lifecycle.

These models contain NO storage or HTTP dependencies. They represent the core
business concepts that flow through ports and services.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from shared_utils.constants import JobEvents


def utc_now() -> datetime:
    """Timezone-aware current time; all persisted timestamps are UTC."""
    return datetime.now(timezone.utc)


class MeetingStatus(str, Enum):
    """Meeting lifecycle status (closed set)."""

    UPCOMING = "upcoming"
    ACTIVE = "active"
    PROCESSING = "processing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class TranscriptEntry(BaseModel):
    """One resolved speech turn of a meeting transcript."""

    speaker: str
    text: str
    start_time: str = ""
    stop_time: str = ""


class RawTranscriptItem(BaseModel):
    """A single record of the call platform's JSONL transcript."""

    model_config = ConfigDict(extra="ignore")

    type: str
    speaker_id: str = ""
    user_id: str = ""
    text: str = ""
    start_time: str = ""
    stop_time: str = ""
    duration: Optional[str] = None
    call_cid: Optional[str] = None


class Agent(BaseModel):
    """Reusable AI persona joined to meetings through the voice bridge."""

    id: str
    user_id: str
    name: str
    instructions: str
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class Meeting(BaseModel):
    """Meeting record (maps to a store item).

    ``user_notes`` and ``transcript_entries`` are separate fields: notes are
    what the user typed when ending the call, entries are produced by the
    transcript processing job.
    """

    id: str
    user_id: str
    agent_id: str
    name: str
    description: Optional[str] = None
    status: MeetingStatus = MeetingStatus.UPCOMING
    scheduled_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    transcript_url: Optional[str] = None
    summary: Optional[str] = None
    user_notes: Optional[str] = None
    transcript_entries: List[TranscriptEntry] = []
    processing_error: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class AuthenticatedCaller(BaseModel):
    """The actor on whose behalf a lifecycle operation runs.

    Passed explicitly into every service call. A system caller (webhook
    ingress, worker) is not restricted to a single owner.
    """

    model_config = ConfigDict(frozen=True)

    user_id: Optional[str] = None
    is_system: bool = False
    name: str = ""

    @classmethod
    def for_user(cls, user_id: str) -> "AuthenticatedCaller":
        return cls(user_id=user_id)

    @classmethod
    def system(cls, name: str) -> "AuthenticatedCaller":
        return cls(is_system=True, name=name)

    @property
    def owner_filter(self) -> Optional[str]:
        """user_id to scope store lookups by; None means unscoped."""
        return None if self.is_system else self.user_id


class MeetingWithAgent(BaseModel):
    """Meeting joined with its agent for read views."""

    meeting: Meeting
    agent: Optional[Agent] = None


class TranscriptView(BaseModel):
    """Stored transcript of a meeting as returned to the UI."""

    transcript: List[TranscriptEntry] = []
    source: Literal["stored", "none"] = "none"


class MeetingStats(BaseModel):
    """Per-status meeting counts for one user."""

    total: int = 0
    upcoming: int = 0
    active: int = 0
    processing: int = 0
    completed: int = 0
    cancelled: int = 0


class SummarySections(BaseModel):
    """Summary text split back into its fixed sections."""

    overview: str = ""
    key_topics: str = ""
    action_items: str = ""
    sentiment: str = ""


class ProcessingJobRequest(BaseModel):
    """Payload of the ``meetings/processing`` job trigger."""

    meeting_id: str
    transcript_url: str

    def to_event(self) -> Dict[str, Any]:
        """Wire shape ``{name, data: {meetingId, transcriptUrl}}``."""
        return {
            "name": JobEvents.MEETING_PROCESSING,
            "data": {
                "meetingId": self.meeting_id,
                "transcriptUrl": self.transcript_url,
            },
        }


class ProcessingReport(BaseModel):
    """Outcome of one transcript processing job run."""

    meeting_id: str
    status: MeetingStatus
    transcript_entries: int = 0
    summary_length: int = 0
    attempts: int = 1
    persisted: bool = True
    duration_ms: float = 0.0


class VoiceSession(BaseModel):
    """Short-lived realtime voice credential."""

    client_secret: str
    session_id: str = ""


class VoiceBridgeStatus(str, Enum):
    """Client-observed status of the realtime voice agent connection."""

    IDLE = "idle"
    CONNECTING = "connecting"
    LISTENING = "listening"
    SPEAKING = "speaking"
    ERROR = "error"
