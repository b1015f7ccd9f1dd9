"""
Unit tests for domain models.

Validates pure domain types with no storage or HTTP dependencies.
"""

from datetime import timezone

import pytest

from domain.models import (
    AuthenticatedCaller,
    Meeting,
    MeetingStatus,
    ProcessingJobRequest,
    RawTranscriptItem,
    VoiceBridgeStatus,
    utc_now,
)


class TestMeetingStatus:
    def test_closed_set(self) -> None:
        assert {s.value for s in MeetingStatus} == {
            "upcoming", "active", "processing", "completed", "cancelled",
        }

    def test_from_string(self) -> None:
        assert MeetingStatus("processing") is MeetingStatus.PROCESSING

    def test_unknown_value_rejected(self) -> None:
        with pytest.raises(ValueError):
            MeetingStatus("archived")


class TestMeeting:
    def test_defaults(self) -> None:
        meeting = Meeting(id="m-1", user_id="u-1", agent_id="a-1", name="Standup")
        assert meeting.status == MeetingStatus.UPCOMING
        assert meeting.started_at is None
        assert meeting.ended_at is None
        assert meeting.summary is None
        assert meeting.user_notes is None
        assert meeting.transcript_entries == []

    def test_timestamps_are_utc(self) -> None:
        meeting = Meeting(id="m-1", user_id="u-1", agent_id="a-1", name="Standup")
        assert meeting.created_at.tzinfo == timezone.utc

    def test_json_round_trip_keeps_entries(self) -> None:
        meeting = Meeting(
            id="m-1",
            user_id="u-1",
            agent_id="a-1",
            name="Standup",
            transcript_entries=[{"speaker": "Alice", "text": "hi"}],
        )
        restored = Meeting.model_validate(meeting.model_dump(mode="json"))
        assert restored.transcript_entries[0].speaker == "Alice"


class TestAuthenticatedCaller:
    def test_user_caller_is_scoped(self) -> None:
        caller = AuthenticatedCaller.for_user("u-1")
        assert caller.owner_filter == "u-1"
        assert not caller.is_system

    def test_system_caller_is_unscoped(self) -> None:
        caller = AuthenticatedCaller.system("webhook")
        assert caller.owner_filter is None
        assert caller.name == "webhook"

    def test_frozen(self) -> None:
        caller = AuthenticatedCaller.for_user("u-1")
        with pytest.raises(Exception):
            caller.user_id = "u-2"


class TestProcessingJobRequest:
    def test_to_event_wire_shape(self) -> None:
        event = ProcessingJobRequest(meeting_id="m-1", transcript_url="https://t/x.jsonl").to_event()
        assert event == {
            "name": "meetings/processing",
            "data": {"meetingId": "m-1", "transcriptUrl": "https://t/x.jsonl"},
        }


class TestRawTranscriptItem:
    def test_extra_fields_ignored(self) -> None:
        item = RawTranscriptItem.model_validate(
            {"type": "speech.user.stopped", "text": "hi", "confidence": 0.9}
        )
        assert item.text == "hi"
        assert item.user_id == ""


def test_utc_now_is_aware() -> None:
    assert utc_now().tzinfo is not None


def test_voice_bridge_status_values() -> None:
    assert [s.value for s in VoiceBridgeStatus] == [
        "idle", "connecting", "listening", "speaking", "error",
    ]
