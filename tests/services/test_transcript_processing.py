"""
Tests for services.transcript_processing.TranscriptProcessingService.

The transcript source and summarizer are MagicMocks; retries use a no-op
sleep so backoff never blocks the suite.
"""

from unittest.mock import MagicMock

import pytest

from adapters.in_memory_store import InMemoryUserDirectoryAdapter
from domain.models import MeetingStatus, ProcessingJobRequest
from services.transcript_processing import TranscriptProcessingService
from shared_utils.error_handler import ExternalServiceError, ProcessingError

URL = "https://t/m.jsonl"


@pytest.fixture()
def transcript_source(sample_transcript_jsonl) -> MagicMock:
    source = MagicMock()
    source.fetch_text.return_value = sample_transcript_jsonl
    return source


@pytest.fixture()
def llm(sample_summary) -> MagicMock:
    provider = MagicMock()
    provider.generate.return_value = sample_summary
    return provider


@pytest.fixture()
def processing(lifecycle, transcript_source, user_directory, llm) -> TranscriptProcessingService:
    return TranscriptProcessingService(
        lifecycle=lifecycle,
        transcript_source=transcript_source,
        user_directory=user_directory,
        llm_provider=llm,
        max_retries=2,
        sleep=lambda seconds: None,
    )


def _request(meeting_id: str) -> ProcessingJobRequest:
    return ProcessingJobRequest(meeting_id=meeting_id, transcript_url=URL)


# ---------------------------------------------------------------------------
# Happy path
# ---------------------------------------------------------------------------

class TestRun:
    def test_completes_with_summary_and_entries(
        self, processing, make_meeting, meeting_store, llm, sample_summary
    ) -> None:
        meeting = make_meeting(MeetingStatus.PROCESSING, transcript_url=URL)

        report = processing.run(_request(meeting.id))

        stored = meeting_store.get(meeting.id)
        assert stored.status == MeetingStatus.COMPLETED
        assert stored.summary == sample_summary
        assert [e.speaker for e in stored.transcript_entries] == ["Alice", "Bob", "agent-1"]
        assert report.persisted is True
        assert report.attempts == 1
        assert report.transcript_entries == 3

    def test_prompt_lists_turns_in_order(self, processing, make_meeting, llm) -> None:
        meeting = make_meeting(MeetingStatus.PROCESSING, transcript_url=URL)
        processing.run(_request(meeting.id))

        prompt = llm.generate.call_args.args[0]
        assert prompt.startswith("Summarize this meeting transcript:")
        assert "[Alice]: Hello everyone, welcome to the standup." in prompt
        assert prompt.index("[Alice]") < prompt.index("[Bob]") < prompt.index("[agent-1]")
        assert "**Action Items**" in llm.generate.call_args.kwargs["system"]

    def test_unknown_user_falls_back_to_speaker_id(
        self, lifecycle, transcript_source, llm, make_meeting, meeting_store
    ) -> None:
        directory = InMemoryUserDirectoryAdapter({"u-alice": "Alice"})
        service = TranscriptProcessingService(lifecycle, transcript_source, directory, llm)
        meeting = make_meeting(MeetingStatus.PROCESSING, transcript_url=URL)

        service.run(_request(meeting.id))

        speakers = [e.speaker for e in meeting_store.get(meeting.id).transcript_entries]
        assert speakers == ["Alice", "spk-b", "agent-1"]

    def test_empty_transcript_gets_placeholder(
        self, processing, make_meeting, meeting_store, transcript_source, llm
    ) -> None:
        transcript_source.fetch_text.return_value = '{"type": "call.session_started"}\n'
        meeting = make_meeting(MeetingStatus.PROCESSING, transcript_url=URL)

        report = processing.run(_request(meeting.id))

        stored = meeting_store.get(meeting.id)
        assert stored.status == MeetingStatus.COMPLETED
        assert stored.summary == "No transcript available."
        assert stored.transcript_entries == []
        assert report.transcript_entries == 0
        llm.generate.assert_not_called()

    def test_meeting_not_processing_is_skipped(
        self, processing, make_meeting, transcript_source
    ) -> None:
        meeting = make_meeting(MeetingStatus.COMPLETED, summary="done")

        report = processing.run(_request(meeting.id))

        assert report.persisted is False
        assert report.attempts == 0
        transcript_source.fetch_text.assert_not_called()

    def test_second_run_does_not_overwrite(
        self, processing, make_meeting, meeting_store, sample_summary
    ) -> None:
        meeting = make_meeting(MeetingStatus.PROCESSING, transcript_url=URL)
        processing.run(_request(meeting.id))

        report = processing.run(_request(meeting.id))

        assert report.persisted is False
        assert meeting_store.get(meeting.id).summary == sample_summary


# ---------------------------------------------------------------------------
# Invalid triggers
# ---------------------------------------------------------------------------

class TestInvalidTrigger:
    @pytest.mark.parametrize("meeting_id,url", [("", URL), ("m-1", "")])
    def test_missing_fields(self, processing, meeting_id, url) -> None:
        with pytest.raises(ProcessingError):
            processing.run(ProcessingJobRequest(meeting_id=meeting_id, transcript_url=url))

    def test_unknown_meeting(self, processing) -> None:
        with pytest.raises(ProcessingError, match="Meeting not found"):
            processing.run(_request("missing"))


# ---------------------------------------------------------------------------
# Retries
# ---------------------------------------------------------------------------

class TestRetries:
    def test_retry_reuses_completed_steps(
        self, processing, make_meeting, meeting_store, transcript_source, llm, sample_summary
    ) -> None:
        llm.generate.side_effect = [TimeoutError("summarizer timed out"), sample_summary]
        meeting = make_meeting(MeetingStatus.PROCESSING, transcript_url=URL)

        report = processing.run(_request(meeting.id))

        assert report.attempts == 2
        assert llm.generate.call_count == 2
        transcript_source.fetch_text.assert_called_once_with(URL)
        assert meeting_store.get(meeting.id).status == MeetingStatus.COMPLETED

    def test_blank_summary_is_retried(self, processing, make_meeting, llm, sample_summary) -> None:
        llm.generate.side_effect = ["   ", sample_summary]
        meeting = make_meeting(MeetingStatus.PROCESSING, transcript_url=URL)
        assert processing.run(_request(meeting.id)).attempts == 2

    def test_exhaustion_records_error_and_keeps_processing(
        self, processing, make_meeting, meeting_store, llm
    ) -> None:
        llm.generate.side_effect = ExternalServiceError("LLM", "rate limited")
        meeting = make_meeting(MeetingStatus.PROCESSING, transcript_url=URL)

        with pytest.raises(ProcessingError) as exc_info:
            processing.run(_request(meeting.id))

        assert exc_info.value.context["attempts"] == 3
        assert llm.generate.call_count == 3
        stored = meeting_store.get(meeting.id)
        assert stored.status == MeetingStatus.PROCESSING
        assert stored.summary is None
        assert "rate limited" in stored.processing_error

    def test_backoff_waits_between_attempts(
        self, lifecycle, transcript_source, user_directory, llm, make_meeting
    ) -> None:
        waits = []
        service = TranscriptProcessingService(
            lifecycle,
            transcript_source,
            user_directory,
            llm,
            max_retries=1,
            retry_wait_seconds=2.0,
            sleep=waits.append,
        )
        llm.generate.side_effect = ExternalServiceError("LLM", "down")
        meeting = make_meeting(MeetingStatus.PROCESSING, transcript_url=URL)

        with pytest.raises(ProcessingError):
            service.run(_request(meeting.id))

        assert len(waits) == 1
        assert waits[0] > 0

    def test_success_clears_previous_error(
        self, processing, make_meeting, meeting_store
    ) -> None:
        meeting = make_meeting(
            MeetingStatus.PROCESSING, transcript_url=URL, processing_error="earlier failure"
        )
        processing.run(_request(meeting.id))
        assert meeting_store.get(meeting.id).processing_error is None


# ---------------------------------------------------------------------------
# End to end
# ---------------------------------------------------------------------------

class TestMeetingFlow:
    def test_create_start_end_process(
        self, lifecycle, processing, caller, agent, call_platform, job_queue
    ) -> None:
        call_platform.get_transcript_url.return_value = URL

        meeting = lifecycle.create(caller, name="Daily standup", agent_id=agent.id)
        lifecycle.start(caller, meeting.id)
        ended = lifecycle.end(caller, meeting.id)
        assert ended.status == MeetingStatus.PROCESSING

        request = job_queue.enqueue.call_args.args[0]
        processing.run(request)

        view = lifecycle.get_by_id(caller, meeting.id)
        assert view.meeting.status == MeetingStatus.COMPLETED
        for header in ("**Overview**", "**Key Topics**", "**Action Items**", "**Sentiment**"):
            assert header in view.meeting.summary
        transcript = lifecycle.get_transcript(caller, meeting.id)
        assert transcript.source == "stored"
        assert len(transcript.transcript) == 3
