"""
Transcript processing job: turns a call transcript into a stored summary.

Flow:  fetch → parse → (empty? placeholder) → resolve speakers → summarize → save.

Each step's result is checkpointed for the lifetime of one job run, so a
retry after e.g. a summarizer timeout does not download or parse again.
The whole job is retried with exponential backoff (tenacity); after the last
attempt the meeting stays ``processing`` with ``processing_error`` set.
"""

from __future__ import annotations

import time
from typing import Any, Callable, Dict, List, Optional

from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from core_intelligence.parser.jsonl import JsonlTranscriptParser
from core_intelligence.summary import SUMMARY_SYSTEM_PROMPT, build_summary_prompt
from domain.models import (
    AuthenticatedCaller,
    MeetingStatus,
    ProcessingJobRequest,
    ProcessingReport,
    RawTranscriptItem,
    TranscriptEntry,
)
from ports.agent_store import UserDirectoryPort
from ports.call_platform import TranscriptSourcePort
from ports.llm_provider import LLMProviderPort
from services.lifecycle_service import LifecycleService
from shared_utils.constants import Defaults, LogScope
from shared_utils.error_handler import ExternalServiceError, NotFoundError, ProcessingError
from shared_utils.logging_utils import bind_log_context, get_scoped_logger

logger = get_scoped_logger(LogScope.PROCESSING)

STEP_FETCH = "fetch-transcript"
STEP_PARSE = "parse-transcript"
STEP_RESOLVE = "resolve-speakers"
STEP_SUMMARIZE = "generate-summary"
STEP_SAVE = "save-to-db"


class TranscriptProcessingService:
    """Runs the ``meetings/processing`` job for one meeting.

    All collaborators are ports; status changes go through LifecycleService.
    """

    def __init__(
        self,
        lifecycle: LifecycleService,
        transcript_source: TranscriptSourcePort,
        user_directory: UserDirectoryPort,
        llm_provider: LLMProviderPort,
        max_retries: int = Defaults.JOB_MAX_RETRIES,
        retry_wait_seconds: float = Defaults.JOB_RETRY_WAIT_SECONDS,
        retry_max_wait_seconds: float = Defaults.JOB_RETRY_MAX_WAIT_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._lifecycle = lifecycle
        self._source = transcript_source
        self._directory = user_directory
        self._llm = llm_provider
        self._max_retries = max(0, max_retries)
        self._retry_wait = retry_wait_seconds
        self._retry_max_wait = retry_max_wait_seconds
        self._sleep = sleep
        self._caller = AuthenticatedCaller.system("processing-worker")

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def run(self, request: ProcessingJobRequest) -> ProcessingReport:
        """Process one job trigger.

        Returns:
            ProcessingReport for the run. ``persisted`` is False when the
            meeting was no longer processing (duplicate or late job).

        Raises:
            ProcessingError: Invalid trigger, unknown meeting, or retries
                exhausted.
        """
        if not request.meeting_id or not request.transcript_url:
            raise ProcessingError(
                "Job trigger requires meetingId and transcriptUrl",
                meeting_id=request.meeting_id or None,
            )

        t0 = time.time()
        with bind_log_context(meeting_id=request.meeting_id):
            try:
                meeting = self._lifecycle.get_by_id(self._caller, request.meeting_id).meeting
            except NotFoundError as exc:
                raise ProcessingError("Meeting not found", meeting_id=request.meeting_id) from exc

            if meeting.status != MeetingStatus.PROCESSING:
                logger.info("processing_skipped", status=meeting.status.value)
                return ProcessingReport(
                    meeting_id=request.meeting_id,
                    status=meeting.status,
                    attempts=0,
                    persisted=False,
                    duration_ms=(time.time() - t0) * 1000,
                )

            checkpoints: Dict[str, Any] = {}
            retrying = Retrying(
                stop=stop_after_attempt(self._max_retries + 1),
                wait=wait_exponential(
                    multiplier=self._retry_wait,
                    max=self._retry_max_wait,
                ),
                retry=retry_if_not_exception_type(ProcessingError),
                before_sleep=self._log_retry,
                sleep=self._sleep,
                reraise=True,
            )

            try:
                report = retrying(self._attempt, request, checkpoints)
            except Exception as exc:
                self._fail(request, checkpoints, exc)
                raise ProcessingError(
                    f"Transcript processing failed: {exc}",
                    meeting_id=request.meeting_id,
                    context={"attempts": checkpoints.get("attempts", 0)},
                ) from exc

        report.duration_ms = (time.time() - t0) * 1000
        logger.info(
            "processing_complete",
            meeting_id=request.meeting_id,
            entries=report.transcript_entries,
            attempts=report.attempts,
            persisted=report.persisted,
            duration_ms=round(report.duration_ms, 1),
        )
        return report

    # ------------------------------------------------------------------
    # One attempt
    # ------------------------------------------------------------------

    def _attempt(self, request: ProcessingJobRequest, checkpoints: Dict[str, Any]) -> ProcessingReport:
        checkpoints["attempts"] = checkpoints.get("attempts", 0) + 1
        attempt = checkpoints["attempts"]

        raw_text: str = self._step(
            checkpoints, STEP_FETCH, lambda: self._source.fetch_text(request.transcript_url)
        )
        items: List[RawTranscriptItem] = self._step(
            checkpoints, STEP_PARSE, lambda: JsonlTranscriptParser.parse(raw_text)
        )

        if not items:
            logger.info("transcript_empty")
            saved = self._step(
                checkpoints,
                STEP_SAVE,
                lambda: self._lifecycle.complete_processing(
                    self._caller, request.meeting_id, Defaults.EMPTY_TRANSCRIPT_SUMMARY, []
                ),
            )
            return ProcessingReport(
                meeting_id=request.meeting_id,
                status=MeetingStatus.COMPLETED,
                transcript_entries=0,
                summary_length=len(Defaults.EMPTY_TRANSCRIPT_SUMMARY),
                attempts=attempt,
                persisted=saved is not None,
            )

        entries: List[TranscriptEntry] = self._step(
            checkpoints, STEP_RESOLVE, lambda: self._resolve_speakers(items)
        )
        summary: str = self._step(
            checkpoints, STEP_SUMMARIZE, lambda: self._summarize(entries)
        )
        saved = self._step(
            checkpoints,
            STEP_SAVE,
            lambda: self._lifecycle.complete_processing(
                self._caller, request.meeting_id, summary, entries
            ),
        )
        return ProcessingReport(
            meeting_id=request.meeting_id,
            status=MeetingStatus.COMPLETED,
            transcript_entries=len(entries),
            summary_length=len(summary),
            attempts=attempt,
            persisted=saved is not None,
        )

    def _step(self, checkpoints: Dict[str, Any], name: str, fn: Callable[[], Any]) -> Any:
        if name in checkpoints:
            logger.debug("processing_step_reused", step=name)
            return checkpoints[name]
        t0 = time.time()
        result = fn()
        checkpoints[name] = result
        logger.info("processing_step_done", step=name, elapsed_ms=round((time.time() - t0) * 1000, 1))
        return result

    # ------------------------------------------------------------------
    # Step bodies
    # ------------------------------------------------------------------

    def _resolve_speakers(self, items: List[RawTranscriptItem]) -> List[TranscriptEntry]:
        user_ids = sorted({item.user_id for item in items if item.user_id})
        names = self._directory.get_display_names(user_ids) if user_ids else {}
        logger.info("speakers_resolved", requested=len(user_ids), found=len(names))
        return JsonlTranscriptParser.resolve_speakers(items, names)

    def _summarize(self, entries: List[TranscriptEntry]) -> str:
        text = self._llm.generate(build_summary_prompt(entries), system=SUMMARY_SYSTEM_PROMPT)
        if not text or not text.strip():
            raise ExternalServiceError("LLM", "summarizer returned no text")
        return text.strip()

    # ------------------------------------------------------------------
    # Failure handling
    # ------------------------------------------------------------------

    @staticmethod
    def _log_retry(retry_state: RetryCallState) -> None:
        exc: Optional[BaseException] = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            "processing_attempt_failed",
            attempt=retry_state.attempt_number,
            error_type=type(exc).__name__ if exc else None,
            error=str(exc) if exc else None,
            next_wait_seconds=retry_state.next_action.sleep if retry_state.next_action else None,
        )

    def _fail(self, request: ProcessingJobRequest, checkpoints: Dict[str, Any], exc: Exception) -> None:
        message = f"{type(exc).__name__}: {exc}"
        logger.critical(
            "processing_failed_permanently",
            attempts=checkpoints.get("attempts", 0),
            completed_steps=[k for k in checkpoints if k != "attempts"],
            error=message,
        )
        try:
            self._lifecycle.record_processing_failure(self._caller, request.meeting_id, message)
        except Exception as record_exc:
            logger.error("processing_failure_not_recorded", error=str(record_exc))
