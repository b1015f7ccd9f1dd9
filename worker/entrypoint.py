"""
Worker entrypoint for ECS Fargate RunTask.

Invoked by EcsJobQueueAdapter via ``ecs:RunTask`` with environment overrides:
    MEETING_ID     : the meeting to process
    TRANSCRIPT_URL : where the call platform stored the JSONL transcript

The worker:
    1. Runs TranscriptProcessingService.run() (fetch, parse, resolve,
       summarize, save, retried with backoff).
    2. Exits 0 on success, 1 on failure.

All logging is JSON (structlog) and ships to CloudWatch via the awslogs driver.
"""

from __future__ import annotations

import os
import sys

from domain.models import ProcessingJobRequest
from shared_utils.config_loader import get_settings
from shared_utils.constants import LogScope
from shared_utils.logging_utils import configure_log_level, get_scoped_logger
from shared_utils.di_container import get_di_container

logger = get_scoped_logger(LogScope.WORKER)


def main() -> int:
    """Worker main: parse env vars, build deps, run the processing job."""
    meeting_id = os.environ.get("MEETING_ID", "")
    transcript_url = os.environ.get("TRANSCRIPT_URL", "")

    if not meeting_id or not transcript_url:
        logger.error(
            "worker_missing_env",
            meeting_id=meeting_id,
            has_transcript_url=bool(transcript_url),
        )
        print("ERROR: MEETING_ID and TRANSCRIPT_URL env vars are required", file=sys.stderr)
        return 1

    configure_log_level(get_settings().log_level)
    logger.info("worker_started", meeting_id=meeting_id)

    try:
        container = get_di_container()
        processing_svc = container.get_processing_service()

        report = processing_svc.run(
            ProcessingJobRequest(meeting_id=meeting_id, transcript_url=transcript_url)
        )

        logger.info(
            "worker_completed",
            meeting_id=meeting_id,
            status=report.status.value,
            entries=report.transcript_entries,
            attempts=report.attempts,
            persisted=report.persisted,
            duration_ms=round(report.duration_ms, 1),
        )
        return 0

    except Exception as exc:
        logger.error(
            "worker_failed",
            meeting_id=meeting_id,
            error=str(exc),
        )
        return 1


if __name__ == "__main__":
    sys.exit(main())
