"""
Tests for worker.entrypoint.main().

Covers:
  - Happy path (env vars set, job succeeds, exit 0)
  - Missing env vars (exit 1)
  - Job failure (exception, exit 1)
"""

import os
from unittest.mock import patch

import pytest

from domain.models import MeetingStatus, ProcessingJobRequest, ProcessingReport
from worker.entrypoint import main

ENV = {"MEETING_ID": "m-1", "TRANSCRIPT_URL": "https://cdn.example.com/m-1.jsonl"}


@pytest.fixture()
def container():
    with patch("worker.entrypoint.get_di_container") as mock_get:
        yield mock_get.return_value


class TestWorkerMain:
    @patch.dict(os.environ, ENV, clear=False)
    def test_success_returns_0(self, container) -> None:
        processing = container.get_processing_service.return_value
        processing.run.return_value = ProcessingReport(
            meeting_id="m-1",
            status=MeetingStatus.COMPLETED,
            transcript_entries=3,
            attempts=1,
            duration_ms=42.0,
        )

        assert main() == 0
        processing.run.assert_called_once_with(
            ProcessingJobRequest(meeting_id="m-1", transcript_url=ENV["TRANSCRIPT_URL"])
        )

    @pytest.mark.parametrize("missing", ["MEETING_ID", "TRANSCRIPT_URL"])
    def test_missing_env_returns_1(self, container, missing: str) -> None:
        env = {k: v for k, v in ENV.items() if k != missing}
        with patch.dict(os.environ, env, clear=True):
            assert main() == 1
        container.get_processing_service.assert_not_called()

    @patch.dict(os.environ, ENV, clear=False)
    def test_job_exception_returns_1(self, container) -> None:
        container.get_processing_service.return_value.run.side_effect = RuntimeError("summarizer down")
        assert main() == 1

    @patch.dict(os.environ, ENV, clear=False)
    def test_container_failure_returns_1(self, container) -> None:
        container.get_processing_service.side_effect = RuntimeError("LLM provider initialization failed")
        assert main() == 1
