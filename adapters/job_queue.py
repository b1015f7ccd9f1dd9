"""
Job queue adapters for the ``meetings/processing`` job.

- EcsJobQueueAdapter: fire-and-forget ECS Fargate RunTask of the worker image
- ThreadJobQueueAdapter: in-process background thread for local development
"""

from __future__ import annotations

import threading
from typing import Any, Callable, List, Optional

import boto3
from botocore.exceptions import ClientError

from domain.models import ProcessingJobRequest
from shared_utils.constants import Defaults, LogScope
from shared_utils.error_handler import ExternalServiceError
from shared_utils.logging_utils import get_scoped_logger


logger = get_scoped_logger(LogScope.ADAPTER)


class EcsJobQueueAdapter:
    """Runs one worker task per job; the task reads MEETING_ID / TRANSCRIPT_URL."""

    def __init__(
        self,
        cluster: str,
        task_definition: str,
        subnets: List[str],
        security_group: str,
        container_name: str,
        region: str = Defaults.AWS_REGION,
        ecs_client: Optional[object] = None,
    ) -> None:
        self._cluster = cluster
        self._task_definition = task_definition
        self._subnets = subnets
        self._security_group = security_group
        self._container_name = container_name
        self._ecs = ecs_client or boto3.client("ecs", region_name=region)

    def enqueue(self, request: ProcessingJobRequest) -> None:
        try:
            response = self._ecs.run_task(
                cluster=self._cluster,
                taskDefinition=self._task_definition,
                launchType="FARGATE",
                networkConfiguration={
                    "awsvpcConfiguration": {
                        "subnets": self._subnets,
                        "securityGroups": [self._security_group],
                        "assignPublicIp": "DISABLED",
                    }
                },
                overrides={
                    "containerOverrides": [
                        {
                            "name": self._container_name,
                            "environment": [
                                {"name": "MEETING_ID", "value": request.meeting_id},
                                {"name": "TRANSCRIPT_URL", "value": request.transcript_url},
                            ],
                        }
                    ]
                },
            )
        except ClientError as exc:
            logger.error(
                "ecs_run_task_failed",
                meeting_id=request.meeting_id,
                error=str(exc),
            )
            raise ExternalServiceError("ECS", f"Failed to start worker: {exc}") from exc

        failures = response.get("failures") or []
        if failures:
            logger.error(
                "ecs_run_task_rejected",
                meeting_id=request.meeting_id,
                failures=failures,
            )
            raise ExternalServiceError(
                "ECS", "RunTask reported failures", context={"failures": failures}
            )

        logger.info(
            "ecs_worker_triggered",
            job=request.to_event(),
            cluster=self._cluster,
        )


class ThreadJobQueueAdapter:
    """Runs the job in-process on a daemon thread.

    ``runner`` is normally ``TranscriptProcessingService.run``.
    """

    def __init__(self, runner: Callable[[ProcessingJobRequest], Any]) -> None:
        self._runner = runner

    def enqueue(self, request: ProcessingJobRequest) -> None:
        logger.info("local_processing_triggered", job=request.to_event())

        def _run_local_processing() -> None:
            try:
                self._runner(request)
                logger.info("local_processing_complete", meeting_id=request.meeting_id)
            except Exception as exc:
                logger.error(
                    "local_processing_failed",
                    meeting_id=request.meeting_id,
                    error=str(exc),
                )

        threading.Thread(
            target=_run_local_processing,
            daemon=True,
            name=f"process-{request.meeting_id[:8]}",
        ).start()
