"""
Port interface for dispatching transcript processing jobs.

Implementations: EcsJobQueueAdapter, ThreadJobQueueAdapter (adapters/)
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from domain.models import ProcessingJobRequest


@runtime_checkable
class JobQueuePort(Protocol):
    """Fire-and-forget job dispatch."""

    def enqueue(self, request: ProcessingJobRequest) -> None:
        """Schedule a ``meetings/processing`` job.

        Must return without waiting for the job to run.

        Raises:
            ExternalServiceError: If the job could not be scheduled.
        """
        ...
