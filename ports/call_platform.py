"""
Port interfaces for the external video-calling and transcript hosting services.

Implementations: StreamCallPlatformAdapter, HttpTranscriptSourceAdapter (adapters/)
"""

from __future__ import annotations

from typing import Any, Dict, Optional, Protocol, runtime_checkable


@runtime_checkable
class CallPlatformPort(Protocol):
    """Call objects on the video platform. All operations are best-effort
    from the lifecycle's point of view."""

    def create_call(self, meeting_id: str, title: str, custom: Dict[str, Any]) -> None:
        """Get-or-create the call for a meeting.

        Raises:
            ExternalServiceError: On platform failure.
        """
        ...

    def end_call(self, meeting_id: str) -> None:
        """End the call for a meeting.

        Raises:
            ExternalServiceError: On platform failure.
        """
        ...

    def get_transcript_url(self, meeting_id: str) -> Optional[str]:
        """URL of the call's transcript file, if the platform has one yet."""
        ...


@runtime_checkable
class TranscriptSourcePort(Protocol):
    """Download of raw transcript files."""

    def fetch_text(self, url: str) -> str:
        """Return the body of ``url`` as text.

        Raises:
            ExternalServiceError: On a non-2xx status or network error.
        """
        ...
