"""
httpx-based adapters for the external HTTP services.

- HttpTranscriptSourceAdapter: downloads transcript files (TranscriptSourcePort)
- StreamCallPlatformAdapter: Stream video REST API (CallPlatformPort)
- OpenAIRealtimeSessionAdapter: OpenAI realtime sessions (VoiceSessionPort)

Each adapter accepts an optional ``httpx.Client`` so tests can inject a
``httpx.MockTransport``.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

import httpx

from domain.models import VoiceSession
from shared_utils.constants import Defaults, LogScope, ModelIDs
from shared_utils.error_handler import ConfigurationError, ExternalServiceError
from shared_utils.logging_utils import get_scoped_logger, log_execution


logger = get_scoped_logger(LogScope.ADAPTER)


def _raise_for_status(response: httpx.Response, service: str, operation: str) -> None:
    if response.is_success:
        return
    detail = response.text[:500] if response.text else "No details"
    logger.error(
        "http_call_failed",
        service=service,
        operation=operation,
        status_code=response.status_code,
        detail=detail,
    )
    raise ExternalServiceError(
        service,
        f"{operation} returned {response.status_code}",
        context={"status_code": response.status_code, "detail": detail},
    )


class HttpTranscriptSourceAdapter:
    """Fetches transcript files from (pre-signed) URLs."""

    def __init__(
        self,
        timeout: float = Defaults.REQUEST_TIMEOUT,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self._client = client or httpx.Client(timeout=timeout, follow_redirects=True)

    @log_execution(scope=LogScope.ADAPTER)
    def fetch_text(self, url: str) -> str:
        try:
            response = self._client.get(url)
        except httpx.RequestError as exc:
            logger.error("transcript_fetch_request_error", error=str(exc))
            raise ExternalServiceError("TranscriptStorage", str(exc)) from exc
        _raise_for_status(response, "TranscriptStorage", "fetch_transcript")
        logger.info("transcript_fetched", bytes=len(response.content))
        return response.text


class StreamCallPlatformAdapter:
    """Stream video REST implementation of CallPlatformPort.

    Authenticates with a pre-issued server token.
    """

    def __init__(
        self,
        api_key: str,
        server_token: str,
        base_url: str = "https://video.stream-io-api.com",
        call_type: str = Defaults.CALL_TYPE,
        timeout: float = Defaults.REQUEST_TIMEOUT,
        client: Optional[httpx.Client] = None,
    ) -> None:
        if not api_key or not server_token:
            raise ConfigurationError(
                "Stream API key and server token are required for the call platform"
            )
        self._api_key = api_key
        self._call_type = call_type
        self._client = client or httpx.Client(
            base_url=base_url,
            timeout=timeout,
            headers={
                "Authorization": server_token,
                "stream-auth-type": "jwt",
            },
        )

    def _call_path(self, meeting_id: str, suffix: str = "") -> str:
        return f"/video/call/{self._call_type}/{meeting_id}{suffix}"

    def _post(self, path: str, operation: str, json: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        try:
            response = self._client.post(path, params={"api_key": self._api_key}, json=json or {})
        except httpx.RequestError as exc:
            logger.error("stream_request_error", operation=operation, error=str(exc))
            raise ExternalServiceError("Stream", str(exc)) from exc
        _raise_for_status(response, "Stream", operation)
        return response.json() if response.content else {}

    def create_call(self, meeting_id: str, title: str, custom: Dict[str, Any]) -> None:
        payload = {
            "data": {
                "created_by_id": custom.get("userId") or "system",
                "custom": {**custom, "title": title},
            }
        }
        self._post(self._call_path(meeting_id), "create_call", json=payload)
        logger.info("stream_call_created", meeting_id=meeting_id)

    def end_call(self, meeting_id: str) -> None:
        self._post(self._call_path(meeting_id, "/mark_ended"), "end_call")
        logger.info("stream_call_ended", meeting_id=meeting_id)

    def get_transcript_url(self, meeting_id: str) -> Optional[str]:
        try:
            response = self._client.get(
                self._call_path(meeting_id, "/transcriptions"),
                params={"api_key": self._api_key},
            )
        except httpx.RequestError as exc:
            logger.error("stream_request_error", operation="list_transcriptions", error=str(exc))
            raise ExternalServiceError("Stream", str(exc)) from exc
        _raise_for_status(response, "Stream", "list_transcriptions")

        transcriptions = response.json().get("transcriptions") or []
        for entry in transcriptions:
            url = entry.get("url") if isinstance(entry, dict) else None
            if url:
                return url
        return None


class OpenAIRealtimeSessionAdapter:
    """OpenAI realtime implementation of VoiceSessionPort."""

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.openai.com/v1",
        model: str = ModelIDs.OPENAI_REALTIME_MODEL,
        sdp_model: str = ModelIDs.OPENAI_REALTIME_SDP_MODEL,
        voice: str = Defaults.VOICE,
        timeout: float = Defaults.REQUEST_TIMEOUT,
        client: Optional[httpx.Client] = None,
    ) -> None:
        if not api_key:
            raise ConfigurationError("OPENAI_API_KEY not configured")
        self._api_key = api_key
        self._model = model
        self._sdp_model = sdp_model
        self._voice = voice
        self._client = client or httpx.Client(base_url=base_url, timeout=timeout)

    def create_session(self, instructions: str, agent_name: str) -> VoiceSession:
        payload = {
            "model": self._model,
            "voice": self._voice,
            "modalities": ["audio", "text"],
            "instructions": instructions,
            "input_audio_transcription": {"model": "whisper-1"},
            "turn_detection": {
                "type": "server_vad",
                "threshold": 0.5,
                "prefix_padding_ms": 300,
                "silence_duration_ms": 700,
            },
        }
        try:
            response = self._client.post(
                "/realtime/sessions",
                json=payload,
                headers={"Authorization": f"Bearer {self._api_key}"},
            )
        except httpx.RequestError as exc:
            logger.error("openai_session_request_error", error=str(exc))
            raise ExternalServiceError("OpenAI", str(exc)) from exc
        _raise_for_status(response, "OpenAI", "create_session")

        try:
            body = response.json()
        except ValueError as exc:
            raise ExternalServiceError("OpenAI", "session response was not JSON") from exc
        if not isinstance(body, dict):
            raise ExternalServiceError("OpenAI", "session response was not an object")
        client_secret = body.get("client_secret")
        secret = client_secret.get("value") if isinstance(client_secret, dict) else None
        if not isinstance(secret, str) or not secret:
            raise ExternalServiceError("OpenAI", "session response carried no client secret")
        logger.info("openai_session_created", agent_name=agent_name, session_id=body.get("id"))
        return VoiceSession(client_secret=secret, session_id=body.get("id") or "")

    def exchange_sdp(self, client_secret: str, offer_sdp: str) -> str:
        try:
            response = self._client.post(
                "/realtime",
                params={"model": self._sdp_model},
                content=offer_sdp,
                headers={
                    "Authorization": f"Bearer {client_secret}",
                    "Content-Type": "application/sdp",
                },
            )
        except httpx.RequestError as exc:
            logger.error("openai_sdp_request_error", error=str(exc))
            raise ExternalServiceError("OpenAI", str(exc)) from exc
        _raise_for_status(response, "OpenAI", "exchange_sdp")
        return response.text
