"""
Realtime voice bridge between a meeting and an agent persona.

``VoiceSessionService`` issues short-lived client credentials (server side of
``POST /api/openai-session``). ``VoiceBridge`` is the per-session status model
driven by the realtime API's event stream:

    idle → connecting → listening ⇄ speaking → idle
                     ↘ error (from connecting or mid-call)
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Optional

from domain.models import VoiceBridgeStatus, VoiceSession
from ports.llm_provider import VoiceSessionPort
from shared_utils.constants import LogScope
from shared_utils.error_handler import AppException
from shared_utils.logging_utils import get_scoped_logger
from shared_utils.validation import InputValidator

logger = get_scoped_logger(LogScope.VOICE_BRIDGE)

DEFAULT_AGENT_PERSONA = "a helpful AI assistant"

Notifier = Callable[[str], None]


def default_instructions(agent_name: Optional[str]) -> str:
    persona = (agent_name or "").strip() or DEFAULT_AGENT_PERSONA
    return f"You are {persona}. Be conversational and helpful."


class VoiceSessionService:
    """Issues realtime client secrets for an agent persona."""

    def __init__(self, voice_port: VoiceSessionPort) -> None:
        self._voice = voice_port

    def create_session(
        self,
        instructions: Optional[str] = None,
        agent_name: Optional[str] = None,
    ) -> VoiceSession:
        name = InputValidator.normalize_optional_text(agent_name) or ""
        text = InputValidator.normalize_optional_text(instructions) or default_instructions(name)
        session = self._voice.create_session(text, name)
        logger.info("voice_session_issued", agent_name=name or None, session_id=session.session_id)
        return session


class VoiceBridge:
    """Client-side realtime connection state.

    Use as a context manager so the session is always released::

        with VoiceBridge(port, notify=toast) as bridge:
            answer = bridge.connect(instructions, "Coach", offer_sdp)
            for event in events:
                bridge.handle_event(event)
    """

    def __init__(self, voice_port: VoiceSessionPort, notify: Optional[Notifier] = None) -> None:
        self._voice = voice_port
        self._notify = notify or (lambda message: None)
        self.status = VoiceBridgeStatus.IDLE
        self.agent_transcript = ""
        self.user_transcript = ""
        self.session: Optional[VoiceSession] = None
        self._handlers: Dict[str, Callable[[Dict[str, Any]], None]] = {
            "response.audio.delta": self._on_audio_delta,
            "response.audio.done": self._on_audio_done,
            "response.audio_transcript.delta": self._on_transcript_delta,
            "response.audio_transcript.done": self._on_transcript_done,
            "conversation.item.input_audio_transcription.completed": self._on_user_transcript,
            "error": self._on_error,
        }

    def __enter__(self) -> "VoiceBridge":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.disconnect()

    @property
    def is_connected(self) -> bool:
        return self.status in (VoiceBridgeStatus.LISTENING, VoiceBridgeStatus.SPEAKING)

    def connect(self, instructions: str, agent_name: str, offer_sdp: str) -> str:
        """Negotiate the realtime session.

        Returns:
            The answer SDP.

        Raises:
            RuntimeError: Already connecting or connected.
            Exception: Session or SDP exchange failed (bridge is in error).
        """
        if self.status not in (VoiceBridgeStatus.IDLE, VoiceBridgeStatus.ERROR):
            raise RuntimeError(f"cannot connect while {self.status.value}")

        self._set_status(VoiceBridgeStatus.CONNECTING)
        try:
            self.session = self._voice.create_session(instructions, agent_name)
            answer = self._voice.exchange_sdp(self.session.client_secret, offer_sdp)
        except Exception as exc:
            self.session = None
            reason = exc.message if isinstance(exc, AppException) else str(exc)
            self._fail(f"Failed to connect AI agent: {reason}")
            raise

        self._set_status(VoiceBridgeStatus.LISTENING)
        logger.info("voice_bridge_connected", agent_name=agent_name)
        return answer

    def handle_event(self, event: Dict[str, Any]) -> None:
        """Apply one realtime server event; unknown types are ignored."""
        handler = self._handlers.get(event.get("type", ""))
        if handler is None:
            return
        if self.status in (VoiceBridgeStatus.IDLE, VoiceBridgeStatus.CONNECTING):
            logger.debug("voice_event_before_connect", event_type=event.get("type"))
            return
        handler(event)

    def disconnect(self) -> None:
        """Release the session from any state."""
        was = self.status
        self.session = None
        self.agent_transcript = ""
        self.user_transcript = ""
        self._set_status(VoiceBridgeStatus.IDLE)
        if was != VoiceBridgeStatus.IDLE:
            logger.info("voice_bridge_disconnected", previous=was.value)

    # ------------------------------------------------------------------
    # Event handlers
    # ------------------------------------------------------------------

    def _on_audio_delta(self, event: Dict[str, Any]) -> None:
        self._set_status(VoiceBridgeStatus.SPEAKING)

    def _on_audio_done(self, event: Dict[str, Any]) -> None:
        self._set_status(VoiceBridgeStatus.LISTENING)

    def _on_transcript_delta(self, event: Dict[str, Any]) -> None:
        self.agent_transcript += event.get("delta") or ""

    def _on_transcript_done(self, event: Dict[str, Any]) -> None:
        self.agent_transcript = ""

    def _on_user_transcript(self, event: Dict[str, Any]) -> None:
        self.user_transcript = event.get("transcript") or ""

    def _on_error(self, event: Dict[str, Any]) -> None:
        error = event.get("error") or {}
        message = error.get("message") if isinstance(error, dict) else str(error)
        self._fail(f"AI agent error: {message or 'unknown error'}")

    # ------------------------------------------------------------------

    def _set_status(self, status: VoiceBridgeStatus) -> None:
        self.status = status

    def _fail(self, message: str) -> None:
        self._set_status(VoiceBridgeStatus.ERROR)
        logger.error("voice_bridge_error", message=message)
        self._notify(message)
