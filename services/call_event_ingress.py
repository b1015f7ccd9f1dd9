"""
Call-event ingress: verifies and dispatches call-platform webhooks.

Flow:  raw body + signature → verify → decode → typed event → handler.

Deliveries are at-least-once and may arrive out of order; every handler goes
through LifecycleService's conditional transitions, so replays are no-ops.
Whatever happens, the platform gets an acknowledgement.
"""

from __future__ import annotations

import hashlib
import hmac
import json
from typing import Any, Callable, Dict, Optional, Type

from pydantic import ValidationError as PydanticValidationError

from domain.events import (
    CallEvent,
    ParticipantJoined,
    SessionEnded,
    SessionStarted,
    TranscriptionReady,
    UnknownEvent,
    parse_call_event,
)
from domain.models import AuthenticatedCaller
from ports.agent_store import AgentStorePort
from services.lifecycle_service import LifecycleService
from shared_utils.constants import LogScope
from shared_utils.logging_utils import bind_log_context, get_scoped_logger

logger = get_scoped_logger(LogScope.WEBHOOK)

ACK: Dict[str, str] = {"status": "ok"}


def compute_signature(body: bytes, secret: str) -> str:
    """Hex HMAC-SHA256 of the raw body."""
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def verify_signature(body: bytes, signature: Optional[str], secret: str) -> bool:
    """Constant-time check of the ``x-signature`` header."""
    if not signature or not secret:
        return False
    expected = compute_signature(body, secret)
    return hmac.compare_digest(expected, signature.strip().lower())


class CallEventIngress:
    """Entry point for ``POST /api/webhook/stream``."""

    def __init__(
        self,
        lifecycle: LifecycleService,
        agent_store: AgentStorePort,
        signing_secret: str,
    ) -> None:
        self._lifecycle = lifecycle
        self._agents = agent_store
        self._secret = signing_secret
        self._caller = AuthenticatedCaller.system("webhook")
        self._handlers: Dict[Type[Any], Callable[[Any], None]] = {
            SessionStarted: self._on_session_started,
            SessionEnded: self._on_session_ended,
            TranscriptionReady: self._on_transcription_ready,
            ParticipantJoined: self._on_participant_joined,
            UnknownEvent: self._on_unknown,
        }

    @property
    def handlers(self) -> Dict[Type[Any], Callable[[Any], None]]:
        return dict(self._handlers)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def handle(self, body: bytes, signature: Optional[str]) -> Dict[str, str]:
        """Process one delivery. Always returns the acknowledgement."""
        if not verify_signature(body, signature, self._secret):
            logger.warning(
                "webhook_signature_rejected",
                has_signature=bool(signature),
                body_bytes=len(body),
            )
            return dict(ACK)

        try:
            payload = json.loads(body)
        except (json.JSONDecodeError, UnicodeDecodeError):
            logger.warning("webhook_body_unparseable", body_bytes=len(body))
            return dict(ACK)
        if not isinstance(payload, dict):
            logger.warning("webhook_body_not_object")
            return dict(ACK)

        try:
            event = parse_call_event(payload)
        except PydanticValidationError as exc:
            logger.warning("webhook_event_invalid", event_type=payload.get("type"), error=str(exc))
            return dict(ACK)

        self.dispatch(event)
        return dict(ACK)

    def dispatch(self, event: CallEvent) -> None:
        """Run the handler registered for the event's class.

        Handler errors are logged, never raised.
        """
        handler = self._handlers[type(event)]
        meeting_id = getattr(event, "meeting_id", None)
        with bind_log_context(event=type(event).__name__, meeting_id=meeting_id):
            try:
                handler(event)
            except Exception as exc:
                logger.error(
                    "webhook_handler_failed",
                    error_type=type(exc).__name__,
                    error=str(exc),
                )

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    def _on_session_started(self, event: SessionStarted) -> None:
        if not event.meeting_id:
            logger.info("session_started_without_meeting")
            return
        meeting = self._lifecycle.start(self._caller, event.meeting_id, create_call=False)
        agent = self._agents.get(meeting.agent_id)
        logger.info(
            "session_started",
            status=meeting.status.value,
            agent_id=meeting.agent_id,
            agent_name=agent.name if agent else None,
        )

    def _on_session_ended(self, event: SessionEnded) -> None:
        if not event.meeting_id:
            logger.info("session_ended_without_meeting")
            return
        self._lifecycle.close_session(self._caller, event.meeting_id, event.transcript_url)

    def _on_transcription_ready(self, event: TranscriptionReady) -> None:
        if not event.meeting_id or not event.transcript_url:
            logger.info("transcription_ready_incomplete", has_url=bool(event.transcript_url))
            return
        self._lifecycle.attach_transcript(self._caller, event.meeting_id, event.transcript_url)

    def _on_participant_joined(self, event: ParticipantJoined) -> None:
        logger.info("participant_joined", user_id=event.user_id, name=event.name)

    def _on_unknown(self, event: UnknownEvent) -> None:
        logger.debug("webhook_event_ignored", event_type=event.event_type)
