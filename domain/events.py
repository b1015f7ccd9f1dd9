"""
Call-platform webhook events as a closed set of typed variants.

``parse_call_event`` maps a decoded webhook body onto exactly one variant;
unrecognised ``type`` values become ``UnknownEvent``.
"""

from __future__ import annotations

from typing import Any, Dict, Optional, Union

from pydantic import BaseModel

from shared_utils.constants import CallEventTypes


class SessionStarted(BaseModel):
    meeting_id: Optional[str] = None
    call_id: Optional[str] = None
    custom: Dict[str, Any] = {}


class SessionEnded(BaseModel):
    meeting_id: Optional[str] = None
    transcript_url: Optional[str] = None


class TranscriptionReady(BaseModel):
    meeting_id: Optional[str] = None
    transcript_url: Optional[str] = None


class ParticipantJoined(BaseModel):
    meeting_id: Optional[str] = None
    user_id: Optional[str] = None
    name: Optional[str] = None


class UnknownEvent(BaseModel):
    event_type: str = ""


CallEvent = Union[SessionStarted, SessionEnded, TranscriptionReady, ParticipantJoined, UnknownEvent]


def meeting_id_from_cid(cid: Any) -> Optional[str]:
    """Extract the meeting id from a ``"<call type>:<meeting id>"`` identifier."""
    if not isinstance(cid, str):
        return None
    parts = cid.split(":")
    if len(parts) < 2 or not parts[1]:
        return None
    return parts[1]


def _dig(payload: Any, *path: Any) -> Any:
    """Walk nested dicts/lists; any missing hop yields None."""
    node = payload
    for key in path:
        try:
            node = node[key]
        except (KeyError, IndexError, TypeError):
            return None
    return node


def _text(value: Any) -> Optional[str]:
    if value is None or isinstance(value, (dict, list)):
        return None
    return str(value)


def _ended_transcript_url(call: Any) -> Optional[str]:
    url = _dig(call, "transcription", "closed_captions_files", 0, "url")
    if not url:
        url = _dig(call, "egress", "transcriptions", 0, "url")
    return url if isinstance(url, str) and url else None


def parse_call_event(payload: Dict[str, Any]) -> CallEvent:
    """Build the typed event for a decoded webhook body."""
    event_type = payload.get("type") if isinstance(payload, dict) else None
    call = _dig(payload, "call")

    if event_type == CallEventTypes.SESSION_STARTED:
        custom = _dig(call, "custom")
        return SessionStarted(
            meeting_id=meeting_id_from_cid(_dig(call, "cid")),
            call_id=_text(_dig(call, "id")),
            custom=custom if isinstance(custom, dict) else {},
        )

    if event_type == CallEventTypes.SESSION_ENDED:
        return SessionEnded(
            meeting_id=meeting_id_from_cid(_dig(call, "cid")),
            transcript_url=_ended_transcript_url(call),
        )

    if event_type == CallEventTypes.TRANSCRIPTION_READY:
        url = _dig(payload, "transcription", "url")
        return TranscriptionReady(
            meeting_id=meeting_id_from_cid(_dig(payload, "call_cid")),
            transcript_url=url if isinstance(url, str) and url else None,
        )

    if event_type == CallEventTypes.PARTICIPANT_JOINED:
        return ParticipantJoined(
            meeting_id=meeting_id_from_cid(_dig(call, "cid")),
            user_id=_text(_dig(payload, "participant", "user_id")),
            name=_text(_dig(payload, "participant", "name")),
        )

    return UnknownEvent(event_type=event_type if isinstance(event_type, str) else "")
