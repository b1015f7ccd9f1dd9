"""
Call-platform transcript parsing.

The platform delivers transcripts as JSONL: one JSON object per line, each a
speech or control record. Only completed speech turns with text are kept.
"""

import json
from typing import Dict, List, Optional

from pydantic import ValidationError as PydanticValidationError

from domain.models import RawTranscriptItem, TranscriptEntry
from shared_utils.constants import Defaults, LogScope, TranscriptRecordTypes
from shared_utils.logging_utils import ContextualLogger


logger = ContextualLogger(scope=LogScope.PARSER)


class JsonlTranscriptParser:
    """Parser for the platform's JSONL transcript format."""

    @staticmethod
    def parse(text: str) -> List[RawTranscriptItem]:
        """Parse JSONL text into speech records.

        Blank lines, malformed JSON, non-object lines and records that are not
        ``speech.user.stopped`` with non-blank text are dropped. Input order
        is preserved.

        Args:
            text: Raw JSONL body

        Returns:
            Speech records in transcript order (possibly empty)
        """
        items: List[RawTranscriptItem] = []
        dropped = 0

        for line_no, line in enumerate((text or "").splitlines(), start=1):
            line = line.strip()
            if not line:
                continue
            try:
                record = json.loads(line)
            except json.JSONDecodeError:
                dropped += 1
                logger.debug("jsonl_line_malformed", line=line_no)
                continue
            if not isinstance(record, dict):
                dropped += 1
                continue
            if record.get("type") != TranscriptRecordTypes.SPEECH_STOPPED:
                continue
            if not isinstance(record.get("text"), str) or not record["text"].strip():
                continue

            try:
                items.append(RawTranscriptItem.model_validate(_stringify_ids(record)))
            except PydanticValidationError:
                dropped += 1
                logger.debug("jsonl_record_invalid", line=line_no)

        logger.info("jsonl_transcript_parsed", records=len(items), dropped=dropped)
        return items

    @staticmethod
    def resolve_speakers(
        items: List[RawTranscriptItem],
        display_names: Dict[str, str],
    ) -> List[TranscriptEntry]:
        """Attach display names to speech records.

        Fallback order: directory name for ``user_id``, ``speaker_id``, "Unknown".
        """
        return [
            TranscriptEntry(
                speaker=_speaker_label(item, display_names),
                text=item.text.strip(),
                start_time=item.start_time,
                stop_time=item.stop_time,
            )
            for item in items
        ]


def _speaker_label(item: RawTranscriptItem, display_names: Dict[str, str]) -> str:
    name: Optional[str] = display_names.get(item.user_id) if item.user_id else None
    return name or item.speaker_id or Defaults.UNKNOWN_SPEAKER


def _stringify_ids(record: Dict) -> Dict:
    # Some platform versions send numeric ids and offsets
    out = dict(record)
    for key in ("speaker_id", "user_id", "start_time", "stop_time", "duration", "call_cid"):
        value = out.get(key)
        if value is None:
            out.pop(key, None)
        elif not isinstance(value, str):
            out[key] = str(value)
    return out
