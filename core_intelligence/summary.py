"""
Meeting summary prompt and section parsing.

The summarizer is asked for four sections with literal markdown headers;
``parse_summary_sections`` splits a stored summary back into them.
"""

import re
from typing import Dict, List

from domain.models import SummarySections, TranscriptEntry


SECTION_HEADERS: Dict[str, str] = {
    "overview": "Overview",
    "key_topics": "Key Topics",
    "action_items": "Action Items",
    "sentiment": "Sentiment",
}

SUMMARY_SYSTEM_PROMPT = """You are an expert meeting summarizer. Given a transcript, produce a concise structured summary with these sections:

**Overview**
2-3 sentences on what the meeting was about.

**Key Topics**
- Bullet list of main discussion points

**Action Items**
- Any tasks, decisions, or next steps mentioned (write "None identified" if none)

**Sentiment**
Overall tone of the meeting (positive / neutral / mixed / negative)

Be factual, professional, and concise. Use the exact section headers above."""

_HEADER_PATTERN = re.compile(
    r"^\s*(?:#+\s*)?\*\*(Overview|Key Topics|Action Items|Sentiment)\*\*:?\s*$",
    re.MULTILINE,
)


def format_transcript(entries: List[TranscriptEntry]) -> str:
    """Flatten entries into ``[speaker]: text`` lines in transcript order."""
    return "\n".join(f"[{entry.speaker}]: {entry.text}" for entry in entries)


def build_summary_prompt(entries: List[TranscriptEntry]) -> str:
    return f"Summarize this meeting transcript:\n\n{format_transcript(entries)}"


def parse_summary_sections(summary: str) -> SummarySections:
    """Split summary text by its section headers.

    Text before the first header and unknown headers are ignored; a missing
    section comes back as an empty string.
    """
    if not summary:
        return SummarySections()

    by_title = {title: key for key, title in SECTION_HEADERS.items()}
    matches = list(_HEADER_PATTERN.finditer(summary))
    sections: Dict[str, str] = {}
    for i, match in enumerate(matches):
        end = matches[i + 1].start() if i + 1 < len(matches) else len(summary)
        key = by_title[match.group(1)]
        sections.setdefault(key, summary[match.end():end].strip())
    return SummarySections(**sections)
