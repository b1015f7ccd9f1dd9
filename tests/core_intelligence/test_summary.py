"""
Unit tests for core_intelligence.summary: prompt building and section parsing.
"""

from core_intelligence.summary import (
    SUMMARY_SYSTEM_PROMPT,
    build_summary_prompt,
    format_transcript,
    parse_summary_sections,
)
from domain.models import TranscriptEntry


class TestPrompt:
    def test_system_prompt_names_all_sections(self) -> None:
        for header in ("**Overview**", "**Key Topics**", "**Action Items**", "**Sentiment**"):
            assert header in SUMMARY_SYSTEM_PROMPT

    def test_format_transcript(self) -> None:
        entries = [TranscriptEntry(speaker="Alice", text="hi"), TranscriptEntry(speaker="Bob", text="yo")]
        assert format_transcript(entries) == "[Alice]: hi\n[Bob]: yo"

    def test_build_prompt(self) -> None:
        prompt = build_summary_prompt([TranscriptEntry(speaker="Alice", text="hi")])
        assert prompt == "Summarize this meeting transcript:\n\n[Alice]: hi"


class TestParseSummarySections:
    def test_all_sections(self, sample_summary: str) -> None:
        sections = parse_summary_sections(sample_summary)
        assert sections.overview == "A daily standup about the API refactoring."
        assert sections.key_topics == "- API refactoring"
        assert sections.action_items == "- Bob to finish the tests"
        assert sections.sentiment == "positive"

    def test_markdown_heading_prefix_and_colon(self) -> None:
        sections = parse_summary_sections("## **Overview**:\nShort.\n**Sentiment**\nneutral")
        assert sections.overview == "Short."
        assert sections.sentiment == "neutral"
        assert sections.key_topics == ""

    def test_preamble_ignored(self) -> None:
        sections = parse_summary_sections("Here you go.\n**Overview**\nText")
        assert sections.overview == "Text"

    def test_placeholder_summary(self) -> None:
        sections = parse_summary_sections("No transcript available.")
        assert sections.overview == ""

    def test_empty(self) -> None:
        assert parse_summary_sections("").action_items == ""
