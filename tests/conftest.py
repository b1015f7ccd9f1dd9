"""
Root conftest.py: shared fixtures for the entire test suite.

Guidelines:
    • No __init__.py in test sub-directories (avoids shadowing root packages).
    • pytest.ini_options lives in pyproject.toml with pythonpath=["."].
    • Markers: integration.
"""

import json
from typing import Dict, List
from unittest.mock import MagicMock

import pytest

from adapters.in_memory_store import (
    InMemoryAgentStoreAdapter,
    InMemoryMeetingStoreAdapter,
    InMemoryUserDirectoryAdapter,
)
from domain.models import Agent, AuthenticatedCaller, Meeting, MeetingStatus
from services.lifecycle_service import LifecycleService


# ---------------------------------------------------------------------------
# Minimal required settings kwargs for Settings(**BASE_SETTINGS_KWARGS)
# ---------------------------------------------------------------------------

BASE_SETTINGS_KWARGS: Dict[str, str] = {
    "llm_provider": "bedrock",
    "bedrock_region": "eu-west-2",
    "bedrock_llm_model_id": "anthropic.claude-3-haiku-20240307-v1:0",
    "environment": "development",
}


@pytest.fixture()
def base_settings_kwargs() -> Dict[str, str]:
    """Provide the minimal kwargs needed to instantiate ``Settings``."""
    return {**BASE_SETTINGS_KWARGS}


# ---------------------------------------------------------------------------
# Sample transcript fixtures
# ---------------------------------------------------------------------------

SAMPLE_TRANSCRIPT_RECORDS: List[dict] = [
    {"type": "call.session_started", "call_cid": "default:m-1"},
    {
        "type": "speech.user.stopped",
        "speaker_id": "spk-a",
        "user_id": "u-alice",
        "text": " Hello everyone, welcome to the standup. ",
        "start_time": "2026-01-15T10:00:00Z",
        "stop_time": "2026-01-15T10:00:04Z",
    },
    {
        "type": "speech.user.stopped",
        "speaker_id": "spk-b",
        "user_id": "u-bob",
        "text": "I worked on the API refactoring yesterday.",
        "start_time": "2026-01-15T10:00:05Z",
        "stop_time": "2026-01-15T10:00:09Z",
    },
    {"type": "speech.user.stopped", "speaker_id": "spk-b", "user_id": "u-bob", "text": "   "},
    {
        "type": "speech.user.stopped",
        "speaker_id": "agent-1",
        "user_id": "",
        "text": "Sounds good. Any blockers?",
        "start_time": "2026-01-15T10:00:10Z",
        "stop_time": "2026-01-15T10:00:12Z",
    },
]

SAMPLE_SUMMARY = (
    "**Overview**\nA daily standup about the API refactoring.\n\n"
    "**Key Topics**\n- API refactoring\n\n"
    "**Action Items**\n- Bob to finish the tests\n\n"
    "**Sentiment**\npositive"
)


def build_jsonl(records: List[dict]) -> str:
    return "\n".join(json.dumps(r) for r in records)


@pytest.fixture()
def sample_summary() -> str:
    return SAMPLE_SUMMARY


@pytest.fixture()
def sample_transcript_jsonl() -> str:
    """Platform JSONL with one control record, three speech turns and a blank turn."""
    return build_jsonl(SAMPLE_TRANSCRIPT_RECORDS) + "\n{not json\n"


# ---------------------------------------------------------------------------
# Callers
# ---------------------------------------------------------------------------

@pytest.fixture()
def caller() -> AuthenticatedCaller:
    return AuthenticatedCaller.for_user("u-owner")


@pytest.fixture()
def other_caller() -> AuthenticatedCaller:
    return AuthenticatedCaller.for_user("u-stranger")


@pytest.fixture()
def system_caller() -> AuthenticatedCaller:
    return AuthenticatedCaller.system("test")


# ---------------------------------------------------------------------------
# In-memory stores and mock ports
# ---------------------------------------------------------------------------

@pytest.fixture()
def meeting_store() -> InMemoryMeetingStoreAdapter:
    return InMemoryMeetingStoreAdapter()


@pytest.fixture()
def agent_store() -> InMemoryAgentStoreAdapter:
    return InMemoryAgentStoreAdapter()


@pytest.fixture()
def user_directory() -> InMemoryUserDirectoryAdapter:
    return InMemoryUserDirectoryAdapter({"u-alice": "Alice", "u-bob": "Bob"})


@pytest.fixture()
def agent(agent_store: InMemoryAgentStoreAdapter) -> Agent:
    """An agent owned by the ``caller`` fixture's user."""
    record = Agent(
        id="agent-1",
        user_id="u-owner",
        name="Standup Coach",
        instructions="You run short, friendly standups.",
    )
    agent_store.put(record)
    return record


@pytest.fixture()
def job_queue() -> MagicMock:
    """Records enqueued ProcessingJobRequests on ``enqueue.call_args_list``."""
    return MagicMock()


@pytest.fixture()
def call_platform() -> MagicMock:
    mock = MagicMock()
    mock.get_transcript_url.return_value = None
    return mock


@pytest.fixture()
def lifecycle(
    meeting_store: InMemoryMeetingStoreAdapter,
    agent_store: InMemoryAgentStoreAdapter,
    job_queue: MagicMock,
    call_platform: MagicMock,
) -> LifecycleService:
    return LifecycleService(
        meeting_store=meeting_store,
        agent_store=agent_store,
        job_queue=job_queue,
        call_platform=call_platform,
    )


@pytest.fixture()
def make_meeting(meeting_store: InMemoryMeetingStoreAdapter, agent: Agent):
    """Insert a meeting directly in a given status (bypasses the service)."""
    counter = {"n": 0}

    def _make(status: MeetingStatus = MeetingStatus.UPCOMING, **fields) -> Meeting:
        counter["n"] += 1
        meeting = Meeting(
            id=fields.pop("id", f"m-{counter['n']}"),
            user_id=fields.pop("user_id", agent.user_id),
            agent_id=fields.pop("agent_id", agent.id),
            name=fields.pop("name", "Daily standup"),
            status=status,
            **fields,
        )
        meeting_store.insert(meeting)
        return meeting

    return _make
