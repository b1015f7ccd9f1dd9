"""
Tests for services.agent_service.AgentService.
"""

import pytest

from domain.models import AuthenticatedCaller
from services.agent_service import AgentService
from shared_utils.error_handler import (
    AgentInUseError,
    AuthenticationError,
    NotFoundError,
    ValidationError,
)


@pytest.fixture()
def agents(agent_store, meeting_store) -> AgentService:
    return AgentService(agent_store, meeting_store)


class TestCreate:
    def test_create_strips_fields(self, agents, caller) -> None:
        agent = agents.create(caller, "  Coach ", " Keep it short. ")
        assert agent.name == "Coach"
        assert agent.instructions == "Keep it short."
        assert agent.user_id == caller.user_id

    @pytest.mark.parametrize("name,instructions", [("", "x"), ("x", "  "), (None, "x")])
    def test_blank_fields_rejected(self, agents, caller, name, instructions) -> None:
        with pytest.raises(ValidationError):
            agents.create(caller, name, instructions)

    def test_requires_user(self, agents) -> None:
        with pytest.raises(AuthenticationError):
            agents.create(AuthenticatedCaller(), "Coach", "x")


class TestReadUpdateDelete:
    def test_list_only_own(self, agents, caller, other_caller, agent) -> None:
        agents.create(other_caller, "Theirs", "x")
        assert [a.id for a in agents.list(caller)] == [agent.id]

    def test_get_not_owned(self, agents, other_caller, agent) -> None:
        with pytest.raises(NotFoundError):
            agents.get_by_id(other_caller, agent.id)

    def test_update(self, agents, caller, agent) -> None:
        updated = agents.update(caller, agent.id, {"instructions": "New voice."})
        assert updated.instructions == "New voice."
        assert agents.get_by_id(caller, agent.id).instructions == "New voice."

    def test_update_forbidden_field(self, agents, caller, agent) -> None:
        with pytest.raises(ValidationError):
            agents.update(caller, agent.id, {"user_id": "u-other"})

    def test_delete_unused(self, agents, caller, agent) -> None:
        agents.delete(caller, agent.id)
        with pytest.raises(NotFoundError):
            agents.get_by_id(caller, agent.id)

    def test_delete_in_use_rejected(self, agents, caller, agent, make_meeting) -> None:
        make_meeting()
        with pytest.raises(AgentInUseError) as exc_info:
            agents.delete(caller, agent.id)
        assert exc_info.value.http_status == 409
        assert exc_info.value.context["meeting_count"] == 1
