"""
Agent service: CRUD for the AI personas meetings are bound to.
"""

from __future__ import annotations

import uuid
from typing import Any, Dict, List

from domain.models import Agent, AuthenticatedCaller, utc_now
from ports.agent_store import AgentStorePort
from ports.meeting_store import MeetingStorePort
from shared_utils.constants import LogScope
from shared_utils.error_handler import (
    AgentInUseError,
    AuthenticationError,
    NotFoundError,
    ValidationError,
)
from shared_utils.logging_utils import get_scoped_logger
from shared_utils.validation import InputValidator

logger = get_scoped_logger(LogScope.AGENTS)

EDITABLE_FIELDS = frozenset({"name", "instructions"})


class AgentService:
    """Owner-scoped agent operations."""

    def __init__(self, agent_store: AgentStorePort, meeting_store: MeetingStorePort) -> None:
        self._agents = agent_store
        self._meetings = meeting_store

    def create(self, caller: AuthenticatedCaller, name: Any, instructions: Any) -> Agent:
        user_id = self._require_user(caller)
        agent = Agent(
            id=str(uuid.uuid4()),
            user_id=user_id,
            name=InputValidator.validate_non_empty_string(name, "name"),
            instructions=InputValidator.validate_non_empty_string(instructions, "instructions"),
        )
        self._agents.put(agent)
        logger.info("agent_created", agent_id=agent.id, user_id=user_id)
        return agent

    def update(self, caller: AuthenticatedCaller, agent_id: str, changes: Dict[str, Any]) -> Agent:
        forbidden = sorted(set(changes) - EDITABLE_FIELDS)
        if forbidden:
            raise ValidationError(
                f"Fields cannot be updated: {', '.join(forbidden)}",
                context={"fields": forbidden},
            )
        agent = self.get_by_id(caller, agent_id)
        clean = {
            field: InputValidator.validate_non_empty_string(value, field)
            for field, value in changes.items()
        }
        if not clean:
            return agent

        updated = agent.model_copy(update={**clean, "updated_at": utc_now()})
        self._agents.put(updated)
        logger.info("agent_updated", agent_id=agent_id, fields=sorted(clean))
        return updated

    def delete(self, caller: AuthenticatedCaller, agent_id: str) -> Agent:
        """Delete an agent that no meeting references.

        Raises:
            AgentInUseError: Meetings still reference the agent.
        """
        agent = self.get_by_id(caller, agent_id)
        meeting_count = self._meetings.count_by_agent(agent_id)
        if meeting_count:
            raise AgentInUseError(agent_id, meeting_count)
        self._agents.delete(agent_id)
        logger.info("agent_deleted", agent_id=agent_id)
        return agent

    def list(self, caller: AuthenticatedCaller) -> List[Agent]:
        return self._agents.list(self._require_user(caller))

    def get_by_id(self, caller: AuthenticatedCaller, agent_id: str) -> Agent:
        if not caller.is_system and not caller.user_id:
            raise AuthenticationError()
        agent = self._agents.get(agent_id, user_id=caller.owner_filter)
        if agent is None:
            raise NotFoundError("Agent", context={"agent_id": agent_id})
        return agent

    @staticmethod
    def _require_user(caller: AuthenticatedCaller) -> str:
        if not caller.user_id:
            raise AuthenticationError()
        return caller.user_id
