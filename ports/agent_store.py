"""
Port interfaces for agent storage and user display-name lookup.

Implementations: DynamoAgentStoreAdapter, DynamoUserDirectoryAdapter,
InMemoryAgentStoreAdapter, InMemoryUserDirectoryAdapter (adapters/)
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Protocol, runtime_checkable

from domain.models import Agent


@runtime_checkable
class AgentStorePort(Protocol):
    """Abstract interface for agent CRUD operations."""

    def put(self, agent: Agent) -> None:
        """Create or overwrite an agent record."""
        ...

    def get(self, agent_id: str, user_id: Optional[str] = None) -> Optional[Agent]:
        """Retrieve an agent, optionally only if owned by ``user_id``."""
        ...

    def list(self, user_id: str) -> List[Agent]:
        """All agents owned by a user, newest first."""
        ...

    def delete(self, agent_id: str) -> None:
        """Remove an agent record."""
        ...


@runtime_checkable
class UserDirectoryPort(Protocol):
    """Abstract interface resolving user ids to display names."""

    def get_display_names(self, user_ids: Iterable[str]) -> Dict[str, str]:
        """Batch lookup.

        Returns:
            Mapping for the ids that were found; unknown ids are absent.
        """
        ...
