"""
Port interfaces for text generation and the realtime voice platform.

core_intelligence/providers/ implements the LLM side; the voice side lives in
adapters/http_clients.py.
"""

from __future__ import annotations

from typing import Optional, Protocol, runtime_checkable

from domain.models import VoiceSession


@runtime_checkable
class LLMProviderPort(Protocol):
    """Abstract interface for LLM text generation."""

    def generate(self, prompt: str, system: Optional[str] = None) -> str:
        """Generate text from a prompt.

        Args:
            prompt: User prompt.
            system: Optional system instruction.

        Returns:
            Generated text string.
        """
        ...


@runtime_checkable
class VoiceSessionPort(Protocol):
    """Realtime voice platform session negotiation."""

    def create_session(self, instructions: str, agent_name: str) -> VoiceSession:
        """Issue a short-lived client credential for an agent persona.

        Raises:
            ExternalServiceError: If the platform refuses or is unreachable.
        """
        ...

    def exchange_sdp(self, client_secret: str, offer_sdp: str) -> str:
        """Send an SDP offer, return the SDP answer.

        Raises:
            ExternalServiceError: If the handshake fails.
        """
        ...
