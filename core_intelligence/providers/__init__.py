"""
Swappable LLM providers used by the transcript summarizer.

Each concrete provider only knows how to build its llama-index client;
initialisation, chat message assembly and generation live on the base class.
"""

from abc import ABC, abstractmethod
from typing import Any, List, Optional

from llama_index.core.llms import ChatMessage, MessageRole

from shared_utils.constants import Defaults, LogScope
from shared_utils.logging_utils import get_scoped_logger


class LLMProviderBase(ABC):
    """Chat-capable LLM behind a single ``generate`` call."""

    def __init__(self, model_id: str, timeout: float = Defaults.SUMMARIZER_TIMEOUT):
        self.model_id = model_id
        self.timeout = timeout
        self.logger = get_scoped_logger(LogScope.PROVIDER)
        self._llm: Optional[Any] = None

    @property
    def name(self) -> str:
        return f"{type(self).__name__}({self.model_id})"

    @abstractmethod
    def _build_client(self) -> Any:
        """Return the llama-index LLM for this provider."""

    def initialize(self) -> None:
        try:
            self._llm = self._build_client()
        except Exception as e:
            self.logger.error("llm_provider_init_failed", provider=self.name, error=str(e))
            raise
        self.logger.info("llm_provider_initialized", provider=self.name, timeout=self.timeout)

    def is_available(self) -> bool:
        return self._llm is not None

    def generate(self, prompt: str, system: Optional[str] = None) -> str:
        """Single-turn chat completion. Client errors propagate to the caller."""
        if not self.is_available():
            raise RuntimeError(f"{self.name} not initialized")

        try:
            response = self._llm.chat(self.build_messages(prompt, system))
        except Exception as e:
            self.logger.warning("llm_generation_failed", provider=self.name, error=str(e))
            raise
        return response.message.content or ""

    @staticmethod
    def build_messages(prompt: str, system: Optional[str] = None) -> List[ChatMessage]:
        """Chat messages for a single-turn request."""
        messages = []
        if system:
            messages.append(ChatMessage(role=MessageRole.SYSTEM, content=system))
        messages.append(ChatMessage(role=MessageRole.USER, content=prompt))
        return messages
