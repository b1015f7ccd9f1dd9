"""
OpenAI chat-completions provider.
"""

from llama_index.llms.openai import OpenAI

from core_intelligence.providers import LLMProviderBase
from shared_utils.constants import Defaults


class OpenAILLMProvider(LLMProviderBase):
    def __init__(self, model_id: str, api_key: str, timeout: float = Defaults.SUMMARIZER_TIMEOUT):
        super().__init__(model_id, timeout=timeout)
        self.api_key = api_key

    def _build_client(self) -> OpenAI:
        # Retries belong to the processing job, not the client.
        return OpenAI(
            model=self.model_id,
            api_key=self.api_key,
            timeout=self.timeout,
            max_retries=0,
        )
