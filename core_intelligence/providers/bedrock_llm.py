"""
AWS Bedrock chat provider.
"""

from llama_index.llms.bedrock import Bedrock

from core_intelligence.providers import LLMProviderBase
from shared_utils.constants import Defaults


class BedrockLLMProvider(LLMProviderBase):
    """Bedrock-hosted model, addressed by model id and region."""

    def __init__(self, model_id: str, region: str, timeout: float = Defaults.SUMMARIZER_TIMEOUT):
        super().__init__(model_id, timeout=timeout)
        self.region = region

    def _build_client(self) -> Bedrock:
        return Bedrock(
            model=self.model_id,
            region_name=self.region,
            timeout=self.timeout,
            max_retries=1,
        )
