"""
Builds the configured summarizer LLM from settings.
"""

from typing import Callable, Dict

from core_intelligence.providers import LLMProviderBase
from core_intelligence.providers.bedrock_llm import BedrockLLMProvider
from core_intelligence.providers.openai_llm import OpenAILLMProvider
from shared_utils.config_loader import Settings, get_settings
from shared_utils.constants import LLMProvider, LogScope
from shared_utils.error_handler import ConfigurationError
from shared_utils.logging_utils import get_scoped_logger


logger = get_scoped_logger(LogScope.PROVIDER)


def _openai(settings: Settings) -> LLMProviderBase:
    if not settings.openai_api_key:
        raise ConfigurationError("OPENAI_API_KEY not configured", context={"provider": "openai"})
    return OpenAILLMProvider(
        model_id=settings.openai_llm_model_id,
        api_key=settings.openai_api_key,
        timeout=settings.summarizer_timeout_seconds,
    )


def _bedrock(settings: Settings) -> LLMProviderBase:
    if not settings.bedrock_region or not settings.bedrock_llm_model_id:
        raise ConfigurationError(
            "BEDROCK_REGION or BEDROCK_LLM_MODEL_ID not configured",
            context={"provider": "bedrock"},
        )
    return BedrockLLMProvider(
        model_id=settings.bedrock_llm_model_id,
        region=settings.bedrock_region,
        timeout=settings.summarizer_timeout_seconds,
    )


class LLMProviderFactory:
    """Maps ``LLM_PROVIDER`` to a provider builder."""

    builders: Dict[str, Callable[[Settings], LLMProviderBase]] = {
        LLMProvider.OPENAI.value: _openai,
        LLMProvider.BEDROCK.value: _bedrock,
    }

    @classmethod
    def create(cls) -> LLMProviderBase:
        """Build and initialize the configured provider.

        Raises:
            ConfigurationError: Unknown provider or missing credentials.
        """
        settings = get_settings()
        builder = cls.builders.get(settings.llm_provider)
        if builder is None:
            raise ConfigurationError(
                f"Unknown LLM provider: {settings.llm_provider}",
                context={"allowed": sorted(cls.builders)},
            )

        provider = builder(settings)
        provider.initialize()
        logger.info("llm_provider_created", provider=provider.name)
        return provider
