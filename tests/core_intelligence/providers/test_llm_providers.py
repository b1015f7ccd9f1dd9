"""
Unit tests for the LLM providers and their factory.

The llama-index clients are patched; no network calls.
"""

from unittest.mock import MagicMock, patch

import pytest
from llama_index.core.llms import MessageRole

from core_intelligence.providers import LLMProviderBase
from core_intelligence.providers.bedrock_llm import BedrockLLMProvider
from core_intelligence.providers.factory import LLMProviderFactory
from core_intelligence.providers.openai_llm import OpenAILLMProvider
from shared_utils.config_loader import Settings
from shared_utils.error_handler import ConfigurationError


def _chat_response(text):
    response = MagicMock()
    response.message.content = text
    return response


class TestBuildMessages:
    def test_with_system(self) -> None:
        messages = LLMProviderBase.build_messages("prompt", system="rules")
        assert [m.role for m in messages] == [MessageRole.SYSTEM, MessageRole.USER]
        assert messages[1].content == "prompt"

    def test_without_system(self) -> None:
        messages = LLMProviderBase.build_messages("prompt")
        assert len(messages) == 1


class TestOpenAILLMProvider:
    @patch("core_intelligence.providers.openai_llm.OpenAI")
    def test_generate(self, mock_openai: MagicMock) -> None:
        mock_openai.return_value.chat.return_value = _chat_response("summary")
        provider = OpenAILLMProvider(model_id="gpt-4o-mini", api_key="sk-test", timeout=5)
        provider.initialize()

        assert provider.generate("prompt", system="rules") == "summary"
        assert mock_openai.call_args.kwargs["timeout"] == 5

    def test_generate_before_initialize(self) -> None:
        provider = OpenAILLMProvider(model_id="gpt-4o-mini", api_key="sk-test")
        with pytest.raises(RuntimeError):
            provider.generate("prompt")

    @patch("core_intelligence.providers.openai_llm.OpenAI")
    def test_none_content_becomes_empty(self, mock_openai: MagicMock) -> None:
        mock_openai.return_value.chat.return_value = _chat_response(None)
        provider = OpenAILLMProvider(model_id="gpt-4o-mini", api_key="sk-test")
        provider.initialize()
        assert provider.generate("prompt") == ""


class TestBedrockLLMProvider:
    @patch("core_intelligence.providers.bedrock_llm.Bedrock")
    def test_generate(self, mock_bedrock: MagicMock) -> None:
        mock_bedrock.return_value.chat.return_value = _chat_response("summary")
        provider = BedrockLLMProvider(model_id="anthropic.claude", region="eu-west-2")
        provider.initialize()
        assert provider.generate("prompt") == "summary"

    @patch("core_intelligence.providers.bedrock_llm.Bedrock")
    def test_errors_propagate(self, mock_bedrock: MagicMock) -> None:
        mock_bedrock.return_value.chat.side_effect = TimeoutError("slow")
        provider = BedrockLLMProvider(model_id="anthropic.claude", region="eu-west-2")
        provider.initialize()
        with pytest.raises(TimeoutError):
            provider.generate("prompt")


class TestLLMProviderFactory:
    @patch("core_intelligence.providers.factory.get_settings")
    @patch("core_intelligence.providers.factory.BedrockLLMProvider")
    def test_bedrock(self, mock_provider: MagicMock, mock_settings: MagicMock, base_settings_kwargs) -> None:
        mock_settings.return_value = Settings(**base_settings_kwargs)
        provider = LLMProviderFactory.create()
        assert provider is mock_provider.return_value
        provider.initialize.assert_called_once()

    @patch("core_intelligence.providers.factory.get_settings")
    def test_openai_requires_key(self, mock_settings: MagicMock, base_settings_kwargs) -> None:
        mock_settings.return_value = Settings(
            **{**base_settings_kwargs, "llm_provider": "openai", "openai_api_key": ""}
        )
        with pytest.raises(ConfigurationError, match="OPENAI_API_KEY"):
            LLMProviderFactory.create()

    @patch("core_intelligence.providers.factory.get_settings")
    def test_bedrock_requires_model(self, mock_settings: MagicMock, base_settings_kwargs) -> None:
        mock_settings.return_value = Settings(**{**base_settings_kwargs, "bedrock_llm_model_id": ""})
        with pytest.raises(ConfigurationError, match="BEDROCK_LLM_MODEL_ID"):
            LLMProviderFactory.create()


class TestProviderInitialization:
    @patch("core_intelligence.providers.openai_llm.OpenAI", side_effect=ValueError("bad key"))
    def test_client_build_failure_propagates(self, mock_openai: MagicMock) -> None:
        provider = OpenAILLMProvider(model_id="gpt-4o-mini", api_key="sk-test")
        with pytest.raises(ValueError, match="bad key"):
            provider.initialize()
        assert not provider.is_available()

    def test_name_includes_model(self) -> None:
        provider = BedrockLLMProvider(model_id="anthropic.claude", region="eu-west-2")
        assert provider.name == "BedrockLLMProvider(anthropic.claude)"
