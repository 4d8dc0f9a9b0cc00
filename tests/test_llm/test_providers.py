"""
Tests for LLM Providers

Tests for callsheet/llm/providers.py
"""

import pytest

from callsheet.core.config import LLMConfig
from callsheet.core.constants import LLMProvider
from callsheet.core.exceptions import LLMProviderError
from callsheet.llm.providers import (
    AnthropicProvider,
    GoogleProvider,
    GrokProvider,
    OpenAIProvider,
    create_provider,
)


def _config(provider, env="TEST_CALLSHEET_KEY"):
    return LLMConfig(provider=provider, model="test-model", api_key_env=env, temperature=0.4, max_tokens=512)


class TestCreateProvider:
    """Tests for provider factory."""

    @pytest.mark.parametrize("provider,cls", [
        (LLMProvider.ANTHROPIC, AnthropicProvider),
        (LLMProvider.OPENAI, OpenAIProvider),
        (LLMProvider.GOOGLE, GoogleProvider),
        (LLMProvider.GROK, GrokProvider),
    ])
    def test_class_per_provider(self, provider, cls):
        assert isinstance(create_provider(_config(provider)), cls)

    def test_default_name(self):
        provider = create_provider(_config(LLMProvider.OPENAI))

        assert provider.name == "openai:test-model"

    def test_explicit_name(self):
        provider = create_provider(_config(LLMProvider.OPENAI), name="gpt")

        assert provider.name == "gpt"


class TestBaseProvider:
    """Tests for shared provider behaviour."""

    def test_key_from_environment(self, monkeypatch):
        monkeypatch.setenv("TEST_CALLSHEET_KEY", "secret")

        provider = create_provider(_config(LLMProvider.ANTHROPIC))

        assert provider.is_available

    def test_sampling_defaults_from_config(self, monkeypatch):
        monkeypatch.delenv("TEST_CALLSHEET_KEY", raising=False)
        provider = create_provider(_config(LLMProvider.OPENAI))

        assert provider._temperature(None) == 0.4
        assert provider._temperature(0.0) == 0.0
        assert provider._max_tokens(None) == 512
        assert provider._max_tokens(64) == 64

    @pytest.mark.asyncio
    @pytest.mark.parametrize("provider_type", list(LLMProvider))
    async def test_missing_key_raises_provider_error(self, monkeypatch, provider_type):
        monkeypatch.delenv("TEST_CALLSHEET_KEY", raising=False)
        provider = create_provider(_config(provider_type))

        assert not provider.is_available
        with pytest.raises(LLMProviderError) as exc_info:
            await provider.generate("prompt")

        assert "TEST_CALLSHEET_KEY" in exc_info.value.details["reason"]
