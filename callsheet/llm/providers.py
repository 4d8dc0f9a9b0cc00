"""
Callsheet LLM Providers

Capability-equivalent text generation backends. Every provider takes a prompt
plus system prompt and returns raw text; none of them parse the output.

Provider SDKs are imported inside `generate` so only the backends actually
configured need to be installed. SDK errors are wrapped in LLMProviderError.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Dict, Optional, Type

from callsheet.core.config import LLMConfig
from callsheet.core.constants import LLMProvider
from callsheet.core.env_loader import get_api_key
from callsheet.core.exceptions import ContentBlockedError, LLMProviderError
from callsheet.core.logging_config import get_logger

logger = get_logger("llm.providers")

GROK_CHAT_URL = "https://api.x.ai/v1/chat/completions"


class BaseLLMProvider(ABC):
    """Abstract base class for LLM providers."""

    def __init__(self, config: LLMConfig, name: Optional[str] = None):
        self.config = config
        self.name = name or f"{config.provider.value}:{config.model}"
        self._api_key = get_api_key(config.api_key_env)
        if not self._api_key:
            logger.warning(f"API key not found for {self.name}: {config.api_key_env}")

    @abstractmethod
    async def generate(
        self,
        prompt: str,
        system_prompt: str = "",
        temperature: float = None,
        max_tokens: int = None
    ) -> str:
        """Generate a response from the LLM."""
        pass

    @property
    def is_available(self) -> bool:
        """Check if the provider is available."""
        return self._api_key is not None

    def _require_key(self) -> None:
        if not self._api_key:
            raise LLMProviderError(self.name, f"API key not set ({self.config.api_key_env})")

    def _temperature(self, temperature: Optional[float]) -> float:
        return temperature if temperature is not None else self.config.temperature

    def _max_tokens(self, max_tokens: Optional[int]) -> int:
        return max_tokens or self.config.max_tokens


class AnthropicProvider(BaseLLMProvider):
    """Anthropic Claude provider."""

    async def generate(
        self,
        prompt: str,
        system_prompt: str = "",
        temperature: float = None,
        max_tokens: int = None
    ) -> str:
        self._require_key()
        try:
            import anthropic

            client = anthropic.AsyncAnthropic(api_key=self._api_key, timeout=self.config.timeout)

            message = await client.messages.create(
                model=self.config.model,
                max_tokens=self._max_tokens(max_tokens),
                system=system_prompt,
                messages=[{"role": "user", "content": prompt}],
                temperature=self._temperature(temperature)
            )

            return "".join(
                block.text for block in message.content if getattr(block, "type", "") == "text"
            )

        except Exception as e:
            raise LLMProviderError(self.name, str(e)) from e


class OpenAIProvider(BaseLLMProvider):
    """OpenAI GPT provider."""

    async def generate(
        self,
        prompt: str,
        system_prompt: str = "",
        temperature: float = None,
        max_tokens: int = None
    ) -> str:
        self._require_key()
        try:
            import openai

            client = openai.AsyncOpenAI(api_key=self._api_key, timeout=self.config.timeout)

            messages = []
            if system_prompt:
                messages.append({"role": "system", "content": system_prompt})
            messages.append({"role": "user", "content": prompt})

            response = await client.chat.completions.create(
                model=self.config.model,
                messages=messages,
                max_tokens=self._max_tokens(max_tokens),
                temperature=self._temperature(temperature)
            )

            return response.choices[0].message.content or ""

        except Exception as e:
            raise LLMProviderError(self.name, str(e)) from e


class GoogleProvider(BaseLLMProvider):
    """Google Gemini provider."""

    # finish_reason values that mean the output was withheld
    BLOCKED_FINISH_REASONS = {3: "SAFETY", 4: "RECITATION"}

    async def generate(
        self,
        prompt: str,
        system_prompt: str = "",
        temperature: float = None,
        max_tokens: int = None
    ) -> str:
        self._require_key()
        try:
            import google.generativeai as genai

            genai.configure(api_key=self._api_key)
            model = genai.GenerativeModel(self.config.model)

            full_prompt = f"{system_prompt}\n\n{prompt}" if system_prompt else prompt

            response = await asyncio.to_thread(
                model.generate_content,
                full_prompt,
                generation_config={
                    "temperature": self._temperature(temperature),
                    "max_output_tokens": self._max_tokens(max_tokens)
                }
            )

            if not response.candidates:
                block_reason = "UNKNOWN"
                feedback = getattr(response, "prompt_feedback", None)
                if feedback is not None and hasattr(feedback, "block_reason"):
                    block_reason = str(feedback.block_reason)
                raise ContentBlockedError(self.name, f"block_reason: {block_reason}")

            candidate = response.candidates[0]
            finish_reason = getattr(candidate, "finish_reason", None)
            if finish_reason in self.BLOCKED_FINISH_REASONS:
                raise ContentBlockedError(
                    self.name, f"finish_reason: {self.BLOCKED_FINISH_REASONS[finish_reason]}"
                )
            if not candidate.content or not candidate.content.parts:
                raise ContentBlockedError(self.name, f"Empty content with finish_reason={finish_reason}")

            return response.text

        except ContentBlockedError:
            raise
        except Exception as e:
            error_msg = str(e)
            if "PROHIBITED_CONTENT" in error_msg or "block_reason" in error_msg:
                raise ContentBlockedError(self.name, error_msg) from e
            raise LLMProviderError(self.name, error_msg) from e


class GrokProvider(BaseLLMProvider):
    """xAI Grok provider."""

    async def generate(
        self,
        prompt: str,
        system_prompt: str = "",
        temperature: float = None,
        max_tokens: int = None
    ) -> str:
        self._require_key()
        try:
            import httpx

            messages = []
            if system_prompt:
                messages.append({"role": "system", "content": system_prompt})
            messages.append({"role": "user", "content": prompt})

            async with httpx.AsyncClient() as client:
                response = await client.post(
                    GROK_CHAT_URL,
                    headers={
                        "Authorization": f"Bearer {self._api_key}",
                        "Content-Type": "application/json"
                    },
                    json={
                        "model": self.config.model,
                        "messages": messages,
                        "max_tokens": self._max_tokens(max_tokens),
                        "temperature": self._temperature(temperature)
                    },
                    timeout=self.config.timeout
                )
                response.raise_for_status()
                data = response.json()
                return data["choices"][0]["message"]["content"] or ""

        except Exception as e:
            raise LLMProviderError(self.name, str(e)) from e


PROVIDER_CLASSES: Dict[LLMProvider, Type[BaseLLMProvider]] = {
    LLMProvider.ANTHROPIC: AnthropicProvider,
    LLMProvider.OPENAI: OpenAIProvider,
    LLMProvider.GOOGLE: GoogleProvider,
    LLMProvider.GROK: GrokProvider,
}


def create_provider(config: LLMConfig, name: Optional[str] = None) -> BaseLLMProvider:
    """Instantiate the provider class registered for a config's provider."""
    provider_class = PROVIDER_CLASSES.get(config.provider)
    if provider_class is None:
        raise LLMProviderError(config.provider.value, "No provider implementation registered")
    return provider_class(config, name=name)
