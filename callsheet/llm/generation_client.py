"""
Callsheet Generation Client

Invokes text generation providers in order: the primary first, then each
fallback once with the identical request. Every attempt yields a typed
GenerationOutcome; exceptions only leave the client when every provider
failed (ProviderUnavailableError).

The client owns no parsing logic. A blank response counts as a provider
failure.
"""

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from callsheet.core.config import CallsheetConfig
from callsheet.core.constants import DEFAULT_MAX_TOKENS, DEFAULT_TEMPERATURE, LLMFunction
from callsheet.core.exceptions import LLMError, ProviderUnavailableError
from callsheet.core.logging_config import get_logger

from .providers import BaseLLMProvider, create_provider

logger = get_logger("llm.generation")


@dataclass(frozen=True)
class GenerationRequest:
    """Everything a provider needs for one call."""
    user_prompt: str
    system_prompt: str = ""
    temperature: float = DEFAULT_TEMPERATURE
    max_tokens: int = DEFAULT_MAX_TOKENS


@dataclass(frozen=True)
class GenerationOutcome:
    """Result of one provider attempt: success(text) or failure(reason)."""
    provider: str
    text: Optional[str] = None
    reason: Optional[str] = None
    elapsed_seconds: float = 0.0

    @property
    def ok(self) -> bool:
        return self.text is not None

    @classmethod
    def success(cls, provider: str, text: str, elapsed_seconds: float = 0.0) -> 'GenerationOutcome':
        return cls(provider=provider, text=text, elapsed_seconds=elapsed_seconds)

    @classmethod
    def failure(cls, provider: str, reason: str, elapsed_seconds: float = 0.0) -> 'GenerationOutcome':
        return cls(provider=provider, reason=reason, elapsed_seconds=elapsed_seconds)


@dataclass
class GenerationResult:
    """Text from the first provider that succeeded, plus every attempt made."""
    text: str
    provider: str
    attempts: List[GenerationOutcome] = field(default_factory=list)

    @property
    def used_fallback(self) -> bool:
        return len(self.attempts) > 1

    @property
    def failures(self) -> List[GenerationOutcome]:
        return [a for a in self.attempts if not a.ok]


@dataclass
class ProviderStats:
    """Per-provider call accounting."""
    calls: int = 0
    failures: int = 0
    total_time: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "calls": self.calls,
            "failures": self.failures,
            "total_time": f"{self.total_time:.2f}s",
            "avg_time_per_call": f"{(self.total_time / self.calls):.3f}s" if self.calls else "0s",
        }


class GenerationClient:
    """
    Calls an ordered list of providers until one returns text.

    Providers are duck-typed: anything with a `name` and an async
    `generate(prompt, system_prompt, temperature, max_tokens)` works.
    """

    def __init__(self, providers: Sequence[Any], timeout: Optional[float] = None):
        """
        Initialize the client.

        Args:
            providers: Providers in priority order (primary first)
            timeout: Optional per-attempt timeout in seconds
        """
        if not providers:
            raise ValueError("GenerationClient needs at least one provider")
        self.providers = list(providers)
        self.timeout = timeout
        self._stats: Dict[str, ProviderStats] = {
            self._name_of(p): ProviderStats() for p in self.providers
        }

    @staticmethod
    def _name_of(provider: Any) -> str:
        return getattr(provider, "name", None) or type(provider).__name__

    async def generate(self, request: GenerationRequest) -> GenerationResult:
        """
        Generate text, falling back through the provider list.

        Args:
            request: Prompts and sampling settings

        Returns:
            GenerationResult from the first successful provider

        Raises:
            ProviderUnavailableError: every provider failed
        """
        attempts: List[GenerationOutcome] = []

        for index, provider in enumerate(self.providers):
            name = self._name_of(provider)
            if index > 0:
                logger.info(f"Falling back to provider {name} ({index + 1}/{len(self.providers)})")

            outcome = await self._attempt(provider, name, request)
            attempts.append(outcome)

            if outcome.ok:
                logger.info(f"Provider {name} returned {len(outcome.text)} chars in {outcome.elapsed_seconds:.2f}s")
                return GenerationResult(text=outcome.text, provider=name, attempts=attempts)

            logger.warning(f"Provider {name} failed: {outcome.reason}")

        logger.error(f"All {len(attempts)} generation provider(s) failed")
        raise ProviderUnavailableError(attempts)

    async def _attempt(self, provider: Any, name: str, request: GenerationRequest) -> GenerationOutcome:
        stats = self._stats.setdefault(name, ProviderStats())
        stats.calls += 1
        start = time.monotonic()

        try:
            call = provider.generate(
                prompt=request.user_prompt,
                system_prompt=request.system_prompt,
                temperature=request.temperature,
                max_tokens=request.max_tokens,
            )
            if self.timeout:
                text = await asyncio.wait_for(call, timeout=self.timeout)
            else:
                text = await call
        except asyncio.TimeoutError:
            outcome = GenerationOutcome.failure(name, f"timed out after {self.timeout}s", time.monotonic() - start)
        except LLMError as e:
            outcome = GenerationOutcome.failure(name, e.details.get("reason", e.message), time.monotonic() - start)
        except Exception as e:
            outcome = GenerationOutcome.failure(name, f"{type(e).__name__}: {e}", time.monotonic() - start)
        else:
            elapsed = time.monotonic() - start
            if not isinstance(text, str) or not text.strip():
                outcome = GenerationOutcome.failure(name, "empty response", elapsed)
            else:
                outcome = GenerationOutcome.success(name, text, elapsed)

        stats.total_time += outcome.elapsed_seconds
        if not outcome.ok:
            stats.failures += 1
        return outcome

    def get_stats(self) -> Dict[str, Dict[str, Any]]:
        """Get per-provider call statistics."""
        return {name: stats.to_dict() for name, stats in self._stats.items()}


def build_generation_client(
    config: CallsheetConfig,
    function: LLMFunction = LLMFunction.SCRIPT_BREAKDOWN,
    timeout: Optional[float] = None,
) -> GenerationClient:
    """
    Build a client from the configured provider chain for a function.

    Args:
        config: Callsheet configuration
        function: Function whose primary/fallback mapping is used
        timeout: Optional per-attempt timeout in seconds

    Returns:
        GenerationClient with providers in priority order
    """
    names = {id(llm_config): name for name, llm_config in config.llm_configs.items()}
    providers: List[BaseLLMProvider] = [
        create_provider(llm_config, name=names.get(id(llm_config)))
        for llm_config in config.get_llm_chain(function)
    ]
    logger.debug(f"Provider chain for {function.value}: {[p.name for p in providers]}")
    return GenerationClient(providers, timeout=timeout)
