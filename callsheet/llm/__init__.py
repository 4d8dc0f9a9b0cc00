"""
Callsheet LLM Module

Provider implementations and the ordered-fallback generation client.
Supports: Anthropic Claude, OpenAI GPT, Google Gemini, xAI Grok
"""

from .generation_client import (
    GenerationClient,
    GenerationOutcome,
    GenerationRequest,
    GenerationResult,
    ProviderStats,
    build_generation_client,
)
from .providers import (
    PROVIDER_CLASSES,
    AnthropicProvider,
    BaseLLMProvider,
    GoogleProvider,
    GrokProvider,
    OpenAIProvider,
    create_provider,
)

__all__ = [
    'GenerationClient',
    'GenerationOutcome',
    'GenerationRequest',
    'GenerationResult',
    'ProviderStats',
    'build_generation_client',
    'PROVIDER_CLASSES',
    'AnthropicProvider',
    'BaseLLMProvider',
    'GoogleProvider',
    'GrokProvider',
    'OpenAIProvider',
    'create_provider',
]
