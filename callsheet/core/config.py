"""
Callsheet Configuration Management

Centralized configuration system with JSON loading and validation.

Budget ceilings are product tuning values, not technical limits, so they are
configuration: `BreakdownConfig.per_scene_budget_cap` and
`BreakdownConfig.episode_budget_cap`.
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from .exceptions import ConfigurationError, MissingConfigError, InvalidConfigError
from .constants import (
    BREAKDOWN_SCHEMA_VERSION,
    DEFAULT_MAX_TOKENS,
    DEFAULT_TEMPERATURE,
    LLMProvider,
    LLMFunction,
)


@dataclass
class LLMConfig:
    """Configuration for a specific LLM provider."""
    provider: LLMProvider
    model: str
    api_key_env: str  # Environment variable name for API key
    temperature: float = DEFAULT_TEMPERATURE
    max_tokens: int = DEFAULT_MAX_TOKENS
    timeout: int = 120

    @classmethod
    def from_dict(cls, data: dict) -> 'LLMConfig':
        """Create LLMConfig from dictionary."""
        try:
            provider = LLMProvider(data['provider'])
        except (KeyError, ValueError) as e:
            raise InvalidConfigError(f"Invalid LLM provider: {data.get('provider')!r}") from e
        if 'model' not in data or 'api_key_env' not in data:
            raise InvalidConfigError(
                "LLM config requires 'model' and 'api_key_env'",
                {"provider": provider.value}
            )
        return cls(
            provider=provider,
            model=data['model'],
            api_key_env=data['api_key_env'],
            temperature=data.get('temperature', DEFAULT_TEMPERATURE),
            max_tokens=data.get('max_tokens', DEFAULT_MAX_TOKENS),
            timeout=data.get('timeout', 120)
        )


@dataclass
class FunctionLLMMapping:
    """Mapping of functions to their preferred LLM configurations."""
    function: LLMFunction
    primary_config: LLMConfig
    fallback_config: Optional[LLMConfig] = None

    @property
    def ordered_configs(self) -> List[LLMConfig]:
        """Primary first, then fallback when one is set."""
        configs = [self.primary_config]
        if self.fallback_config and self.fallback_config != self.primary_config:
            configs.append(self.fallback_config)
        return configs

    @classmethod
    def from_dict(cls, data: dict, llm_configs: Dict[str, LLMConfig]) -> 'FunctionLLMMapping':
        """Create FunctionLLMMapping from dictionary."""
        primary = llm_configs.get(data['primary'])
        if not primary:
            raise InvalidConfigError(f"Unknown LLM config: {data['primary']}")

        fallback = None
        if 'fallback' in data:
            fallback = llm_configs.get(data['fallback'])
            if not fallback:
                raise InvalidConfigError(f"Unknown LLM config: {data['fallback']}")

        try:
            function = LLMFunction(data['function'])
        except ValueError as e:
            raise InvalidConfigError(f"Unknown LLM function: {data['function']!r}") from e

        return cls(
            function=function,
            primary_config=primary,
            fallback_config=fallback
        )


@dataclass
class BreakdownConfig:
    """Tunables for the breakdown pipeline."""
    per_scene_budget_cap: float = 250.0
    episode_budget_cap: float = 625.0

    # Synthesized fallback records
    fallback_scene_budget: float = 10.0
    fallback_duration_minutes: int = 30
    fallback_cast_limit: int = 5

    # Normalizer defaults
    default_duration_minutes: int = 20

    # Generation request settings
    temperature: float = DEFAULT_TEMPERATURE
    max_tokens: int = DEFAULT_MAX_TOKENS

    # Brief bounds
    scene_content_limit: int = 1000
    world_text_limit: int = 400
    principal_cast_limit: int = 8
    key_location_limit: int = 5

    schema_version: str = BREAKDOWN_SCHEMA_VERSION

    def validate(self) -> None:
        """Raise InvalidConfigError when a tunable is out of range."""
        if self.per_scene_budget_cap < 0 or self.episode_budget_cap < 0:
            raise InvalidConfigError(
                "Budget caps must be non-negative",
                {
                    "per_scene_budget_cap": self.per_scene_budget_cap,
                    "episode_budget_cap": self.episode_budget_cap,
                }
            )
        if self.fallback_scene_budget > self.per_scene_budget_cap:
            raise InvalidConfigError(
                "Fallback scene budget cannot exceed the per-scene cap",
                {
                    "fallback_scene_budget": self.fallback_scene_budget,
                    "per_scene_budget_cap": self.per_scene_budget_cap,
                }
            )
        if self.max_tokens <= 0:
            raise InvalidConfigError("max_tokens must be positive", {"max_tokens": self.max_tokens})

    @classmethod
    def from_dict(cls, data: dict) -> 'BreakdownConfig':
        """Create BreakdownConfig from dictionary, keeping defaults for missing keys."""
        defaults = cls()
        config = cls(
            per_scene_budget_cap=float(data.get('per_scene_budget_cap', defaults.per_scene_budget_cap)),
            episode_budget_cap=float(data.get('episode_budget_cap', defaults.episode_budget_cap)),
            fallback_scene_budget=float(data.get('fallback_scene_budget', defaults.fallback_scene_budget)),
            fallback_duration_minutes=int(data.get('fallback_duration_minutes', defaults.fallback_duration_minutes)),
            fallback_cast_limit=int(data.get('fallback_cast_limit', defaults.fallback_cast_limit)),
            default_duration_minutes=int(data.get('default_duration_minutes', defaults.default_duration_minutes)),
            temperature=float(data.get('temperature', defaults.temperature)),
            max_tokens=int(data.get('max_tokens', defaults.max_tokens)),
            scene_content_limit=int(data.get('scene_content_limit', defaults.scene_content_limit)),
            world_text_limit=int(data.get('world_text_limit', defaults.world_text_limit)),
            principal_cast_limit=int(data.get('principal_cast_limit', defaults.principal_cast_limit)),
            key_location_limit=int(data.get('key_location_limit', defaults.key_location_limit)),
            schema_version=data.get('schema_version', defaults.schema_version),
        )
        config.validate()
        return config


def default_llm_configs() -> Dict[str, LLMConfig]:
    """Provider set used when no configuration file names any."""
    return {
        "gpt": LLMConfig(
            provider=LLMProvider.OPENAI,
            model="gpt-4.1",
            api_key_env="OPENAI_API_KEY",
        ),
        "gemini": LLMConfig(
            provider=LLMProvider.GOOGLE,
            model="gemini-2.5-flash",
            api_key_env="GEMINI_API_KEY",
        ),
    }


def default_function_mappings(llm_configs: Dict[str, LLMConfig]) -> Dict[LLMFunction, FunctionLLMMapping]:
    """Route the breakdown to GPT with Gemini as the secondary provider."""
    return {
        LLMFunction.SCRIPT_BREAKDOWN: FunctionLLMMapping(
            function=LLMFunction.SCRIPT_BREAKDOWN,
            primary_config=llm_configs["gpt"],
            fallback_config=llm_configs["gemini"],
        )
    }


@dataclass
class CallsheetConfig:
    """Main configuration class for Callsheet."""

    project_name: str = "Callsheet"
    version: str = "1.0.0"

    # LLM configurations
    llm_configs: Dict[str, LLMConfig] = field(default_factory=default_llm_configs)
    function_mappings: Dict[LLMFunction, FunctionLLMMapping] = field(default_factory=dict)

    # Sub-configurations
    breakdown: BreakdownConfig = field(default_factory=BreakdownConfig)

    # Feature flags
    verbose_logging: bool = False

    def __post_init__(self):
        if not self.function_mappings and {"gpt", "gemini"} <= set(self.llm_configs):
            self.function_mappings = default_function_mappings(self.llm_configs)

    def get_llm_for_function(self, function: LLMFunction) -> LLMConfig:
        """Get the primary LLM configuration for a specific function."""
        return self.get_llm_chain(function)[0]

    def get_llm_chain(self, function: LLMFunction) -> List[LLMConfig]:
        """Get the ordered provider configurations (primary, then fallback) for a function."""
        mapping = self.function_mappings.get(function)
        if mapping:
            return mapping.ordered_configs
        # Fall back to every configured provider in declaration order
        if self.llm_configs:
            return list(self.llm_configs.values())
        raise MissingConfigError(f"No LLM configuration for function: {function.value}")

    @classmethod
    def from_dict(cls, data: dict) -> 'CallsheetConfig':
        """Create CallsheetConfig from dictionary."""
        config = cls()

        config.project_name = data.get('project_name', config.project_name)
        config.version = data.get('version', config.version)
        config.verbose_logging = data.get('verbose_logging', config.verbose_logging)

        # LLM configs replace the defaults entirely when present
        if 'llm_providers' in data:
            config.llm_configs = {
                name: LLMConfig.from_dict(llm_data)
                for name, llm_data in data['llm_providers'].items()
            }
            config.function_mappings = {}

        if 'function_mappings' in data:
            config.function_mappings = {}
            for mapping_data in data['function_mappings']:
                mapping = FunctionLLMMapping.from_dict(mapping_data, config.llm_configs)
                config.function_mappings[mapping.function] = mapping
        elif 'llm_providers' in data and {"gpt", "gemini"} <= set(config.llm_configs):
            config.function_mappings = default_function_mappings(config.llm_configs)

        if 'breakdown' in data:
            config.breakdown = BreakdownConfig.from_dict(data['breakdown'])

        return config


def load_config(config_path: Path = None) -> CallsheetConfig:
    """
    Load configuration from JSON file.

    Args:
        config_path: Path to configuration file. If None, uses default.

    Returns:
        Loaded CallsheetConfig instance
    """
    if config_path is None:
        config_path = Path("config/callsheet_config.json")
    config_path = Path(config_path)

    if not config_path.exists():
        # Return default config if file doesn't exist
        return CallsheetConfig()

    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise InvalidConfigError(f"Invalid JSON in config file: {e}")
    except OSError as e:
        raise ConfigurationError(f"Failed to load config: {e}")

    return CallsheetConfig.from_dict(data)
