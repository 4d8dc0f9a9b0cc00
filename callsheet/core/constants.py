"""
Callsheet Constants

Global constants and closed enumerations used throughout the breakdown pipeline.
"""

from enum import Enum

# Tag stamped on every breakdown collection
BREAKDOWN_SCHEMA_VERSION = "v2"

# Marker for who produced a collection
UPDATED_BY_AI_GENERATOR = "ai-generator"

# =============================================================================
# BREAKDOWN ENUMERATIONS
# =============================================================================
#
# Each closed set names its fallback: the value unknown provider input maps to.

class TimeOfDay(Enum):
    """Time of day a scene is shot in."""
    DAY = "DAY"
    NIGHT = "NIGHT"
    SUNRISE = "SUNRISE"
    SUNSET = "SUNSET"
    MAGIC_HOUR = "MAGIC_HOUR"


class CastImportance(Enum):
    """How central a cast member is to a scene."""
    LEAD = "lead"
    SUPPORTING = "supporting"
    BACKGROUND = "background"


class MaterialImportance(Enum):
    """How prominent a prop or material is on screen."""
    HERO = "hero"
    SECONDARY = "secondary"
    BACKGROUND = "background"


class MaterialSource(Enum):
    """Where a prop or material comes from."""
    BUY = "buy"
    RENT = "rent"
    BORROW = "borrow"
    OWNED = "owned"


class CoverageComplexity(Enum):
    """Blocking/coverage complexity of a scene."""
    SIMPLE = "simple"
    MODERATE = "moderate"
    COMPLEX = "complex"


class TimePressure(Enum):
    """Schedule pressure on a scene."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


ENUM_FALLBACKS = {
    TimeOfDay: TimeOfDay.DAY,
    CastImportance: CastImportance.SUPPORTING,
    MaterialImportance: MaterialImportance.SECONDARY,
    MaterialSource: MaterialSource.BUY,
    CoverageComplexity: CoverageComplexity.SIMPLE,
    TimePressure: TimePressure.MEDIUM,
}

# Provider spellings that map onto a canonical member
ENUM_ALIASES = {
    MaterialSource: {
        "actor-owned": MaterialSource.OWNED,
        "actor_owned": MaterialSource.OWNED,
        "actor owned": MaterialSource.OWNED,
        "own": MaterialSource.OWNED,
        "purchase": MaterialSource.BUY,
        "rental": MaterialSource.RENT,
    },
    TimeOfDay: {
        "MAGIC HOUR": TimeOfDay.MAGIC_HOUR,
        "MAGIC-HOUR": TimeOfDay.MAGIC_HOUR,
        "GOLDEN HOUR": TimeOfDay.MAGIC_HOUR,
        "DAWN": TimeOfDay.SUNRISE,
        "DUSK": TimeOfDay.SUNSET,
        "MORNING": TimeOfDay.DAY,
        "AFTERNOON": TimeOfDay.DAY,
        "EVENING": TimeOfDay.NIGHT,
    },
}

# Keywords checked (in order) against a scene heading for fallback records
HEADING_TIME_KEYWORDS = [
    ("NIGHT", TimeOfDay.NIGHT),
    ("SUNRISE", TimeOfDay.SUNRISE),
    ("DAWN", TimeOfDay.SUNRISE),
    ("SUNSET", TimeOfDay.SUNSET),
    ("DUSK", TimeOfDay.SUNSET),
    ("MAGIC HOUR", TimeOfDay.MAGIC_HOUR),
]

# =============================================================================
# LLM CONSTANTS
# =============================================================================

class LLMProvider(Enum):
    """Supported LLM providers."""
    ANTHROPIC = "anthropic"
    OPENAI = "openai"
    GOOGLE = "google"
    GROK = "grok"


class LLMFunction(Enum):
    """Functions that can be routed to specific LLMs."""
    SCRIPT_BREAKDOWN = "script_breakdown"


# Default token limits
DEFAULT_MAX_TOKENS = 8000
DEFAULT_TEMPERATURE = 0.6
