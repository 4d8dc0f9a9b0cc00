"""
Field coercion helpers for provider-supplied breakdown data.

Providers emit numbers as strings ("$45"), enumerations in assorted casing and
lists as single values. These helpers map such input onto the canonical
types; none of them raise on bad input.
"""

import math
import re
from enum import Enum
from typing import Any, List, Optional, Tuple, Type, TypeVar

from callsheet.core.constants import ENUM_ALIASES, ENUM_FALLBACKS

E = TypeVar('E', bound=Enum)

_NUMBER = re.compile(r"(-?)\s*\$?\s*(\d+(?:\.\d+)?)")
_SCENE_NUMBER = re.compile(r"^\s*(?:scene\s*)?#?\s*(\d+)\s*$", re.IGNORECASE)
_TRUE_STRINGS = {"true", "yes", "y", "1"}


def coerce_number(value: Any) -> Optional[float]:
    """Read a number from a number or a string like "$1,200.50"; None if absent."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        match = _NUMBER.search(value.replace(",", ""))
        if not match:
            return None
        number = float(match.group(1) + match.group(2))
    else:
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def coerce_amount(value: Any, default: float = 0.0) -> float:
    """Non-negative money amount; negatives become 0."""
    number = coerce_number(value)
    if number is None:
        return default
    return max(number, 0.0)


def coerce_count(value: Any, default: Optional[int] = 0) -> Optional[int]:
    """Non-negative whole count; negatives become 0."""
    number = coerce_number(value)
    if number is None:
        return default
    return max(int(round(number)), 0)


def coerce_scene_number(value: Any) -> Optional[int]:
    """Positive scene number from 3, 3.0, "3" or "Scene 3"; None otherwise."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value > 0 else None
    if isinstance(value, float):
        if value.is_integer() and value > 0:
            return int(value)
        return None
    if isinstance(value, str):
        match = _SCENE_NUMBER.match(value)
        if match and int(match.group(1)) > 0:
            return int(match.group(1))
    return None


def coerce_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_STRINGS
    return bool(value)


def coerce_text(value: Any, default: str = "") -> str:
    if value is None:
        return default
    text = str(value).strip()
    return text or default


def coerce_optional_text(value: Any) -> Optional[str]:
    text = coerce_text(value)
    return text or None


def coerce_str_list(value: Any) -> List[str]:
    """List of non-empty strings; a bare string becomes a one-item list."""
    if value is None:
        return []
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, (list, tuple)):
        return []
    return [str(item).strip() for item in value if item is not None and str(item).strip()]


def coerce_int_list(value: Any) -> List[int]:
    """Positive integers (scene numbers), unparseable items dropped."""
    if not isinstance(value, (list, tuple)):
        value = [value] if value is not None else []
    numbers = []
    for item in value:
        number = coerce_scene_number(item)
        if number is not None and number not in numbers:
            numbers.append(number)
    return numbers


def coerce_enum(enum_cls: Type[E], value: Any) -> Tuple[E, bool]:
    """
    Map a value onto a closed enumeration.

    Returns:
        (member, recognized); unrecognized values map to the enum's fallback
    """
    fallback = ENUM_FALLBACKS[enum_cls]
    if isinstance(value, enum_cls):
        return value, True
    if value is None:
        return fallback, False

    raw = str(value).strip()
    if not raw:
        return fallback, False

    for candidate in (raw, raw.lower(), raw.upper(), raw.upper().replace(" ", "_").replace("-", "_")):
        try:
            return enum_cls(candidate), True
        except ValueError:
            continue

    for alias, member in ENUM_ALIASES.get(enum_cls, {}).items():
        if alias.upper() == raw.upper():
            return member, True

    return fallback, False
