"""
Callsheet Text Utilities

Text cleanup and bounding helpers shared by the brief assembler and the
provider output extractor.
"""

import re


def clean_unicode(text: str) -> str:
    """
    Clean problematic Unicode characters from text.

    Removes:
    - Zero-width characters and byte order marks
    - Control characters (except newlines, carriage returns and tabs)
    - Replacement characters

    Args:
        text: Input text

    Returns:
        Cleaned text
    """
    text = re.sub(r'[\u200b\u200c\u200d\ufeff]', '', text)
    text = re.sub(r'[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]', '', text)
    return text.replace('\ufffd', '')


def truncate_text(text: str, max_chars: int, suffix: str = "...") -> str:
    """
    Bound text to `max_chars` characters, marking the cut with `suffix`.

    The suffix is appended after the kept characters, so a truncated result
    is `max_chars + len(suffix)` long.
    """
    if max_chars < 0:
        raise ValueError("max_chars must be non-negative")
    if len(text) <= max_chars:
        return text
    return text[:max_chars] + suffix


def count_tokens_estimate(text: str) -> int:
    """
    Estimate token count for text (rough approximation).

    Uses ~4 characters per token. For accurate counts, use the provider's
    tokenizer.
    """
    return len(text) // 4
