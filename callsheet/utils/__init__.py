"""
Callsheet Utilities Module

Common utility functions used throughout the pipeline.
"""

from .unicode_utils import clean_unicode, count_tokens_estimate, truncate_text

__all__ = [
    'clean_unicode',
    'count_tokens_estimate',
    'truncate_text',
]
