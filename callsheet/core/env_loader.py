"""
Centralized environment variable loading for Callsheet.

Provider API keys are read from the process environment. A `.env` file at the
project root (or an explicit path) is loaded once through python-dotenv.

Usage:
    from callsheet.core.env_loader import ensure_env_loaded
    ensure_env_loaded()
"""

import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

_env_loaded = False


def get_project_root() -> Path:
    """Get the project root directory (where .env is located)."""
    # This file is at callsheet/core/env_loader.py
    return Path(__file__).parent.parent.parent


def ensure_env_loaded(env_path: Optional[Path] = None, override: bool = False) -> bool:
    """
    Ensure environment variables from .env are loaded.

    Args:
        env_path: Explicit .env path; defaults to the project root
        override: If True, .env values replace variables already set

    Returns:
        True if a .env file was loaded, False if already loaded or not found
    """
    global _env_loaded

    if _env_loaded and env_path is None:
        return False

    env_path = Path(env_path) if env_path else get_project_root() / ".env"
    if not env_path.exists():
        return False

    load_dotenv(env_path, override=override)
    _env_loaded = True
    return True


def get_api_key(key_name: str, fallback_keys: Optional[list] = None) -> Optional[str]:
    """
    Get an API key from environment, with fallback options.

    Args:
        key_name: Primary environment variable name
        fallback_keys: List of fallback variable names to try

    Returns:
        API key value or None if not found
    """
    ensure_env_loaded()

    value = os.getenv(key_name)
    if value:
        return value

    for fallback in fallback_keys or []:
        value = os.getenv(fallback)
        if value:
            return value

    return None
