"""
Media Gate Settings
====================
Runtime configuration for remote media fetches. Trusted roots are not
configurable: only the sandbox root and the OS temp directory are ever
trusted.

Values come from the process environment (a local .env file is loaded
first) using the MEDIA_SET_ prefix, e.g.:

    MEDIA_SET_max_fetch_bytes=52428800
    MEDIA_SET_fetch_chunk_size=131072
"""

import json
import logging
import os
from dataclasses import dataclass
from typing import Optional, TypeVar

from dotenv import load_dotenv

logger = logging.getLogger("media-gate.settings")

T = TypeVar("T")

ENV_PREFIX = "MEDIA_SET_"

DEFAULT_MAX_FETCH_BYTES = 250 * 1024 * 1024
DEFAULT_FETCH_CHUNK_SIZE = 64 * 1024
DEFAULT_USER_AGENT = "media-gate/0.1"

_settings: Optional["MediaSettings"] = None
_dotenv_loaded = False


def _load_dotenv_once():
    global _dotenv_loaded
    if not _dotenv_loaded:
        load_dotenv(override=False)
        _dotenv_loaded = True


def get_default_value(name: str, value: T) -> T:
    """
    Load setting value from env with MEDIA_SET_ prefix, falling back to default.

    Args:
        name: Setting name (will be prefixed with MEDIA_SET_)
        value: Default value to use if env var not set

    Returns:
        Environment variable value (type-normalized) or default value
    """
    _load_dotenv_once()
    env_value = os.environ.get(f"{ENV_PREFIX}{name}", os.environ.get(f"{ENV_PREFIX}{name.upper()}"))

    if env_value is None:
        return value

    try:
        if isinstance(value, bool):
            return env_value.strip().lower() in ("true", "1", "yes", "on")  # type: ignore
        elif isinstance(value, (dict, list)):
            return json.loads(env_value.strip())  # type: ignore
        elif isinstance(value, str):
            return str(env_value).strip()  # type: ignore
        else:
            return type(value)(env_value.strip())  # type: ignore
    except (ValueError, TypeError, json.JSONDecodeError) as e:
        logger.warning(f"Invalid value for {ENV_PREFIX}{name}='{env_value}': {e}. Using default: {value}")
        return value


@dataclass
class MediaSettings:
    """Tunables for fetching remote media."""

    max_fetch_bytes: int = DEFAULT_MAX_FETCH_BYTES
    fetch_chunk_size: int = DEFAULT_FETCH_CHUNK_SIZE
    user_agent: str = DEFAULT_USER_AGENT


def from_settings(settings: dict) -> MediaSettings:
    """
    Create MediaSettings from a plain dict.

    Settings keys:
        max_fetch_bytes: int
        fetch_chunk_size: int
        user_agent: str
    """
    config = MediaSettings()

    max_bytes = settings.get("max_fetch_bytes")
    if max_bytes is not None:
        config.max_fetch_bytes = _positive_int(max_bytes, DEFAULT_MAX_FETCH_BYTES, "max_fetch_bytes")

    chunk_size = settings.get("fetch_chunk_size")
    if chunk_size is not None:
        config.fetch_chunk_size = _positive_int(chunk_size, DEFAULT_FETCH_CHUNK_SIZE, "fetch_chunk_size")

    config.user_agent = settings.get("user_agent") or DEFAULT_USER_AGENT
    return config


def get_settings() -> MediaSettings:
    """Return the process-wide settings, built from the environment on first use."""
    global _settings
    if _settings is None:
        _settings = from_settings({
            "max_fetch_bytes": get_default_value("max_fetch_bytes", DEFAULT_MAX_FETCH_BYTES),
            "fetch_chunk_size": get_default_value("fetch_chunk_size", DEFAULT_FETCH_CHUNK_SIZE),
            "user_agent": get_default_value("user_agent", DEFAULT_USER_AGENT),
        })
    return _settings


def reload_settings() -> MediaSettings:
    global _settings
    _settings = None
    return get_settings()


def _positive_int(value, default: int, name: str) -> int:
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        logger.warning(f"Invalid {name}={value!r}, using default {default}")
        return default
    if parsed <= 0:
        logger.warning(f"Non-positive {name}={parsed}, using default {default}")
        return default
    return parsed
