"""Settings loaded from environment variables (and an optional ``.env``)."""
from __future__ import annotations

import json
import os
from functools import lru_cache
from typing import Any

from dotenv import load_dotenv

from .errors import ConfigurationError

load_dotenv()

_DEFAULT_API_BIND_HOST = "0.0.0.0"
_DEFAULT_API_PORT = 8000
_DEFAULT_MAX_HIT_DEPTH = 10
_TRUE_VALUES = {"1", "true", "yes", "on"}


def env_flag(name: str, default: bool = False) -> bool:
    """Interpret an environment variable as a boolean flag."""

    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in _TRUE_VALUES


def env_int(name: str, default: int) -> int:
    """Read an integer from the environment, failing loudly on garbage."""

    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"Invalid integer in environment variable {name!r}: {raw}") from exc


def env_json(name: str) -> dict[str, Any]:
    """Read a JSON object from the environment (empty dict when unset)."""

    raw = os.getenv(name)
    if not raw:
        return {}
    try:
        value = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"Invalid JSON in environment variable {name!r}: {raw}") from exc
    if not isinstance(value, dict):
        raise ConfigurationError(f"Environment variable {name!r} must hold a JSON object")
    return value


def env_list(name: str) -> list[str]:
    """Read a comma separated list from the environment."""

    raw = os.getenv(name, "")
    return [item.strip() for item in raw.split(",") if item.strip()]


@lru_cache(maxsize=None)
def get_api_port() -> int:
    """Port used to expose the HTTP API."""

    return env_int("ENTITYFOLD_API_PORT", env_int("PORT", _DEFAULT_API_PORT))


@lru_cache(maxsize=None)
def get_api_bind_host() -> str:
    """Host uvicorn binds to."""

    return os.getenv("ENTITYFOLD_API_BIND_HOST", _DEFAULT_API_BIND_HOST)


@lru_cache(maxsize=None)
def get_log_level() -> str:
    return os.getenv("ENTITYFOLD_LOG_LEVEL", "INFO")


def get_geoindex_path() -> str | None:
    """Directory holding the gazetteer index, if configured."""

    return os.getenv("ENTITYFOLD_GEOINDEX_PATH") or None


def get_max_hit_depth() -> int:
    return env_int("ENTITYFOLD_MAX_HIT_DEPTH", _DEFAULT_MAX_HIT_DEPTH)


__all__ = [
    "env_flag",
    "env_int",
    "env_json",
    "env_list",
    "get_api_bind_host",
    "get_api_port",
    "get_geoindex_path",
    "get_log_level",
    "get_max_hit_depth",
]
