"""Runtime settings read from ``DEPWATCH_*`` environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

import structlog

log = structlog.get_logger("depwatch.config")

DEFAULT_CACHE_TTL_SECONDS = 60 * 60


def _default_cache_dir() -> Path:
    return Path.home() / ".cache" / "depwatch" / "dependencies"


def _env_number(key: str, default, cast):
    raw = os.environ.get(key)
    if raw is None or not raw.strip():
        return default
    try:
        return cast(raw)
    except ValueError:
        log.warning("config.invalid_value", key=key, value=raw, default=default)
        return default


def _env_float(key: str, default: float) -> float:
    return _env_number(key, default, float)


def _env_int(key: str, default: int) -> int:
    return _env_number(key, default, int)


@dataclass(frozen=True)
class Settings:
    """Tunables for the registry client and the outdated checker."""

    cache_dir: Path
    cache_ttl_seconds: float = DEFAULT_CACHE_TTL_SECONDS
    http_timeout: float = 15.0
    max_concurrency: int = 20
    max_retries: int = 3


def load_settings() -> Settings:
    """Build :class:`Settings` from the environment.

    Recognised variables:
        DEPWATCH_CACHE_DIR          — registry cache root (default ~/.cache/depwatch/dependencies)
        DEPWATCH_CACHE_TTL_SECONDS  — cache freshness window (default 3600)
        DEPWATCH_HTTP_TIMEOUT       — per-request timeout in seconds (default 15)
        DEPWATCH_MAX_CONCURRENCY    — concurrent registry fetches (default 20)
        DEPWATCH_MAX_RETRIES        — attempts per registry request (default 3)
    """
    cache_dir = os.environ.get("DEPWATCH_CACHE_DIR")
    return Settings(
        cache_dir=Path(cache_dir).expanduser() if cache_dir else _default_cache_dir(),
        cache_ttl_seconds=_env_float("DEPWATCH_CACHE_TTL_SECONDS", DEFAULT_CACHE_TTL_SECONDS),
        http_timeout=_env_float("DEPWATCH_HTTP_TIMEOUT", 15.0),
        max_concurrency=max(_env_int("DEPWATCH_MAX_CONCURRENCY", 20), 1),
        max_retries=max(_env_int("DEPWATCH_MAX_RETRIES", 3), 1),
    )
