"""File-backed cache for registry package info.

Each entry lives at ``{cache_dir}/{ecosystem}/{safe name}.json`` and records
the time it was fetched; reads older than the TTL are misses.
"""

from __future__ import annotations

import json
import re
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

import structlog

from depwatch.core.config import DEFAULT_CACHE_TTL_SECONDS
from depwatch.engines.dependency_scanner.graph import normalize_pypi_name

log = structlog.get_logger("depwatch.engine")

_UNSAFE_RE = re.compile(r"[^a-zA-Z0-9\-_.]")
_DOT_RUN_RE = re.compile(r"\.{2,}")
_LEADING_DOTS_RE = re.compile(r"^\.+")
_MAX_NAME_LENGTH = 200


@dataclass
class PackageInfo:
    """Published versions of one package and the registry's latest tag."""

    versions: list[str] = field(default_factory=list)
    latest: str | None = None


def sanitize_package_name(name: str, ecosystem: str | None = None) -> str:
    """Turn a package name into a safe file name.

    >>> sanitize_package_name("@std/assert")
    '_at_std__assert'
    """
    if ecosystem == "pypi":
        name = normalize_pypi_name(name)
    safe = name.replace("@", "_at_").replace("/", "__")
    safe = _UNSAFE_RE.sub("_", safe)
    safe = _DOT_RUN_RE.sub("_", safe)
    safe = _LEADING_DOTS_RE.sub("_", safe)
    if not safe:
        safe = "_empty_"
    return safe[:_MAX_NAME_LENGTH]


class RegistryCache:
    """JSON-file cache with a freshness window of *ttl* seconds."""

    def __init__(
        self,
        cache_dir: Path,
        ttl: float = DEFAULT_CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.cache_dir = Path(cache_dir)
        self.ttl = ttl
        self._clock = clock

    def path_for(self, ecosystem: str, name: str) -> Path:
        return self.cache_dir / ecosystem / f"{sanitize_package_name(name, ecosystem)}.json"

    def get(self, ecosystem: str, name: str) -> PackageInfo | None:
        """Cached info when present and fresh; any read or decode failure is a miss."""
        path = self.path_for(ecosystem, name)
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as exc:
            log.debug("registry.cache_unreadable", path=str(path), error=str(exc))
            return None

        if not isinstance(data, dict):
            return None
        fetched_at = data.get("fetched_at")
        versions = data.get("versions")
        if not isinstance(fetched_at, (int, float)) or not isinstance(versions, list):
            return None
        if self._clock() - fetched_at >= self.ttl:
            return None
        latest = data.get("latest")
        return PackageInfo(
            versions=[str(v) for v in versions],
            latest=str(latest) if latest else None,
        )

    def set(self, ecosystem: str, name: str, info: PackageInfo) -> None:
        path = self.path_for(ecosystem, name)
        payload = {
            "versions": info.versions,
            "latest": info.latest,
            "fetched_at": self._clock(),
        }
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(json.dumps(payload), encoding="utf-8")
        except OSError as exc:
            log.warning("registry.cache_write_failed", path=str(path), error=str(exc))
