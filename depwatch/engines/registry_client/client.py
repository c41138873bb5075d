"""Async registry client for npm, JSR, RubyGems and PyPI, with retries and a file cache."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any
from urllib.parse import quote

import httpx
import structlog

from depwatch import __version__
from depwatch.core.config import Settings, load_settings
from depwatch.core.exceptions import UnsupportedEcosystemError
from depwatch.engines.dependency_scanner.graph import normalize_pypi_name
from depwatch.engines.registry_client.cache import PackageInfo, RegistryCache

log = structlog.get_logger("depwatch.engine")

_RETRY_BASE_DELAY = 1.0  # seconds


# ── response parsers ──────────────────────────────────────────────────────


def _npm_info(data: dict[str, Any]) -> PackageInfo:
    versions = list((data.get("versions") or {}).keys())
    latest = (data.get("dist-tags") or {}).get("latest")
    return PackageInfo(versions=versions, latest=latest or (versions[-1] if versions else None))


def _jsr_info(data: dict[str, Any]) -> PackageInfo:
    versions = [
        version
        for version, meta in (data.get("versions") or {}).items()
        if not (isinstance(meta, dict) and meta.get("yanked"))
    ]
    return PackageInfo(versions=versions, latest=data.get("latest") or None)


def _rubygems_info(data: list[dict[str, Any]]) -> PackageInfo:
    versions = [str(item["number"]) for item in data]
    stable = [str(item["number"]) for item in data if not item.get("prerelease")]
    latest = stable[0] if stable else (versions[0] if versions else None)
    return PackageInfo(versions=versions, latest=latest)


def _pypi_info(data: dict[str, Any]) -> PackageInfo:
    # releases without files are yanked or empty uploads
    versions = [version for version, files in (data.get("releases") or {}).items() if files]
    latest = (data.get("info") or {}).get("version")
    return PackageInfo(versions=versions, latest=latest or (versions[-1] if versions else None))


def _npm_url(name: str) -> str:
    return f"https://registry.npmjs.com/{quote(name, safe='')}"


def _jsr_url(name: str) -> str:
    return f"https://jsr.io/{name}/meta.json"


def _rubygems_url(name: str) -> str:
    return f"https://rubygems.org/api/v1/versions/{quote(name, safe='')}.json"


def _pypi_url(name: str) -> str:
    return f"https://pypi.org/pypi/{quote(normalize_pypi_name(name), safe='')}/json"


_ENDPOINTS: dict[str, tuple[Callable[[str], str], Callable[[Any], PackageInfo]]] = {
    "npm": (_npm_url, _npm_info),
    "jsr": (_jsr_url, _jsr_info),
    "rubygems": (_rubygems_url, _rubygems_info),
    "pypi": (_pypi_url, _pypi_info),
}

SUPPORTED_ECOSYSTEMS = tuple(_ENDPOINTS)


class RegistryClient:
    """Thin async wrapper around the public package registries.

    ``fetch`` never raises for network or payload problems: a package the
    registry cannot describe comes back as ``None``.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        cache: RegistryCache | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.settings = settings or load_settings()
        self.cache = cache or RegistryCache(
            self.settings.cache_dir, ttl=self.settings.cache_ttl_seconds
        )
        self._max_retries = self.settings.max_retries
        self._client = httpx.AsyncClient(
            headers={
                "Accept": "application/json",
                "User-Agent": f"depwatch/{__version__}",
            },
            timeout=self.settings.http_timeout,
            follow_redirects=True,
            transport=transport,
        )

    # ── lifecycle ──────────────────────────────────────────────────────────

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> RegistryClient:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    # ── public ─────────────────────────────────────────────────────────────

    async def fetch(
        self,
        ecosystem: str,
        name: str,
        *,
        use_cache: bool = True,
    ) -> PackageInfo | None:
        """Published versions and latest tag for *name*, or ``None`` on failure.

        Fresh cache entries are returned without a request unless *use_cache*
        is false; successful lookups are always written back.
        """
        try:
            url_for, parse = _ENDPOINTS[ecosystem]
        except KeyError:
            raise UnsupportedEcosystemError(ecosystem) from None

        if use_cache:
            cached = self.cache.get(ecosystem, name)
            if cached is not None:
                return cached

        url = url_for(name)
        try:
            response = await self._request_with_retry(url)
            info = parse(response.json())
        except (httpx.HTTPError, ValueError, KeyError, TypeError, AttributeError) as exc:
            log.warning(
                "registry.fetch_failed",
                ecosystem=ecosystem,
                package=name,
                url=url,
                error=str(exc) or type(exc).__name__,
            )
            return None

        self.cache.set(ecosystem, name, info)
        return info

    # ── internal ───────────────────────────────────────────────────────────

    async def _request_with_retry(self, url: str) -> httpx.Response:
        """GET with exponential backoff on 5xx and timeout errors."""
        last_exc: Exception | None = None
        for attempt in range(self._max_retries):
            try:
                resp = await self._client.get(url)

                if resp.status_code < 500:
                    resp.raise_for_status()
                    return resp

                # 5xx: retry
                log.warning(
                    "registry.server_error",
                    url=url,
                    status=resp.status_code,
                    attempt=attempt + 1,
                    max_retries=self._max_retries,
                )
                last_exc = httpx.HTTPStatusError(
                    f"{resp.status_code}", request=resp.request, response=resp
                )
            except httpx.TimeoutException as exc:
                log.warning(
                    "registry.timeout",
                    url=url,
                    attempt=attempt + 1,
                    max_retries=self._max_retries,
                )
                last_exc = exc

            if attempt < self._max_retries - 1:
                delay = _RETRY_BASE_DELAY * (2**attempt)
                await asyncio.sleep(delay)

        raise last_exc  # type: ignore[misc]
