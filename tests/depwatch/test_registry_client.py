"""Tests for the registry client and its file cache (no network required)."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from depwatch.core.config import Settings
from depwatch.core.exceptions import UnsupportedEcosystemError
from depwatch.engines.registry_client import (
    PackageInfo,
    RegistryCache,
    RegistryClient,
    sanitize_package_name,
)

NPM_PAYLOAD = {"versions": {"1.0.0": {}, "2.0.0": {}}, "dist-tags": {"latest": "2.0.0"}}
JSR_PAYLOAD = {"latest": "1.0.8", "versions": {"1.0.8": {}, "1.0.7": {"yanked": True}}}
RUBYGEMS_PAYLOAD = [
    {"number": "8.1.0.rc1", "prerelease": True},
    {"number": "8.0.1", "prerelease": False},
    {"number": "8.0.0", "prerelease": False},
]
PYPI_PAYLOAD = {
    "info": {"version": "4.12.2"},
    "releases": {"4.12.1": [{}], "4.12.2": [{}], "4.13.0rc1": []},
}


# ── helpers ──────────────────────────────────────────────────────────────


class _Registry:
    """MockTransport handler that records requests and serves canned responses."""

    def __init__(self, *responses: httpx.Response) -> None:
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if len(self.responses) > 1:
            return self.responses.pop(0)
        return self.responses[0]


def _client(tmp_path, registry: _Registry, max_retries: int = 3) -> RegistryClient:
    settings = Settings(cache_dir=tmp_path / "cache", max_retries=max_retries)
    return RegistryClient(settings, transport=httpx.MockTransport(registry))


# ── sanitize_package_name ────────────────────────────────────────────────


class TestSanitize:
    def test_scoped_names(self):
        assert sanitize_package_name("@std/assert") == "_at_std__assert"
        assert sanitize_package_name("@types/node") == "_at_types__node"

    def test_path_traversal(self):
        assert "/" not in sanitize_package_name("../../etc/passwd")
        assert not sanitize_package_name("..hidden").startswith(".")
        assert sanitize_package_name("a..b") == "a_b"

    def test_unsafe_characters_and_length(self):
        assert sanitize_package_name("we ird:name") == "we_ird_name"
        assert sanitize_package_name("") == "_empty_"
        assert len(sanitize_package_name("x" * 500)) == 200

    def test_pypi_names_are_normalized(self):
        assert sanitize_package_name("Typing_Extensions", "pypi") == "typing-extensions"
        assert sanitize_package_name("Typing_Extensions", "npm") == "Typing_Extensions"


# ── RegistryCache ────────────────────────────────────────────────────────


class TestRegistryCache:
    def test_fresh_entry_is_a_hit(self, tmp_path):
        now = [1_000.0]
        cache = RegistryCache(tmp_path, ttl=3600, clock=lambda: now[0])
        cache.set("npm", "express", PackageInfo(versions=["4.21.2"], latest="4.21.2"))

        now[0] += 59 * 60
        assert cache.get("npm", "express") == PackageInfo(versions=["4.21.2"], latest="4.21.2")

    def test_stale_entry_is_a_miss(self, tmp_path):
        now = [1_000.0]
        cache = RegistryCache(tmp_path, ttl=3600, clock=lambda: now[0])
        cache.set("npm", "express", PackageInfo(versions=["4.21.2"], latest="4.21.2"))

        now[0] += 61 * 60
        assert cache.get("npm", "express") is None

    def test_layout(self, tmp_path):
        cache = RegistryCache(tmp_path)
        cache.set("jsr", "@std/assert", PackageInfo(versions=["1.0.8"], latest="1.0.8"))
        path = tmp_path / "jsr" / "_at_std__assert.json"
        assert cache.path_for("jsr", "@std/assert") == path
        data = json.loads(path.read_text())
        assert data["versions"] == ["1.0.8"]
        assert data["latest"] == "1.0.8"
        assert isinstance(data["fetched_at"], float)

    def test_missing_and_corrupt_entries(self, tmp_path):
        cache = RegistryCache(tmp_path)
        assert cache.get("npm", "missing") is None

        path = cache.path_for("npm", "broken")
        path.parent.mkdir(parents=True)
        path.write_text("{ not json")
        assert cache.get("npm", "broken") is None

        path.write_text(json.dumps({"versions": "nope", "fetched_at": 1.0}))
        assert cache.get("npm", "broken") is None

    def test_write_failure_is_not_raised(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("a file, not a directory")
        cache = RegistryCache(blocker)
        cache.set("npm", "express", PackageInfo(versions=["1.0.0"]))
        assert cache.get("npm", "express") is None


# ── RegistryClient.fetch ─────────────────────────────────────────────────


class TestRegistryClientFetch:
    @pytest.mark.anyio
    @pytest.mark.parametrize(
        ("ecosystem", "name", "payload", "host", "path", "expected"),
        [
            (
                "npm",
                "@types/node",
                NPM_PAYLOAD,
                "registry.npmjs.com",
                "/@types/node",
                PackageInfo(versions=["1.0.0", "2.0.0"], latest="2.0.0"),
            ),
            (
                "jsr",
                "@std/assert",
                JSR_PAYLOAD,
                "jsr.io",
                "/@std/assert/meta.json",
                PackageInfo(versions=["1.0.8"], latest="1.0.8"),
            ),
            (
                "rubygems",
                "rails",
                RUBYGEMS_PAYLOAD,
                "rubygems.org",
                "/api/v1/versions/rails.json",
                PackageInfo(versions=["8.1.0.rc1", "8.0.1", "8.0.0"], latest="8.0.1"),
            ),
            (
                "pypi",
                "Typing_Extensions",
                PYPI_PAYLOAD,
                "pypi.org",
                "/pypi/typing-extensions/json",
                PackageInfo(versions=["4.12.1", "4.12.2"], latest="4.12.2"),
            ),
        ],
    )
    async def test_ecosystems(self, tmp_path, ecosystem, name, payload, host, path, expected):
        registry = _Registry(httpx.Response(200, json=payload))
        async with _client(tmp_path, registry) as client:
            info = await client.fetch(ecosystem, name)

        assert info == expected
        assert len(registry.requests) == 1
        assert registry.requests[0].url.host == host
        assert registry.requests[0].url.path == path
        assert registry.requests[0].headers["user-agent"].startswith("depwatch/")

    @pytest.mark.anyio
    async def test_cache_hit_skips_request(self, tmp_path):
        registry = _Registry(httpx.Response(200, json=NPM_PAYLOAD))
        async with _client(tmp_path, registry) as client:
            first = await client.fetch("npm", "express")
            second = await client.fetch("npm", "express")

        assert first == second
        assert len(registry.requests) == 1

    @pytest.mark.anyio
    async def test_no_cache_forces_request(self, tmp_path):
        registry = _Registry(httpx.Response(200, json=NPM_PAYLOAD))
        async with _client(tmp_path, registry) as client:
            await client.fetch("npm", "express")
            await client.fetch("npm", "express", use_cache=False)

        assert len(registry.requests) == 2

    @pytest.mark.anyio
    async def test_not_found_is_none(self, tmp_path):
        registry = _Registry(httpx.Response(404, json={"error": "Not found"}))
        async with _client(tmp_path, registry) as client:
            assert await client.fetch("npm", "no-such-package") is None
            assert client.cache.get("npm", "no-such-package") is None
        assert len(registry.requests) == 1

    @pytest.mark.anyio
    async def test_malformed_payload_is_none(self, tmp_path):
        registry = _Registry(httpx.Response(200, json=[1, 2, 3]))
        async with _client(tmp_path, registry) as client:
            assert await client.fetch("npm", "express") is None

        registry = _Registry(httpx.Response(200, text="<html>"))
        async with _client(tmp_path, registry) as client:
            assert await client.fetch("pypi", "fastapi") is None

    @pytest.mark.anyio
    async def test_server_errors_exhaust_to_none(self, tmp_path):
        registry = _Registry(httpx.Response(503))
        with patch("asyncio.sleep", new_callable=AsyncMock):
            async with _client(tmp_path, registry, max_retries=2) as client:
                assert await client.fetch("rubygems", "rails") is None
        assert len(registry.requests) == 2

    @pytest.mark.anyio
    async def test_unsupported_ecosystem(self, tmp_path):
        registry = _Registry(httpx.Response(200, json={}))
        async with _client(tmp_path, registry) as client:
            with pytest.raises(UnsupportedEcosystemError):
                await client.fetch("cargo", "serde")
        assert registry.requests == []


# ── RegistryClient._request_with_retry ───────────────────────────────────


class TestRequestWithRetry:
    @pytest.mark.anyio
    async def test_retry_on_server_error(self):
        """5xx triggers retry with backoff."""
        client = RegistryClient.__new__(RegistryClient)
        client._client = AsyncMock()
        client._max_retries = 3

        error_resp = MagicMock(spec=httpx.Response)
        error_resp.status_code = 502
        error_resp.request = MagicMock()

        ok_resp = MagicMock(spec=httpx.Response)
        ok_resp.status_code = 200
        ok_resp.raise_for_status = MagicMock()

        client._client.get = AsyncMock(side_effect=[error_resp, ok_resp])

        with patch("asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            result = await client._request_with_retry("https://registry.npmjs.com/x")
            assert result.status_code == 200
            assert client._client.get.call_count == 2
            mock_sleep.assert_awaited_once_with(1.0)

    @pytest.mark.anyio
    async def test_retry_exhausted(self):
        """After max retries, raises the last exception."""
        client = RegistryClient.__new__(RegistryClient)
        client._client = AsyncMock()
        client._max_retries = 3

        error_resp = MagicMock(spec=httpx.Response)
        error_resp.status_code = 503
        error_resp.request = MagicMock()

        client._client.get = AsyncMock(return_value=error_resp)

        with patch("asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            with pytest.raises(httpx.HTTPStatusError):
                await client._request_with_retry("https://registry.npmjs.com/x")
            assert client._client.get.call_count == 3
            assert [c.args[0] for c in mock_sleep.await_args_list] == [1.0, 2.0]

    @pytest.mark.anyio
    async def test_retry_on_timeout(self):
        """Timeout triggers retry."""
        client = RegistryClient.__new__(RegistryClient)
        client._client = AsyncMock()
        client._max_retries = 3

        ok_resp = MagicMock(spec=httpx.Response)
        ok_resp.status_code = 200
        ok_resp.raise_for_status = MagicMock()

        client._client.get = AsyncMock(side_effect=[httpx.ReadTimeout("timeout"), ok_resp])

        with patch("asyncio.sleep", new_callable=AsyncMock):
            result = await client._request_with_retry("https://pypi.org/pypi/x/json")
            assert result.status_code == 200

    @pytest.mark.anyio
    async def test_client_error_is_not_retried(self):
        client = RegistryClient.__new__(RegistryClient)
        client._client = AsyncMock()
        client._max_retries = 3

        not_found = MagicMock(spec=httpx.Response)
        not_found.status_code = 404
        not_found.raise_for_status = MagicMock(
            side_effect=httpx.HTTPStatusError("404", request=MagicMock(), response=MagicMock())
        )
        client._client.get = AsyncMock(return_value=not_found)

        with patch("asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            with pytest.raises(httpx.HTTPStatusError):
                await client._request_with_retry("https://rubygems.org/api/v1/versions/x.json")
            assert client._client.get.call_count == 1
            mock_sleep.assert_not_called()
