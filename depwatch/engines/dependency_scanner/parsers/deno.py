"""Parsers for deno.json(c) and deno.lock (v3/v4) and the deno handler.

A single Deno project feeds two registries: ``jsr:`` specifiers belong to
the ``jsr`` ecosystem and ``npm:`` specifiers to ``npm``.
"""

from __future__ import annotations

import json
import re
from pathlib import Path

import structlog

from depwatch.engines.dependency_scanner.models import (
    DEPENDENCIES_GROUP,
    LockEdge,
    LockfileData,
    LockPackage,
    ManifestEntry,
)
from depwatch.engines.dependency_scanner.parsers.pnpm_lock import strip_peer_suffix
from depwatch.engines.dependency_scanner.registry import register_handler

log = structlog.get_logger("depwatch.engine")

_PROTOCOLS = {"jsr:": "jsr", "npm:": "npm"}
_TRAILING_COMMA_RE = re.compile(r",(\s*[}\]])")


def strip_jsonc(text: str) -> str:
    """Remove ``//`` and ``/* */`` comments and trailing commas outside strings."""
    out: list[str] = []
    i, n = 0, len(text)
    in_string = False
    while i < n:
        ch = text[i]
        if in_string:
            out.append(ch)
            if ch == "\\" and i + 1 < n:
                out.append(text[i + 1])
                i += 2
                continue
            if ch == '"':
                in_string = False
            i += 1
            continue
        if ch == '"':
            in_string = True
            out.append(ch)
            i += 1
        elif text.startswith("//", i):
            end = text.find("\n", i)
            i = n if end == -1 else end
        elif text.startswith("/*", i):
            end = text.find("*/", i + 2)
            i = n if end == -1 else end + 2
        else:
            out.append(ch)
            i += 1
    return _TRAILING_COMMA_RE.sub(r"\1", "".join(out))


def _load_json(text: str, label: str) -> dict:
    try:
        data = json.loads(strip_jsonc(text))
    except ValueError as exc:
        log.debug("scanner.manifest_invalid", file=label, error=str(exc))
        return {}
    return data if isinstance(data, dict) else {}


def _split_name(rest: str) -> tuple[str, str]:
    """``@std/assert@^1.0.0/equals`` -> ``("@std/assert", "^1.0.0")``."""
    at = rest.find("@", 1)
    if at != -1:
        name, version = rest[:at], rest[at + 1 :]
        version = version.split("/", 1)[0]
        return name, version or "*"
    segments = rest.split("/")
    keep = 2 if rest.startswith("@") else 1
    return "/".join(segments[:keep]), "*"


def split_specifier(specifier: str) -> tuple[str, str, str] | None:
    """``jsr:@std/assert@^1.0.0`` -> ``("jsr", "@std/assert", "^1.0.0")``."""
    spec = specifier.strip()
    for prefix, ecosystem in _PROTOCOLS.items():
        if spec.startswith(prefix):
            rest = spec[len(prefix) :].lstrip("/")
            if not rest:
                return None
            name, version = _split_name(rest)
            return ecosystem, name, version
    return None


def parse_deno_json(content: str) -> list[ManifestEntry]:
    imports = _load_json(content, "deno.json").get("imports")
    if not isinstance(imports, dict):
        return []
    entries: list[ManifestEntry] = []
    seen: set[tuple[str, str]] = set()
    for target in imports.values():
        if not isinstance(target, str):
            continue
        split = split_specifier(target)
        if split is None:
            continue
        ecosystem, name, version = split
        if (ecosystem, name) in seen:
            continue
        seen.add((ecosystem, name))
        entries.append(
            ManifestEntry(
                name=name, specifier=version, group=DEPENDENCIES_GROUP, ecosystem=ecosystem
            )
        )
    return entries


class _DenoLock:
    """Lookup tables over a v3 or v4 deno.lock document."""

    def __init__(self, data: dict) -> None:
        tables = data.get("packages") if str(data.get("version", "")) == "3" else data
        tables = tables if isinstance(tables, dict) else {}
        specifiers = tables.get("specifiers")
        self.specifiers: dict = specifiers if isinstance(specifiers, dict) else {}
        self.tables: dict[str, dict] = {}
        for eco in ("jsr", "npm"):
            table = tables.get(eco)
            self.tables[eco] = table if isinstance(table, dict) else {}
        self.locked: dict[tuple[str, str], list[str]] = {}
        for eco, table in self.tables.items():
            for key in table:
                name, version = self.split_key(eco, key)
                self.locked.setdefault((eco, name), []).append(version)

    @staticmethod
    def split_key(eco: str, key: object) -> tuple[str, str]:
        name, version = _split_name(str(key))
        return name, strip_peer_suffix(version) if eco == "npm" else version

    def resolve(self, reference: str, default_eco: str) -> LockEdge | None:
        """Turn a dependency reference into an edge pinned to the locked version."""
        split = split_specifier(reference)
        if split is None:
            split = (default_eco, *_split_name(reference))
        eco, name, specifier = split
        versions = self.locked.get((eco, name), [])
        resolved = self.specifiers.get(reference)
        if isinstance(resolved, str):
            # v3 stores "jsr:@std/assert@1.0.8"; v4 stores just "1.0.8"
            inner = split_specifier(resolved)
            version = inner[2] if inner is not None else resolved
        elif specifier in versions:
            version = specifier
        elif versions:
            version = versions[0]
        else:
            return None
        if eco == "npm":
            version = strip_peer_suffix(version)
        return LockEdge(name=name, specifier=specifier, version=version, ecosystem=eco)

    @staticmethod
    def dependency_refs(info: object) -> list[str]:
        if not isinstance(info, dict):
            return []
        deps = info.get("dependencies")
        if isinstance(deps, list):
            return [str(d) for d in deps]
        if isinstance(deps, dict):
            # v3 npm: {"ansi-styles": "ansi-styles@6.2.1"}
            return [str(v) for v in deps.values()]
        return []


def _ref_list(value: object) -> list[str]:
    if not isinstance(value, list):
        return []
    return [ref for ref in value if isinstance(ref, str)]


def parse_deno_lock(content: str) -> LockfileData:
    data = _load_json(content, "deno.lock")
    if not data:
        return LockfileData()
    lock = _DenoLock(data)

    packages: list[LockPackage] = []
    for eco, table in lock.tables.items():
        for key, info in table.items():
            name, version = lock.split_key(eco, key)
            edges: list[LockEdge] = []
            for ref in lock.dependency_refs(info):
                edge = lock.resolve(ref, eco)
                if edge is not None and edge not in edges:
                    edges.append(edge)
            packages.append(
                LockPackage(name=name, version=version, dependencies=edges, ecosystem=eco)
            )

    descriptors: dict[str, str] = {}
    for key in lock.specifiers:
        edge = lock.resolve(str(key), "npm")
        if edge is not None and edge.version is not None:
            descriptors.setdefault(f"{edge.name}@{edge.specifier}", edge.version)

    root_edges: list[LockEdge] = []
    workspace = data.get("workspace") if isinstance(data.get("workspace"), dict) else {}
    refs = _ref_list(workspace.get("dependencies"))
    package_json = workspace.get("packageJson")
    if isinstance(package_json, dict):
        refs.extend(_ref_list(package_json.get("dependencies")))
    for ref in refs:
        split = split_specifier(ref)
        if split is not None:
            root_edges.append(LockEdge(name=split[1], specifier=split[2], ecosystem=split[0]))

    return LockfileData(packages=packages, root_edges=root_edges, descriptors=descriptors)


class DenoHandler:
    name = "deno"
    ecosystem = "jsr"
    lockfile_name = "deno.lock"

    def _config(self, project_path: Path) -> Path | None:
        for candidate in ("deno.json", "deno.jsonc"):
            path = project_path / candidate
            if path.is_file():
                return path
        return None

    def detect(self, project_path: Path) -> bool:
        return self._config(project_path) is not None

    def manifest_files(self, project_path: Path) -> list[tuple[str, Path]]:
        config = self._config(project_path)
        return [(".", config)] if config is not None else []

    def parse_manifest(self, content: str) -> list[ManifestEntry]:
        return parse_deno_json(content)

    def parse_lockfile(self, content: str) -> LockfileData:
        return parse_deno_lock(content)


register_handler(DenoHandler())
