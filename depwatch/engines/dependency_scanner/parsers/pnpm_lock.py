"""Parser for pnpm-lock.yaml (lockfile v5, v6 and v9) and the pnpm handler."""

from __future__ import annotations

import re
from pathlib import Path

import structlog
import yaml

from depwatch.engines.dependency_scanner.models import LockEdge, LockfileData, LockPackage
from depwatch.engines.dependency_scanner.parsers.package_json import PackageJsonManifests
from depwatch.engines.dependency_scanner.registry import register_handler

log = structlog.get_logger("depwatch.engine")

_DEP_SECTIONS = ("dependencies", "optionalDependencies", "devDependencies")
_IMPORTER_SECTIONS = ("dependencies", "devDependencies", "optionalDependencies")
_LOCAL_PROTOCOLS = ("link:", "file:", "workspace:")
_V5_KEY_RE = re.compile(r"^((?:@[^/@]+/)?[^/@]+)/(\d[^/]*)$")


def strip_peer_suffix(version: str) -> str:
    """``1.2.3(react@18.2.0)`` -> ``1.2.3``; ``1.2.3_react@18.2.0`` (v5) -> ``1.2.3``."""
    version = version.split("(", 1)[0]
    return version.split("_", 1)[0].strip()


def split_package_key(key: str) -> tuple[str, str] | None:
    """Split a ``packages``/``snapshots`` key into ``(name, version)``.

    Handles ``/name/1.0.0`` (v5), ``/name@1.0.0(peer@1)`` (v6) and
    ``name@1.0.0`` (v9), each with optional ``@scope/`` prefixes.
    """
    trimmed = key.strip().strip("'\"").lstrip("/")
    if not trimmed:
        return None
    base = trimmed.split("(", 1)[0]
    v5 = _V5_KEY_RE.match(base)
    if v5 is not None:
        name, version = v5.group(1), v5.group(2)
    else:
        at = base.find("@", 1)
        if at == -1:
            return None
        name, version = base[:at], base[at + 1 :]
    version = strip_peer_suffix(version)
    if not name or not version:
        return None
    return name, version


def _edge_target(dep_name: str, value: object) -> tuple[str, str] | None:
    """Resolve a dependency map value to ``(child_name, child_version)``.

    Plain versions refer to *dep_name*; aliases carry their own key
    (``string-width@4.2.3`` or ``/string-width/4.2.3``).
    """
    if isinstance(value, dict):
        value = value.get("version")
    if not isinstance(value, (str, int, float)):
        return None
    text = str(value)
    if text.startswith(_LOCAL_PROTOCOLS):
        return None
    if text[:1].isdigit():
        return dep_name, strip_peer_suffix(text)
    return split_package_key(text)


def _importer_versions(importer: dict) -> dict[str, str]:
    resolved: dict[str, str] = {}
    for section in _IMPORTER_SECTIONS:
        deps = importer.get(section)
        if not isinstance(deps, dict):
            continue
        for name, value in deps.items():
            target = _edge_target(str(name), value)
            if target is not None:
                resolved.setdefault(str(name), target[1])
    return resolved


def parse_pnpm_lock(content: str) -> LockfileData:
    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as exc:
        log.debug("scanner.lockfile_invalid", lockfile="pnpm-lock.yaml", error=str(exc))
        return LockfileData()
    if not isinstance(data, dict):
        return LockfileData()

    importers: dict[str, dict[str, str]] = {}
    raw_importers = data.get("importers")
    if isinstance(raw_importers, dict):
        for path, importer in raw_importers.items():
            if isinstance(importer, dict):
                importers[str(path)] = _importer_versions(importer)
    else:
        # single-project lockfiles keep the root importer at the top level
        importers["."] = _importer_versions(data)

    # v9 splits metadata (packages) from dependency edges (snapshots)
    sources: list[dict] = []
    for section in ("packages", "snapshots"):
        table = data.get(section)
        if isinstance(table, dict):
            sources.append(table)

    merged: dict[tuple[str, str], LockPackage] = {}
    for table in sources:
        for key, info in table.items():
            split = split_package_key(str(key))
            if split is None:
                continue
            name, version = split
            pkg = merged.get(split)
            if pkg is None:
                pkg = LockPackage(name=name, version=version)
                merged[split] = pkg
            if not isinstance(info, dict):
                continue
            seen = {(e.name, e.version) for e in pkg.dependencies}
            for section in _DEP_SECTIONS:
                deps = info.get(section)
                if not isinstance(deps, dict):
                    continue
                for dep_name, value in deps.items():
                    target = _edge_target(str(dep_name), value)
                    if target is None or target in seen:
                        continue
                    seen.add(target)
                    pkg.dependencies.append(
                        LockEdge(name=target[0], specifier=target[1], version=target[1])
                    )

    return LockfileData(packages=list(merged.values()), importers=importers)


class PnpmHandler(PackageJsonManifests):
    name = "pnpm"
    ecosystem = "npm"
    lockfile_name = "pnpm-lock.yaml"

    def detect(self, project_path: Path) -> bool:
        if (project_path / self.lockfile_name).is_file():
            return True
        if not (project_path / "package.json").is_file():
            return False
        others = ("package-lock.json", "yarn.lock", "deno.json", "deno.jsonc")
        return not any((project_path / other).is_file() for other in others)

    def workspace_patterns(self, project_path: Path, root_content: str) -> list[str]:
        workspace_file = project_path / "pnpm-workspace.yaml"
        if not workspace_file.is_file():
            return []
        try:
            data = yaml.safe_load(workspace_file.read_text(encoding="utf-8", errors="replace"))
        except yaml.YAMLError:
            return []
        packages = data.get("packages") if isinstance(data, dict) else None
        if not isinstance(packages, list):
            return []
        return [p for p in packages if isinstance(p, str) and p]

    def parse_lockfile(self, content: str) -> LockfileData:
        return parse_pnpm_lock(content)


register_handler(PnpmHandler())
