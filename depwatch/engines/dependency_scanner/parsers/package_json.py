"""Shared package.json handling for the pnpm, yarn and npm handlers."""

from __future__ import annotations

import json
from pathlib import Path

from depwatch.engines.dependency_scanner.models import (
    DEPENDENCIES_GROUP,
    DEV_DEPENDENCIES_GROUP,
    ManifestEntry,
)

_GROUPS = (
    ("dependencies", DEPENDENCIES_GROUP),
    ("devDependencies", DEV_DEPENDENCIES_GROUP),
)


def load_package_json(content: str) -> dict:
    try:
        data = json.loads(content)
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


def parse_package_json(content: str) -> list[ManifestEntry]:
    """Direct entries from ``dependencies`` and ``devDependencies``."""
    data = load_package_json(content)
    entries: list[ManifestEntry] = []
    for key, group in _GROUPS:
        section = data.get(key)
        if not isinstance(section, dict):
            continue
        for name, specifier in section.items():
            if not isinstance(specifier, str):
                continue
            entries.append(ManifestEntry(name=name, specifier=specifier or "*", group=group))
    return entries


def workspace_patterns(content: str) -> list[str]:
    """Globs from ``workspaces`` (array form or ``{"packages": [...]}``)."""
    workspaces = load_package_json(content).get("workspaces")
    if isinstance(workspaces, dict):
        workspaces = workspaces.get("packages")
    if not isinstance(workspaces, list):
        return []
    return [p for p in workspaces if isinstance(p, str) and p]


def expand_workspaces(project_path: Path, patterns: list[str]) -> list[tuple[str, Path]]:
    """Resolve workspace globs to ``(relative_dir, package.json)`` pairs, sorted."""
    found: dict[str, Path] = {}
    for pattern in patterns:
        if pattern.startswith("!"):
            continue
        for hit in project_path.glob(pattern.rstrip("/")):
            manifest = hit / "package.json"
            if hit.is_dir() and manifest.is_file():
                rel = hit.relative_to(project_path).as_posix()
                if rel and rel != ".":
                    found[rel] = manifest
    return sorted(found.items())


class PackageJsonManifests:
    """Mixin: root package.json plus the workspaces it declares."""

    def parse_manifest(self, content: str) -> list[ManifestEntry]:
        return parse_package_json(content)

    def workspace_patterns(self, project_path: Path, root_content: str) -> list[str]:
        return workspace_patterns(root_content)

    def manifest_files(self, project_path: Path) -> list[tuple[str, Path]]:
        root = project_path / "package.json"
        if not root.is_file():
            return []
        content = root.read_text(encoding="utf-8", errors="replace")
        return [(".", root)] + expand_workspaces(
            project_path, self.workspace_patterns(project_path, content)
        )
