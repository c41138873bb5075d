"""Parser for uv.lock and the uv handler."""

from __future__ import annotations

from pathlib import Path

from depwatch.engines.dependency_scanner.models import (
    LockEdge,
    LockfileData,
    LockPackage,
    ManifestEntry,
)
from depwatch.engines.dependency_scanner.parsers.pyproject_toml import parse_pyproject
from depwatch.engines.dependency_scanner.registry import register_handler
from depwatch.engines.dependency_scanner.toml_subset import parse_toml

_ROOT_SOURCE_KEYS = ("virtual", "editable")


def _is_root(source: object) -> bool:
    if not isinstance(source, dict):
        return False
    return any(source.get(key) == "." for key in _ROOT_SOURCE_KEYS)


def _edges(values: object, specifiers: dict[str, str] | None = None) -> list[LockEdge]:
    if not isinstance(values, list):
        return []
    edges: list[LockEdge] = []
    for item in values:
        if not isinstance(item, dict) or not isinstance(item.get("name"), str):
            continue
        name = item["name"]
        version = item.get("version") if isinstance(item.get("version"), str) else None
        specifier = (specifiers or {}).get(name, "*")
        edges.append(LockEdge(name=name, specifier=specifier, version=version))
    return edges


def _group_edges(groups: object, specifiers: dict[str, str] | None = None) -> list[LockEdge]:
    if not isinstance(groups, dict):
        return []
    edges: list[LockEdge] = []
    for values in groups.values():
        edges.extend(_edges(values, specifiers))
    return edges


def _specifiers(values: object) -> dict[str, str]:
    """``requires-dist`` style ``[{name, specifier}]`` -> ``{name: specifier}``."""
    result: dict[str, str] = {}
    if isinstance(values, dict):
        values = [item for group in values.values() if isinstance(group, list) for item in group]
    if not isinstance(values, list):
        return result
    for item in values:
        if isinstance(item, dict) and isinstance(item.get("name"), str):
            specifier = item.get("specifier")
            if not isinstance(specifier, str) or not specifier:
                specifier = "*"
            result.setdefault(item["name"], specifier)
    return result


def parse_uv_lock(content: str) -> LockfileData:
    data = parse_toml(content)
    raw_packages = data.get("package")
    if not isinstance(raw_packages, list):
        return LockfileData()

    lock = LockfileData()
    for raw in raw_packages:
        if not isinstance(raw, dict):
            continue
        name, version = raw.get("name"), raw.get("version")
        if not isinstance(name, str) or not name:
            continue
        version = str(version) if version is not None else "0.0.0"
        pkg = LockPackage(name=name, version=version, dependencies=_edges(raw.get("dependencies")))
        lock.packages.append(pkg)

        if lock.root_name is None and _is_root(raw.get("source")):
            lock.root_name = name
            metadata = raw.get("metadata") if isinstance(raw.get("metadata"), dict) else {}
            lock.root_edges = _edges(
                raw.get("dependencies"), _specifiers(metadata.get("requires-dist"))
            )
            lock.root_dev_edges = _group_edges(
                raw.get("dev-dependencies"), _specifiers(metadata.get("requires-dev"))
            )
    return lock


class UvHandler:
    name = "uv"
    ecosystem = "pypi"
    lockfile_name = "uv.lock"

    def detect(self, project_path: Path) -> bool:
        return (project_path / "pyproject.toml").is_file()

    def manifest_files(self, project_path: Path) -> list[tuple[str, Path]]:
        return [(".", project_path / "pyproject.toml")]

    def parse_manifest(self, content: str) -> list[ManifestEntry]:
        return parse_pyproject(content)

    def parse_lockfile(self, content: str) -> LockfileData:
        return parse_uv_lock(content)


register_handler(UvHandler())
