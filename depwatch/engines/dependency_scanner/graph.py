"""Dependency graph builder — merge manifest and lockfile output into Dependency records."""

from __future__ import annotations

import re
from collections.abc import Iterable

import structlog

from depwatch.core.exceptions import DependencyGraphError
from depwatch.engines.dependency_scanner.models import (
    DEPENDENCIES_GROUP,
    DEV_DEPENDENCIES_GROUP,
    ECOSYSTEMS,
    Dependency,
    LockfileData,
    LockPackage,
    ManifestEntry,
    VersionEntry,
)
from depwatch.engines.dependency_scanner.sources import direct_source, transitive_source

log = structlog.get_logger("depwatch.engine")

_PYPI_SEPARATOR_RE = re.compile(r"[-_.]+")


def normalize_pypi_name(name: str) -> str:
    """PEP 503 normalization: ``Foo_Bar.baz`` -> ``foo-bar-baz``."""
    return _PYPI_SEPARATOR_RE.sub("-", name).lower()


def normalize_name(ecosystem: str, name: str) -> str:
    if ecosystem == "pypi":
        return normalize_pypi_name(name)
    return name


def dependency_id(ecosystem: str, name: str) -> str:
    if ecosystem not in ECOSYSTEMS:
        raise DependencyGraphError(f"unknown ecosystem tag {ecosystem!r} for {name!r}")
    return f"{ecosystem}:{normalize_name(ecosystem, name)}"


def _find_package(lockfile: LockfileData, name: str, ecosystem: str) -> LockPackage | None:
    key = normalize_name(ecosystem, name)
    for pkg in lockfile.packages:
        if pkg.ecosystem not in (None, ecosystem):
            continue
        if normalize_name(ecosystem, pkg.name) == key:
            return pkg
    return None


def _resolve_direct(
    lockfile: LockfileData, entry: ManifestEntry, ecosystem: str
) -> tuple[str, str] | None:
    """Return ``(name, resolved)`` for a direct entry, named as the lockfile spells it."""
    importer = lockfile.importers.get(entry.manifest_path, {})
    if entry.name in importer:
        return entry.name, importer[entry.name]
    described = lockfile.descriptors.get(f"{entry.name}@{entry.specifier}")
    if described is not None:
        return entry.name, described
    pkg = _find_package(lockfile, entry.name, ecosystem)
    return (pkg.name, pkg.version) if pkg is not None else None


def _entries_from_root(lockfile: LockfileData) -> list[ManifestEntry]:
    """Direct entries declared by the lockfile's virtual root package."""
    entries: list[ManifestEntry] = []
    for group, edges in (
        (DEPENDENCIES_GROUP, lockfile.root_edges),
        (DEV_DEPENDENCIES_GROUP, lockfile.root_dev_edges),
    ):
        for edge in edges:
            entries.append(
                ManifestEntry(
                    name=edge.name,
                    specifier=edge.specifier,
                    group=group,
                    ecosystem=edge.ecosystem,
                )
            )
    return entries


def build_dependencies(
    manifest_entries: Iterable[ManifestEntry],
    lockfile: LockfileData | None,
    *,
    ecosystem: str,
    lockfile_name: str,
    system_name: str,
) -> list[Dependency]:
    """Merge one package manager's manifest entries and lockfile into Dependency records.

    ``lockfile`` is ``None`` when no lockfile exists; direct entries then
    resolve to their own specifier. A lockfile that exists but does not know
    a direct dependency leaves that Dependency without a version entry.
    """
    deps: dict[str, Dependency] = {}

    def get(name: str, eco: str) -> Dependency:
        dep_id = dependency_id(eco, name)
        dep = deps.get(dep_id)
        if dep is None:
            dep = Dependency(id=dep_id, name=name, ecosystem=eco)
            deps[dep_id] = dep
        return dep

    entries = list(manifest_entries)
    if not entries and lockfile is not None:
        entries = _entries_from_root(lockfile)

    # ── direct dependencies ──────────────────────────────────────────────
    direct_ids: set[str] = set()
    for entry in entries:
        eco = entry.ecosystem or ecosystem
        source = direct_source(entry.manifest_path, entry.group)
        if lockfile is None:
            dep = get(entry.name, eco)
            direct_ids.add(dep.id)
            dep.add_version(VersionEntry(entry.specifier, entry.specifier, source))
            continue
        found = _resolve_direct(lockfile, entry, eco)
        if found is None:
            direct_ids.add(get(entry.name, eco).id)
            log.debug("scanner.unresolved", name=entry.name, ecosystem=eco, lockfile=lockfile_name)
            continue
        name, resolved = found
        dep = get(name, eco)
        # transitive sources use the lockfile spelling
        dep.name = name
        direct_ids.add(dep.id)
        dep.add_version(VersionEntry(resolved, entry.specifier, source))

    # ── transitive dependencies ──────────────────────────────────────────
    if lockfile is not None:
        for pkg in lockfile.packages:
            if lockfile.root_name is not None and pkg.name == lockfile.root_name:
                continue
            for edge in pkg.dependencies:
                child = lockfile.resolve_edge(edge)
                if child is None:
                    log.debug("scanner.dangling_edge", parent=pkg.name, child=edge.name)
                    continue
                if lockfile.root_name is not None and child.name == lockfile.root_name:
                    continue
                child_eco = child.ecosystem or ecosystem
                if dependency_id(child_eco, child.name) in direct_ids:
                    continue
                get(child.name, child_eco).add_version(
                    VersionEntry(
                        child.version,
                        edge.specifier,
                        transitive_source(lockfile_name, pkg.name, pkg.version),
                    )
                )

    # ── the package manager itself ───────────────────────────────────────
    get(system_name, "system")

    return sorted(deps.values(), key=lambda d: d.name)


def dedupe_dependencies(dependencies: Iterable[Dependency]) -> list[Dependency]:
    """Merge records sharing an id, keeping first-seen order and unique entries."""
    merged: dict[str, Dependency] = {}
    for dep in dependencies:
        existing = merged.get(dep.id)
        if existing is None:
            merged[dep.id] = Dependency(id=dep.id, name=dep.name, ecosystem=dep.ecosystem)
            existing = merged[dep.id]
        for entry in dep.versions:
            existing.add_version(entry)
    return list(merged.values())
