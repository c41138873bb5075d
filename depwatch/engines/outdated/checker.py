"""Outdated checker — compare direct dependencies with published registry versions."""

from __future__ import annotations

import asyncio
from typing import Literal

import structlog

from depwatch.engines.dependency_scanner.models import Dependency, OutdatedDependency
from depwatch.engines.dependency_scanner.sources import (
    is_dev_dependencies_source,
    is_direct_source,
)
from depwatch.engines.registry_client import SUPPORTED_ECOSYSTEMS, RegistryClient
from depwatch.engines.versioning import (
    SemverGrammar,
    VersionGrammar,
    find_wanted,
    get_grammar,
    pick_latest,
)

log = structlog.get_logger("depwatch.engine")

SemverLevel = Literal["major", "minor", "patch"]

_SEMVER = SemverGrammar()


def _is_direct(dep: Dependency) -> bool:
    return any(is_direct_source(v.source) for v in dep.versions)


def _sort_key(item: OutdatedDependency) -> tuple[str, str]:
    return item.ecosystem, item.name


async def _check_one(
    dep: Dependency,
    ecosystem: str,
    grammar: VersionGrammar,
    client: RegistryClient,
    semaphore: asyncio.Semaphore,
    use_cache: bool,
) -> OutdatedDependency | None:
    entry = dep.versions[0]
    async with semaphore:
        info = await client.fetch(ecosystem, dep.name, use_cache=use_cache)
    if info is None:
        return None

    current = entry.resolved
    latest = pick_latest(grammar, info.versions, info.latest)
    if ecosystem == "jsr" and entry.specifier == "*":
        wanted = latest or current
    else:
        wanted = find_wanted(grammar, info.versions, entry.specifier, current)

    if wanted == current and (latest is None or latest == current):
        return None
    return OutdatedDependency(
        dependency=dep,
        resolved=current,
        wanted=wanted,
        latest=latest or current,
        specifier=entry.specifier,
        is_dev_dependency=is_dev_dependencies_source(entry.source),
    )


async def check_outdated(
    dependencies: list[Dependency],
    *,
    ecosystem: str,
    client: RegistryClient,
    use_cache: bool = True,
    max_concurrency: int | None = None,
) -> list[OutdatedDependency]:
    """Outdated direct dependencies of one *ecosystem*.

    Every registry lookup runs concurrently, bounded by *max_concurrency*
    (the client's setting by default). A package whose lookup fails is left
    out of the result.
    """
    grammar = get_grammar(ecosystem)
    direct = [d for d in dependencies if d.ecosystem == ecosystem and _is_direct(d)]
    if not direct:
        return []

    limit = max_concurrency or client.settings.max_concurrency
    semaphore = asyncio.Semaphore(max(limit, 1))
    results = await asyncio.gather(
        *(_check_one(d, ecosystem, grammar, client, semaphore, use_cache) for d in direct)
    )
    outdated = sorted((r for r in results if r is not None), key=_sort_key)
    log.info(
        "outdated.checked",
        ecosystem=ecosystem,
        checked=len(direct),
        outdated=len(outdated),
    )
    return outdated


async def check_all_outdated(
    dependencies: list[Dependency],
    *,
    client: RegistryClient,
    use_cache: bool = True,
    max_concurrency: int | None = None,
) -> list[OutdatedDependency]:
    """Run :func:`check_outdated` for every registry-backed ecosystem present."""
    present = {d.ecosystem for d in dependencies}
    ecosystems = [e for e in SUPPORTED_ECOSYSTEMS if e in present]
    batches = await asyncio.gather(
        *(
            check_outdated(
                dependencies,
                ecosystem=e,
                client=client,
                use_cache=use_cache,
                max_concurrency=max_concurrency,
            )
            for e in ecosystems
        )
    )
    return sorted((item for batch in batches for item in batch), key=_sort_key)


# ── update classification ─────────────────────────────────────────────────


def semver_level(
    current: str,
    target: str,
    grammar: VersionGrammar | None = None,
) -> SemverLevel | None:
    """Size of the update from *current* to *target*.

    ``None`` when the versions are equal or either is unparseable. A change
    confined to the prerelease tag counts as a patch.
    """
    if current == target:
        return None
    grammar = grammar or _SEMVER
    a = grammar.parse(current)
    b = grammar.parse(target)
    if a is None or b is None:
        return None
    if a.major != b.major:
        return "major"
    if a.minor != b.minor:
        return "minor"
    if a.release_tuple(3) != b.release_tuple(3) or a.prerelease != b.prerelease:
        return "patch"
    return None


def filter_by_semver_level(
    outdated: list[OutdatedDependency],
    level: Literal["patch", "minor"],
) -> list[OutdatedDependency]:
    """Keep updates no larger than *level* (``minor`` admits patch updates too)."""
    allowed: tuple[str, ...] = ("patch",) if level == "patch" else ("patch", "minor")
    kept: list[OutdatedDependency] = []
    for item in outdated:
        grammar = get_grammar(item.ecosystem)
        if semver_level(item.resolved, item.latest, grammar) in allowed:
            kept.append(item)
    return kept
