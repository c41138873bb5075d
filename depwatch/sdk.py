"""Programmatic entry points returning serializable records.

Every function scans *project_path* afresh and returns pydantic models;
``model_dump(by_alias=True)`` yields the camelCase JSON shape.
"""

from __future__ import annotations

from dataclasses import asdict
from pathlib import Path
from typing import Literal

from depwatch.api.schemas.dependency import (
    DependencySchema,
    DependencyTreeEntrySchema,
    OutdatedDependencySchema,
    ReverseChainNodeSchema,
    WhyResultSchema,
)
from depwatch.engines.dep_tree import build_dependency_tree
from depwatch.engines.dep_tree import why as trace_why
from depwatch.engines.dependency_scanner import (
    Dependency,
    OutdatedDependency,
    ReverseChainNode,
    scan,
)
from depwatch.engines.outdated import check_all_outdated, check_outdated, filter_by_semver_level
from depwatch.engines.registry_client import RegistryClient

DEFAULT_TREE_DEPTH = 1


# ── converters ────────────────────────────────────────────────────────────


def to_dependency_schema(dep: Dependency) -> DependencySchema:
    return DependencySchema.model_validate(asdict(dep))


def to_outdated_schema(item: OutdatedDependency) -> OutdatedDependencySchema:
    return OutdatedDependencySchema(
        **asdict(item.dependency),
        wanted=item.wanted,
        latest=item.latest,
        specifier=item.specifier,
        is_dev_dependency=item.is_dev_dependency,
    )


def to_chain_schema(node: ReverseChainNode) -> ReverseChainNodeSchema:
    return ReverseChainNodeSchema(
        name=node.name,
        version=node.version,
        children=[to_chain_schema(child) for child in node.children],
    )


# ── public ────────────────────────────────────────────────────────────────


def list_dependencies(project_path: str | Path) -> list[DependencySchema]:
    """All dependencies of the project, sorted by name."""
    return [to_dependency_schema(d) for d in scan(Path(project_path))]


async def outdated(
    project_path: str | Path,
    *,
    ecosystem: str | None = None,
    use_cache: bool = True,
    semver: Literal["patch", "minor"] | None = None,
    client: RegistryClient | None = None,
) -> list[OutdatedDependencySchema]:
    """Outdated direct dependencies, for one ecosystem or all of them.

    A *client* passed in is left open; one created here is closed on return.
    """
    deps = scan(Path(project_path))
    if client is None:
        async with RegistryClient() as owned:
            results = await _check(deps, ecosystem, owned, use_cache)
    else:
        results = await _check(deps, ecosystem, client, use_cache)
    if semver is not None:
        results = filter_by_semver_level(results, semver)
    return [to_outdated_schema(r) for r in results]


async def _check(
    deps: list[Dependency],
    ecosystem: str | None,
    client: RegistryClient,
    use_cache: bool,
) -> list[OutdatedDependency]:
    if ecosystem is None:
        return await check_all_outdated(deps, client=client, use_cache=use_cache)
    return await check_outdated(deps, ecosystem=ecosystem, client=client, use_cache=use_cache)


def tree(
    project_path: str | Path,
    *,
    max_depth: int = DEFAULT_TREE_DEPTH,
    ecosystem: str | None = None,
) -> list[DependencyTreeEntrySchema]:
    entries = build_dependency_tree(scan(Path(project_path)), max_depth, ecosystem)
    return [DependencyTreeEntrySchema.model_validate(asdict(e)) for e in entries]


def why(project_path: str | Path, name: str) -> WhyResultSchema:
    result = trace_why(scan(Path(project_path)), name)
    return WhyResultSchema(
        dependency=result.name,
        found=result.found,
        dependencies=[to_chain_schema(c) for c in result.dependencies],
        dev_dependencies=[to_chain_schema(c) for c in result.dev_dependencies],
    )
