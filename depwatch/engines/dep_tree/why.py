"""Reverse chain tracer — why a package is installed."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field

import structlog

from depwatch.engines.dependency_scanner.models import Dependency, ReverseChainNode
from depwatch.engines.dependency_scanner.sources import (
    is_dev_dependencies_source,
    is_lockfile_source,
    parse_parent_from_source,
)

log = structlog.get_logger("depwatch.engine")

MAX_CHAIN_HOPS = 50


@dataclass
class WhyResult:
    """Chains from direct dependencies down to one package, split by group."""

    name: str
    found: bool
    dependencies: list[ReverseChainNode] = field(default_factory=list)
    dev_dependencies: list[ReverseChainNode] = field(default_factory=list)


def build_reverse_chain(
    target_name: str,
    target_version: str,
    source: str,
    index: Mapping[str, Dependency],
) -> ReverseChainNode | None:
    """Chain from a direct dependency down to *target_name*, root first.

    *index* maps package names to their records. Returns ``None`` when a
    parent reference dangles or no direct dependency is reached within
    :data:`MAX_CHAIN_HOPS` hops.
    """
    if not is_lockfile_source(source):
        return ReverseChainNode(name=target_name, version=target_version, source=source)

    chain = [ReverseChainNode(name=target_name, version=target_version, source=source)]
    current = source
    for _ in range(MAX_CHAIN_HOPS):
        parent = parse_parent_from_source(current)
        if parent is None:
            return None
        name, version = parent
        dep = index.get(name)
        entry = None
        if dep is not None:
            entry = next((v for v in dep.versions if v.resolved == version), None)
        if entry is None:
            log.debug("why.dangling_parent", target=target_name, parent=f"{name}@{version}")
            return None

        chain.insert(0, ReverseChainNode(name=name, version=version, source=entry.source))
        if not is_lockfile_source(entry.source):
            break
        current = entry.source
    else:
        log.debug("why.chain_too_long", target=target_name, hops=MAX_CHAIN_HOPS)
        return None

    for parent_node, child_node in zip(chain, chain[1:]):
        parent_node.children.append(child_node)
    return chain[0]


def merge_chain(trees: list[ReverseChainNode], node: ReverseChainNode) -> None:
    """Add *node* to *trees*, sharing any prefix already present."""
    for existing in trees:
        if existing.name == node.name and existing.version == node.version:
            for child in node.children:
                merge_chain(existing.children, child)
            return
    trees.append(node)


def why(dependencies: list[Dependency], name: str) -> WhyResult:
    """Every chain that pulls in *name*, grouped by the root's manifest group."""
    target = next((d for d in dependencies if d.name == name), None)
    if target is None:
        return WhyResult(name=name, found=False)

    index: dict[str, Dependency] = {}
    for dep in dependencies:
        if dep.ecosystem == target.ecosystem or dep.name not in index:
            index[dep.name] = dep

    result = WhyResult(name=name, found=True)
    for v in target.versions:
        chain = build_reverse_chain(target.name, v.resolved, v.source, index)
        if chain is None:
            continue
        root = index.get(chain.name)
        is_dev = root is not None and any(
            is_dev_dependencies_source(rv.source) for rv in root.versions
        )
        merge_chain(result.dev_dependencies if is_dev else result.dependencies, chain)
    return result
