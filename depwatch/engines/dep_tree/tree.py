"""Tree builder — direct dependencies with their transitive children, flattened for display."""

from __future__ import annotations

from dataclasses import dataclass, field

from depwatch.engines.dependency_scanner.models import Dependency, DependencyTreeEntry
from depwatch.engines.dependency_scanner.sources import (
    is_dependencies_source,
    is_dev_dependencies_source,
    is_lockfile_source,
    parse_parent_from_source,
)


@dataclass
class _Node:
    dep: Dependency
    version: str
    is_dev_dependency: bool
    children: list[_Node] = field(default_factory=list)

    @property
    def key(self) -> str:
        return f"{self.dep.name}@{self.version}"


def _root_nodes(dependencies: list[Dependency]) -> list[_Node]:
    roots: list[_Node] = []
    seen: set[str] = set()
    for dep in dependencies:
        for v in dep.versions:
            if is_lockfile_source(v.source):
                continue
            is_dev = is_dev_dependencies_source(v.source)
            if not (is_dev or is_dependencies_source(v.source)):
                continue
            key = f"{dep.name}@{v.resolved}"
            if key in seen:
                continue
            seen.add(key)
            roots.append(_Node(dep=dep, version=v.resolved, is_dev_dependency=is_dev))
    return roots


def _children_by_parent(dependencies: list[Dependency]) -> dict[str, list[Dependency]]:
    children: dict[str, list[Dependency]] = {}
    for dep in dependencies:
        for v in dep.versions:
            parent = parse_parent_from_source(v.source)
            if parent is None:
                continue
            bucket = children.setdefault(f"{parent[0]}@{parent[1]}", [])
            if all(d.name != dep.name for d in bucket):
                bucket.append(dep)
    return children


def _build_children(
    node: _Node,
    depth: int,
    visited: set[str],
    max_depth: int,
    children_by_parent: dict[str, list[Dependency]],
) -> None:
    if depth >= max_depth or node.key in visited:
        return
    visited.add(node.key)

    for child in children_by_parent.get(node.key, []):
        resolved = next(
            (
                v.resolved
                for v in child.versions
                if parse_parent_from_source(v.source) == (node.dep.name, node.version)
            ),
            None,
        )
        if resolved is None:
            continue
        child_node = _Node(dep=child, version=resolved, is_dev_dependency=False)
        node.children.append(child_node)
        # visited is per branch
        _build_children(child_node, depth + 1, set(visited), max_depth, children_by_parent)

    node.children.sort(key=lambda n: n.dep.name)


def _flatten(
    node: _Node,
    depth: int,
    is_last: bool,
    ancestors: list[bool],
    out: list[DependencyTreeEntry],
) -> None:
    out.append(
        DependencyTreeEntry(
            name=node.dep.name,
            version=node.version,
            ecosystem=node.dep.ecosystem,
            is_dev_dependency=node.is_dev_dependency,
            depth=depth,
            is_last=is_last,
            has_children=bool(node.children),
            ancestor_is_last_flags=list(ancestors),
        )
    )
    path = [*ancestors, is_last]
    last = len(node.children) - 1
    for index, child in enumerate(node.children):
        _flatten(child, depth + 1, index == last, path, out)


def build_dependency_tree(
    dependencies: list[Dependency],
    max_depth: int,
    ecosystem_filter: str | None = None,
) -> list[DependencyTreeEntry]:
    """Pre-order entries for every direct dependency and its children.

    Roots are sorted by ecosystem then name and children by name. A package
    reached again on the same branch appears once more as a leaf, which is
    where a cycle stops.
    """
    if ecosystem_filter:
        dependencies = [d for d in dependencies if d.ecosystem == ecosystem_filter]

    roots = _root_nodes(dependencies)
    if max_depth > 0:
        children_by_parent = _children_by_parent(dependencies)
        for root in roots:
            _build_children(root, 0, set(), max_depth, children_by_parent)

    roots.sort(key=lambda n: (n.dep.ecosystem, n.dep.name))

    entries: list[DependencyTreeEntry] = []
    last = len(roots) - 1
    for index, root in enumerate(roots):
        _flatten(root, 0, index == last, [], entries)
    return entries
