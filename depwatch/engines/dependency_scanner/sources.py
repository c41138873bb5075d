"""Helpers for VersionEntry source strings.

A direct source looks like ``.#dependencies`` or ``packages/app#devDependencies``;
a transitive source looks like ``pnpm-lock.yaml:express@4.21.2``.
"""

from __future__ import annotations

import re

from depwatch.engines.dependency_scanner.models import (
    DEPENDENCIES_GROUP,
    DEV_DEPENDENCIES_GROUP,
)

LOCKFILE_NAMES = (
    "pnpm-lock.yaml",
    "yarn.lock",
    "package-lock.json",
    "Gemfile.lock",
    "uv.lock",
    "deno.lock",
)

# name may be scoped (@scope/pkg); version stops at "(" (pnpm peer qualifiers)
_PARENT_RE = re.compile(r"^((?:@[^@/]+/)?[^@]+)@([^(@]+)")


def direct_source(manifest_path: str, group: str) -> str:
    return f"{manifest_path or '.'}#{group}"


def transitive_source(lockfile_name: str, parent_name: str, parent_version: str) -> str:
    return f"{lockfile_name}:{parent_name}@{parent_version}"


def is_lockfile_source(source: str) -> bool:
    return any(source.startswith(f"{name}:") for name in LOCKFILE_NAMES)


def is_direct_source(source: str) -> bool:
    return not is_lockfile_source(source) and "#" in source


def source_group(source: str) -> str | None:
    """Manifest group of a direct source, ``None`` for transitive ones."""
    if not is_direct_source(source):
        return None
    return source.rsplit("#", 1)[1]


def is_dev_dependencies_source(source: str) -> bool:
    return source_group(source) == DEV_DEPENDENCIES_GROUP


def is_dependencies_source(source: str) -> bool:
    return source_group(source) == DEPENDENCIES_GROUP


def parse_parent_from_source(source: str) -> tuple[str, str] | None:
    """Extract ``(parent_name, parent_version)`` from a transitive source.

    >>> parse_parent_from_source("pnpm-lock.yaml:@babel/core@7.26.0(supports-color@8.1.1)")
    ('@babel/core', '7.26.0')
    """
    for name in LOCKFILE_NAMES:
        prefix = f"{name}:"
        if source.startswith(prefix):
            match = _PARENT_RE.match(source[len(prefix) :])
            if match is None:
                return None
            return match.group(1), match.group(2)
    return None
