"""Outdated checker engine."""

from depwatch.engines.outdated.checker import (
    check_all_outdated,
    check_outdated,
    filter_by_semver_level,
    semver_level,
)

__all__ = [
    "check_all_outdated",
    "check_outdated",
    "filter_by_semver_level",
    "semver_level",
]
