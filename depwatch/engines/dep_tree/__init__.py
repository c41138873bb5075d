"""Dependency tree engine — forward trees and reverse ``why`` chains."""

from depwatch.engines.dep_tree.tree import build_dependency_tree
from depwatch.engines.dep_tree.why import (
    MAX_CHAIN_HOPS,
    WhyResult,
    build_reverse_chain,
    merge_chain,
    why,
)

__all__ = [
    "MAX_CHAIN_HOPS",
    "WhyResult",
    "build_dependency_tree",
    "build_reverse_chain",
    "merge_chain",
    "why",
]
