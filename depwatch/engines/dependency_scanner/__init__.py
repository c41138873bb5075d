"""Dependency scanner engine — manifests and lockfiles into Dependency records."""

from depwatch.engines.dependency_scanner.graph import build_dependencies, dedupe_dependencies
from depwatch.engines.dependency_scanner.models import (
    Dependency,
    DependencyTreeEntry,
    LockfileData,
    ManifestEntry,
    OutdatedDependency,
    ReverseChainNode,
    VersionEntry,
)
from depwatch.engines.dependency_scanner.scanner import read_text_file, scan

__all__ = [
    "Dependency",
    "DependencyTreeEntry",
    "LockfileData",
    "ManifestEntry",
    "OutdatedDependency",
    "ReverseChainNode",
    "VersionEntry",
    "build_dependencies",
    "dedupe_dependencies",
    "read_text_file",
    "scan",
]
