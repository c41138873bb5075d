"""Parser for Gemfile.lock and the bundler handler."""

from __future__ import annotations

import re
from pathlib import Path

from depwatch.engines.dependency_scanner.models import (
    LockEdge,
    LockfileData,
    LockPackage,
    ManifestEntry,
)
from depwatch.engines.dependency_scanner.parsers.gemfile import parse_gemfile
from depwatch.engines.dependency_scanner.registry import register_handler

_SPEC_SECTIONS = frozenset({"GEM", "GIT", "PATH"})
_ENTRY_RE = re.compile(r"^([^\s(]+)(?:\s+\(([^)]+)\))?")


def strip_platform(version: str) -> str:
    """``1.18.3-arm64-darwin`` -> ``1.18.3`` (gem versions never contain ``-``)."""
    return version.split("-", 1)[0].strip()


def parse_gemfile_lock(content: str) -> LockfileData:
    packages: dict[str, LockPackage] = {}
    root_edges: list[LockEdge] = []
    section = ""
    in_specs = False
    current: LockPackage | None = None

    for raw in content.splitlines():
        line = raw.rstrip()
        if not line:
            continue
        if not line.startswith(" "):
            section = line.strip()
            in_specs = False
            current = None
            continue

        indent = len(line) - len(line.lstrip(" "))
        text = line.strip()

        if section in _SPEC_SECTIONS:
            if indent == 2:
                in_specs = text == "specs:"
                current = None
                continue
            if not in_specs:
                continue
            match = _ENTRY_RE.match(text)
            if match is None:
                continue
            if indent == 4:
                name, version = match.group(1), match.group(2)
                if not version:
                    current = None
                    continue
                if name in packages:
                    # another platform variant; the first one seen wins
                    current = None
                    continue
                current = LockPackage(name=name, version=strip_platform(version))
                packages[name] = current
            elif indent == 6 and current is not None:
                current.dependencies.append(
                    LockEdge(name=match.group(1), specifier=match.group(2) or "*")
                )
        elif section == "DEPENDENCIES" and indent == 2:
            match = _ENTRY_RE.match(text)
            if match is not None:
                root_edges.append(
                    LockEdge(name=match.group(1).rstrip("!"), specifier=match.group(2) or "*")
                )

    return LockfileData(packages=list(packages.values()), root_edges=root_edges)


class BundlerHandler:
    name = "bundler"
    ecosystem = "rubygems"
    lockfile_name = "Gemfile.lock"

    def detect(self, project_path: Path) -> bool:
        return (project_path / "Gemfile").is_file()

    def manifest_files(self, project_path: Path) -> list[tuple[str, Path]]:
        return [(".", project_path / "Gemfile")]

    def parse_manifest(self, content: str) -> list[ManifestEntry]:
        return parse_gemfile(content)

    def parse_lockfile(self, content: str) -> LockfileData:
        return parse_gemfile_lock(content)


register_handler(BundlerHandler())
