"""Parser for Python pyproject.toml dependency declarations."""

from __future__ import annotations

import re

from depwatch.engines.dependency_scanner.models import (
    DEPENDENCIES_GROUP,
    DEV_DEPENDENCIES_GROUP,
    ManifestEntry,
)
from depwatch.engines.dependency_scanner.toml_subset import parse_toml

# PEP 508 simplified: name followed by optional extras and version specifiers
_PEP508_RE = re.compile(
    r"^([A-Za-z0-9]([A-Za-z0-9._-]*[A-Za-z0-9])?)"  # package name
    r"(\[[^\]]*\])?"  # optional extras [extra1,extra2]
    r"\s*"
    r"(.*)?$",  # version specifiers
)


def parse_requirement(raw: str) -> tuple[str, str] | None:
    """Split a PEP 508 string into ``(name, specifier)``; extras and markers are dropped."""
    line = raw.strip()
    if not line:
        return None

    # Strip environment markers (everything after ";")
    marker_pos = line.find(";")
    if marker_pos != -1:
        line = line[:marker_pos].strip()

    m = _PEP508_RE.match(line)
    if not m:
        return None

    specifier = (m.group(4) or "").strip()
    if specifier.startswith("(") and specifier.endswith(")"):
        specifier = specifier[1:-1].strip()
    if specifier.startswith("@"):
        # direct URL reference, not a version range
        specifier = ""
    return m.group(1), specifier.replace(" ", "") or "*"


def _requirements(values: object) -> list[str]:
    if not isinstance(values, list):
        return []
    # PEP 735 groups may include {include-group = "..."} tables
    return [v for v in values if isinstance(v, str)]


def parse_pyproject(content: str) -> list[ManifestEntry]:
    data = parse_toml(content)
    project = data.get("project") if isinstance(data.get("project"), dict) else {}
    tool = data.get("tool") if isinstance(data.get("tool"), dict) else {}
    uv = tool.get("uv") if isinstance(tool.get("uv"), dict) else {}

    sections: list[tuple[str, list[str]]] = [
        (DEPENDENCIES_GROUP, _requirements(project.get("dependencies")))
    ]
    optional = project.get("optional-dependencies")
    if isinstance(optional, dict):
        for values in optional.values():
            sections.append((DEV_DEPENDENCIES_GROUP, _requirements(values)))
    sections.append((DEV_DEPENDENCIES_GROUP, _requirements(uv.get("dev-dependencies"))))
    groups = data.get("dependency-groups")
    if isinstance(groups, dict):
        for values in groups.values():
            sections.append((DEV_DEPENDENCIES_GROUP, _requirements(values)))

    entries: list[ManifestEntry] = []
    for group, requirements in sections:
        for raw in requirements:
            parsed = parse_requirement(raw)
            if parsed is None:
                continue
            name, specifier = parsed
            entries.append(ManifestEntry(name=name, specifier=specifier, group=group))
    return entries
