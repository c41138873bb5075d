"""Project scan — run every detected package-manager handler over a directory."""

from __future__ import annotations

from pathlib import Path

import structlog

# Ensure handlers are registered before any scan runs.
import depwatch.engines.dependency_scanner.parsers  # noqa: F401
from depwatch.engines.dependency_scanner.graph import build_dependencies, dedupe_dependencies
from depwatch.engines.dependency_scanner.models import Dependency, ManifestEntry
from depwatch.engines.dependency_scanner.registry import (
    PackageManagerHandler,
    detect_handlers,
)

log = structlog.get_logger("depwatch.engine")


def read_text_file(path: Path) -> str | None:
    """Return the file's text, or ``None`` when it is absent or unreadable."""
    try:
        return path.read_text(encoding="utf-8", errors="replace")
    except FileNotFoundError:
        return None
    except OSError as exc:
        log.debug("scanner.read_failed", path=str(path), error=str(exc))
        return None


def scan_handler(handler: PackageManagerHandler, project_path: Path) -> list[Dependency]:
    """Dependencies contributed by one package manager."""
    entries: list[ManifestEntry] = []
    for manifest_path, file_path in handler.manifest_files(project_path):
        content = read_text_file(file_path)
        if content is None:
            continue
        parsed = handler.parse_manifest(content)
        for entry in parsed:
            entry.manifest_path = manifest_path
        entries.extend(parsed)

    lock_text = read_text_file(project_path / handler.lockfile_name)
    lockfile = handler.parse_lockfile(lock_text) if lock_text is not None else None

    deps = build_dependencies(
        entries,
        lockfile,
        ecosystem=handler.ecosystem,
        lockfile_name=handler.lockfile_name,
        system_name=handler.name,
    )
    log.debug(
        "scanner.parsed",
        handler=handler.name,
        manifest_entries=len(entries),
        lockfile=lockfile is not None,
        dependencies=len(deps),
    )
    return deps


def scan(project_path: Path) -> list[Dependency]:
    """Scan a local project directory for dependencies across all package managers."""
    project_path = Path(project_path)
    results: list[Dependency] = []
    for handler in detect_handlers(project_path):
        results.extend(scan_handler(handler, project_path))
    return sorted(dedupe_dependencies(results), key=lambda d: d.name)
