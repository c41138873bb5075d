"""Handler registry — detect package managers and match them to parsers."""

from __future__ import annotations

from pathlib import Path
from typing import Protocol, runtime_checkable

from depwatch.engines.dependency_scanner.models import LockfileData, ManifestEntry


@runtime_checkable
class PackageManagerHandler(Protocol):
    """Interface that every package-manager handler must satisfy.

    ``name`` doubles as the synthesized ``system`` dependency, ``ecosystem``
    is the registry tag assigned to entries that do not carry their own.
    """

    name: str
    ecosystem: str
    lockfile_name: str

    def detect(self, project_path: Path) -> bool: ...

    def manifest_files(self, project_path: Path) -> list[tuple[str, Path]]: ...

    def parse_manifest(self, content: str) -> list[ManifestEntry]: ...

    def parse_lockfile(self, content: str) -> LockfileData: ...


HANDLER_REGISTRY: dict[str, PackageManagerHandler] = {}


def register_handler(handler: PackageManagerHandler) -> None:
    """Register a handler instance by its name."""
    HANDLER_REGISTRY[handler.name] = handler


def get_handler(name: str) -> PackageManagerHandler | None:
    return HANDLER_REGISTRY.get(name)


def detect_handlers(project_path: Path) -> list[PackageManagerHandler]:
    """Handlers whose files are present in *project_path*, in registration order."""
    return [h for h in HANDLER_REGISTRY.values() if h.detect(project_path)]
