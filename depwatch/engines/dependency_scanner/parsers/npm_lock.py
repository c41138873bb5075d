"""Parser for package-lock.json (lockfile v2/v3) and the npm handler."""

from __future__ import annotations

import json
from pathlib import Path

import structlog

from depwatch.engines.dependency_scanner.models import LockEdge, LockfileData, LockPackage
from depwatch.engines.dependency_scanner.parsers.package_json import PackageJsonManifests
from depwatch.engines.dependency_scanner.registry import register_handler

log = structlog.get_logger("depwatch.engine")

_NODE_MODULES = "node_modules/"
_EDGE_SECTIONS = ("dependencies", "optionalDependencies")
_IMPORTER_SECTIONS = ("dependencies", "devDependencies", "optionalDependencies")


def _package_name(path: str, info: dict) -> str:
    name = info.get("name")
    if isinstance(name, str) and name:
        return name
    return path.rsplit(_NODE_MODULES, 1)[-1]


def _parent_dir(path: str) -> str | None:
    """Directory whose node_modules holds *path*; ``None`` above the root."""
    if not path:
        return None
    idx = path.rfind("/" + _NODE_MODULES)
    if idx != -1:
        return path[:idx]
    return ""


class _Resolver:
    """Node module resolution over the flat ``packages`` map."""

    def __init__(self, packages: dict[str, dict]) -> None:
        self.packages = packages

    def version_at(self, path: str) -> str | None:
        info = self.packages.get(path)
        if not isinstance(info, dict):
            return None
        if info.get("link"):
            target = info.get("resolved")
            if not isinstance(target, str):
                return None
            info = self.packages.get(target)
            if not isinstance(info, dict):
                return None
        version = info.get("version")
        return str(version) if version else None

    def resolve(self, from_path: str, dep_name: str) -> str | None:
        base: str | None = from_path
        while base is not None:
            prefix = f"{base}/" if base else ""
            candidate = f"{prefix}{_NODE_MODULES}{dep_name}"
            if candidate in self.packages:
                return self.version_at(candidate)
            base = _parent_dir(base)
        return None


def parse_npm_lock(content: str) -> LockfileData:
    try:
        data = json.loads(content)
    except ValueError as exc:
        log.debug("scanner.lockfile_invalid", lockfile="package-lock.json", error=str(exc))
        return LockfileData()
    packages = data.get("packages") if isinstance(data, dict) else None
    if not isinstance(packages, dict):
        return LockfileData()

    resolver = _Resolver(packages)
    merged: dict[tuple[str, str], LockPackage] = {}
    importers: dict[str, dict[str, str]] = {}
    root_name: str | None = None
    root_edges: list[LockEdge] = []
    root_dev_edges: list[LockEdge] = []

    for path, info in packages.items():
        if not isinstance(info, dict):
            continue
        is_installed = path.startswith(_NODE_MODULES) or ("/" + _NODE_MODULES) in path
        if not is_installed:
            # project root ("") or a workspace directory
            resolved: dict[str, str] = {}
            for section in _IMPORTER_SECTIONS:
                deps = info.get(section)
                if not isinstance(deps, dict):
                    continue
                for dep_name, specifier in deps.items():
                    version = resolver.resolve(path, dep_name)
                    if version is None:
                        continue
                    resolved.setdefault(dep_name, version)
                    if path == "":
                        target = root_dev_edges if section == "devDependencies" else root_edges
                        target.append(
                            LockEdge(name=dep_name, specifier=str(specifier), version=version)
                        )
            importers["." if path == "" else path] = resolved
            if path == "":
                name = info.get("name")
                root_name = name if isinstance(name, str) and name else None
            continue

        if info.get("link"):
            continue
        version = info.get("version")
        if not version:
            continue
        key = (_package_name(path, info), str(version))
        pkg = merged.get(key)
        if pkg is None:
            pkg = LockPackage(name=key[0], version=key[1])
            merged[key] = pkg
        seen = {(e.name, e.version) for e in pkg.dependencies}
        for section in _EDGE_SECTIONS:
            deps = info.get(section)
            if not isinstance(deps, dict):
                continue
            for dep_name, specifier in deps.items():
                child_version = resolver.resolve(path, dep_name)
                if child_version is None or (dep_name, child_version) in seen:
                    continue
                seen.add((dep_name, child_version))
                pkg.dependencies.append(
                    LockEdge(name=dep_name, specifier=str(specifier), version=child_version)
                )

    return LockfileData(
        packages=list(merged.values()),
        root_name=root_name,
        root_edges=root_edges,
        root_dev_edges=root_dev_edges,
        importers=importers,
    )


class NpmHandler(PackageJsonManifests):
    name = "npm"
    ecosystem = "npm"
    lockfile_name = "package-lock.json"

    def detect(self, project_path: Path) -> bool:
        return (project_path / "package.json").is_file() and (
            project_path / self.lockfile_name
        ).is_file()

    def parse_lockfile(self, content: str) -> LockfileData:
        return parse_npm_lock(content)


register_handler(NpmHandler())
