"""Parser for yarn.lock (classic v1 and berry) and the yarn handler."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from depwatch.engines.dependency_scanner.models import LockEdge, LockfileData, LockPackage
from depwatch.engines.dependency_scanner.parsers.package_json import PackageJsonManifests
from depwatch.engines.dependency_scanner.registry import register_handler

_ROOT_WORKSPACE = "workspace:."


@dataclass
class _Block:
    descriptors: list[tuple[str, str]]
    version: str = ""
    resolution: str = ""
    dependencies: dict[str, str] = field(default_factory=dict)


def _unquote(text: str) -> str:
    text = text.strip()
    if len(text) >= 2 and text[0] == text[-1] and text[0] in "\"'":
        return text[1:-1]
    return text


def split_descriptor(descriptor: str) -> tuple[str, str] | None:
    """``@babel/core@^7.0.0`` -> ``("@babel/core", "^7.0.0")``."""
    cleaned = _unquote(descriptor)
    at = cleaned.find("@", 1)
    if at == -1:
        return None
    return cleaned[:at], cleaned[at + 1 :]


def _field(line: str) -> tuple[str, str]:
    """Split ``key "value"`` (classic) or ``key: value`` (berry)."""
    stripped = line.strip()
    if stripped.startswith('"'):
        end = stripped.find('"', 1)
        key, rest = stripped[1:end], stripped[end + 1 :]
    else:
        parts = stripped.split(None, 1)
        key, rest = parts[0], parts[1] if len(parts) > 1 else ""
    if key.endswith(":"):
        key = key[:-1]
    rest = rest.strip()
    if rest.startswith(":"):
        rest = rest[1:].strip()
    return key, _unquote(rest)


def _blocks(content: str) -> list[_Block]:
    blocks: list[_Block] = []
    current: _Block | None = None
    in_deps = False
    for raw in content.splitlines():
        if not raw.strip() or raw.lstrip().startswith("#"):
            continue
        indent = len(raw) - len(raw.lstrip(" "))
        if indent == 0:
            in_deps = False
            header = raw.rstrip()
            if not header.endswith(":"):
                current = None
                continue
            descriptors = []
            for part in header[:-1].replace('"', "").split(","):
                split = split_descriptor(part)
                if split is not None:
                    descriptors.append(split)
            current = _Block(descriptors=descriptors) if descriptors else None
            if current is not None:
                blocks.append(current)
            continue
        if current is None:
            continue
        if indent <= 2:
            key, value = _field(raw)
            in_deps = key in ("dependencies", "optionalDependencies") and not value
            if key == "version":
                current.version = value
            elif key == "resolution":
                current.resolution = value
            continue
        if in_deps:
            name, specifier = _field(raw)
            if name:
                current.dependencies[name] = specifier
    return blocks


def _strip_npm_protocol(specifier: str) -> str:
    return specifier[4:] if specifier.startswith("npm:") else specifier


def parse_yarn_lock(content: str) -> LockfileData:
    blocks = [b for b in _blocks(content) if b.version]

    descriptors: dict[str, str] = {}
    by_name: dict[str, list[tuple[set[str], str]]] = {}
    root_name: str | None = None
    root_block: _Block | None = None
    for block in blocks:
        name = block.descriptors[0][0]
        specifiers = set()
        for desc_name, specifier in block.descriptors:
            specifiers.add(specifier)
            specifiers.add(_strip_npm_protocol(specifier))
            descriptors.setdefault(f"{desc_name}@{specifier}", block.version)
            descriptors.setdefault(f"{desc_name}@{_strip_npm_protocol(specifier)}", block.version)
        by_name.setdefault(name, []).append((specifiers, block.version))
        if root_block is None and (
            block.resolution.endswith("@" + _ROOT_WORKSPACE)
            or any(spec == _ROOT_WORKSPACE for _, spec in block.descriptors)
        ):
            root_name, root_block = name, block

    def resolve(dep_name: str, specifier: str) -> str | None:
        candidates = by_name.get(dep_name)
        if not candidates:
            return None
        for specifiers, version in candidates:
            if specifier in specifiers or _strip_npm_protocol(specifier) in specifiers:
                return version
        return candidates[0][1]

    def edges(block: _Block) -> list[LockEdge]:
        result = []
        for dep_name, specifier in block.dependencies.items():
            version = resolve(dep_name, specifier)
            if version is not None:
                result.append(LockEdge(name=dep_name, specifier=specifier, version=version))
        return result

    packages = [
        LockPackage(name=block.descriptors[0][0], version=block.version, dependencies=edges(block))
        for block in blocks
    ]
    return LockfileData(
        packages=packages,
        root_name=root_name,
        root_edges=edges(root_block) if root_block is not None else [],
        descriptors=descriptors,
    )


class YarnHandler(PackageJsonManifests):
    name = "yarn"
    ecosystem = "npm"
    lockfile_name = "yarn.lock"

    def detect(self, project_path: Path) -> bool:
        return (project_path / "package.json").is_file() and (
            project_path / self.lockfile_name
        ).is_file()

    def parse_lockfile(self, content: str) -> LockfileData:
        return parse_yarn_lock(content)


register_handler(YarnHandler())
