"""Data models for the dependency scanner engine."""

from __future__ import annotations

from dataclasses import dataclass, field

ECOSYSTEMS = ("npm", "jsr", "rubygems", "pypi", "system")

DEPENDENCIES_GROUP = "dependencies"
DEV_DEPENDENCIES_GROUP = "devDependencies"


@dataclass(frozen=True)
class VersionEntry:
    """One resolution of a package, tagged with where it came from."""

    resolved: str
    specifier: str
    source: str


@dataclass
class Dependency:
    """One package per (ecosystem, normalized name)."""

    id: str
    name: str
    ecosystem: str
    versions: list[VersionEntry] = field(default_factory=list)

    def add_version(self, entry: VersionEntry) -> bool:
        """Append *entry* unless its ``(resolved, source)`` pair is already present."""
        for existing in self.versions:
            if existing.resolved == entry.resolved and existing.source == entry.source:
                return False
        self.versions.append(entry)
        return True


@dataclass
class ManifestEntry:
    """A direct dependency as declared in a manifest."""

    name: str
    specifier: str
    group: str = DEPENDENCIES_GROUP
    ecosystem: str | None = None
    manifest_path: str = "."


@dataclass
class LockEdge:
    """A dependency edge from a lockfile package to a child.

    ``version`` is set when the lockfile pins the child version on the edge
    itself (pnpm, yarn, package-lock, deno); otherwise the edge resolves to
    the first package with a matching name.
    """

    name: str
    specifier: str = "*"
    version: str | None = None
    ecosystem: str | None = None


@dataclass
class LockPackage:
    name: str
    version: str
    dependencies: list[LockEdge] = field(default_factory=list)
    ecosystem: str | None = None


@dataclass
class LockfileData:
    """Parsed lockfile: installed packages plus optional workspace root.

    ``importers`` maps a manifest path (``"."`` or ``packages/app``) to
    ``{name: resolved_version}`` for lockfiles that record per-workspace
    resolutions. ``descriptors`` maps ``name@specifier`` to the version that
    range resolved to (yarn, deno). ``root_edges`` holds the edges declared
    by a virtual root package, which seed direct dependencies when no
    manifest is available.
    """

    packages: list[LockPackage] = field(default_factory=list)
    root_name: str | None = None
    root_edges: list[LockEdge] = field(default_factory=list)
    root_dev_edges: list[LockEdge] = field(default_factory=list)
    importers: dict[str, dict[str, str]] = field(default_factory=dict)
    descriptors: dict[str, str] = field(default_factory=dict)
    _parents: dict[tuple[str, str], list[LockPackage]] | None = field(
        default=None, repr=False, compare=False
    )

    def find(
        self,
        name: str,
        version: str | None = None,
        ecosystem: str | None = None,
    ) -> LockPackage | None:
        """First package named *name*, optionally pinned to *version* and *ecosystem*."""
        for pkg in self.packages:
            if pkg.name != name:
                continue
            if version is not None and pkg.version != version:
                continue
            if ecosystem is not None and pkg.ecosystem not in (None, ecosystem):
                continue
            return pkg
        return None

    def resolve_edge(self, edge: LockEdge) -> LockPackage | None:
        """Package an edge points at, or ``None`` when it dangles."""
        return self.find(edge.name, edge.version, edge.ecosystem)

    def parents_of(self, name: str, version: str) -> list[LockPackage]:
        """Packages whose dependency list names *name* at *version*.

        Built on first use by inverting every forward edge.
        """
        if self._parents is None:
            parents: dict[tuple[str, str], list[LockPackage]] = {}
            for pkg in self.packages:
                for edge in pkg.dependencies:
                    child = self.resolve_edge(edge)
                    if child is None:
                        continue
                    parents.setdefault((child.name, child.version), []).append(pkg)
            self._parents = parents
        return list(self._parents.get((name, version), []))


@dataclass
class OutdatedDependency:
    """A direct dependency whose wanted or latest version differs from resolved."""

    dependency: Dependency
    resolved: str
    wanted: str
    latest: str
    specifier: str
    is_dev_dependency: bool

    @property
    def name(self) -> str:
        return self.dependency.name

    @property
    def ecosystem(self) -> str:
        return self.dependency.ecosystem


@dataclass
class DependencyTreeEntry:
    """Flattened tree node with enough context to draw connector glyphs."""

    name: str
    version: str
    ecosystem: str
    is_dev_dependency: bool
    depth: int
    is_last: bool
    has_children: bool
    ancestor_is_last_flags: list[bool] = field(default_factory=list)


@dataclass
class ReverseChainNode:
    """One link of a ``why`` chain, root first."""

    name: str
    version: str
    source: str = ""
    children: list[ReverseChainNode] = field(default_factory=list)
