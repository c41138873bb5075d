"""Dependency, outdated, tree and why records."""

from __future__ import annotations

from depwatch.api.schemas.common import CamelModel


class VersionEntrySchema(CamelModel):
    resolved: str
    specifier: str
    source: str


class DependencySchema(CamelModel):
    id: str
    name: str
    ecosystem: str
    versions: list[VersionEntrySchema] = []


class OutdatedDependencySchema(DependencySchema):
    wanted: str
    latest: str
    specifier: str
    is_dev_dependency: bool


class DependencyTreeEntrySchema(CamelModel):
    name: str
    version: str
    ecosystem: str
    is_dev_dependency: bool
    depth: int
    is_last: bool
    has_children: bool
    ancestor_is_last_flags: list[bool] = []


class ReverseChainNodeSchema(CamelModel):
    name: str
    version: str
    children: list[ReverseChainNodeSchema] = []


class WhyResultSchema(CamelModel):
    dependency: str
    found: bool
    dependencies: list[ReverseChainNodeSchema] = []
    dev_dependencies: list[ReverseChainNodeSchema] = []
