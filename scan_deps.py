#!/usr/bin/env python3
"""Standalone dependency inventory — scan a local project and print the result.

Usage:
    python scan_deps.py /path/to/project
    python scan_deps.py .                                   # scan current directory
    python scan_deps.py . --outdated                        # query the registries
    python scan_deps.py . --outdated --semver minor --no-cache
    python scan_deps.py . --tree 2 --ecosystem npm
    python scan_deps.py . --why lodash
    python scan_deps.py . --json
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path

from depwatch import sdk
from depwatch.core.logging import setup_logging


def _dump(records: list) -> str:
    return json.dumps([r.model_dump(by_alias=True) for r in records], indent=2)


def _print_deps(deps: list, as_json: bool) -> None:
    if as_json:
        print(_dump(deps))
        return
    if not deps:
        print("No dependencies found.")
        return

    # Group by ecosystem
    by_ecosystem: dict[str, list] = {}
    for d in deps:
        by_ecosystem.setdefault(d.ecosystem, []).append(d)

    print(f"Found {len(deps)} dependencies in {len(by_ecosystem)} ecosystem(s)\n")

    for ecosystem, eco_deps in sorted(by_ecosystem.items()):
        print(f"  {ecosystem}")
        for d in eco_deps:
            resolved = ", ".join(sorted({v.resolved for v in d.versions})) or "-"
            print(f"    {d.name} {resolved}")
        print()


def _print_outdated(rows: list, as_json: bool) -> None:
    if as_json:
        print(_dump(rows))
        return
    if not rows:
        print("All dependencies are up to date.")
        return
    for r in rows:
        dev = " (dev)" if r.is_dev_dependency else ""
        current = r.versions[0].resolved if r.versions else "-"
        line = f"{current} -> wanted {r.wanted}, latest {r.latest}"
        print(f"  {r.ecosystem:<9} {r.name}{dev}  {line}")


def _print_tree(entries: list, as_json: bool) -> None:
    if as_json:
        print(_dump(entries))
        return
    for e in entries:
        prefix = "".join("    " if last else "│   " for last in e.ancestor_is_last_flags)
        branch = "└── " if e.is_last else "├── "
        print(f"{prefix}{branch}{e.name} {e.version}")


def _print_why(result, as_json: bool) -> None:
    if as_json:
        print(json.dumps(result.model_dump(by_alias=True), indent=2))
        return
    if not result.found:
        print(f'Dependency "{result.dependency}" not found in this project.')
        return

    def walk(node, depth: int) -> None:
        print(f"{'  ' * depth}{node.name} {node.version}")
        for child in node.children:
            walk(child, depth + 1)

    for label, chains in (
        ("dependencies", result.dependencies),
        ("devDependencies", result.dev_dependencies),
    ):
        if chains:
            print(f"{label}:")
            for chain in chains:
                walk(chain, 1)
            print()


def main() -> None:
    parser = argparse.ArgumentParser(description="Inventory a project's dependencies")
    parser.add_argument("target", help="Local project directory to scan")
    parser.add_argument("--outdated", action="store_true", help="Check registries for updates")
    parser.add_argument("--tree", type=int, default=None, metavar="DEPTH", help="Print a tree")
    parser.add_argument("--why", default=None, metavar="NAME", help="Explain why NAME is installed")
    parser.add_argument("--ecosystem", default=None, help="Restrict to one ecosystem")
    parser.add_argument("--semver", choices=("patch", "minor"), default=None)
    parser.add_argument("--no-cache", action="store_true", help="Bypass the registry cache")
    parser.add_argument("--json", action="store_true", dest="as_json", help="Output as JSON")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log debug events to stderr")
    args = parser.parse_args()

    setup_logging(level="DEBUG" if args.verbose else None)

    project = Path(args.target).resolve()
    if not project.is_dir():
        print(f"Error: {project} is not a directory", file=sys.stderr)
        sys.exit(1)

    if args.outdated:
        rows = asyncio.run(
            sdk.outdated(
                project,
                ecosystem=args.ecosystem,
                use_cache=not args.no_cache,
                semver=args.semver,
            )
        )
        _print_outdated(rows, args.as_json)
    elif args.tree is not None:
        _print_tree(sdk.tree(project, max_depth=args.tree, ecosystem=args.ecosystem), args.as_json)
    elif args.why:
        _print_why(sdk.why(project, args.why), args.as_json)
    else:
        deps = sdk.list_dependencies(project)
        if args.ecosystem:
            deps = [d for d in deps if d.ecosystem == args.ecosystem]
        _print_deps(deps, args.as_json)


if __name__ == "__main__":
    main()
