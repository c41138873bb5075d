"""Tests for lockfile parsers."""

from __future__ import annotations

import json

import pytest

from depwatch.engines.dependency_scanner.models import LockEdge
from depwatch.engines.dependency_scanner.parsers.deno import parse_deno_lock
from depwatch.engines.dependency_scanner.parsers.gemfile_lock import (
    parse_gemfile_lock,
    strip_platform,
)
from depwatch.engines.dependency_scanner.parsers.npm_lock import parse_npm_lock
from depwatch.engines.dependency_scanner.parsers.pnpm_lock import (
    parse_pnpm_lock,
    split_package_key,
    strip_peer_suffix,
)
from depwatch.engines.dependency_scanner.parsers.uv_lock import parse_uv_lock
from depwatch.engines.dependency_scanner.parsers.yarn_lock import (
    parse_yarn_lock,
    split_descriptor,
)

PNPM_V9 = """\
lockfileVersion: '9.0'

importers:

  .:
    dependencies:
      express:
        specifier: ^4.21.2
        version: 4.21.2
    devDependencies:
      typescript:
        specifier: ~5.7.0
        version: 5.7.2

  packages/web:
    dependencies:
      express:
        specifier: ^4.17.0
        version: 4.17.3
      shared:
        specifier: workspace:*
        version: link:../shared

packages:

  '@babel/core@7.26.0':
    resolution: {integrity: sha512-a}

  body-parser@1.20.3:
    resolution: {integrity: sha512-b}

  express@4.21.2:
    resolution: {integrity: sha512-c}

  typescript@5.7.2:
    resolution: {integrity: sha512-d}

snapshots:

  '@babel/core@7.26.0(supports-color@8.1.1)':
    dependencies:
      debug: 4.3.7(supports-color@8.1.1)

  body-parser@1.20.3: {}

  express@4.21.2:
    dependencies:
      body-parser: 1.20.3

  typescript@5.7.2: {}
"""

PNPM_V6 = """\
lockfileVersion: '6.0'

dependencies:
  react:
    specifier: ^18.2.0
    version: 18.2.0

packages:

  /loose-envify@1.4.0:
    resolution: {integrity: sha512-a}

  /react@18.2.0:
    resolution: {integrity: sha512-b}
    dependencies:
      loose-envify: 1.4.0
"""

PNPM_V5 = """\
lockfileVersion: 5.4

specifiers:
  react-dom: ^18.2.0

dependencies:
  react-dom: 18.2.0_react@18.2.0

packages:

  /react-dom/18.2.0_react@18.2.0:
    dependencies:
      scheduler: 0.23.0

  /scheduler/0.23.0:
    resolution: {integrity: sha512-c}
"""

YARN_CLASSIC = """\
# THIS IS AN AUTOGENERATED FILE. DO NOT EDIT THIS FILE DIRECTLY.
# yarn lockfile v1


"@babel/code-frame@^7.0.0", "@babel/code-frame@^7.22.13":
  version "7.22.13"
  resolved "https://registry.yarnpkg.com/@babel/code-frame/-/code-frame-7.22.13.tgz"
  dependencies:
    "@babel/highlight" "^7.22.13"
    chalk "^2.4.2"

"@babel/highlight@^7.22.13":
  version "7.22.20"

chalk@^2.4.2:
  version "2.4.2"
"""

YARN_BERRY = """\
# This file is generated by running "yarn install" inside your project.

__metadata:
  version: 8
  cacheKey: 10c0

"app@workspace:.":
  version: 0.0.0-use.local
  resolution: "app@workspace:."
  dependencies:
    lodash: "npm:^4.17.21"
  languageName: unknown
  linkType: soft

"lodash@npm:^4.17.21":
  version: 4.17.21
  resolution: "lodash@npm:4.17.21"
  languageName: node
  linkType: hard
"""

NPM_LOCK = {
    "name": "app",
    "lockfileVersion": 3,
    "packages": {
        "": {
            "name": "app",
            "dependencies": {"express": "^4.21.2"},
            "devDependencies": {"jest": "^29.0.0"},
        },
        "packages/lib": {"name": "lib", "version": "1.0.0", "dependencies": {"ms": "^2.0.0"}},
        "node_modules/lib": {"resolved": "packages/lib", "link": True},
        "node_modules/express": {"version": "4.21.2", "dependencies": {"debug": "2.6.9"}},
        "node_modules/debug": {"version": "4.3.7"},
        "node_modules/express/node_modules/debug": {
            "version": "2.6.9",
            "dependencies": {"ms": "2.0.0"},
        },
        "node_modules/ms": {"version": "2.0.0"},
        "node_modules/jest": {"version": "29.7.0", "dev": True},
    },
}

GEMFILE_LOCK = """\
GIT
  remote: https://github.com/rails/rails.git
  revision: 0123456789abcdef
  specs:
    rails (8.0.1)
      actionpack (= 8.0.1)

GEM
  remote: https://rubygems.org/
  specs:
    actionpack (8.0.1)
      rack (>= 2.2.4)
    nokogiri (1.18.3-arm64-darwin)
      racc (~> 1.4)
    nokogiri (1.18.3-x86_64-linux)
      racc (~> 1.4)
    racc (1.8.1)
    rack (3.1.8)

PLATFORMS
  arm64-darwin
  x86_64-linux

DEPENDENCIES
  nokogiri
  rails!

BUNDLED WITH
   2.5.22
"""

UV_LOCK = """\
version = 1
requires-python = ">=3.12"

[[package]]
name = "fastapi"
version = "0.119.0"
source = { registry = "https://pypi.org/simple" }
dependencies = [
    { name = "starlette" },
]

[[package]]
name = "pytest"
version = "8.3.3"
source = { registry = "https://pypi.org/simple" }

[[package]]
name = "starlette"
version = "0.48.0"
source = { registry = "https://pypi.org/simple" }

[[package]]
name = "svc"
version = "0.1.0"
source = { virtual = "." }
dependencies = [
    { name = "fastapi" },
]

[package.dev-dependencies]
dev = [
    { name = "pytest" },
]

[package.metadata]
requires-dist = [{ name = "fastapi", specifier = ">=0.119.0" }]

[package.metadata.requires-dev]
dev = [{ name = "pytest", specifier = ">=8" }]
"""

DENO_LOCK_V4 = {
    "version": "4",
    "specifiers": {
        "jsr:@std/assert@^1.0.8": "1.0.8",
        "jsr:@std/internal@^1.0.5": "1.0.5",
        "npm:chalk@^5.3.0": "5.3.0",
    },
    "jsr": {
        "@std/assert@1.0.8": {"integrity": "a", "dependencies": ["jsr:@std/internal@^1.0.5"]},
        "@std/internal@1.0.5": {"integrity": "b"},
    },
    "npm": {"chalk@5.3.0": {"integrity": "c"}},
    "workspace": {"dependencies": ["jsr:@std/assert@^1.0.8", "npm:chalk@^5.3.0"]},
}

DENO_LOCK_V3 = {
    "version": "3",
    "packages": {
        "specifiers": {
            "jsr:@std/path@^1.0.0": "jsr:@std/path@1.0.8",
            "npm:ansi-styles@^6": "npm:ansi-styles@6.2.1",
        },
        "jsr": {"@std/path@1.0.8": {"integrity": "a"}},
        "npm": {"ansi-styles@6.2.1": {"integrity": "b", "dependencies": {}}},
    },
    "remote": {},
    "workspace": {"dependencies": ["jsr:@std/path@^1.0.0", "npm:ansi-styles@^6"]},
}


# ── pnpm-lock.yaml ───────────────────────────────────────────────────────


class TestPnpmLock:
    def test_split_package_key(self):
        assert split_package_key("express@4.21.2") == ("express", "4.21.2")
        assert split_package_key("/react@18.2.0") == ("react", "18.2.0")
        assert split_package_key("/@types/node/20.1.0") == ("@types/node", "20.1.0")
        assert split_package_key("/@babel/core@7.26.0(supports-color@8.1.1)") == (
            "@babel/core",
            "7.26.0",
        )
        assert split_package_key("/react-dom/18.2.0_react@18.2.0") == ("react-dom", "18.2.0")
        assert split_package_key("nonsense") is None

    def test_strip_peer_suffix(self):
        assert strip_peer_suffix("1.2.3(react@18.2.0)") == "1.2.3"
        assert strip_peer_suffix("1.2.3(a@1)(b@2(c@3))") == "1.2.3"
        assert strip_peer_suffix("1.2.3") == "1.2.3"

    def test_v9_importers_and_snapshots(self):
        lock = parse_pnpm_lock(PNPM_V9)
        assert lock.importers["."] == {"express": "4.21.2", "typescript": "5.7.2"}
        assert lock.importers["packages/web"] == {"express": "4.17.3"}

        express = lock.find("express", "4.21.2")
        assert express is not None
        assert express.dependencies == [
            LockEdge(name="body-parser", specifier="1.20.3", version="1.20.3")
        ]
        babel = lock.find("@babel/core")
        assert babel is not None
        assert babel.version == "7.26.0"
        assert [(e.name, e.version) for e in babel.dependencies] == [("debug", "4.3.7")]

    def test_v6_root_importer(self):
        lock = parse_pnpm_lock(PNPM_V6)
        assert lock.importers == {".": {"react": "18.2.0"}}
        react = lock.find("react")
        assert [(e.name, e.version) for e in react.dependencies] == [("loose-envify", "1.4.0")]

    def test_v5_peer_suffixes(self):
        lock = parse_pnpm_lock(PNPM_V5)
        assert lock.importers["."] == {"react-dom": "18.2.0"}
        react_dom = lock.find("react-dom", "18.2.0")
        assert react_dom is not None
        assert [(e.name, e.version) for e in react_dom.dependencies] == [("scheduler", "0.23.0")]

    def test_parents_of(self):
        lock = parse_pnpm_lock(PNPM_V9)
        assert [p.name for p in lock.parents_of("body-parser", "1.20.3")] == ["express"]
        assert lock.parents_of("express", "4.21.2") == []

    def test_invalid_yaml(self):
        assert parse_pnpm_lock("key: [unclosed").packages == []
        assert parse_pnpm_lock("just a string").packages == []


# ── yarn.lock ────────────────────────────────────────────────────────────


class TestYarnLock:
    def test_split_descriptor(self):
        assert split_descriptor('"@babel/core@^7.0.0"') == ("@babel/core", "^7.0.0")
        assert split_descriptor("lodash@npm:^4.17.21") == ("lodash", "npm:^4.17.21")
        assert split_descriptor("nodescriptor") is None

    def test_classic(self):
        lock = parse_yarn_lock(YARN_CLASSIC)
        frame = lock.find("@babel/code-frame")
        assert frame.version == "7.22.13"
        assert [(e.name, e.specifier, e.version) for e in frame.dependencies] == [
            ("@babel/highlight", "^7.22.13", "7.22.20"),
            ("chalk", "^2.4.2", "2.4.2"),
        ]
        assert lock.descriptors["@babel/code-frame@^7.0.0"] == "7.22.13"
        assert lock.descriptors["@babel/code-frame@^7.22.13"] == "7.22.13"
        assert lock.root_name is None

    def test_berry_workspace_root(self):
        lock = parse_yarn_lock(YARN_BERRY)
        assert lock.root_name == "app"
        assert [(e.name, e.version) for e in lock.root_edges] == [("lodash", "4.17.21")]
        assert lock.descriptors["lodash@^4.17.21"] == "4.17.21"
        assert lock.find("lodash").version == "4.17.21"

    def test_empty(self):
        assert parse_yarn_lock("").packages == []


# ── package-lock.json ────────────────────────────────────────────────────


class TestNpmLock:
    def test_root_and_importers(self):
        lock = parse_npm_lock(json.dumps(NPM_LOCK))
        assert lock.root_name == "app"
        assert lock.importers["."] == {"express": "4.21.2", "jest": "29.7.0"}
        assert lock.importers["packages/lib"] == {"ms": "2.0.0"}
        assert [(e.name, e.version) for e in lock.root_edges] == [("express", "4.21.2")]
        assert [(e.name, e.version) for e in lock.root_dev_edges] == [("jest", "29.7.0")]

    def test_nested_resolution(self):
        lock = parse_npm_lock(json.dumps(NPM_LOCK))
        express = lock.find("express")
        assert [(e.name, e.version) for e in express.dependencies] == [("debug", "2.6.9")]
        nested_debug = lock.find("debug", "2.6.9")
        assert [(e.name, e.version) for e in nested_debug.dependencies] == [("ms", "2.0.0")]
        assert lock.find("debug", "4.3.7") is not None

    def test_links_are_not_packages(self):
        lock = parse_npm_lock(json.dumps(NPM_LOCK))
        assert lock.find("lib") is None

    def test_invalid(self):
        assert parse_npm_lock("{").packages == []
        assert parse_npm_lock("[]").packages == []


# ── Gemfile.lock ─────────────────────────────────────────────────────────


class TestGemfileLock:
    def test_strip_platform(self):
        assert strip_platform("1.18.3-arm64-darwin") == "1.18.3"
        assert strip_platform("3.1.8") == "3.1.8"

    def test_specs(self):
        lock = parse_gemfile_lock(GEMFILE_LOCK)
        assert [(p.name, p.version) for p in lock.packages] == [
            ("rails", "8.0.1"),
            ("actionpack", "8.0.1"),
            ("nokogiri", "1.18.3"),
            ("racc", "1.8.1"),
            ("rack", "3.1.8"),
        ]
        rails = lock.find("rails")
        assert rails.dependencies == [LockEdge(name="actionpack", specifier="= 8.0.1")]

    def test_platform_variants_coalesce(self):
        lock = parse_gemfile_lock(GEMFILE_LOCK)
        nokogiri = [p for p in lock.packages if p.name == "nokogiri"]
        assert len(nokogiri) == 1
        assert nokogiri[0].dependencies == [LockEdge(name="racc", specifier="~> 1.4")]

    def test_dependencies_section(self):
        lock = parse_gemfile_lock(GEMFILE_LOCK)
        assert [(e.name, e.specifier) for e in lock.root_edges] == [
            ("nokogiri", "*"),
            ("rails", "*"),
        ]


# ── uv.lock ──────────────────────────────────────────────────────────────


class TestUvLock:
    def test_packages_and_root(self):
        lock = parse_uv_lock(UV_LOCK)
        assert lock.root_name == "svc"
        assert {p.name for p in lock.packages} == {"fastapi", "pytest", "starlette", "svc"}
        fastapi = lock.find("fastapi")
        assert [e.name for e in fastapi.dependencies] == ["starlette"]

    def test_root_edges_carry_specifiers(self):
        lock = parse_uv_lock(UV_LOCK)
        assert [(e.name, e.specifier) for e in lock.root_edges] == [("fastapi", ">=0.119.0")]
        assert [(e.name, e.specifier) for e in lock.root_dev_edges] == [("pytest", ">=8")]

    def test_editable_root(self):
        content = '[[package]]\nname = "lib"\nversion = "1.0.0"\nsource = { editable = "." }\n'
        assert parse_uv_lock(content).root_name == "lib"

    def test_invalid(self):
        assert parse_uv_lock("not toml at all [").packages == []

    def test_malformed_integer_keeps_earlier_packages(self):
        content = (
            '[[package]]\nname = "attrs"\nversion = "24.2.0"\n\n'
            "[[package]]\nrevision = 0b_\n"
        )
        lock = parse_uv_lock(content)
        assert [p.name for p in lock.packages] == ["attrs"]


# ── deno.lock ────────────────────────────────────────────────────────────


class TestDenoLock:
    def test_v4(self):
        lock = parse_deno_lock(json.dumps(DENO_LOCK_V4))
        assert {(p.ecosystem, p.name, p.version) for p in lock.packages} == {
            ("jsr", "@std/assert", "1.0.8"),
            ("jsr", "@std/internal", "1.0.5"),
            ("npm", "chalk", "5.3.0"),
        }
        assert_pkg = lock.find("@std/assert", ecosystem="jsr")
        assert assert_pkg.dependencies == [
            LockEdge(name="@std/internal", specifier="^1.0.5", version="1.0.5", ecosystem="jsr")
        ]
        assert lock.descriptors["@std/assert@^1.0.8"] == "1.0.8"
        assert lock.descriptors["chalk@^5.3.0"] == "5.3.0"
        assert [(e.ecosystem, e.name, e.specifier) for e in lock.root_edges] == [
            ("jsr", "@std/assert", "^1.0.8"),
            ("npm", "chalk", "^5.3.0"),
        ]

    def test_v3(self):
        lock = parse_deno_lock(json.dumps(DENO_LOCK_V3))
        assert lock.descriptors["@std/path@^1.0.0"] == "1.0.8"
        assert lock.descriptors["ansi-styles@^6"] == "6.2.1"
        assert lock.find("ansi-styles", ecosystem="npm").version == "6.2.1"

    def test_invalid(self):
        assert parse_deno_lock("{").packages == []

    @pytest.mark.parametrize(
        ("workspace", "expected"),
        [
            ({"dependencies": 5}, []),
            ({"dependencies": "jsr:@std/assert@^1.0.8"}, []),
            ({"packageJson": {"dependencies": {"chalk": "^5"}}}, []),
            ({"dependencies": [7, None, "jsr:@std/assert@^1.0.8"]}, ["@std/assert"]),
        ],
    )
    def test_malformed_workspace(self, workspace, expected):
        lock = parse_deno_lock(json.dumps({"version": "4", "workspace": workspace}))
        assert [e.name for e in lock.root_edges] == expected
