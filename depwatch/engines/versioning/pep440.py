"""PEP 440 subset grammar used for PyPI.

Handles ``~=``, ``==`` (with ``.*`` wildcards), ``===``, ``!=``, ``>=``,
``>``, ``<=``, ``<`` and comma-joined clauses. A version containing any letter
(``1.0a1``, ``2.0.dev3``, ``1.0.post1``) is treated as a prerelease.
"""

from __future__ import annotations

import re

from depwatch.engines.versioning.base import VersionGrammar, VersionParts

_PEP440_RE = re.compile(r"^v?(\d+(?:\.\d+)*)(.*)$")
_OPERATORS = ("~=", "===", "==", "!=", ">=", "<=", ">", "<")
_HAS_LETTER_RE = re.compile(r"[A-Za-z]")


class Pep440Grammar(VersionGrammar):
    name = "pep440"

    def parse(self, version: str) -> VersionParts | None:
        match = _PEP440_RE.match(version.strip())
        if not match:
            return None
        release = tuple(int(s) for s in match.group(1).split("."))
        padded = release + (0,) * (3 - len(release))
        return VersionParts(
            major=padded[0],
            minor=padded[1],
            patch=padded[2],
            prerelease=match.group(2).lstrip(".-_"),
            release=release,
        )

    def is_prerelease(self, version: str) -> bool:
        return bool(_HAS_LETTER_RE.search(version))

    def satisfies(self, version: str, specifier: str) -> bool:
        v = self.parse(version)
        if v is None or self.is_prerelease(version):
            return False
        clauses = [c.strip() for c in specifier.split(",") if c.strip()]
        if not clauses:
            return True
        return all(self._check(version, v, clause) for clause in clauses)

    def _check(self, version: str, v: VersionParts, clause: str) -> bool:
        if clause == "*":
            return True
        for op in _OPERATORS:
            if clause.startswith(op):
                operand = clause[len(op) :].strip()
                break
        else:
            op, operand = "", clause

        if op == "===":
            return version.strip() == operand

        if op in ("==", "!=") and operand.endswith(".*"):
            prefix = operand[:-2]
            matched = version == prefix or version.startswith(prefix + ".")
            return matched if op == "==" else not matched

        base = self.parse(operand)
        if base is None:
            return False

        if op == "~=":
            if len(operand.split(".")) >= 3:
                return v.major == base.major and v.minor == base.minor and v.patch >= base.patch
            return v.major == base.major and v.minor >= base.minor

        cmp = self.compare(version, operand)
        if op == ">=":
            return cmp >= 0
        if op == ">":
            return cmp > 0
        if op == "<=":
            return cmp <= 0
        if op == "<":
            return cmp < 0
        if op == "!=":
            return cmp != 0
        # `==` or bare
        return cmp == 0
