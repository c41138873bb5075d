"""RubyGems version grammar (``~>``, comparisons, comma-joined constraints)."""

from __future__ import annotations

import re

from depwatch.engines.versioning.base import VersionGrammar, VersionParts

_SEGMENT_SPLIT_RE = re.compile(r"[.\-]")
_OPERATORS = ("~>", ">=", "<=", "!=", ">", "<", "=")


class RubyGemsGrammar(VersionGrammar):
    """Gem versions are dot-separated; any segment with a letter marks a prerelease."""

    name = "rubygems"

    def parse(self, version: str) -> VersionParts | None:
        text = version.strip()
        if not text or not text[0].isdigit():
            return None
        segments = _SEGMENT_SPLIT_RE.split(text)
        release: list[int] = []
        rest: list[str] = []
        for segment in segments:
            if not rest and segment.isdigit():
                release.append(int(segment))
            elif segment:
                rest.append(segment)
        if not release:
            return None
        padded = release + [0] * (3 - len(release))
        return VersionParts(
            major=padded[0],
            minor=padded[1],
            patch=padded[2],
            prerelease=".".join(rest),
            release=tuple(release),
        )

    def satisfies(self, version: str, specifier: str) -> bool:
        v = self.parse(version)
        if v is None or v.prerelease:
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

        base = self.parse(operand)
        if base is None:
            return False

        if op == "~>":
            components = len(operand.split("."))
            if components >= 3:
                return v.major == base.major and v.minor == base.minor and v.patch >= base.patch
            if components == 2:
                return v.major == base.major and v.minor >= base.minor
            return v.major == base.major

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
        # `=` or bare
        return (v.major, v.minor, v.patch) == (base.major, base.minor, base.patch)
