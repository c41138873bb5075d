"""Semantic-versioning grammar used by the npm and JSR ecosystems.

Supported range syntax: ``^x.y.z``, ``~x.y.z``, ``>=``, ``>``, ``<=``, ``<``,
``=``, bare exact versions, partial/x-ranges (``1``, ``1.2.x``), hyphen ranges
(``1.2.3 - 2.0.0``), space-separated comparator sets (AND) and ``||``
alternatives (OR). ``*``, ``x``, ``latest`` and the empty string match every
release. Protocol prefixes such as ``npm:`` and ``jsr:`` are ignored.
"""

from __future__ import annotations

import re

from depwatch.engines.versioning.base import VersionGrammar, VersionParts

_SEMVER_RE = re.compile(
    r"^v?(\d+)\.(\d+)\.(\d+)"
    r"(?:-([0-9A-Za-z.\-]+))?"  # prerelease
    r"(?:\+[0-9A-Za-z.\-]+)?$"  # build metadata
)

_OPERATOR_SPACE_RE = re.compile(r"(<=|>=|<|>|=|\^|~)\s+")
_HYPHEN_RANGE_RE = re.compile(r"^\s*(\S+)\s+-\s+(\S+)\s*$")
_WILDCARDS = {"", "*", "x", "X", "latest"}
_PROTOCOL_PREFIXES = ("npm:", "jsr:", "workspace:")


def _strip_protocol(specifier: str) -> str:
    spec = specifier.strip()
    for prefix in _PROTOCOL_PREFIXES:
        if spec.startswith(prefix):
            spec = spec[len(prefix) :]
            # npm:alias@range keeps only the range
            if "@" in spec[1:]:
                spec = spec[spec.rindex("@") + 1 :]
            break
    return spec


def _partial(text: str) -> tuple[list[int], str] | None:
    """Split ``1.2``, ``1.x``, ``1.2.3-rc.1`` into numeric parts and a prerelease."""
    text = text.strip().lstrip("=").lstrip("v")
    text = text.split("+", 1)[0]
    prerelease = ""
    if "-" in text:
        text, prerelease = text.split("-", 1)
    numbers: list[int] = []
    for segment in text.split("."):
        if segment.isdigit():
            numbers.append(int(segment))
            continue
        if segment in ("x", "X", "*"):
            break
        return None
    if not numbers or len(numbers) > 3:
        return None
    return numbers, prerelease


class SemverGrammar(VersionGrammar):
    name = "semver"

    def parse(self, version: str) -> VersionParts | None:
        match = _SEMVER_RE.match(version.strip())
        if not match:
            return None
        major, minor, patch = (int(match.group(i)) for i in (1, 2, 3))
        return VersionParts(
            major=major,
            minor=minor,
            patch=patch,
            prerelease=match.group(4) or "",
            release=(major, minor, patch),
        )

    def satisfies(self, version: str, specifier: str) -> bool:
        v = self.parse(version)
        if v is None or v.prerelease:
            return False

        spec = _strip_protocol(specifier)
        if spec in _WILDCARDS:
            return True

        for alternative in spec.split("||"):
            comparators = self._comparators(alternative)
            if comparators is None:
                continue
            if all(self._check(v, c) for c in comparators):
                return True
        return False

    # ── internal ───────────────────────────────────────────────────────────

    @staticmethod
    def _comparators(alternative: str) -> list[str] | None:
        alternative = alternative.strip()
        if alternative in _WILDCARDS:
            return []
        hyphen = _HYPHEN_RANGE_RE.match(alternative)
        if hyphen:
            return [f">={hyphen.group(1)}", f"<={hyphen.group(2)}"]
        normalized = _OPERATOR_SPACE_RE.sub(r"\1", alternative)
        parts = normalized.split()
        return parts or None

    def _check(self, v: VersionParts, comparator: str) -> bool:
        for op in (">=", "<=", ">", "<", "^", "~", "="):
            if comparator.startswith(op):
                operand = comparator[len(op) :]
                break
        else:
            op, operand = "", comparator

        # `~>` is accepted as a tilde range
        if op == "~" and operand.startswith(">"):
            operand = operand[1:]

        partial = _partial(operand)
        if partial is None:
            return False
        numbers, prerelease = partial
        base = self._padded(numbers, prerelease)
        cmp = self._compare_parts(v, base)

        if op == "^":
            if base.major != 0 or len(numbers) == 1:
                return v.major == base.major and cmp >= 0
            return v.major == 0 and v.minor == base.minor and cmp >= 0
        if op == "~":
            if len(numbers) == 1:
                return v.major == base.major
            return v.major == base.major and v.minor == base.minor and v.patch >= base.patch
        if op == ">=":
            return cmp >= 0
        if op == ">":
            return cmp > 0
        if op == "<=":
            return cmp <= 0
        if op == "<":
            return cmp < 0

        # bare or `=`: exact for full versions, prefix match for partial ones
        if len(numbers) < 3:
            return list(v.release[: len(numbers)]) == numbers
        return (v.major, v.minor, v.patch) == (base.major, base.minor, base.patch)

    @staticmethod
    def _padded(numbers: list[int], prerelease: str) -> VersionParts:
        padded = numbers + [0] * (3 - len(numbers))
        return VersionParts(
            major=padded[0],
            minor=padded[1],
            patch=padded[2],
            prerelease=prerelease,
            release=tuple(padded),
        )

    def _compare_parts(self, a: VersionParts, b: VersionParts) -> int:
        left = f"{a.major}.{a.minor}.{a.patch}" + (f"-{a.prerelease}" if a.prerelease else "")
        right = f"{b.major}.{b.minor}.{b.patch}" + (f"-{b.prerelease}" if b.prerelease else "")
        return self.compare(left, right)
