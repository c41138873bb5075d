"""Version grammar interface and shared wanted/latest selection."""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from functools import cmp_to_key

_HAS_LETTER_RE = re.compile(r"[A-Za-z]")


@dataclass(frozen=True)
class VersionParts:
    """A parsed version: numeric release segments plus an optional prerelease tag."""

    major: int
    minor: int
    patch: int
    prerelease: str = ""
    release: tuple[int, ...] = field(default=())

    def release_tuple(self, width: int) -> tuple[int, ...]:
        """Release segments zero-padded to *width* (``1.2`` == ``1.2.0``)."""
        segments = self.release or (self.major, self.minor, self.patch)
        if len(segments) >= width:
            return segments
        return segments + (0,) * (width - len(segments))


def _compare_identifiers(a: str, b: str) -> int:
    """Order two prerelease tags; an empty tag (a release) ranks highest."""
    if a == b:
        return 0
    if not a:
        return 1
    if not b:
        return -1
    a_ids = re.split(r"[.\-]", a)
    b_ids = re.split(r"[.\-]", b)
    for x, y in zip(a_ids, b_ids):
        if x == y:
            continue
        x_num, y_num = x.isdigit(), y.isdigit()
        if x_num and y_num:
            return -1 if int(x) < int(y) else 1
        if x_num != y_num:
            # numeric identifiers have lower precedence than alphanumeric ones
            return -1 if x_num else 1
        return -1 if x < y else 1
    if len(a_ids) == len(b_ids):
        return 0
    return -1 if len(a_ids) < len(b_ids) else 1


class VersionGrammar(ABC):
    """One ecosystem's version syntax and range semantics.

    ``parse`` returns ``None`` for strings outside the grammar, ``compare``
    returns ``0`` whenever either side is unparseable, and ``satisfies`` is
    ``False`` for every prerelease.
    """

    name: str = ""

    @abstractmethod
    def parse(self, version: str) -> VersionParts | None:
        """Parse *version* into comparable parts."""
        ...

    @abstractmethod
    def satisfies(self, version: str, specifier: str) -> bool:
        """Whether *version* falls inside the range *specifier*."""
        ...

    def is_prerelease(self, version: str) -> bool:
        parts = self.parse(version)
        if parts is None:
            return bool(_HAS_LETTER_RE.search(version))
        return bool(parts.prerelease)

    def compare(self, a: str, b: str) -> int:
        """Return -1, 0 or 1 as *a* sorts before, equal to, or after *b*."""
        pa = self.parse(a)
        pb = self.parse(b)
        if pa is None or pb is None:
            return 0
        width = max(len(pa.release), len(pb.release), 3)
        ra = pa.release_tuple(width)
        rb = pb.release_tuple(width)
        if ra != rb:
            return -1 if ra < rb else 1
        return _compare_identifiers(pa.prerelease, pb.prerelease)

    def sort(self, versions: list[str]) -> list[str]:
        """Return *versions* in ascending order (stable for incomparable entries)."""
        return sorted(versions, key=cmp_to_key(self.compare))


def find_wanted(
    grammar: VersionGrammar,
    versions: list[str],
    specifier: str,
    current: str,
) -> str:
    """Highest non-prerelease version satisfying *specifier*, else *current*."""
    satisfying = [v for v in versions if grammar.satisfies(v, specifier)]
    if not satisfying:
        return current
    return grammar.sort(satisfying)[-1]


def pick_latest(grammar: VersionGrammar, versions: list[str], latest: str | None) -> str | None:
    """Registry-tagged latest, else the lexicographically last stable version."""
    if latest:
        return latest
    stable = [v for v in versions if not grammar.is_prerelease(v)]
    if not stable:
        return None
    return max(stable)
