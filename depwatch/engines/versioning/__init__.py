"""Version grammars — one variant per registry ecosystem."""

from depwatch.core.exceptions import UnsupportedEcosystemError
from depwatch.engines.versioning.base import (
    VersionGrammar,
    VersionParts,
    find_wanted,
    pick_latest,
)
from depwatch.engines.versioning.pep440 import Pep440Grammar
from depwatch.engines.versioning.rubygems import RubyGemsGrammar
from depwatch.engines.versioning.semver import SemverGrammar

GRAMMARS: dict[str, VersionGrammar] = {
    "npm": SemverGrammar(),
    "jsr": SemverGrammar(),
    "rubygems": RubyGemsGrammar(),
    "pypi": Pep440Grammar(),
}


def get_grammar(ecosystem: str) -> VersionGrammar:
    """Return the grammar for a registry-backed ecosystem."""
    try:
        return GRAMMARS[ecosystem]
    except KeyError:
        raise UnsupportedEcosystemError(ecosystem) from None


__all__ = [
    "GRAMMARS",
    "Pep440Grammar",
    "RubyGemsGrammar",
    "SemverGrammar",
    "VersionGrammar",
    "VersionParts",
    "find_wanted",
    "get_grammar",
    "pick_latest",
]
