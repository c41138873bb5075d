"""Custom exceptions for depwatch.

Parser and registry failures never surface as exceptions; these are kept for
conditions that indicate a programming error or an unsupported request.
"""


class DepwatchError(Exception):
    """Base exception for all depwatch errors."""


class DependencyGraphError(DepwatchError):
    """Raised when the dependency graph builder detects an invariant violation."""


class UnsupportedEcosystemError(DepwatchError):
    """Raised when an ecosystem tag is outside the supported set."""

    def __init__(self, ecosystem: str):
        self.ecosystem = ecosystem
        super().__init__(f"unsupported ecosystem: {ecosystem!r}")


class TomlDecodeError(DepwatchError):
    """Raised by the strict TOML-subset loader on malformed input."""

    def __init__(self, message: str, line: int):
        self.line = line
        super().__init__(f"{message} (line {line})")
