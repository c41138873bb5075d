"""Package-manager handlers — auto-registered on import.

Registration order is detection order: lockfile-specific node handlers
first, then deno, bundler and uv.
"""

from depwatch.engines.dependency_scanner.parsers import (
    pnpm_lock,  # noqa: F401
    yarn_lock,  # noqa: F401
    npm_lock,  # noqa: F401
    deno,  # noqa: F401
    gemfile_lock,  # noqa: F401
    uv_lock,  # noqa: F401
)
