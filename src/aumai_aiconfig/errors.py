"""Exception hierarchy for aumai-aiconfig.

Only configuration problems are raised to callers.  Malformed remote data is
tolerated by the resolver and never surfaces as one of these errors.
"""

from __future__ import annotations

__all__ = [
    "AIConfigError",
    "ConfigurationError",
    "ContextError",
    "FlagFileError",
]


class AIConfigError(Exception):
    """Base class for all aumai-aiconfig errors."""


class ConfigurationError(AIConfigError, ValueError):
    """A required collaborator or identity value is missing or invalid."""


class ContextError(AIConfigError, ValueError):
    """An evaluation context cannot be built or flattened."""


class FlagFileError(AIConfigError):
    """A flag definition file could not be read or parsed."""
