"""Error taxonomy shared by the extraction pipeline."""
from __future__ import annotations


class EntityfoldError(RuntimeError):
    """Base class for errors raised by the pipeline components."""


class ConfigurationError(EntityfoldError):
    """A required setting is missing or invalid.

    Raised during startup (plugin discovery, configuration parsing) and meant
    to reach the operator instead of being swallowed.
    """


class BackendFailure(EntityfoldError):
    """An individual extractor backend failed or returned malformed data."""

    def __init__(self, backend: str, message: str) -> None:
        super().__init__(f"{backend}: {message}")
        self.backend = backend


class ResourceUnavailable(EntityfoldError):
    """A bundled dataset or the gazetteer index could not be loaded."""


__all__ = [
    "BackendFailure",
    "ConfigurationError",
    "EntityfoldError",
    "ResourceUnavailable",
]
