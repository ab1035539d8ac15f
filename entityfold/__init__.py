"""entityfold - aggregation and disambiguation of extracted entities."""
from .errors import BackendFailure, ConfigurationError, EntityfoldError, ResourceUnavailable
from .extraction import EntityParser, ExtractorRegistry, LocationResolver, ParseResult

__version__ = "1.0.0"

__all__ = [
    "BackendFailure",
    "ConfigurationError",
    "EntityParser",
    "EntityfoldError",
    "ExtractorRegistry",
    "LocationResolver",
    "ParseResult",
    "ResourceUnavailable",
    "__version__",
]
