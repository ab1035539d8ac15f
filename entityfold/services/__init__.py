"""HTTP service wrapping the entity parser."""

from .app import (
    ParserConfig,
    ParserContainer,
    build_parser_container,
    create_app,
    include_routes,
    run_api,
)

__all__ = [
    "ParserConfig",
    "ParserContainer",
    "build_parser_container",
    "create_app",
    "include_routes",
    "run_api",
]
