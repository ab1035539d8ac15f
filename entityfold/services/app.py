"""FastAPI application exposing the entity parser."""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Any

import uvicorn
from dotenv import load_dotenv
from fastapi import APIRouter, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from entityfold.extraction import (
    DemonymMap,
    EntityParser,
    ExtractorRegistry,
    LocationOccurrence,
    LocationResolver,
    get_demonym_map,
)
from entityfold.extraction.registry import DEFAULT_EXTRACTOR_FACTORY
from entityfold.extraction.resolver import MAX_HIT_DEPTH, STRATEGY_TOP, location_strategy
from entityfold.extraction.service import (
    error_payload,
    location_payload,
    record_payload,
    response_payload,
)
from entityfold.settings import (
    env_flag,
    env_int,
    env_json,
    env_list,
    get_api_bind_host,
    get_api_port,
    get_geoindex_path,
    get_log_level,
)

log = logging.getLogger("entityfold.api")


@dataclass
class ParserConfig:
    """Configuration required to bootstrap the entity parser."""

    extractor_factories: list[str] = field(default_factory=lambda: [DEFAULT_EXTRACTOR_FACTORY])
    extractor_settings: dict[str, Any] = field(default_factory=dict)
    extractor_workers: int = 1
    use_entry_points: bool = True
    geoindex_path: str | None = None
    fuzzy: bool = False
    max_hit_depth: int = MAX_HIT_DEPTH
    location_strategy: str = STRATEGY_TOP
    replace_demonyms: bool = False
    registry: ExtractorRegistry | None = None
    resolver: LocationResolver | None = None
    demonyms: DemonymMap | None = None

    @classmethod
    def from_env(cls) -> "ParserConfig":
        """Build a configuration instance from environment variables."""

        return cls(
            extractor_factories=env_list("ENTITYFOLD_EXTRACTORS") or [DEFAULT_EXTRACTOR_FACTORY],
            extractor_settings=env_json("ENTITYFOLD_EXTRACTOR_SETTINGS"),
            extractor_workers=env_int("ENTITYFOLD_EXTRACTOR_WORKERS", 1),
            geoindex_path=get_geoindex_path(),
            fuzzy=env_flag("ENTITYFOLD_FUZZY"),
            max_hit_depth=env_int("ENTITYFOLD_MAX_HIT_DEPTH", MAX_HIT_DEPTH),
            location_strategy=os.getenv("ENTITYFOLD_LOCATION_STRATEGY", STRATEGY_TOP),
            replace_demonyms=env_flag("ENTITYFOLD_REPLACE_DEMONYMS"),
        )


@dataclass
class ParserContainer:
    """Resolved dependencies for the parser service."""

    config: ParserConfig
    parser: EntityParser
    registry: ExtractorRegistry
    resolver: LocationResolver
    demonyms: DemonymMap


def build_parser_container(config: ParserConfig) -> ParserContainer:
    """Instantiate every dependency; startup errors propagate to the caller."""

    registry = config.registry
    if registry is None:
        registry = ExtractorRegistry(
            factory_paths=config.extractor_factories,
            use_entry_points=config.use_entry_points,
            max_workers=config.extractor_workers,
        )
    registry.initialize(config.extractor_settings)
    resolver = config.resolver
    if resolver is None:
        resolver = LocationResolver.from_directory(
            config.geoindex_path, strategy=location_strategy(config.location_strategy)
        )
    # an injected map may be empty (and falsy) on purpose
    demonyms = config.demonyms if config.demonyms is not None else get_demonym_map()
    parser = EntityParser(
        registry,
        resolver,
        fuzzy=config.fuzzy,
        max_hit_depth=config.max_hit_depth,
    )
    log.info(
        "Parser ready (extractors=%s, resolver_available=%s)",
        registry.names(),
        resolver.available,
    )
    return ParserContainer(
        config=config,
        parser=parser,
        registry=registry,
        resolver=resolver,
        demonyms=demonyms,
    )


class ExtractRequest(BaseModel):
    text: str
    language: str = "en"
    replace_demonyms: bool | None = None


class SentencesRequest(BaseModel):
    sentences: dict[str, Any]
    language: str = "en"
    replace_demonyms: bool | None = None


class LocationMention(BaseModel):
    text: str = Field(min_length=1, pattern=r"\S")
    position: int = Field(default=0, ge=0)
    sentence_id: str | None = None


class ResolveLocationsRequest(BaseModel):
    locations: list[LocationMention]
    max_hit_depth: int | None = Field(default=None, ge=1)
    max_results: int = -1
    fuzzy: bool | None = None


def include_routes(app: FastAPI, container: ParserContainer, *, prefix: str = "") -> None:
    """Register FastAPI routes exposing the parser capabilities."""

    router = APIRouter(prefix=prefix, tags=["Entities"])
    config = container.config

    def _replace(value: bool | None) -> bool:
        return config.replace_demonyms if value is None else value

    @router.get("/healthz")
    def healthcheck() -> dict[str, Any]:
        return {
            "status": "ok",
            "resolver_available": container.resolver.available,
            "demonyms_available": container.demonyms.available,
            "extractors": container.registry.names(),
        }

    @router.post("/extract")
    def extract(payload: ExtractRequest) -> dict[str, Any]:
        result = container.parser.extract_and_resolve(
            payload.language, payload.text, _replace(payload.replace_demonyms)
        )
        return result.to_payload()

    @router.post("/extract/sentences")
    def extract_sentences(payload: SentencesRequest) -> dict[str, Any]:
        try:
            result = container.parser.extract_and_resolve_from_sentences(
                payload.language, payload.sentences, _replace(payload.replace_demonyms)
            )
        except ValueError as exc:
            raise HTTPException(status_code=422, detail=error_payload(str(exc))) from exc
        return result.to_payload()

    @router.post("/resolve/locations")
    def resolve_locations(payload: ResolveLocationsRequest) -> dict[str, Any]:
        occurrences = [
            LocationOccurrence(item.text, item.position, sentence_id=item.sentence_id)
            for item in payload.locations
        ]
        resolved = container.resolver.resolve(
            occurrences,
            config.max_hit_depth if payload.max_hit_depth is None else payload.max_hit_depth,
            payload.max_results,
            config.fuzzy if payload.fuzzy is None else payload.fuzzy,
        )
        return response_payload(
            {
                "resolver_available": container.resolver.available,
                "places": [location_payload(location) for location in resolved],
            }
        )

    @router.get("/geonames/{record_id}")
    def get_geoname(record_id: str) -> dict[str, Any]:
        try:
            record = container.resolver.get_by_id(record_id)
        except KeyError as exc:
            raise HTTPException(
                status_code=404, detail=error_payload(f"Invalid gazetteer id {record_id}")
            ) from exc
        return response_payload(record_payload(record))

    app.include_router(router)


def create_app(config: ParserConfig | None = None) -> FastAPI:
    """Create a FastAPI application exposing the parser endpoints."""

    config = config if config is not None else ParserConfig.from_env()
    container = build_parser_container(config)

    app = FastAPI(
        title="entityfold API",
        version="1.0.0",
        description="Extraction, disambiguation and geocoding of named entities.",
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    include_routes(app, container)
    app.state.container = container
    return app


def run_api() -> None:
    """Run the parser API with uvicorn."""

    load_dotenv()
    uvicorn.run(
        "entityfold.services.app:create_app",
        host=get_api_bind_host(),
        port=get_api_port(),
        factory=True,
        log_level=get_log_level().lower(),
    )


__all__ = [
    "ExtractRequest",
    "ParserConfig",
    "ParserContainer",
    "ResolveLocationsRequest",
    "SentencesRequest",
    "build_parser_container",
    "create_app",
    "include_routes",
    "run_api",
]
