"""Orchestration of extraction, disambiguation and geocoding."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping

from .disambiguation import DisambiguationStrategy, OrganizationResolver, PersonResolver
from .focus import FocusLocation, FrequencyOfMentionFocus
from .gazetteer import GazetteerRecord
from .models import (
    ExtractedEntities,
    GenericOccurrence,
    OrganizationOccurrence,
    PersonOccurrence,
    ResolvedLocation,
    ResolvedOrganization,
    ResolvedPerson,
    Sentiment,
)
from .registry import ExtractorRegistry
from .resolver import MAX_HIT_DEPTH, LocationResolver
from .tokens import SentenceInput, parse_tagged_sentences

PARSER_VERSION = "1.0.0"
STATUS_OK = "ok"
STATUS_ERROR = "error"


@dataclass(frozen=True, slots=True)
class DocumentFocus:
    countries: tuple[FocusLocation, ...] = ()
    cities: tuple[FocusLocation, ...] = ()


@dataclass(slots=True)
class ParseResult:
    """Everything learned about one document."""

    entities: ExtractedEntities
    people: list[ResolvedPerson] = field(default_factory=list)
    organizations: list[ResolvedOrganization] = field(default_factory=list)
    locations: list[ResolvedLocation] = field(default_factory=list)
    focus: DocumentFocus = field(default_factory=DocumentFocus)

    def to_payload(self) -> dict[str, Any]:
        """JSON-ready representation used by the HTTP API and the CLI."""

        results = {
            "people": [_entity_payload(person) for person in self.people],
            "organizations": [_entity_payload(org) for org in self.organizations],
            "places": {
                "mentions": [location_payload(location) for location in self.locations],
                "focus": {
                    "countries": [_focus_payload(item) for item in self.focus.countries],
                    "cities": [_focus_payload(item) for item in self.focus.cities],
                },
            },
            "concepts": [generic_payload(occurrence) for occurrence in self.entities.generic],
        }
        return response_payload(results)


def response_payload(results: Any) -> dict[str, Any]:
    return {"status": STATUS_OK, "version": PARSER_VERSION, "results": results}


def error_payload(message: str) -> dict[str, Any]:
    return {"status": STATUS_ERROR, "version": PARSER_VERSION, "details": message}


def record_payload(record: GazetteerRecord) -> dict[str, Any]:
    return {
        "id": record.id,
        "name": record.name,
        "lat": record.latitude,
        "lon": record.longitude,
        "population": record.population,
        "feature_class": record.feature_class or "",
        "feature_code": record.feature_code or "",
        "country_code": record.country_code or "",
        "state_code": record.admin1_code or "",
    }


def location_payload(location: ResolvedLocation) -> dict[str, Any]:
    source: dict[str, Any] = {
        "string": location.occurrence.text,
        "char_index": location.occurrence.position,
        "sentiment": sentiment_payload(location.occurrence.sentiment),
    }
    if location.occurrence.sentence_id is not None:
        source["sentence_id"] = location.occurrence.sentence_id
    return {
        "id": location.gazetteer_id,
        "name": location.name,
        "lat": location.latitude,
        "lon": location.longitude,
        "population": location.population,
        "feature_class": location.feature_class or "",
        "country_code": location.country_code or "",
        "state_code": location.admin1_code or "",
        "rank": location.rank,
        "score": location.score,
        "source": source,
    }


def sentiment_payload(sentiment: Sentiment | None) -> dict[str, Any] | None:
    if sentiment is None:
        return None
    return {"class": sentiment.sentiment_class.value, "score": sentiment.score}


def occurrence_payload(
    occurrence: PersonOccurrence | OrganizationOccurrence | GenericOccurrence,
) -> dict[str, Any]:
    return {
        "text": occurrence.text,
        "position": occurrence.position,
        "sentiment": sentiment_payload(occurrence.sentiment),
    }


def generic_payload(occurrence: GenericOccurrence) -> dict[str, Any]:
    payload = occurrence_payload(occurrence)
    payload["type"] = occurrence.concept_type
    payload["score"] = occurrence.score
    return payload


def _entity_payload(entity: ResolvedPerson | ResolvedOrganization) -> dict[str, Any]:
    return {
        "name": entity.name(),
        "count": entity.occurrence_count,
        "occurrences": [occurrence_payload(item) for item in entity.occurrences],
    }


def _focus_payload(location: FocusLocation) -> dict[str, Any]:
    return {"id": location.key, "name": location.name, "score": location.score}


class EntityParser:
    """Run the extractors, then disambiguate and geocode their output."""

    def __init__(
        self,
        registry: ExtractorRegistry,
        resolver: LocationResolver,
        *,
        fuzzy: bool = False,
        max_hit_depth: int = MAX_HIT_DEPTH,
        person_strategy: DisambiguationStrategy | None = None,
        organization_strategy: DisambiguationStrategy | None = None,
        focus: FrequencyOfMentionFocus | None = None,
    ) -> None:
        self._registry = registry
        self._resolver = resolver
        self._fuzzy = fuzzy
        self._max_hit_depth = max_hit_depth
        self._people = PersonResolver(person_strategy)
        self._organizations = OrganizationResolver(organization_strategy)
        self._focus = focus if focus is not None else FrequencyOfMentionFocus(resolver.gazetteer)
        self._log = logging.getLogger("entityfold.parser")

    @property
    def registry(self) -> ExtractorRegistry:
        return self._registry

    @property
    def resolver(self) -> LocationResolver:
        return self._resolver

    def extract_and_resolve(
        self, language: str, text: str, replace_demonyms: bool = False
    ) -> ParseResult:
        entities = self._registry.extract(language, text, replace_demonyms)
        return self.resolve(entities)

    def extract_and_resolve_from_sentences(
        self, language: str, sentences: SentenceInput, replace_demonyms: bool = False
    ) -> ParseResult:
        """Validate the tagged sentences, then run them through the extractors.

        Malformed input raises ``ValueError`` before any backend is called.
        """

        if isinstance(sentences, (Mapping, str, bytes)):
            sentences = parse_tagged_sentences(sentences)
        entities = self._registry.extract_from_sentences(language, sentences, replace_demonyms)
        return self.resolve(entities)

    def resolve(self, entities: ExtractedEntities) -> ParseResult:
        """Disambiguate people and organizations and geocode the locations."""

        locations = self._resolver.resolve(
            entities.locations, self._max_hit_depth, -1, self._fuzzy
        )
        self._log.debug("Resolved %d of %d locations", len(locations), len(entities.locations))
        people = self._people.resolve(entities.persons)
        organizations = self._organizations.resolve(entities.organizations)
        focus = DocumentFocus(
            countries=tuple(self._focus.select_countries(locations)),
            cities=tuple(self._focus.select_cities(locations)),
        )
        return ParseResult(
            entities=entities,
            people=people,
            organizations=organizations,
            locations=locations,
            focus=focus,
        )


__all__ = [
    "DocumentFocus",
    "EntityParser",
    "PARSER_VERSION",
    "ParseResult",
    "error_payload",
    "generic_payload",
    "location_payload",
    "occurrence_payload",
    "record_payload",
    "response_payload",
    "sentiment_payload",
]
