"""Extraction backend backed by a remote named-entity tagging service."""
from __future__ import annotations

import logging
from typing import Any, Mapping, Sequence

import httpx

from entityfold.errors import BackendFailure, ConfigurationError

from .demonyms import DemonymMap, get_demonym_map
from .models import (
    ExtractedEntities,
    GenericOccurrence,
    LocationOccurrence,
    OrganizationOccurrence,
    PersonOccurrence,
    Sentiment,
)
from .tokens import SentenceInput, merge_tagged_tokens

CONFIG_URL = "http_ner.url"
CONFIG_SCORE = "http_ner.score"
CONFIG_LANGUAGES = "http_ner.languages"
CONFIG_TIMEOUT = "http_ner.timeout"

DEFAULT_SCORE = 0.7
DEFAULT_LANGUAGES = ("en", "ro")
DEFAULT_TIMEOUT = 60.0

# Language codes expected by the tagging service.
_SERVICE_LANGUAGES = {"ro": "ron", "en": "eng"}

# Service entity types kept as generic concepts.
GENERIC_CONCEPT_TYPES = {
    "NATIONALITY": "nationality",
    "RELIGION": "religion",
    "IDENTIFIER_CREDIT_CARD_NUM": "creditCard",
    "IDENTIFIER_EMAIL": "email",
    "IDENTIFIER_PERSONAL_ID_NUM": "personalId",
    "IDENTIFIER_PHONE_NUMBER": "phoneNumber",
    "IDENTIFIER_URL": "url",
}

log = logging.getLogger("entityfold.extractors.http")


class HttpNerExtractor:
    """Send text to a tagging service and keep the entities it types.

    The service answers with a mapping of entity name to ``{entity, type,
    details, sentiment}``. Only the first detail is considered, and entities
    whose detail score is under the configured threshold are dropped.
    """

    def __init__(
        self,
        *,
        client: httpx.Client | None = None,
        demonyms: DemonymMap | None = None,
    ) -> None:
        self._client = client
        self._owns_client = client is None
        self._demonyms = demonyms
        self._score = DEFAULT_SCORE
        self._languages: frozenset[str] = frozenset(DEFAULT_LANGUAGES)

    def name(self) -> str:
        return "HTTP NER"

    def initialize(self, config: Mapping[str, Any]) -> None:
        url = config.get(CONFIG_URL)
        if self._client is None and not url:
            raise ConfigurationError(f"Please provide the {CONFIG_URL!r} config parameter")
        try:
            self._score = float(config.get(CONFIG_SCORE, DEFAULT_SCORE))
            timeout = float(config.get(CONFIG_TIMEOUT, DEFAULT_TIMEOUT))
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(f"Invalid HTTP NER setting: {exc}") from exc
        languages = config.get(CONFIG_LANGUAGES, DEFAULT_LANGUAGES)
        if isinstance(languages, str):
            languages = [languages]
        self._languages = frozenset(str(language).lower() for language in languages)
        if self._client is None:
            self._client = httpx.Client(base_url=str(url).rstrip("/"), timeout=timeout)
        if self._demonyms is None:
            self._demonyms = get_demonym_map()

    def close(self) -> None:
        if self._owns_client and self._client is not None:
            self._client.close()

    def supports(self, language: str) -> bool:
        return (language or "").lower() in self._languages

    def _prepare(self, text: str, replace_demonyms: bool) -> str:
        if replace_demonyms and self._demonyms is not None:
            log.debug("Replacing all demonyms by hand")
            return self._demonyms.normalize(text)
        return text

    def extract_entities(
        self, language: str, text: str, replace_demonyms: bool
    ) -> ExtractedEntities:
        entities = ExtractedEntities()
        if not text:
            log.warning("Input to extract_entities was empty")
            return entities
        if not self.supports(language):
            log.debug("Language %s not supported by %s", language, self.name())
            return entities
        if self._client is None:
            raise BackendFailure(self.name(), "extractor used before initialize()")

        payload = {
            "text": self._prepare(text, replace_demonyms),
            "language": _SERVICE_LANGUAGES.get(language.lower(), language.lower()),
        }
        try:
            response = self._client.post("/process", json=payload)
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPStatusError as exc:
            raise BackendFailure(
                self.name(), f"service answered {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise BackendFailure(self.name(), f"could not reach the service: {exc}") from exc
        except ValueError as exc:
            raise BackendFailure(self.name(), f"invalid JSON response: {exc}") from exc

        if not isinstance(body, Mapping):
            raise BackendFailure(self.name(), "expected a JSON object response")
        for item in body.values():
            self._add_entity(entities, item)
        return entities

    def _add_entity(self, entities: ExtractedEntities, item: Any) -> None:
        if not isinstance(item, Mapping):
            return
        detail = _first_detail(item.get("details"))
        if detail is None:
            return
        detail_score = float(detail.get("score", 0.0))
        if detail_score < self._score:
            return
        text = str(item.get("entity") or "").strip()
        if not text:
            return
        start = max(0, int(detail.get("start", 0)))
        raw_sentiment = item.get("sentiment") or {}
        sentiment = Sentiment.from_label(
            raw_sentiment.get("label"), float(raw_sentiment.get("score", 0.0))
        )

        entity_type = item.get("type")
        if entity_type == "PERSON":
            entities.add_person(PersonOccurrence(text, start, sentiment))
        elif entity_type == "ORGANIZATION":
            entities.add_organization(OrganizationOccurrence(text, start, sentiment))
        elif entity_type == "LOCATION":
            entities.add_location(LocationOccurrence(text, start, sentiment))
        elif entity_type in GENERIC_CONCEPT_TYPES:
            entities.add_generic(
                GenericOccurrence(
                    text, GENERIC_CONCEPT_TYPES[entity_type], start, sentiment, detail_score
                )
            )

    def extract_entities_from_sentences(
        self, language: str, sentences: SentenceInput, replace_demonyms: bool
    ) -> ExtractedEntities:
        """Merge pre-tagged sentences locally; the service is not called."""

        if not self.supports(language):
            log.debug("Language %s not supported by %s", language, self.name())
            return ExtractedEntities()
        return merge_tagged_tokens(sentences)


def _first_detail(details: Any) -> Mapping[str, Any] | None:
    # details is a list of lists of {score, start, end}
    if not isinstance(details, Sequence) or not details:
        return None
    first = details[0]
    if isinstance(first, Sequence) and not isinstance(first, (str, bytes)):
        first = first[0] if first else None
    return first if isinstance(first, Mapping) else None


def create_http_extractor(**_: Any) -> HttpNerExtractor:
    return HttpNerExtractor()


__all__ = [
    "CONFIG_LANGUAGES",
    "CONFIG_SCORE",
    "CONFIG_TIMEOUT",
    "CONFIG_URL",
    "GENERIC_CONCEPT_TYPES",
    "HttpNerExtractor",
    "create_http_extractor",
]
