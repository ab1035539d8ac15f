"""Dataclasses shared by the extraction, disambiguation and geocoding stages."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable


class SentimentClass(str, Enum):
    """Polarity attached to an occurrence by sentiment-aware backends."""

    NEGATIVE = "negative"
    NEUTRAL = "neutral"
    POSITIVE = "positive"


@dataclass(frozen=True, slots=True)
class Sentiment:
    """Sentiment class plus the backend's score for it."""

    sentiment_class: SentimentClass
    score: float

    @classmethod
    def from_label(cls, label: str | None, score: float) -> "Sentiment":
        """Map the short labels used by taggers (``neg``/``pos``) to a sentiment."""

        normalized = (label or "").strip().lower()
        if normalized in {"neg", "negative"}:
            sentiment_class = SentimentClass.NEGATIVE
        elif normalized in {"pos", "positive"}:
            sentiment_class = SentimentClass.POSITIVE
        else:
            sentiment_class = SentimentClass.NEUTRAL
        return cls(sentiment_class=sentiment_class, score=float(score))


def _validate_occurrence(text: str, position: int) -> None:
    if not text or not text.strip():
        raise ValueError("Occurrence text must not be empty")
    if position < 0:
        raise ValueError(f"Occurrence position must be >= 0, got {position}")


@dataclass(frozen=True, slots=True)
class PersonOccurrence:
    """A single mention of a person inside a text."""

    text: str
    position: int = 0
    sentiment: Sentiment | None = None

    def __post_init__(self) -> None:
        _validate_occurrence(self.text, self.position)


@dataclass(frozen=True, slots=True)
class OrganizationOccurrence:
    """A single mention of an organization inside a text."""

    text: str
    position: int = 0
    sentiment: Sentiment | None = None

    def __post_init__(self) -> None:
        _validate_occurrence(self.text, self.position)


@dataclass(frozen=True, slots=True)
class LocationOccurrence:
    """A single mention of a place, optionally tied to its sentence."""

    text: str
    position: int = 0
    sentiment: Sentiment | None = None
    sentence_id: str | None = None

    def __post_init__(self) -> None:
        _validate_occurrence(self.text, self.position)


@dataclass(frozen=True, slots=True)
class GenericOccurrence:
    """A mention of a concept other than a person, organization or place.

    ``concept_type`` names the kind (``nationality``, ``religion``, ``email``,
    ...); ``score`` is the backend confidence when it reports one.
    """

    text: str
    concept_type: str
    position: int = 0
    sentiment: Sentiment | None = None
    score: float | None = None

    def __post_init__(self) -> None:
        _validate_occurrence(self.text, self.position)
        if not self.concept_type:
            raise ValueError("Generic occurrences need a concept type")


@dataclass(slots=True)
class ExtractedEntities:
    """Raw occurrences produced by one extraction pass.

    Results from several backends are combined with :meth:`merge`, which
    appends in call order and never deduplicates; deduplication is the job of
    the disambiguation strategies.
    """

    persons: list[PersonOccurrence] = field(default_factory=list)
    organizations: list[OrganizationOccurrence] = field(default_factory=list)
    locations: list[LocationOccurrence] = field(default_factory=list)
    generic: list[GenericOccurrence] = field(default_factory=list)

    def add_person(self, occurrence: PersonOccurrence) -> None:
        self.persons.append(occurrence)

    def add_organization(self, occurrence: OrganizationOccurrence) -> None:
        self.organizations.append(occurrence)

    def add_location(self, occurrence: LocationOccurrence) -> None:
        self.locations.append(occurrence)

    def add_generic(self, occurrence: GenericOccurrence) -> None:
        self.generic.append(occurrence)

    def merge(self, other: "ExtractedEntities | None") -> "ExtractedEntities":
        """Append every occurrence of ``other`` after the ones already held."""

        if other is None:
            return self
        self.persons.extend(other.persons)
        self.organizations.extend(other.organizations)
        self.locations.extend(other.locations)
        self.generic.extend(other.generic)
        return self

    def is_empty(self) -> bool:
        return not (self.persons or self.organizations or self.locations or self.generic)

    def __len__(self) -> int:
        return (
            len(self.persons) + len(self.organizations) + len(self.locations) + len(self.generic)
        )


@dataclass(slots=True)
class _ResolvedEntity:
    occurrences: list

    def __post_init__(self) -> None:
        self.occurrences = list(self.occurrences)
        if not self.occurrences:
            raise ValueError(f"{type(self).__name__} needs at least one occurrence")

    @classmethod
    def of(cls, occurrence):
        return cls([occurrence])

    def add_occurrence(self, occurrence) -> None:
        self.occurrences.append(occurrence)

    def name(self) -> str:
        """Longest occurrence text; the first one seen wins ties.

        Computed on every call so that merging a longer alias changes the
        canonical name used by later comparisons.
        """

        longest = ""
        for occurrence in self.occurrences:
            if len(occurrence.text) > len(longest):
                longest = occurrence.text
        return longest

    @property
    def occurrence_count(self) -> int:
        return len(self.occurrences)

    @property
    def first_occurrence(self):
        return self.occurrences[0]


@dataclass(slots=True)
class ResolvedPerson(_ResolvedEntity):
    """A person aggregating every occurrence believed to refer to them."""


@dataclass(slots=True)
class ResolvedOrganization(_ResolvedEntity):
    """An organization aggregating its duplicate mentions."""


@dataclass(frozen=True, slots=True)
class ResolvedLocation:
    """A location occurrence bound to its best gazetteer record."""

    occurrence: LocationOccurrence
    gazetteer_id: str
    name: str
    latitude: float
    longitude: float
    rank: int = 0
    score: float = 1.0
    population: int = 0
    country_code: str | None = None
    admin1_code: str | None = None
    feature_class: str | None = None


def total_occurrences(entities: Iterable[_ResolvedEntity]) -> int:
    """Sum of occurrences across resolved entities."""

    return sum(entity.occurrence_count for entity in entities)


__all__ = [
    "ExtractedEntities",
    "GenericOccurrence",
    "LocationOccurrence",
    "OrganizationOccurrence",
    "PersonOccurrence",
    "ResolvedLocation",
    "ResolvedOrganization",
    "ResolvedPerson",
    "Sentiment",
    "SentimentClass",
    "total_occurrences",
]
