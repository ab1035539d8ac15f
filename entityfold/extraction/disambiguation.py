"""Collapse raw person and organization occurrences into resolved entities.

Both strategies fold the occurrences left to right. Each occurrence is
compared with the canonical name of every entity created so far, in creation
order, and joins the first one that matches; otherwise it seeds a new entity.
The outcome therefore depends on arrival order, which is why the registry
merges backend results deterministically.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Generic, Iterable, Protocol, Sequence, TypeVar

from .models import (
    OrganizationOccurrence,
    PersonOccurrence,
    ResolvedOrganization,
    ResolvedPerson,
)

log = logging.getLogger("entityfold.disambiguation")

O = TypeVar("O")
R = TypeVar("R")


class DisambiguationStrategy(Protocol[O, R]):
    def select(self, occurrences: Iterable[O]) -> list[R]:
        """Group ``occurrences`` into resolved entities."""

    def log_stats(self) -> None:
        """Log diagnostics about the last :meth:`select` call of this thread."""


class _FoldStrategy(Generic[O, R]):
    """Shared left-to-right fold; subclasses only decide what matches."""

    label = "entities"

    def __init__(self, factory: Callable[[list], R]) -> None:
        self._factory = factory
        # strategies are shared between request threads
        self._stats = threading.local()

    def matches(self, candidate: str, canonical: str) -> bool:
        raise NotImplementedError

    def select(self, occurrences: Iterable[O]) -> list[R]:
        resolved: list[R] = []
        total = 0
        for occurrence in occurrences:
            total += 1
            text = occurrence.text.casefold()
            for entity in resolved:
                if self.matches(text, entity.name().casefold()):
                    entity.add_occurrence(occurrence)
                    break
            else:
                resolved.append(self._factory([occurrence]))
        self._stats.counts = (total, len(resolved))
        return resolved

    def log_stats(self) -> None:
        total, resolved = getattr(self._stats, "counts", (0, 0))
        log.info(
            "%s: %d occurrences resolved into %d %s (%d merged)",
            type(self).__name__,
            total,
            resolved,
            self.label,
            total - resolved,
        )


class ExactMatchStrategy(_FoldStrategy[OrganizationOccurrence, ResolvedOrganization]):
    """Merge occurrences whose text equals an entity name, ignoring case.

    "Apple" and "Apple Inc." stay separate.
    """

    label = "organizations"

    def __init__(self, factory: Callable[[list], ResolvedOrganization] = ResolvedOrganization) -> None:
        _FoldStrategy.__init__(self, factory)

    def matches(self, candidate: str, canonical: str) -> bool:
        return candidate == canonical


class SubstringOverlapStrategy(_FoldStrategy[PersonOccurrence, ResolvedPerson]):
    """Merge occurrences contained in, or containing, an entity name.

    "Dan" joins "Nicușor Dan" whichever arrives first. With several similar
    names the first entity created wins, so "Dan" may end up with "Ion Dan"
    rather than "Dan Popescu".
    """

    label = "persons"

    def __init__(self, factory: Callable[[list], ResolvedPerson] = ResolvedPerson) -> None:
        _FoldStrategy.__init__(self, factory)

    def matches(self, candidate: str, canonical: str) -> bool:
        return candidate in canonical or canonical in candidate


class PersonResolver:
    """Resolve person occurrences with a configurable strategy."""

    def __init__(self, strategy: DisambiguationStrategy | None = None) -> None:
        self.strategy = strategy if strategy is not None else SubstringOverlapStrategy()

    def resolve(self, occurrences: Sequence[PersonOccurrence]) -> list[ResolvedPerson]:
        people = self.strategy.select(occurrences)
        self.strategy.log_stats()
        return people


class OrganizationResolver:
    """Resolve organization occurrences with a configurable strategy."""

    def __init__(self, strategy: DisambiguationStrategy | None = None) -> None:
        self.strategy = strategy if strategy is not None else ExactMatchStrategy()

    def resolve(
        self, occurrences: Sequence[OrganizationOccurrence]
    ) -> list[ResolvedOrganization]:
        organizations = self.strategy.select(occurrences)
        self.strategy.log_stats()
        return organizations


__all__ = [
    "DisambiguationStrategy",
    "ExactMatchStrategy",
    "OrganizationResolver",
    "PersonResolver",
    "SubstringOverlapStrategy",
]
