"""Context-aware choice between gazetteer candidates of several place mentions.

The default resolver binds every mention to its best ranked candidate. The
heuristic strategy instead looks at all mentions of a document together: a
chain of passes picks countries first, then states, then cities located in
the countries already picked, so "Paris" next to "Texas" lands in Texas.
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Protocol, Sequence

from .gazetteer import GazetteerHit, normalize_name
from .models import LocationOccurrence

log = logging.getLogger("entityfold.places")

# Exact matches of cities at least this big are never traded for a state.
LARGE_CITY_POPULATION = 300_000


@dataclass(frozen=True, slots=True)
class LocationChoice:
    occurrence: LocationOccurrence
    hit: GazetteerHit
    rank: int


@dataclass(slots=True)
class _Pending:
    index: int
    occurrence: LocationOccurrence
    hits: list[GazetteerHit]


class LocationStrategy(Protocol):
    def select(
        self, candidates: Sequence[tuple[LocationOccurrence, Sequence[GazetteerHit]]]
    ) -> list[LocationChoice]:
        """Pick at most one candidate per mention, keeping mention order."""

    def log_stats(self) -> None:
        """Log how often each part of the strategy fired."""


def is_exact_match(occurrence: LocationOccurrence, hit: GazetteerHit) -> bool:
    return normalize_name(hit.record.name) == normalize_name(occurrence.text)


def is_exact_admin1_match(occurrence: LocationOccurrence, hit: GazetteerHit) -> bool:
    code = hit.record.admin1_code
    return bool(code) and code.casefold() == occurrence.text.strip().casefold()


def is_city(hit: GazetteerHit) -> bool:
    return hit.record.population > 0 and hit.record.feature_class == "P"


def is_country(hit: GazetteerHit) -> bool:
    return hit.record.population > 0 and hit.record.is_country


def in_same_country(hit: GazetteerHit, chosen: Sequence[GazetteerHit]) -> bool:
    code = hit.record.country_code
    return bool(code) and any(item.record.country_code == code for item in chosen)


def in_same_admin1(hit: GazetteerHit, chosen: Sequence[GazetteerHit]) -> bool:
    record = hit.record
    return any(
        item.record.country_code == record.country_code
        and item.record.admin1_code == record.admin1_code
        for item in chosen
    )


class DisambiguationPass:
    """One step of the chain; returns the hit picked for a mention, if any."""

    description = ""

    def pick(self, pending: _Pending, chosen: Sequence[GazetteerHit]) -> GazetteerHit | None:
        raise NotImplementedError


class CountriesPass(DisambiguationPass):
    description = "Pick countries, even when they are not an exact match"

    def pick(self, pending, chosen):
        for hit in pending.hits:
            # large territories ("Indian Subcontinent") may rank above the country
            if hit.record.feature_class == "T":
                continue
            return hit if is_country(hit) else None
        return None


class ExactAdmin1Pass(DisambiguationPass):
    description = "Pick states (admin1) that are an exact match"

    def pick(self, pending, chosen):
        occurrence = pending.occurrence
        for hit in pending.hits:
            if (
                hit.record.population > LARGE_CITY_POPULATION
                and is_city(hit)
                and is_exact_match(occurrence, hit)
            ):
                return None
        exact = [
            hit
            for hit in pending.hits
            if is_exact_match(occurrence, hit) or is_exact_admin1_match(occurrence, hit)
        ]
        if exact and exact[0].record.population > 0 and exact[0].record.feature_code == "ADM1":
            return exact[0]
        return None


class ExactColocationsPass(DisambiguationPass):
    description = "Pick exactly matching populated cities in the countries already found"

    def pick(self, pending, chosen):
        if not chosen:
            return None
        colocated = [
            hit
            for hit in pending.hits
            if is_city(hit)
            and is_exact_match(pending.occurrence, hit)
            and in_same_country(hit, chosen)
        ]
        if not colocated:
            return None
        for hit in colocated:
            if in_same_admin1(hit, chosen):
                return hit
        return colocated[0]


class TopColocationsPass(DisambiguationPass):
    description = "Pick the top admin region or populated place in a country already found"

    def pick(self, pending, chosen):
        for hit in pending.hits:
            if hit.record.feature_class in ("A", "P") and in_same_country(hit, chosen):
                return hit
        return None


class TopCandidatePass(DisambiguationPass):
    description = "Pick the top ranked candidate of whatever is left"

    def pick(self, pending, chosen):
        return pending.hits[0] if pending.hits else None


def default_passes() -> list[DisambiguationPass]:
    return [
        CountriesPass(),
        ExactAdmin1Pass(),
        ExactColocationsPass(),
        TopColocationsPass(),
        TopCandidatePass(),
    ]


class HeuristicLocationStrategy:
    """Run the passes in order over the mentions still unresolved.

    Every pass sees the hits picked by the previous ones, so later passes can
    prefer places colocated with them.
    """

    def __init__(self, passes: Sequence[DisambiguationPass] | None = None) -> None:
        self._passes = list(passes) if passes is not None else default_passes()
        self._triggers = [0] * len(self._passes)
        self._calls = 0
        self._lock = threading.Lock()

    def select(self, candidates):
        pending = [
            _Pending(index, occurrence, list(hits))
            for index, (occurrence, hits) in enumerate(candidates)
            if hits
        ]
        picked: dict[int, LocationChoice] = {}
        chosen: list[GazetteerHit] = []
        triggers = [0] * len(self._passes)
        for position, step in enumerate(self._passes):
            if not pending:
                break
            remaining: list[_Pending] = []
            for item in pending:
                hit = step.pick(item, chosen)
                if hit is None:
                    remaining.append(item)
                    continue
                log.debug("%s: picked %s for %r", type(step).__name__, hit.record.id, item.occurrence.text)
                picked[item.index] = LocationChoice(item.occurrence, hit, item.hits.index(hit))
                chosen.append(hit)
                triggers[position] += 1
            pending = remaining
        with self._lock:
            self._calls += 1
            for position, count in enumerate(triggers):
                self._triggers[position] += count
        return [picked[index] for index in sorted(picked)]

    def log_stats(self) -> None:
        with self._lock:
            calls = self._calls
            triggers = list(self._triggers)
        log.info("Location disambiguation called %d times", calls)
        for step, count in zip(self._passes, triggers):
            log.info("  %s: triggered %d times", step.description, count)


__all__ = [
    "CountriesPass",
    "DisambiguationPass",
    "ExactAdmin1Pass",
    "ExactColocationsPass",
    "HeuristicLocationStrategy",
    "LocationChoice",
    "LocationStrategy",
    "TopCandidatePass",
    "TopColocationsPass",
    "default_passes",
]
