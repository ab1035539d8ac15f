"""Bind location occurrences to gazetteer records."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable

from entityfold.errors import ConfigurationError, ResourceUnavailable

from .gazetteer import DEFAULT_FUZZY_CUTOFF, Gazetteer, GazetteerHit, GazetteerRecord, load_gazetteer
from .models import LocationOccurrence, ResolvedLocation
from .places import HeuristicLocationStrategy, LocationStrategy

MAX_HIT_DEPTH = 10
STRATEGY_TOP = "top"
STRATEGY_HEURISTIC = "heuristic"

log = logging.getLogger("entityfold.resolver")


class LocationResolver:
    """Geocode location occurrences against a :class:`Gazetteer`.

    A resolver built without a gazetteer is *unavailable*: it resolves
    nothing and callers should check :attr:`available` to tell "no places
    found" from "cannot geocode".

    By default every mention gets its rank 0 candidate. With a ``strategy``
    (see :mod:`entityfold.extraction.places`) and a hit depth above one, the
    candidates of all mentions are weighed together instead.
    """

    def __init__(
        self,
        gazetteer: Gazetteer | None,
        *,
        fuzzy_cutoff: float = DEFAULT_FUZZY_CUTOFF,
        strategy: LocationStrategy | None = None,
    ) -> None:
        self._gazetteer = gazetteer
        self._fuzzy_cutoff = fuzzy_cutoff
        self._strategy = strategy

    @classmethod
    def from_directory(cls, path: str | Path | None, **kwargs) -> "LocationResolver":
        """Load the gazetteer in ``path``; an unusable path disables the resolver."""

        if not path:
            log.warning("No gazetteer directory configured; location resolution disabled")
            return cls(None, **kwargs)
        try:
            gazetteer = load_gazetteer(path)
        except ResourceUnavailable as exc:
            log.error("Location resolution disabled: %s", exc)
            return cls(None, **kwargs)
        log.info("Gazetteer ready with %d records", len(gazetteer))
        return cls(gazetteer, **kwargs)

    @property
    def available(self) -> bool:
        return self._gazetteer is not None

    @property
    def strategy(self) -> LocationStrategy | None:
        return self._strategy

    @property
    def gazetteer(self) -> Gazetteer | None:
        return self._gazetteer

    def candidates(
        self,
        occurrence: LocationOccurrence | str,
        *,
        max_hit_depth: int = MAX_HIT_DEPTH,
        fuzzy: bool = False,
    ) -> list[GazetteerHit]:
        """Ranked gazetteer candidates for one occurrence (best first)."""

        if self._gazetteer is None:
            return []
        text = occurrence if isinstance(occurrence, str) else occurrence.text
        return self._gazetteer.search(
            text,
            max_hits=max_hit_depth,
            fuzzy=fuzzy,
            fuzzy_cutoff=self._fuzzy_cutoff,
        )

    def resolve(
        self,
        occurrences: Iterable[LocationOccurrence],
        max_hit_depth: int = MAX_HIT_DEPTH,
        max_results: int = -1,
        fuzzy: bool = False,
    ) -> list[ResolvedLocation]:
        """Resolve each occurrence to one gazetteer record.

        Occurrences without candidates are left out. ``max_results`` caps the
        number of resolved locations; a negative value means no cap.
        """

        if self._gazetteer is None:
            return []
        if self._strategy is not None and max_hit_depth > 1:
            return self._resolve_in_context(occurrences, max_hit_depth, max_results, fuzzy)
        resolved: list[ResolvedLocation] = []
        for occurrence in occurrences:
            if 0 <= max_results <= len(resolved):
                break
            hits = self.candidates(occurrence, max_hit_depth=max_hit_depth, fuzzy=fuzzy)
            if not hits:
                log.debug("No gazetteer match for %r", occurrence.text)
                continue
            resolved.append(_to_resolved(occurrence, hits[0], rank=0))
        return resolved

    def _resolve_in_context(
        self,
        occurrences: Iterable[LocationOccurrence],
        max_hit_depth: int,
        max_results: int,
        fuzzy: bool,
    ) -> list[ResolvedLocation]:
        candidates = [
            (occurrence, self.candidates(occurrence, max_hit_depth=max_hit_depth, fuzzy=fuzzy))
            for occurrence in occurrences
        ]
        choices = self._strategy.select(candidates)
        resolved = [
            _to_resolved(choice.occurrence, choice.hit, rank=choice.rank) for choice in choices
        ]
        return resolved if max_results < 0 else resolved[:max_results]

    def log_stats(self) -> None:
        if self._strategy is not None:
            self._strategy.log_stats()

    def get_by_id(self, record_id: str) -> GazetteerRecord:
        if self._gazetteer is None:
            raise KeyError(record_id)
        record = self._gazetteer.get(record_id)
        if record is None:
            raise KeyError(record_id)
        return record


def _to_resolved(occurrence: LocationOccurrence, hit: GazetteerHit, *, rank: int) -> ResolvedLocation:
    record = hit.record
    return ResolvedLocation(
        occurrence=occurrence,
        gazetteer_id=record.id,
        name=record.name,
        latitude=record.latitude,
        longitude=record.longitude,
        rank=rank,
        score=hit.score,
        population=record.population,
        country_code=record.country_code,
        admin1_code=record.admin1_code,
        feature_class=record.feature_class,
    )


def location_strategy(name: str | None) -> LocationStrategy | None:
    """Map a strategy name from configuration to a strategy instance."""

    key = (name or STRATEGY_TOP).strip().lower()
    if key == STRATEGY_TOP:
        return None
    if key == STRATEGY_HEURISTIC:
        return HeuristicLocationStrategy()
    raise ConfigurationError(
        f"Unknown location strategy {name!r}; expected {STRATEGY_TOP!r} or {STRATEGY_HEURISTIC!r}"
    )


__all__ = [
    "LocationResolver",
    "MAX_HIT_DEPTH",
    "STRATEGY_HEURISTIC",
    "STRATEGY_TOP",
    "location_strategy",
]
