"""Pick the countries and cities a document is mostly about."""
from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass
from typing import Sequence

from .gazetteer import Gazetteer
from .models import ResolvedLocation

log = logging.getLogger("entityfold.focus")


@dataclass(frozen=True, slots=True)
class FocusLocation:
    key: str
    name: str
    score: int


class FrequencyOfMentionFocus:
    """Naive aboutness: the most mentioned country and cities win.

    Ties for first place are all returned. For cities, any place mentioned
    more than once is returned as well.
    """

    def __init__(self, gazetteer: Gazetteer | None = None) -> None:
        self._country_names: dict[str, str] = {}
        if gazetteer is not None:
            for record in gazetteer:
                if record.is_country and record.country_code:
                    self._country_names.setdefault(record.country_code, record.name)

    def select_countries(self, locations: Sequence[ResolvedLocation]) -> list[FocusLocation]:
        counts = Counter(
            location.country_code for location in locations if location.country_code
        )
        if not counts:
            return []
        top = max(counts.values())
        results = [
            FocusLocation(code, self._country_names.get(code, code), count)
            for code, count in counts.items()
            if count == top
        ]
        log.info("Found primary country %s", results[0].key)
        return results

    def select_cities(self, locations: Sequence[ResolvedLocation]) -> list[FocusLocation]:
        counts: Counter[str] = Counter()
        names: dict[str, str] = {}
        for location in locations:
            if location.feature_class != "P" or not location.country_code:
                continue
            counts[location.gazetteer_id] += 1
            names.setdefault(location.gazetteer_id, location.name)
        if not counts:
            return []
        top = max(counts.values())
        results = sorted(
            (
                FocusLocation(city_id, names[city_id], count)
                for city_id, count in counts.items()
                if count == top or count > 1
            ),
            key=lambda focus: -focus.score,
        )
        log.info("Found primary city %s", results[0].name)
        return results


__all__ = ["FocusLocation", "FrequencyOfMentionFocus"]
