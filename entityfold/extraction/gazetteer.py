"""In-memory gazetteer index used to geocode location mentions."""
from __future__ import annotations

import csv
import json
import logging
import re
import unicodedata
from collections import defaultdict
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List

from rapidfuzz import fuzz, process

from entityfold.errors import ResourceUnavailable

log = logging.getLogger("entityfold.gazetteer")

EXACT_SCORE = 1.0
FUZZY_WEIGHT = 0.9
DEFAULT_FUZZY_CUTOFF = 85.0

# Column positions of the GeoNames "geoname" table dump.
_GEONAMES_COLUMNS = 19
_GN_ID, _GN_NAME, _GN_ASCII, _GN_ALT = 0, 1, 2, 3
_GN_LAT, _GN_LON, _GN_CLASS, _GN_CODE, _GN_COUNTRY = 4, 5, 6, 7, 8
_GN_ADMIN1, _GN_POPULATION = 10, 14


def normalize_name(name: str) -> str:
    """Strip accents, fold case and collapse whitespace."""

    decomposed = unicodedata.normalize("NFKD", name)
    stripped = "".join(char for char in decomposed if not unicodedata.combining(char))
    return re.sub(r"\s+", " ", stripped).strip().casefold()


@dataclass(frozen=True, slots=True)
class GazetteerRecord:
    """A place from the gazetteer with its coordinates and importance."""

    id: str
    name: str
    latitude: float
    longitude: float
    ascii_name: str | None = None
    alt_names: tuple[str, ...] = ()
    population: int = 0
    country_code: str | None = None
    admin1_code: str | None = None
    feature_class: str | None = None
    feature_code: str | None = None

    def variants(self) -> List[str]:
        base = [self.name]
        if self.ascii_name:
            base.append(self.ascii_name)
        base.extend(self.alt_names)
        return [value.strip() for value in base if value and value.strip()]

    @property
    def is_populated_place(self) -> bool:
        return self.feature_class == "P"

    @property
    def is_country(self) -> bool:
        return bool(self.feature_code) and self.feature_code.startswith("PCL")


@dataclass(frozen=True, slots=True)
class GazetteerHit:
    record: GazetteerRecord
    score: float
    exact: bool


class Gazetteer:
    """Read-only name index over gazetteer records.

    Records keep the order they were given in; that order is the final
    tie-breaker when two hits have the same score and population.
    """

    def __init__(self, records: Iterable[GazetteerRecord]):
        self._records: tuple[GazetteerRecord, ...] = tuple(records)
        self._order: Dict[str, int] = {}
        self._by_id: Dict[str, GazetteerRecord] = {}
        by_name: Dict[str, List[GazetteerRecord]] = defaultdict(list)
        for index, record in enumerate(self._records):
            self._by_id.setdefault(record.id, record)
            self._order.setdefault(record.id, index)
            seen: set[str] = set()
            for variant in record.variants():
                key = normalize_name(variant)
                if key and key not in seen:
                    seen.add(key)
                    by_name[key].append(record)
        self._by_name: Dict[str, tuple[GazetteerRecord, ...]] = {
            key: tuple(values) for key, values in by_name.items()
        }
        self._keys: tuple[str, ...] = tuple(self._by_name)

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[GazetteerRecord]:
        return iter(self._records)

    def get(self, record_id: str) -> GazetteerRecord | None:
        return self._by_id.get(str(record_id))

    def search(
        self,
        name: str,
        *,
        max_hits: int,
        fuzzy: bool = False,
        fuzzy_cutoff: float = DEFAULT_FUZZY_CUTOFF,
    ) -> list[GazetteerHit]:
        """Return up to ``max_hits`` ranked candidates for ``name``.

        Exact name matches score 1.0. With ``fuzzy`` enabled, other index keys
        scoring at least ``fuzzy_cutoff`` with ``rapidfuzz`` ``WRatio`` are
        added with a score scaled below any exact match. Hits are ordered by
        score, then population, then index order.
        """

        if max_hits <= 0:
            return []
        key = normalize_name(name)
        if not key:
            return []

        best: Dict[str, GazetteerHit] = {}
        for record in self._by_name.get(key, ()):
            best.setdefault(record.id, GazetteerHit(record, EXACT_SCORE, True))

        if fuzzy and self._keys:
            matches = process.extract(
                key,
                self._keys,
                scorer=fuzz.WRatio,
                score_cutoff=fuzzy_cutoff,
                limit=None,
            )
            for candidate_key, ratio, _ in matches:
                if candidate_key == key:
                    continue
                score = ratio / 100.0 * FUZZY_WEIGHT
                for record in self._by_name[candidate_key]:
                    current = best.get(record.id)
                    if current is None or current.score < score:
                        best[record.id] = GazetteerHit(record, score, False)

        ranked = sorted(
            best.values(),
            key=lambda hit: (-hit.score, -hit.record.population, self._order[hit.record.id]),
        )
        return ranked[:max_hits]


def _as_float(value: Any) -> float:
    if value in (None, ""):
        return 0.0
    return float(value)


def _as_int(value: Any) -> int:
    if value in (None, ""):
        return 0
    return int(float(value))


def _record_from_mapping(item: dict[str, Any]) -> GazetteerRecord:
    alt_names = item.get("alt_names") or []
    if isinstance(alt_names, str):
        alt_names = [name for name in alt_names.split(",") if name]
    return GazetteerRecord(
        id=str(item["id"]),
        name=item["name"],
        latitude=_as_float(item.get("latitude")),
        longitude=_as_float(item.get("longitude")),
        ascii_name=item.get("ascii_name"),
        alt_names=tuple(alt_names),
        population=_as_int(item.get("population")),
        country_code=item.get("country_code") or item.get("country"),
        admin1_code=item.get("admin1_code"),
        feature_class=item.get("feature_class"),
        feature_code=item.get("feature_code"),
    )


def _record_from_geonames_row(row: list[str]) -> GazetteerRecord:
    return GazetteerRecord(
        id=row[_GN_ID],
        name=row[_GN_NAME],
        latitude=_as_float(row[_GN_LAT]),
        longitude=_as_float(row[_GN_LON]),
        ascii_name=row[_GN_ASCII] or None,
        alt_names=tuple(name for name in row[_GN_ALT].split(",") if name),
        population=_as_int(row[_GN_POPULATION]),
        country_code=row[_GN_COUNTRY] or None,
        admin1_code=row[_GN_ADMIN1] or None,
        feature_class=row[_GN_CLASS] or None,
        feature_code=row[_GN_CODE] or None,
    )


def read_json_records(path: Path) -> list[GazetteerRecord]:
    with open(path, "r", encoding="utf-8") as stream:
        payload = json.load(stream)
    if not isinstance(payload, list):
        raise ValueError("expected a list of gazetteer records")
    return [_record_from_mapping(item) for item in payload]


def read_geonames_dump(path: Path) -> list[GazetteerRecord]:
    records: list[GazetteerRecord] = []
    with open(path, "r", encoding="utf-8", newline="") as stream:
        reader = csv.reader(stream, delimiter="\t", quoting=csv.QUOTE_NONE)
        for line_number, row in enumerate(reader, start=1):
            if not row or row[0].startswith("#"):
                continue
            if len(row) < _GEONAMES_COLUMNS:
                raise ValueError(f"line {line_number}: expected {_GEONAMES_COLUMNS} columns, got {len(row)}")
            records.append(_record_from_geonames_row(row))
    return records


_READERS = {
    ".json": read_json_records,
    ".txt": read_geonames_dump,
    ".tsv": read_geonames_dump,
}


def load_gazetteer(directory: str | Path) -> Gazetteer:
    """Build a :class:`Gazetteer` from every supported file in ``directory``.

    Files that cannot be parsed (the ``readme.txt`` or ``countryInfo.txt``
    shipped next to a GeoNames dump) are skipped with a warning. Raises
    ``ResourceUnavailable`` if the directory is missing or no file loads.
    """

    root = Path(directory)
    if not root.is_dir():
        raise ResourceUnavailable(f"Gazetteer directory not found: {root}")
    sources = sorted(
        path for path in root.iterdir() if path.is_file() and path.suffix.lower() in _READERS
    )
    if not sources:
        raise ResourceUnavailable(f"No gazetteer files in {root}")

    records: list[GazetteerRecord] = []
    loaded_any = False
    for source in sources:
        reader = _READERS[source.suffix.lower()]
        try:
            loaded = reader(source)
        except (OSError, UnicodeDecodeError, ValueError, KeyError, TypeError) as exc:
            log.warning("Skipping gazetteer file %s: %s", source, exc)
            continue
        log.info("Loaded %d gazetteer records from %s", len(loaded), source)
        records.extend(loaded)
        loaded_any = True
    if not loaded_any:
        raise ResourceUnavailable(f"No readable gazetteer file in {root}")
    return Gazetteer(records)


__all__ = [
    "Gazetteer",
    "GazetteerHit",
    "GazetteerRecord",
    "load_gazetteer",
    "normalize_name",
    "read_geonames_dump",
    "read_json_records",
]
