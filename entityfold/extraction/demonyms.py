"""Demonym substitution applied to text before entity extraction.

Taggers tend to miss places mentioned through their adjectival form ("the
French minister"), so extractors may rewrite every demonym to the canonical
place name first ("the France minister"). The mapping comes from a bundled
table of Wikipedia demonyms and is read-only once loaded.
"""
from __future__ import annotations

import logging
import re
import threading
from pathlib import Path
from types import MappingProxyType
from typing import Iterable, Iterator, Mapping

log = logging.getLogger(__name__)

RESOURCE_NAME = "wikipedia-demonyms.tsv"
_DATA_DIR = Path(__file__).resolve().parents[1] / "data"
_HEADER_ROWS = 2
_COLUMN_SEPARATOR = ", "

# A unit is a word (letters/digits, inner apostrophes allowed), a run of
# whitespace or any other single character.
_WORD_UNIT = re.compile(r"\w+(?:['’]\w+)*|\s+|.", re.DOTALL)

_DEFAULT_MAP: "DemonymMap | None" = None
_DEFAULT_MAP_LOCK = threading.Lock()


def iter_word_units(text: str) -> Iterator[str]:
    """Lazily split ``text`` into word-boundary units.

    Concatenating the units gives back the original text.
    """

    for match in _WORD_UNIT.finditer(text):
        yield match.group(0)


class DemonymMap:
    """Immutable mapping from demonym/adjectival forms to place names."""

    def __init__(
        self,
        mapping: Mapping[str, str] | None = None,
        *,
        ignore_case: bool = False,
        available: bool = True,
    ) -> None:
        self._ignore_case = ignore_case
        entries = {}
        for key, value in (mapping or {}).items():
            entries[self._key(key)] = value
        self._map: Mapping[str, str] = MappingProxyType(entries)
        self.available = available

    def _key(self, word: str) -> str:
        return word.casefold() if self._ignore_case else word

    @classmethod
    def from_tsv(cls, lines: Iterable[str], *, ignore_case: bool = False) -> "DemonymMap":
        """Build the map from the Wikipedia demonym table.

        The first two rows are table headers. Each following row reads
        ``country \\t adjectivals \\t demonyms...`` where every column after
        the country holds a comma separated list of forms.
        """

        mapping: dict[str, str] = {}
        for index, raw_line in enumerate(lines):
            if index < _HEADER_ROWS:
                continue
            row = raw_line.rstrip("\r\n")
            if not row.strip():
                continue
            columns = row.split("\t")
            if len(columns) < 2:
                log.debug("Skipping malformed demonym row %d: %r", index + 1, row)
                continue
            country = columns[0].strip()
            if not country:
                continue
            forms: list[str] = []
            for column in columns[2:]:
                forms.extend(column.split(_COLUMN_SEPARATOR))
            forms.extend(columns[1].split(_COLUMN_SEPARATOR))
            for form in forms:
                demonym = form.strip()
                if demonym:
                    mapping[demonym] = country
        return cls(mapping, ignore_case=ignore_case)

    @property
    def ignore_case(self) -> bool:
        return self._ignore_case

    def __len__(self) -> int:
        return len(self._map)

    def contains(self, word: str) -> bool:
        return self._key(word) in self._map

    __contains__ = contains

    def get_substitution(self, word: str) -> str | None:
        return self._map.get(self._key(word))

    def substitute(self, word: str) -> str:
        """Return the place name for ``word`` or ``word`` itself."""

        return self._map.get(self._key(word), word)

    def normalize(self, text: str) -> str:
        """Replace every single-unit demonym in ``text`` by its place name.

        Multi-word demonyms ("New Zealander") span several units and are
        therefore never replaced.
        """

        if not self._map or not text:
            return text
        found = 0
        parts: list[str] = []
        for unit in iter_word_units(text):
            replacement = self._map.get(self._key(unit))
            if replacement is None:
                parts.append(unit)
                continue
            found += 1
            log.debug("Substituting demonym: %s -> %s", unit, replacement)
            parts.append(replacement)
        if found:
            log.debug("Replaced %d demonyms", found)
        return "".join(parts)

    replace_all = normalize


def load_demonym_map(
    path: str | Path | None = None, *, ignore_case: bool = False
) -> DemonymMap:
    """Load the demonym table, degrading to an empty map on failure."""

    source = Path(path) if path is not None else _DATA_DIR / RESOURCE_NAME
    log.info("Loading demonyms from %s", source)
    try:
        with open(source, "r", encoding="utf-8") as stream:
            demonyms = DemonymMap.from_tsv(stream, ignore_case=ignore_case)
    except (OSError, UnicodeDecodeError) as exc:
        log.error("Unable to load demonym list from %s: %s", source, exc)
        return DemonymMap({}, ignore_case=ignore_case, available=False)
    log.info("Loaded %d demonyms", len(demonyms))
    return demonyms


def get_demonym_map() -> DemonymMap:
    """Return the process-wide demonym map, loading it on first use."""

    global _DEFAULT_MAP
    if _DEFAULT_MAP is None:
        with _DEFAULT_MAP_LOCK:
            if _DEFAULT_MAP is None:
                _DEFAULT_MAP = load_demonym_map()
    return _DEFAULT_MAP


def set_demonym_map(demonyms: DemonymMap | None) -> None:
    global _DEFAULT_MAP
    with _DEFAULT_MAP_LOCK:
        _DEFAULT_MAP = demonyms


def normalize(text: str) -> str:
    """Replace demonyms using the process-wide map."""

    return get_demonym_map().normalize(text)


__all__ = [
    "DemonymMap",
    "RESOURCE_NAME",
    "get_demonym_map",
    "iter_word_units",
    "load_demonym_map",
    "normalize",
    "set_demonym_map",
]
