"""Discovery and fan-out over the pluggable entity extractors."""
from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from importlib import import_module
from importlib.metadata import entry_points
from typing import Any, Callable, Iterable, Mapping, Protocol, Sequence, TypeVar

from entityfold.errors import BackendFailure, ConfigurationError
from entityfold.settings import env_int, env_json, env_list

from .models import ExtractedEntities
from .tokens import SentenceInput

ENTRY_POINT_GROUP = "entityfold.extractors"
DEFAULT_EXTRACTOR_FACTORY = "entityfold.extraction.backends:create_http_extractor"

log = logging.getLogger("entityfold.extractors")

T = TypeVar("T")


class EntityExtractor(Protocol):
    """Interface every extraction backend implements."""

    def name(self) -> str:
        """Human readable name used in logs."""

    def initialize(self, config: Mapping[str, Any]) -> None:
        """Prepare the backend; raise ``ConfigurationError`` on bad settings."""

    def extract_entities(
        self, language: str, text: str, replace_demonyms: bool
    ) -> ExtractedEntities:
        """Return the raw occurrences found in ``text``."""

    def extract_entities_from_sentences(
        self, language: str, sentences: SentenceInput, replace_demonyms: bool
    ) -> ExtractedEntities:
        """Return the raw occurrences found in pre-tagged sentences."""


ExtractorFactory = Callable[..., EntityExtractor]


def load_factory(path: str) -> ExtractorFactory:
    """Import a ``module:attribute`` factory path."""

    module_name, _, attribute = path.partition(":")
    if not module_name or not attribute:
        raise ConfigurationError(
            f"Extractor factory {path!r} must follow the 'module:attribute' format"
        )
    try:
        module = import_module(module_name)
        factory = getattr(module, attribute)
    except (ImportError, AttributeError) as exc:
        raise ConfigurationError(f"Unable to load extractor factory {path!r}: {exc}") from exc
    return factory


def _instantiate(name: str, factory: Any) -> EntityExtractor:
    try:
        extractor = factory() if callable(factory) else factory
    except Exception as exc:
        raise ConfigurationError(f"Unable to create extractor {name!r}: {exc}") from exc
    missing = [
        attribute
        for attribute in ("name", "initialize", "extract_entities", "extract_entities_from_sentences")
        if not callable(getattr(extractor, attribute, None))
    ]
    if missing:
        raise ConfigurationError(
            f"Extractor {name!r} does not implement: {', '.join(missing)}"
        )
    return extractor


class ExtractorRegistry:
    """Keeps the extraction backends and merges their results.

    Backends come from three sources, in this order: factories registered on
    the instance, ``module:attribute`` factory paths from configuration and
    the ``entityfold.extractors`` entry point group. Discovery happens once,
    in :meth:`initialize`; afterwards the backend list is read-only.
    """

    def __init__(
        self,
        *,
        factory_paths: Sequence[str] = (),
        use_entry_points: bool = True,
        entry_point_group: str = ENTRY_POINT_GROUP,
        max_workers: int = 1,
    ) -> None:
        self._factories: dict[str, Any] = {}
        self._factory_paths = tuple(factory_paths)
        self._use_entry_points = use_entry_points
        self._entry_point_group = entry_point_group
        self._max_workers = max(1, max_workers)
        self._extractors: tuple[EntityExtractor, ...] | None = None
        self._lock = threading.Lock()

    @classmethod
    def from_env(cls) -> "ExtractorRegistry":
        """Build a registry from ``ENTITYFOLD_EXTRACTORS`` and friends."""

        paths = env_list("ENTITYFOLD_EXTRACTORS") or [DEFAULT_EXTRACTOR_FACTORY]
        return cls(
            factory_paths=paths,
            max_workers=env_int("ENTITYFOLD_EXTRACTOR_WORKERS", 1),
        )

    def register(self, name: str) -> Callable[[T], T]:
        def decorator(factory: T) -> T:
            self.add(name, factory)
            return factory

        return decorator

    def add(self, name: str, factory: Any) -> None:
        if self._extractors is not None:
            raise RuntimeError("Cannot register extractors after initialization")
        if name in self._factories:
            raise ValueError(f"Extractor '{name}' already registered.")
        self._factories[name] = factory

    def get(self, name: str) -> Any:
        try:
            return self._factories[name]
        except KeyError as exc:
            raise KeyError(f"Extractor '{name}' not found.") from exc

    def available(self) -> dict[str, Any]:
        return dict(self._factories)

    def discover(self) -> list[tuple[str, Any]]:
        """List every backend factory, failing with ``ConfigurationError``."""

        discovered: list[tuple[str, Any]] = list(self._factories.items())
        seen = {name for name, _ in discovered}
        for path in self._factory_paths:
            if path in seen:
                continue
            discovered.append((path, load_factory(path)))
            seen.add(path)
        if self._use_entry_points:
            try:
                points = entry_points(group=self._entry_point_group)
            except Exception as exc:
                raise ConfigurationError(f"Unable to list extractor plugins: {exc}") from exc
            for point in points:
                if point.name in seen:
                    log.warning("Ignoring duplicate extractor plugin %s", point.name)
                    continue
                try:
                    factory = point.load()
                except Exception as exc:
                    raise ConfigurationError(
                        f"Unable to load extractor plugin {point.name!r}: {exc}"
                    ) from exc
                discovered.append((point.name, factory))
                seen.add(point.name)
        return discovered

    def initialize(self, config: Mapping[str, Any] | None = None) -> tuple[EntityExtractor, ...]:
        """Discover and initialize the backends (only the first call does work)."""

        if self._extractors is not None:
            return self._extractors
        with self._lock:
            if self._extractors is not None:
                return self._extractors
            settings = dict(config or {})
            log.info("Initializing NER extractors")
            ready: list[EntityExtractor] = []
            for name, factory in self.discover():
                extractor = _instantiate(name, factory)
                log.info("Initializing extractor - %s", extractor.name())
                try:
                    extractor.initialize(settings)
                except Exception:
                    log.exception("Extractor %s failed to initialize; disabling it", name)
                    continue
                ready.append(extractor)
            self._extractors = tuple(ready)
            log.info("%d extractor(s) ready", len(ready))
            return self._extractors

    @property
    def initialized(self) -> bool:
        return self._extractors is not None

    @property
    def extractors(self) -> tuple[EntityExtractor, ...]:
        if self._extractors is None:
            raise ConfigurationError("Extractor registry used before initialize()")
        return self._extractors

    def names(self) -> list[str]:
        return [extractor.name() for extractor in self.extractors]

    def extract(
        self, language: str, text: str, replace_demonyms: bool = False
    ) -> ExtractedEntities:
        """Run every backend on ``text`` and merge in registration order."""

        return self._fan_out("extract_entities", language, text, replace_demonyms)

    def extract_from_sentences(
        self, language: str, sentences: SentenceInput, replace_demonyms: bool = False
    ) -> ExtractedEntities:
        """Run every backend on tagged sentences and merge in registration order."""

        return self._fan_out(
            "extract_entities_from_sentences", language, sentences, replace_demonyms
        )

    def _fan_out(self, method: str, *args: Any) -> ExtractedEntities:
        extractors = self.extractors

        def invoke(extractor: EntityExtractor) -> ExtractedEntities | None:
            return _call_isolated(extractor, method, *args)

        if self._max_workers > 1 and len(extractors) > 1:
            with ThreadPoolExecutor(max_workers=self._max_workers) as pool:
                results: Iterable[ExtractedEntities | None] = list(pool.map(invoke, extractors))
        else:
            results = [invoke(extractor) for extractor in extractors]

        merged = ExtractedEntities()
        for result in results:
            merged.merge(result)
        return merged


def _call_isolated(extractor: EntityExtractor, method: str, *args: Any) -> ExtractedEntities | None:
    """Call one backend; any failure counts as an empty contribution."""

    name = _safe_name(extractor)
    try:
        result = getattr(extractor, method)(*args)
    except Exception as exc:
        failure = exc if isinstance(exc, BackendFailure) else BackendFailure(name, str(exc))
        log.warning("Extractor failed, ignoring its results: %s", failure, exc_info=True)
        return None
    if result is None:
        return None
    if not isinstance(result, ExtractedEntities):
        log.warning(
            "Extractor failed, ignoring its results: %s",
            BackendFailure(name, f"returned {type(result).__name__} instead of ExtractedEntities"),
        )
        return None
    return result


def _safe_name(extractor: EntityExtractor) -> str:
    try:
        return extractor.name()
    except Exception:
        return type(extractor).__name__


_DEFAULT_REGISTRY: ExtractorRegistry | None = None
_DEFAULT_REGISTRY_LOCK = threading.Lock()


def get_extractor_registry(config: Mapping[str, Any] | None = None) -> ExtractorRegistry:
    """Return the process-wide registry, initializing it on first use."""

    global _DEFAULT_REGISTRY
    with _DEFAULT_REGISTRY_LOCK:
        if _DEFAULT_REGISTRY is None:
            registry = ExtractorRegistry.from_env()
            registry.initialize(config if config is not None else env_json("ENTITYFOLD_EXTRACTOR_SETTINGS"))
            _DEFAULT_REGISTRY = registry
        return _DEFAULT_REGISTRY


def set_extractor_registry(registry: ExtractorRegistry | None) -> None:
    global _DEFAULT_REGISTRY
    with _DEFAULT_REGISTRY_LOCK:
        _DEFAULT_REGISTRY = registry


__all__ = [
    "DEFAULT_EXTRACTOR_FACTORY",
    "ENTRY_POINT_GROUP",
    "EntityExtractor",
    "ExtractorRegistry",
    "get_extractor_registry",
    "load_factory",
    "set_extractor_registry",
]
