from typing import Any, Mapping

import pytest
from fastapi.testclient import TestClient

from entityfold.errors import ConfigurationError
from entityfold.extraction import DemonymMap, ExtractorRegistry, LocationResolver
from entityfold.extraction.models import ExtractedEntities, LocationOccurrence, PersonOccurrence
from entityfold.extraction.places import HeuristicLocationStrategy
from entityfold.extraction.tokens import merge_tagged_tokens
from entityfold.services.app import ParserConfig, build_parser_container, create_app


class FakeTagger:
    def __init__(self):
        self.replace_flags: list[bool] = []

    def name(self) -> str:
        return "fake-tagger"

    def initialize(self, config: Mapping[str, Any]) -> None:
        return None

    def extract_entities(self, language, text, replace_demonyms):
        self.replace_flags.append(replace_demonyms)
        entities = ExtractedEntities()
        for word in text.replace(".", "").split():
            if word.istitle() and word in {"Paris", "Bucharest"}:
                entities.add_location(LocationOccurrence(word, text.index(word)))
            elif word.istitle():
                entities.add_person(PersonOccurrence(word, text.index(word)))
        return entities

    def extract_entities_from_sentences(self, language, sentences, replace_demonyms):
        return merge_tagged_tokens(sentences)


def build_client(gazetteer, **overrides) -> tuple[TestClient, FakeTagger]:
    tagger = FakeTagger()
    registry = ExtractorRegistry(use_entry_points=False)
    registry.add("fake", tagger)
    config = ParserConfig(
        registry=registry,
        resolver=LocationResolver(gazetteer),
        demonyms=DemonymMap({"French": "France"}),
        **overrides,
    )
    return TestClient(create_app(config)), tagger


def test_healthz_reports_component_availability(gazetteer):
    client, _ = build_client(gazetteer)

    response = client.get("/healthz")

    assert response.status_code == 200
    assert response.json() == {
        "status": "ok",
        "resolver_available": True,
        "demonyms_available": True,
        "extractors": ["fake-tagger"],
    }


def test_extract_endpoint_returns_resolved_entities(gazetteer):
    client, tagger = build_client(gazetteer, replace_demonyms=True)

    response = client.post("/extract", json={"text": "Maria visited Paris.", "language": "en"})

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ok"
    assert [(p["name"], p["count"]) for p in body["results"]["people"]] == [("Maria", 1)]
    assert body["results"]["places"]["mentions"][0]["id"] == "2988507"
    assert tagger.replace_flags == [True]


def test_extract_endpoint_request_flag_overrides_config(gazetteer):
    client, tagger = build_client(gazetteer, replace_demonyms=True)

    client.post("/extract", json={"text": "Maria", "replace_demonyms": False})

    assert tagger.replace_flags == [False]


def test_extract_sentences_endpoint(gazetteer):
    client, _ = build_client(gazetteer)
    payload = {
        "language": "ro",
        "sentences": {
            "7": {
                "tokens": [
                    {"word": "Nicusor", "tag": "PERSON"},
                    {"word": "Dan", "tag": "PERSON"},
                    {"word": "la", "tag": "OTHER"},
                    {"word": "Bucharest", "tag": "LOCATION"},
                ]
            }
        },
    }

    response = client.post("/extract/sentences", json=payload)

    assert response.status_code == 200
    results = response.json()["results"]
    assert [(p["name"], p["count"]) for p in results["people"]] == [("Nicusor Dan", 1)]
    assert results["places"]["mentions"][0]["source"]["sentence_id"] == "7"


def test_extract_sentences_rejects_malformed_tokens(gazetteer):
    client, _ = build_client(gazetteer)

    response = client.post(
        "/extract/sentences",
        json={"sentences": {"7": {"tokens": [{"word": "Dan", "tag": 3}]}}},
    )

    assert response.status_code == 422
    assert response.json()["detail"]["status"] == "error"


def test_resolve_locations_endpoint(gazetteer):
    client, _ = build_client(gazetteer)

    response = client.post(
        "/resolve/locations",
        json={
            "locations": [{"text": "Paris"}, {"text": "Atlantis"}, {"text": "Bucharest", "position": 4}],
            "max_hit_depth": 2,
        },
    )

    assert response.status_code == 200
    places = response.json()["results"]["places"]
    assert [place["id"] for place in places] == ["2988507", "683506"]
    assert places[1]["source"]["char_index"] == 4


def test_resolve_locations_rejects_blank_text(gazetteer):
    client, _ = build_client(gazetteer)

    response = client.post("/resolve/locations", json={"locations": [{"text": "  "}]})

    assert response.status_code == 422


def test_geonames_lookup(gazetteer):
    client, _ = build_client(gazetteer)

    found = client.get("/geonames/683506")
    missing = client.get("/geonames/0")

    assert found.status_code == 200
    assert found.json()["results"]["name"] == "București"
    assert missing.status_code == 404
    assert missing.json()["detail"]["details"] == "Invalid gazetteer id 0"


def test_container_without_gazetteer_degrades(tmp_path):
    registry = ExtractorRegistry(use_entry_points=False)
    registry.add("fake", FakeTagger())
    config = ParserConfig(
        registry=registry,
        geoindex_path=str(tmp_path / "missing"),
        demonyms=DemonymMap({}, available=False),
    )

    container = build_parser_container(config)
    client = TestClient(create_app(config))

    assert not container.resolver.available
    assert container.demonyms is config.demonyms
    health = client.get("/healthz").json()
    assert health["resolver_available"] is False
    assert health["demonyms_available"] is False
    assert client.post("/extract", json={"text": "Maria visited Paris"}).json()["results"]["places"]["mentions"] == []


def test_config_from_env(monkeypatch, tmp_path):
    monkeypatch.setenv("ENTITYFOLD_EXTRACTORS", "a.b:c, d.e:f")
    monkeypatch.setenv("ENTITYFOLD_EXTRACTOR_SETTINGS", '{"http_ner.url": "http://tagger"}')
    monkeypatch.setenv("ENTITYFOLD_GEOINDEX_PATH", str(tmp_path))
    monkeypatch.setenv("ENTITYFOLD_FUZZY", "true")
    monkeypatch.setenv("ENTITYFOLD_MAX_HIT_DEPTH", "3")
    monkeypatch.setenv("ENTITYFOLD_REPLACE_DEMONYMS", "1")
    monkeypatch.setenv("ENTITYFOLD_EXTRACTOR_WORKERS", "4")
    monkeypatch.setenv("ENTITYFOLD_LOCATION_STRATEGY", "heuristic")

    config = ParserConfig.from_env()

    assert config.extractor_factories == ["a.b:c", "d.e:f"]
    assert config.extractor_settings == {"http_ner.url": "http://tagger"}
    assert config.geoindex_path == str(tmp_path)
    assert config.fuzzy is True
    assert config.max_hit_depth == 3
    assert config.replace_demonyms is True
    assert config.extractor_workers == 4
    assert config.location_strategy == "heuristic"


def test_config_from_env_rejects_bad_values(monkeypatch):
    monkeypatch.setenv("ENTITYFOLD_EXTRACTOR_SETTINGS", "{broken")
    with pytest.raises(ConfigurationError):
        ParserConfig.from_env()

    monkeypatch.setenv("ENTITYFOLD_EXTRACTOR_SETTINGS", "{}")
    monkeypatch.setenv("ENTITYFOLD_MAX_HIT_DEPTH", "ten")
    with pytest.raises(ConfigurationError):
        ParserConfig.from_env()


def test_heuristic_location_strategy_is_configurable(tmp_path):
    (tmp_path / "places.json").write_text(
        '[{"id": "7", "name": "Iasi", "latitude": 47.16, "longitude": 27.58}]', encoding="utf-8"
    )
    registry = ExtractorRegistry(use_entry_points=False)
    registry.add("fake", FakeTagger())

    container = build_parser_container(
        ParserConfig(
            registry=registry,
            geoindex_path=str(tmp_path),
            location_strategy="heuristic",
            demonyms=DemonymMap({}),
        )
    )

    assert isinstance(container.resolver.strategy, HeuristicLocationStrategy)


def test_unknown_location_strategy_fails_at_startup(tmp_path):
    registry = ExtractorRegistry(use_entry_points=False)
    registry.add("fake", FakeTagger())

    with pytest.raises(ConfigurationError):
        build_parser_container(
            ParserConfig(registry=registry, geoindex_path=str(tmp_path), location_strategy="nearest")
        )
