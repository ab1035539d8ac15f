from typing import Any, Mapping

import pytest

from entityfold.extraction.models import (
    ExtractedEntities,
    GenericOccurrence,
    LocationOccurrence,
    OrganizationOccurrence,
    PersonOccurrence,
    Sentiment,
)
from entityfold.extraction.registry import ExtractorRegistry
from entityfold.extraction.resolver import LocationResolver
from entityfold.extraction.service import PARSER_VERSION, EntityParser, error_payload
from entityfold.extraction.tokens import merge_tagged_tokens


class FakeExtractor:
    def __init__(self, label: str, people=(), orgs=(), places=()):
        self.label = label
        self.people = people
        self.orgs = orgs
        self.places = places
        self.sentences: Any = None

    def name(self) -> str:
        return self.label

    def initialize(self, config: Mapping[str, Any]) -> None:
        return None

    def extract_entities(self, language, text, replace_demonyms):
        entities = ExtractedEntities()
        for name in self.people:
            entities.add_person(PersonOccurrence(name))
        for name in self.orgs:
            entities.add_organization(OrganizationOccurrence(name))
        for name in self.places:
            entities.add_location(LocationOccurrence(name, max(0, text.find(name))))
        return entities

    def extract_entities_from_sentences(self, language, sentences, replace_demonyms):
        self.sentences = sentences
        return merge_tagged_tokens(sentences)


def _parser(gazetteer, *extractors) -> EntityParser:
    registry = ExtractorRegistry(use_entry_points=False)
    for extractor in extractors:
        registry.add(extractor.label, extractor)
    registry.initialize({})
    return EntityParser(registry, LocationResolver(gazetteer))


def test_extract_and_resolve_runs_the_whole_pipeline(gazetteer):
    parser = _parser(
        gazetteer,
        FakeExtractor("first", people=["Nicușor Dan"], orgs=["Guvernul"], places=["Paris"]),
        FakeExtractor("second", people=["Dan"], orgs=["guvernul"], places=["Atlantis"]),
    )

    result = parser.extract_and_resolve("ro", "Nicușor Dan a vizitat Paris", False)

    assert [(p.name(), p.occurrence_count) for p in result.people] == [("Nicușor Dan", 2)]
    assert [(o.name(), o.occurrence_count) for o in result.organizations] == [("Guvernul", 2)]
    assert [place.gazetteer_id for place in result.locations] == ["2988507"]
    assert [country.key for country in result.focus.countries] == ["FR"]
    assert len(result.entities.locations) == 2


def test_payload_shape(gazetteer):
    parser = _parser(gazetteer, FakeExtractor("only", people=["Ion"], places=["Paris"]))

    payload = parser.extract_and_resolve("ro", "Ion la Paris").to_payload()

    assert payload["status"] == "ok"
    assert payload["version"] == PARSER_VERSION
    results = payload["results"]
    assert results["people"] == [
        {
            "name": "Ion",
            "count": 1,
            "occurrences": [{"text": "Ion", "position": 0, "sentiment": None}],
        }
    ]
    assert results["concepts"] == []
    mention = results["places"]["mentions"][0]
    assert mention["id"] == "2988507"
    assert mention["country_code"] == "FR"
    assert mention["source"] == {"string": "Paris", "char_index": 7, "sentiment": None}
    assert results["places"]["focus"]["cities"][0]["id"] == "2988507"


class SentimentExtractor(FakeExtractor):
    def extract_entities(self, language, text, replace_demonyms):
        entities = ExtractedEntities()
        entities.add_person(PersonOccurrence("Ion", 5, Sentiment.from_label("neg", 0.9)))
        entities.add_person(PersonOccurrence("Ion Popescu", 30, Sentiment.from_label("pos", 0.6)))
        entities.add_location(LocationOccurrence("Paris", 12, Sentiment.from_label("neutral", 0.5)))
        entities.add_generic(
            GenericOccurrence("român", "nationality", 20, Sentiment.from_label("pos", 0.7), 0.95)
        )
        return entities


def test_payload_keeps_every_occurrence_with_its_sentiment(gazetteer):
    parser = _parser(gazetteer, SentimentExtractor("sentiment"))

    results = parser.extract_and_resolve("ro", "text").to_payload()["results"]

    assert results["people"] == [
        {
            "name": "Ion Popescu",
            "count": 2,
            "occurrences": [
                {"text": "Ion", "position": 5, "sentiment": {"class": "negative", "score": 0.9}},
                {
                    "text": "Ion Popescu",
                    "position": 30,
                    "sentiment": {"class": "positive", "score": 0.6},
                },
            ],
        }
    ]
    source = results["places"]["mentions"][0]["source"]
    assert source["sentiment"] == {"class": "neutral", "score": 0.5}
    assert results["concepts"] == [
        {
            "text": "român",
            "position": 20,
            "sentiment": {"class": "positive", "score": 0.7},
            "type": "nationality",
            "score": 0.95,
        }
    ]


def test_sentences_are_validated_and_keep_sentence_ids(gazetteer):
    extractor = FakeExtractor("tagger")
    parser = _parser(gazetteer, extractor)
    sentences = {
        "s1": {"tokens": [{"word": "Paris", "tag": "LOCATION"}, {"word": "e", "tag": "OTHER"}]},
    }

    result = parser.extract_and_resolve_from_sentences("ro", sentences)

    assert result.locations[0].occurrence.sentence_id == "s1"
    assert result.to_payload()["results"]["places"]["mentions"][0]["source"]["sentence_id"] == "s1"


def test_malformed_sentences_fail_before_reaching_backends(gazetteer):
    extractor = FakeExtractor("tagger")
    parser = _parser(gazetteer, extractor)

    with pytest.raises(ValueError):
        parser.extract_and_resolve_from_sentences("ro", {"s1": {"tokens": [{"word": 1}]}})
    assert extractor.sentences is None


def test_unavailable_resolver_still_resolves_people():
    registry = ExtractorRegistry(use_entry_points=False)
    registry.add("only", FakeExtractor("only", people=["Ion"], places=["Paris"]))
    registry.initialize({})
    parser = EntityParser(registry, LocationResolver(None))

    result = parser.extract_and_resolve("ro", "Ion la Paris")

    assert result.locations == []
    assert [p.name() for p in result.people] == ["Ion"]


def test_error_payload():
    assert error_payload("bad") == {"status": "error", "version": PARSER_VERSION, "details": "bad"}
