from itertools import permutations

import pytest

from entityfold.extraction.models import (
    ExtractedEntities,
    GenericOccurrence,
    LocationOccurrence,
    OrganizationOccurrence,
    PersonOccurrence,
    ResolvedPerson,
    Sentiment,
    SentimentClass,
    total_occurrences,
)


def _batch(tag: str) -> ExtractedEntities:
    entities = ExtractedEntities()
    entities.add_person(PersonOccurrence(f"person-{tag}"))
    entities.add_organization(OrganizationOccurrence(f"org-{tag}", 3))
    entities.add_location(LocationOccurrence(f"place-{tag}", 7))
    return entities


def test_merge_appends_in_call_order_for_every_permutation():
    for order in permutations(["a", "b", "c"]):
        merged = ExtractedEntities()
        for tag in order:
            merged.merge(_batch(tag))

        assert [p.text for p in merged.persons] == [f"person-{tag}" for tag in order]
        assert [o.text for o in merged.organizations] == [f"org-{tag}" for tag in order]
        assert [l.text for l in merged.locations] == [f"place-{tag}" for tag in order]


def test_merge_is_associative():
    left = _batch("a").merge(_batch("b")).merge(_batch("c"))
    right = _batch("a").merge(_batch("b").merge(_batch("c")))

    assert left == right


def test_merge_never_deduplicates_and_accepts_none():
    entities = _batch("a")
    entities.merge(_batch("a")).merge(None)

    assert len(entities.persons) == 2
    assert len(entities) == 6
    assert not entities.is_empty()
    assert ExtractedEntities().is_empty()


@pytest.mark.parametrize("text, position", [("", 0), ("   ", 0), ("Paris", -1)])
def test_occurrence_rejects_invalid_values(text, position):
    with pytest.raises(ValueError):
        PersonOccurrence(text, position)


def test_occurrences_are_immutable_values():
    first = LocationOccurrence("Paris", 4, sentence_id="s1")
    second = LocationOccurrence("Paris", 4, sentence_id="s1")

    assert first == second
    with pytest.raises(AttributeError):
        first.text = "Lyon"


def test_sentiment_labels():
    assert Sentiment.from_label("neg", 0.8).sentiment_class is SentimentClass.NEGATIVE
    assert Sentiment.from_label("POS", 0.8).sentiment_class is SentimentClass.POSITIVE
    assert Sentiment.from_label(None, 0).sentiment_class is SentimentClass.NEUTRAL


def test_resolved_entity_name_is_longest_and_first_wins_ties():
    person = ResolvedPerson.of(PersonOccurrence("Dan"))
    person.add_occurrence(PersonOccurrence("Ion"))
    assert person.name() == "Dan"

    person.add_occurrence(PersonOccurrence("Nicușor Dan"))
    assert person.name() == "Nicușor Dan"
    assert person.occurrence_count == 3
    assert person.first_occurrence.text == "Dan"
    assert total_occurrences([person]) == 3


def test_resolved_entity_requires_an_occurrence():
    with pytest.raises(ValueError):
        ResolvedPerson([])


def test_generic_occurrences_are_merged_and_counted():
    entities = ExtractedEntities()
    assert entities.is_empty()

    entities.add_generic(GenericOccurrence("român", "nationality", 12, score=0.8))
    entities.merge(_batch("a"))

    assert not entities.is_empty()
    assert len(entities) == 4
    assert [g.concept_type for g in entities.generic] == ["nationality"]


@pytest.mark.parametrize("text, concept_type", [("", "email"), ("a@b.ro", "")])
def test_generic_occurrence_needs_text_and_type(text, concept_type):
    with pytest.raises(ValueError):
        GenericOccurrence(text, concept_type)
