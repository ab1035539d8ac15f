import random
import threading

from entityfold.extraction.disambiguation import (
    ExactMatchStrategy,
    OrganizationResolver,
    PersonResolver,
    SubstringOverlapStrategy,
)
from entityfold.extraction.models import OrganizationOccurrence, PersonOccurrence, total_occurrences


def _people(*names: str) -> list[PersonOccurrence]:
    return [PersonOccurrence(name, index) for index, name in enumerate(names)]


def _orgs(*names: str) -> list[OrganizationOccurrence]:
    return [OrganizationOccurrence(name, index) for index, name in enumerate(names)]


def test_substring_merge_keeps_the_longest_name():
    resolved = SubstringOverlapStrategy().select(_people("Nicușor Dan", "Dan"))

    assert len(resolved) == 1
    assert resolved[0].name() == "Nicușor Dan"
    assert resolved[0].occurrence_count == 2


def test_substring_merge_recomputes_name_after_a_longer_alias():
    resolved = SubstringOverlapStrategy().select(_people("Dan", "Nicușor Dan"))

    assert len(resolved) == 1
    assert resolved[0].name() == "Nicușor Dan"
    assert resolved[0].occurrence_count == 2


def test_substring_merge_ignores_case():
    resolved = SubstringOverlapStrategy().select(_people("NICUȘOR DAN", "dan"))

    assert len(resolved) == 1


def test_substring_merge_is_first_match_wins():
    resolved = SubstringOverlapStrategy().select(_people("Ion Dan", "Dan Popescu", "Dan"))

    assert [person.name() for person in resolved] == ["Ion Dan", "Dan Popescu"]
    assert [person.occurrence_count for person in resolved] == [2, 1]


def test_later_occurrences_compare_against_updated_name():
    # "Nicușor" only overlaps with the entity once "Nicușor Dan" became its name.
    resolved = SubstringOverlapStrategy().select(_people("Dan", "Nicușor Dan", "Nicușor"))

    assert len(resolved) == 1
    assert resolved[0].occurrence_count == 3


def test_exact_match_is_idempotent():
    resolved = ExactMatchStrategy().select(_orgs("Guvernul", "Guvernul"))

    assert len(resolved) == 1
    assert resolved[0].occurrence_count == 2


def test_exact_match_ignores_case_but_not_suffixes():
    resolved = ExactMatchStrategy().select(_orgs("Apple", "APPLE", "Apple Inc."))

    assert [org.name() for org in resolved] == ["Apple", "Apple Inc."]
    assert resolved[0].occurrence_count == 2


def test_strategies_never_drop_or_duplicate_occurrences():
    rng = random.Random(7)
    vocabulary = ["Ion", "Ion Dan", "Dan", "Maria", "Maria Pop", "Pop", "Ana"]
    for _ in range(50):
        names = [rng.choice(vocabulary) for _ in range(rng.randint(1, 20))]

        people = SubstringOverlapStrategy().select(_people(*names))
        orgs = ExactMatchStrategy().select(_orgs(*names))

        assert total_occurrences(people) == len(names)
        assert total_occurrences(orgs) == len(names)
        seen = [occ for person in people for occ in person.occurrences]
        assert sorted(seen, key=lambda occ: occ.position) == _people(*names)


def test_empty_input_yields_nothing():
    assert SubstringOverlapStrategy().select([]) == []
    assert ExactMatchStrategy().select([]) == []


def test_resolvers_log_merge_stats(caplog):
    caplog.set_level("INFO", logger="entityfold.disambiguation")

    people = PersonResolver().resolve(_people("Nicușor Dan", "Dan"))
    orgs = OrganizationResolver().resolve(_orgs("A", "B"))

    assert len(people) == 1
    assert len(orgs) == 2
    assert "2 occurrences resolved into 1 persons (1 merged)" in caplog.text


def test_log_stats_before_select_does_not_raise():
    ExactMatchStrategy().log_stats()
    SubstringOverlapStrategy().log_stats()


def test_stats_are_kept_per_thread(caplog):
    caplog.set_level("INFO", logger="entityfold.disambiguation")
    strategy = SubstringOverlapStrategy()
    barrier = threading.Barrier(2)

    def run(*names: str) -> None:
        strategy.select(_people(*names))
        barrier.wait()
        strategy.log_stats()

    threads = [
        threading.Thread(target=run, args=("Ana", "Ion", "Radu")),
        threading.Thread(target=run, args=("Nicușor Dan", "Dan")),
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert "3 occurrences resolved into 3" in caplog.text
    assert "2 occurrences resolved into 1" in caplog.text
