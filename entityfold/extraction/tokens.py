"""Turn per-token tagger output into entity occurrences.

Sentence taggers return one tag per token. Adjacent tokens sharing an entity
tag form a single mention ("Nicusor/PERSON Dan/PERSON" is one person), so the
merger joins every maximal run of equally tagged tokens into one occurrence.
"""
from __future__ import annotations

import json
from enum import Enum
from typing import Any, Iterable, Mapping, Sequence, Union

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    StrictStr,
    TypeAdapter,
    field_validator,
    model_validator,
)

from .models import (
    ExtractedEntities,
    LocationOccurrence,
    OrganizationOccurrence,
    PersonOccurrence,
)

_METADATA_KEY = "_"


class EntityTag(str, Enum):
    PERSON = "PERSON"
    LOCATION = "LOCATION"
    ORGANIZATION = "ORGANIZATION"
    OTHER = "OTHER"


class TaggedToken(BaseModel):
    """A word plus the entity tag assigned by the tagger."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="forbid")

    word: StrictStr
    tag: EntityTag = Field(validation_alias=AliasChoices("tag", "ne"))

    @field_validator("tag", mode="before")
    @classmethod
    def _coerce_tag(cls, value: Any) -> Any:
        # Taggers emit many more labels (O, DATE, MISC...); only three matter.
        if isinstance(value, EntityTag):
            return value
        if not isinstance(value, str):
            raise ValueError(f"tag must be a string, got {type(value).__name__}")
        upper = value.strip().upper()
        if upper in EntityTag.__members__:
            return EntityTag(upper)
        return EntityTag.OTHER


class TaggedSentence(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    tokens: list[TaggedToken]


class TaggedSentenceGroup(BaseModel):
    """Every tagged sentence sharing one source sentence id.

    A source sentence may be split into several tagger sentences; the short
    form ``{"tokens": [...]}`` is accepted for the common one-to-one case.
    """

    model_config = ConfigDict(extra="forbid")

    sentences: list[TaggedSentence]

    @model_validator(mode="before")
    @classmethod
    def _wrap_single_sentence(cls, value: Any) -> Any:
        if isinstance(value, Mapping) and "tokens" in value and "sentences" not in value:
            return {"sentences": [value]}
        return value


_GROUPS_ADAPTER = TypeAdapter(dict[str, TaggedSentenceGroup])

SentenceInput = Union[
    Mapping[str, Any],
    str,
    Iterable[TaggedSentence],
    Iterable[tuple[str, TaggedSentence]],
]


def parse_tagged_sentences(payload: Mapping[str, Any] | str) -> list[tuple[str, TaggedSentence]]:
    """Validate ``{sentence_id: {tokens: [...]}}`` into typed sentences.

    Raises ``ValueError`` (a pydantic ``ValidationError`` or a JSON decoding
    error) when the payload does not have the expected shape.
    """

    if isinstance(payload, (str, bytes)):
        payload = json.loads(payload)
    if not isinstance(payload, Mapping):
        raise ValueError("Tagged sentences must be a mapping of sentence id to tokens")
    filtered = {str(key): value for key, value in payload.items() if str(key) != _METADATA_KEY}
    groups = _GROUPS_ADAPTER.validate_python(filtered)
    return [
        (sentence_id, sentence)
        for sentence_id, group in groups.items()
        for sentence in group.sentences
    ]


def _normalize_input(sentences: SentenceInput) -> list[tuple[str | None, TaggedSentence]]:
    if isinstance(sentences, (Mapping, str, bytes)):
        return list(parse_tagged_sentences(sentences))
    normalized: list[tuple[str | None, TaggedSentence]] = []
    for item in sentences:
        if isinstance(item, TaggedSentence):
            normalized.append((None, item))
        else:
            sentence_id, sentence = item
            normalized.append((sentence_id, sentence))
    return normalized


def _flush(entities: ExtractedEntities, text: str, tag: EntityTag, sentence_id: str | None) -> None:
    if tag is EntityTag.PERSON:
        entities.add_person(PersonOccurrence(text, 0))
    elif tag is EntityTag.LOCATION:
        entities.add_location(LocationOccurrence(text, 0, sentence_id=sentence_id))
    elif tag is EntityTag.ORGANIZATION:
        entities.add_organization(OrganizationOccurrence(text, 0))


def merge_sentence_tokens(
    tokens: Sequence[TaggedToken],
    entities: ExtractedEntities,
    *,
    sentence_id: str | None = None,
) -> None:
    """Merge the tokens of one sentence into ``entities``."""

    pending_text: str | None = None
    pending_tag: EntityTag | None = None
    for token in tokens:
        if pending_tag is not None and token.tag is pending_tag:
            pending_text = f"{pending_text} {token.word}"
            continue
        if pending_text is not None and pending_tag is not None:
            _flush(entities, pending_text, pending_tag, sentence_id)
        if token.tag is EntityTag.OTHER:
            pending_text, pending_tag = None, None
        else:
            pending_text, pending_tag = token.word, token.tag
    if pending_text is not None and pending_tag is not None:
        _flush(entities, pending_text, pending_tag, sentence_id)


def merge_tagged_tokens(sentences: SentenceInput) -> ExtractedEntities:
    """Produce one occurrence per maximal run of same-tag tokens.

    State is reset at every sentence boundary. Location occurrences keep the
    id of the sentence they came from; positions are not tracked and default
    to 0.
    """

    entities = ExtractedEntities()
    for sentence_id, sentence in _normalize_input(sentences):
        merge_sentence_tokens(sentence.tokens, entities, sentence_id=sentence_id)
    return entities


__all__ = [
    "EntityTag",
    "TaggedSentence",
    "TaggedSentenceGroup",
    "TaggedToken",
    "merge_sentence_tokens",
    "merge_tagged_tokens",
    "parse_tagged_sentences",
]
