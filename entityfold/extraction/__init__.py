"""Entity extraction, disambiguation and geocoding components."""
from .models import (
    ExtractedEntities,
    GenericOccurrence,
    LocationOccurrence,
    OrganizationOccurrence,
    PersonOccurrence,
    ResolvedLocation,
    ResolvedOrganization,
    ResolvedPerson,
    Sentiment,
    SentimentClass,
)
from .demonyms import DemonymMap, get_demonym_map, load_demonym_map
from .tokens import EntityTag, TaggedSentence, TaggedToken, merge_tagged_tokens, parse_tagged_sentences
from .registry import EntityExtractor, ExtractorRegistry, get_extractor_registry, set_extractor_registry
from .disambiguation import (
    ExactMatchStrategy,
    OrganizationResolver,
    PersonResolver,
    SubstringOverlapStrategy,
)
from .gazetteer import Gazetteer, GazetteerHit, GazetteerRecord, load_gazetteer
from .places import HeuristicLocationStrategy
from .resolver import MAX_HIT_DEPTH, LocationResolver, location_strategy
from .focus import FocusLocation, FrequencyOfMentionFocus
from .service import PARSER_VERSION, EntityParser, ParseResult, error_payload

__all__ = [
    "DemonymMap",
    "EntityExtractor",
    "EntityParser",
    "EntityTag",
    "ExactMatchStrategy",
    "ExtractedEntities",
    "ExtractorRegistry",
    "FocusLocation",
    "FrequencyOfMentionFocus",
    "Gazetteer",
    "GazetteerHit",
    "GazetteerRecord",
    "GenericOccurrence",
    "HeuristicLocationStrategy",
    "LocationOccurrence",
    "LocationResolver",
    "MAX_HIT_DEPTH",
    "OrganizationOccurrence",
    "OrganizationResolver",
    "PARSER_VERSION",
    "ParseResult",
    "PersonOccurrence",
    "PersonResolver",
    "ResolvedLocation",
    "ResolvedOrganization",
    "ResolvedPerson",
    "Sentiment",
    "SentimentClass",
    "SubstringOverlapStrategy",
    "TaggedSentence",
    "TaggedToken",
    "error_payload",
    "get_demonym_map",
    "get_extractor_registry",
    "load_demonym_map",
    "load_gazetteer",
    "location_strategy",
    "merge_tagged_tokens",
    "parse_tagged_sentences",
    "set_extractor_registry",
]
