"""Rule-based query analysis: keywords, entities, intent and filters.

Everything here is pure and never raises; empty or unexpected input simply
produces empty results.
"""

import re

from .models import Intent, SearchFilters
from .vocabulary import (
    CAPITALIZED_COMMON_WORDS,
    DOCUMENT_TYPE_TERMS,
    INDUSTRIES,
    INTENT_PATTERNS,
    STOP_WORDS,
    TECHNOLOGIES,
)

DEFAULT_INTENT = Intent.GENERAL_QUESTION
DEFAULT_INTENT_CONFIDENCE = 0.3
MIN_TOKEN_LENGTH = 3

_PUNCTUATION = re.compile(r"[^\w\s]")
_CAPITALIZED_RUN = re.compile(r"\b[A-Z][a-z]+(?:\s+[A-Z][a-z]+)*\b")
_TIMEFRAME = re.compile(
    r"\b(202[0-9]|201[0-9]|last\s+year|recent|latest)\b", re.IGNORECASE
)


def normalize_text(text: str) -> str:
    """Lower-case text and replace punctuation with spaces.

    Returns:
        Normalized text.
    """
    return _PUNCTUATION.sub(" ", text.lower())


def extract_keywords(text: str) -> list[str]:
    """Split text into content-bearing tokens.

    Tokens shorter than three characters and stop words are dropped. Order is
    preserved and duplicates are kept.

    Returns:
        Keyword tokens in input order.
    """
    return [
        token
        for token in normalize_text(text).split()
        if len(token) >= MIN_TOKEN_LENGTH and token not in STOP_WORDS
    ]


def extract_entities(text: str) -> list[str]:
    """Find vocabulary terms and capitalized proper-noun candidates.

    Returns:
        Deduplicated entities in discovery order.
    """
    entities: dict[str, None] = {}
    lower_text = text.lower()

    for vocabulary in (INDUSTRIES, TECHNOLOGIES, DOCUMENT_TYPE_TERMS):
        for term in vocabulary:
            if term.lower() in lower_text:
                entities.setdefault(term, None)

    for candidate in _CAPITALIZED_RUN.findall(text):
        if len(candidate) > 2 and candidate not in CAPITALIZED_COMMON_WORDS:
            entities.setdefault(candidate, None)

    return list(entities)


def classify_intent(text: str) -> tuple[Intent, float]:
    """Score each intent by the share of its trigger phrases present.

    Returns:
        The best intent and its confidence; ``general_question`` at 0.3 when
        nothing scores higher.
    """
    lower_text = text.lower()
    best_intent, best_confidence = DEFAULT_INTENT, DEFAULT_INTENT_CONFIDENCE

    for intent, patterns in INTENT_PATTERNS.items():
        matches = sum(1 for pattern in patterns if pattern in lower_text)
        confidence = matches / len(patterns)
        if confidence > best_confidence:
            best_intent, best_confidence = intent, confidence

    return best_intent, best_confidence


def extract_timeframe(text: str) -> str | None:
    """Return the first year (2010-2029) or recency phrase in text."""
    match = _TIMEFRAME.search(text)
    return match.group(0) if match else None


def _matching(entities: list[str], vocabulary: tuple[str, ...]) -> list[str] | None:
    terms = {term.lower() for term in vocabulary}
    found = [entity for entity in entities if entity.lower() in terms]
    return found or None


def derive_search_filters(entities: list[str], text: str) -> SearchFilters:
    """Turn extracted entities and raw text into search constraints.

    Returns:
        Filters whose fields are None when nothing matched.
    """
    return SearchFilters(
        industries=_matching(entities, INDUSTRIES),
        technologies=_matching(entities, TECHNOLOGIES),
        document_types=_matching(entities, DOCUMENT_TYPE_TERMS),
        timeframe=extract_timeframe(text),
    )
