"""Tests for the rule-based query analysis helpers."""

import pytest

from kbchat import Intent, SearchFilters
from kbchat.nlp import (
    classify_intent,
    derive_search_filters,
    extract_entities,
    extract_keywords,
    extract_timeframe,
    normalize_text,
)
from kbchat.vocabulary import INTENT_PATTERNS, resolve_document_type


def test_normalize_text_lowercases_and_strips_punctuation():
    assert normalize_text("Cloud-Migration, HIPAA!") == "cloud migration  hipaa "


def test_extract_keywords_drops_short_and_stop_words():
    keywords = extract_keywords("What are the benefits of cloud migration for a bank?")

    assert keywords == ["what", "benefits", "cloud", "migration", "bank"]


def test_extract_keywords_keeps_order_and_duplicates():
    assert extract_keywords("cloud Cloud cloud!") == ["cloud", "cloud", "cloud"]


@pytest.mark.parametrize(
    "text",
    [
        "Summarize our healthcare RFPs from 2023, please!",
        "compare AWS vs Azure for banking",
        "",
        "a an the",
    ],
)
def test_extract_keywords_is_idempotent(text):
    keywords = extract_keywords(text)
    assert extract_keywords(" ".join(keywords)) == keywords


def test_extract_entities_empty_input():
    assert extract_entities("") == []
    assert extract_keywords("") == []


def test_extract_entities_includes_vocabulary_and_proper_nouns():
    entities = extract_entities("Azure migration for Contoso Health in healthcare")

    assert {"healthcare", "azure", "migration"} <= set(entities)
    assert "Contoso Health" in entities


def test_extract_entities_skips_common_capitalized_words():
    entities = extract_entities("The proposal")

    assert "The" not in entities
    assert "proposal" in entities


def test_extract_entities_are_deduplicated():
    entities = extract_entities("cloud cloud Cloud")

    assert entities.count("cloud") == 1


def test_entities_cover_every_vocabulary_term_present():
    text = "We need an RFP on cybersecurity for a retail chain"
    entities = set(extract_entities(text))

    assert {"rfp", "cybersecurity", "security", "retail"} <= entities


@pytest.mark.parametrize(
    ("text", "expected_intent"),
    [
        (
            "What is the approach? Explain it, describe it and tell me about risks",
            Intent.INFORMATION_RETRIEVAL,
        ),
        (
            "Compare cloud vs on-premise: what is the difference between them",
            Intent.COMPARISON,
        ),
        ("Summarize the key points and main points", Intent.SUMMARIZATION),
        (
            "Find documents and search for case studies about banking",
            Intent.SPECIFIC_SEARCH,
        ),
        (
            "How to apply best practices? Any recommendations or advice?",
            Intent.GENERAL_QUESTION,
        ),
    ],
)
def test_classify_intent_by_trigger_phrases(text, expected_intent):
    intent, confidence = classify_intent(text)

    assert intent is expected_intent
    assert confidence > 0.3


@pytest.mark.parametrize(
    "text",
    ["tell me about cloud", "hello there", "", "compare", "compare X versus Y"],
)
def test_classify_intent_floor(text):
    assert classify_intent(text) == (Intent.GENERAL_QUESTION, 0.3)


def test_classify_intent_confidence_is_share_of_patterns():
    intent, confidence = classify_intent("summary, summarize, key points, tldr")

    assert intent is Intent.SUMMARIZATION
    assert confidence == pytest.approx(4 / len(INTENT_PATTERNS[Intent.SUMMARIZATION]))


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("proposals from 2023", "2023"),
        ("anything from last  year", "last  year"),
        ("the LATEST case studies", "LATEST"),
        ("recent wins in 2019", "recent"),
        ("projects from 1999", None),
    ],
)
def test_extract_timeframe(text, expected):
    assert extract_timeframe(text) == expected


def test_derive_search_filters_buckets_entities():
    filters = derive_search_filters(
        ["Healthcare", "azure", "rfp", "Contoso"], "latest rfp from 2023"
    )

    assert filters == SearchFilters(
        industries=["Healthcare"],
        technologies=["azure"],
        document_types=["rfp"],
        timeframe="latest",
    )


def test_derive_search_filters_absent_fields_are_none():
    filters = derive_search_filters([], "nothing relevant")

    assert filters.industries is None
    assert filters.technologies is None
    assert filters.document_types is None
    assert filters.timeframe is None
    assert filters.is_empty()
    assert filters.to_dict() == {}


def test_search_filters_to_dict_uses_wire_keys():
    filters = SearchFilters(document_types=["rfp"], timeframe="2024")

    assert filters.to_dict() == {"documentTypes": ["rfp"], "timeframe": "2024"}


@pytest.mark.parametrize(
    ("label", "expected"),
    [
        ("rfp", "RFP"),
        ("Case Study", "Case Study"),
        ("case study", "Case Study"),
        ("proposal", "Proposal"),
        ("win loss", "Win/Loss Analysis"),
        ("Win/Loss Analysis", "Win/Loss Analysis"),
        ("win-loss analysis", "Win/Loss Analysis"),
        ("report", None),
    ],
)
def test_resolve_document_type(label, expected):
    resolved = resolve_document_type(label)
    assert (resolved.value if resolved else None) == expected
