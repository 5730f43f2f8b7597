"""Tests for prompt assembly and answer generation."""

from unittest.mock import Mock

import pytest
from conftest import make_document
from openai import OpenAIError

from kbchat import (
    AnswerSynthesizer,
    CompletionError,
    Intent,
    QueryAnalysis,
    RetrievalResult,
    SearchFilters,
    SearchMethod,
)
from kbchat.config import config
from kbchat.synthesis import (
    EMPTY_RESPONSE_TEXT,
    INTENT_INSTRUCTIONS,
    NO_CONTENT_TEXT,
    NO_DOCUMENTS_TEXT,
    TRUNCATION_MARKER,
)


def _result(method=SearchMethod.VECTOR, matches=None, confidence=0.82):
    if matches is None:
        matches = [(make_document(id=1), 0.873)]
    return RetrievalResult(matches=matches, method=method, confidence=confidence)


def test_prompt_lists_documents_with_relevance(synthesizer_factory):
    prompt = synthesizer_factory().build_system_prompt(_result())

    assert "Search method: vector (semantic similarity search)" in prompt
    assert "Confidence level: 0.82" in prompt
    assert 'DOCUMENT 1: "Healthcare Cloud Migration RFP Response" (87% relevance)' in prompt
    assert "Client: MedCenter Corp" in prompt
    assert "encrypted patient records" in prompt
    assert "QUERY ANALYSIS" not in prompt


def test_relevance_only_shown_for_vector_results(synthesizer_factory):
    prompt = synthesizer_factory().build_system_prompt(
        _result(method=SearchMethod.ENHANCED_TEXT, matches=[(make_document(), 0.5)])
    )

    assert "relevance)" not in prompt
    assert "NLP-enhanced keyword search" in prompt


def test_prompt_without_documents(synthesizer_factory):
    prompt = synthesizer_factory().build_system_prompt(
        _result(method=SearchMethod.NONE, matches=[], confidence=0.3)
    )

    assert prompt.endswith(NO_DOCUMENTS_TEXT)
    assert "DOCUMENT 1" not in prompt


def test_prompt_includes_analysis_and_structure(synthesizer_factory):
    analysis = QueryAnalysis(
        intent=Intent.COMPARISON,
        confidence=0.5,
        keywords=["cloud", "premise"],
        entities=["cloud"],
        filters=SearchFilters(technologies=["cloud"], timeframe="2023"),
    )

    prompt = synthesizer_factory().build_system_prompt(_result(), analysis)

    assert "QUERY ANALYSIS" in prompt
    assert "Intent: comparison (confidence 0.50)" in prompt
    assert "Keywords: cloud, premise" in prompt
    assert "Filters: technologies: cloud; timeframe: 2023" in prompt
    assert INTENT_INSTRUCTIONS[Intent.COMPARISON] in prompt
    assert "side by side" in prompt
    assert prompt.index("QUERY ANALYSIS") < prompt.index("DOCUMENT 1")


def test_summarization_structure_instruction(synthesizer_factory):
    analysis = QueryAnalysis(intent=Intent.SUMMARIZATION, confidence=0.4)

    prompt = synthesizer_factory().build_system_prompt(_result(), analysis)

    assert "concise summary in bullet points" in prompt
    assert "Filters: none" in prompt


def test_every_intent_has_an_instruction():
    assert set(INTENT_INSTRUCTIONS) == set(Intent)


def test_long_content_is_truncated(synthesizer_factory):
    synthesizer = synthesizer_factory(max_document_chars=20)
    document = make_document(content="x" * 50)

    context = synthesizer.document_context(document)

    assert context == "x" * 20 + TRUNCATION_MARKER


def test_content_at_limit_is_not_truncated(synthesizer_factory):
    synthesizer = synthesizer_factory(max_document_chars=50)

    assert synthesizer.document_context(make_document(content="y" * 50)) == "y" * 50


def test_missing_content_uses_summary_then_note(synthesizer_factory):
    synthesizer = synthesizer_factory()

    with_summary = make_document(content="  ")
    bare = make_document(content="", summary="")

    assert synthesizer.document_context(with_summary) == with_summary.summary
    assert synthesizer.document_context(bare) == NO_CONTENT_TEXT


def test_default_document_limit_from_config(synthesizer_factory):
    synthesizer = synthesizer_factory()

    assert synthesizer.max_document_chars == config.MAX_DOCUMENT_CONTEXT_CHARS
    assert synthesizer.model == config.CHAT_MODEL


def test_generate_sends_prompt_and_query(synthesizer_factory):
    synthesizer = synthesizer_factory("  Grounded answer.  ")

    answer = synthesizer.generate("What did we propose?", _result())

    assert answer == "Grounded answer."
    call = synthesizer.client.chat.completions.create.call_args
    assert call.kwargs["model"] == config.CHAT_MODEL
    assert call.kwargs["max_tokens"] == config.CHAT_MAX_TOKENS
    assert call.kwargs["temperature"] == config.CHAT_TEMPERATURE
    system, user = call.kwargs["messages"]
    assert system["role"] == "system"
    assert "AVAILABLE DOCUMENTS WITH CONTENT" in system["content"]
    assert user == {"role": "user", "content": "What did we propose?"}


@pytest.mark.parametrize("content", [None, "", "   "])
def test_empty_completion_returns_apology(synthesizer_factory, content):
    answer = synthesizer_factory(content).generate("q", _result())

    assert answer == EMPTY_RESPONSE_TEXT


def test_completion_failure_raises(synthesizer_factory):
    synthesizer = synthesizer_factory()
    synthesizer.client.chat.completions.create.side_effect = OpenAIError("boom")

    with pytest.raises(CompletionError, match="Completion request failed"):
        synthesizer.generate("q", _result())


def test_custom_model_is_used():
    client = Mock()
    client.chat.completions.create.return_value.choices = [
        Mock(message=Mock(content="ok"))
    ]
    synthesizer = AnswerSynthesizer(model="gpt-test", client=client)

    synthesizer.generate("q", _result())

    assert client.chat.completions.create.call_args.kwargs["model"] == "gpt-test"
