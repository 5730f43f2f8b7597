"""Query analysis with an LLM primary path and a rule-based fallback."""

import json
from typing import Any

from openai import OpenAI, OpenAIError

from .config import config
from .models import Intent, QueryAnalysis, SearchFilters
from .nlp import (
    classify_intent,
    derive_search_filters,
    extract_entities,
    extract_keywords,
    extract_timeframe,
)

logger = config.get_logger(__name__)

DEFAULT_LLM_CONFIDENCE = 0.7

ANALYSIS_SYSTEM_PROMPT = """You are an NLP analyst for a repository of business \
documents (RFPs, case studies, proposals, win/loss analyses).
Analyze the user query and extract:
1. Intent: one of information_retrieval, comparison, summarization, \
specific_search, general_question
2. Key entities such as companies, technologies and industries
3. Search keywords
4. Classification confidence between 0 and 1

Respond with ONLY a JSON object in this format:
{
  "intent": "intent_type",
  "confidence": 0.85,
  "entities": ["entity1", "entity2"],
  "keywords": ["keyword1", "keyword2"],
  "industries": ["industry1"],
  "technologies": ["tech1"],
  "documentTypes": ["type1"]
}"""


def _string_list(value: Any) -> list[str]:
    """Coerce a JSON value into a list of non-empty strings.

    Raises:
        TypeError: If the value is neither null nor a list.
    """
    if value is None:
        return []
    if not isinstance(value, list):
        msg = f"Expected a list, got {type(value).__name__}"
        raise TypeError(msg)
    return [str(item).strip() for item in value if str(item).strip()]


class QueryAnalyzer:
    """Produces a ``QueryAnalysis`` for every query, never raising."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        *,
        use_llm: bool | None = None,
        client: OpenAI | None = None,
    ) -> None:
        """Initialize the analyzer.

        Args:
            api_key: OpenAI API key. If None, reads OPENAI_API_KEY.
            model: Chat model for analysis. If None, uses config.NLP_MODEL.
            use_llm: Whether to try the model first. If None, uses
                config.NLP_USE_LLM.
            client: Preconfigured OpenAI client, mainly for tests.
        """
        self.model = model or config.NLP_MODEL
        self.use_llm = config.NLP_USE_LLM if use_llm is None else use_llm
        resolved_key = api_key or config.get_openai_api_key()

        self.client = client
        if self.client is None and self.use_llm and resolved_key:
            self.client = OpenAI(**config.openai_client_kwargs(resolved_key))

    def analyze(self, text: str) -> QueryAnalysis:
        """Classify intent and extract keywords, entities and filters.

        Returns:
            The model's analysis when available, otherwise the heuristic one.
        """
        text = text or ""
        if self.use_llm and self.client is not None and text.strip():
            try:
                analysis = self._analyze_with_llm(text)
            except (
                OpenAIError,
                json.JSONDecodeError,
                ValueError,
                TypeError,
                KeyError,
                IndexError,
                AttributeError,
            ) as exc:
                logger.warning("LLM query analysis failed, using fallback: %s", exc)
            else:
                logger.info(
                    "LLM analysis: intent=%s confidence=%.2f",
                    analysis.intent,
                    analysis.confidence,
                )
                return analysis

        return self.analyze_heuristically(text)

    @staticmethod
    def analyze_heuristically(text: str) -> QueryAnalysis:
        """Rule-based analysis used when the model is unavailable.

        Returns:
            Analysis built from keyword, entity, intent and filter extraction.
        """
        keywords = extract_keywords(text)
        entities = extract_entities(text)
        intent, confidence = classify_intent(text)
        filters = derive_search_filters(entities, text)
        logger.debug("Heuristic analysis: intent=%s keywords=%s", intent, keywords)
        return QueryAnalysis(
            intent=intent,
            confidence=confidence,
            keywords=keywords,
            entities=entities,
            filters=filters,
            source="heuristic",
        )

    def _analyze_with_llm(self, text: str) -> QueryAnalysis:
        """Ask the chat model for a JSON analysis and parse it.

        Raises:
            ValueError: If the response carries no JSON object.
        """
        response = self.client.chat.completions.create(  # type: ignore[union-attr]
            model=self.model,
            messages=[
                {"role": "system", "content": ANALYSIS_SYSTEM_PROMPT},
                {"role": "user", "content": text},
            ],
            temperature=config.NLP_TEMPERATURE,
            max_tokens=config.NLP_MAX_TOKENS,
        )
        content = response.choices[0].message.content
        if not content:
            msg = "Empty analysis response"
            raise ValueError(msg)

        payload = json.loads(content)
        if not isinstance(payload, dict):
            msg = "Analysis response is not a JSON object"
            raise ValueError(msg)

        return self._parse_payload(payload, text)

    @staticmethod
    def _parse_payload(payload: dict[str, Any], text: str) -> QueryAnalysis:
        """Turn the model's JSON into a ``QueryAnalysis`` with defaults applied.

        Returns:
            Analysis marked with source ``llm``.
        """
        try:
            intent = Intent(str(payload.get("intent") or Intent.GENERAL_QUESTION))
        except ValueError:
            intent = Intent.GENERAL_QUESTION

        raw_confidence = payload.get("confidence")
        confidence = (
            DEFAULT_LLM_CONFIDENCE if raw_confidence is None else float(raw_confidence)
        )
        confidence = min(1.0, max(0.0, confidence))

        filters = SearchFilters(
            industries=_string_list(payload.get("industries")) or None,
            technologies=_string_list(payload.get("technologies")) or None,
            document_types=_string_list(payload.get("documentTypes")) or None,
            timeframe=extract_timeframe(text),
        )

        return QueryAnalysis(
            intent=intent,
            confidence=confidence,
            keywords=_string_list(payload.get("keywords")),
            entities=_string_list(payload.get("entities")),
            filters=filters,
            source="llm",
        )
