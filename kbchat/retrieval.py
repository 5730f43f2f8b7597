"""Cascading document retrieval: vector, then enhanced text, then basic text."""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from typing import TYPE_CHECKING

from .config import config
from .errors import EmbeddingError
from .models import (
    Document,
    QueryAnalysis,
    RetrievalResult,
    SearchMethod,
)
from .vocabulary import resolve_document_type

if TYPE_CHECKING:
    from .document_store import BaseSQLiteStore
    from .embeddings import EmbeddingService

logger = config.get_logger(__name__)


@dataclass(frozen=True)
class RetrievalSettings:
    """Thresholds, limits and confidence constants for retrieval."""

    similarity_threshold: float = 0.3
    vector_match_count: int = 8
    augment_keywords: int = 5
    enhanced_limit: int = 8
    enhanced_keyword_terms: int = 3
    enhanced_entity_terms: int = 2
    min_term_length: int = 3
    basic_limit: int = 5
    base_confidence: float = 0.3
    max_confidence: float = 0.95

    @classmethod
    def from_config(cls) -> RetrievalSettings:
        return cls(
            similarity_threshold=config.SIMILARITY_THRESHOLD,
            vector_match_count=config.VECTOR_MATCH_COUNT,
            augment_keywords=config.QUERY_AUGMENT_KEYWORDS,
            enhanced_limit=config.ENHANCED_SEARCH_LIMIT,
            basic_limit=config.BASIC_SEARCH_LIMIT,
        )


def _term_match_score(terms: list[str], document: Document) -> float:
    haystack = " ".join(
        [document.title, document.summary, " ".join(document.tags)]
        + [document.searchable_text()]
    ).lower()
    if not terms:
        return 0.0
    matched = sum(1 for term in terms if term.lower() in haystack)
    return matched / len(terms)


class RetrievalEngine:
    """Runs the retrieval strategies in order and keeps the first hit.

    Every store call is scoped to the caller's ``owner_id``.
    """

    def __init__(
        self,
        store: BaseSQLiteStore,
        embedding_service: EmbeddingService,
        settings: RetrievalSettings | None = None,
    ) -> None:
        self.store = store
        self.embedding_service = embedding_service
        self.settings = settings or RetrievalSettings.from_config()

    def retrieve(
        self,
        owner_id: str,
        query: str,
        analysis: QueryAnalysis | None = None,
    ) -> RetrievalResult:
        """Find the owner's documents relevant to ``query``.

        Args:
            owner_id: Authenticated user whose documents may be returned.
            query: Raw query text.
            analysis: Optional analysis; enables query augmentation and the
                enhanced text strategy.

        Returns:
            Result from the first strategy that found at least one document,
            or an empty result with method ``none``.
        """
        result = self._vector_search(owner_id, query, analysis)
        if result is not None:
            return result

        if analysis is not None:
            result = self._enhanced_text_search(owner_id, analysis)
            if result is not None:
                return result

        result = self._basic_text_search(owner_id, query)
        if result is not None:
            return result

        logger.info("No documents found for query")
        return RetrievalResult(
            matches=[],
            method=SearchMethod.NONE,
            confidence=self.settings.base_confidence,
        )

    def vector_confidence(self, scores: list[float]) -> float:
        mean = sum(scores) / len(scores)
        return min(self.settings.max_confidence, 0.4 + mean * 0.6)

    def enhanced_confidence(self, count: int, analysis_confidence: float) -> float:
        capped = min(count, self.settings.enhanced_limit)
        return min(
            self.settings.max_confidence,
            0.7 + capped * 0.03 + analysis_confidence * 0.15,
        )

    @staticmethod
    def basic_confidence(count: int) -> float:
        return 0.5 + count * 0.05

    def _embedding_query(self, query: str, analysis: QueryAnalysis | None) -> str:
        if analysis is None or not analysis.keywords:
            return query
        extra = analysis.keywords[: self.settings.augment_keywords]
        return f"{query} {' '.join(extra)}"

    def _vector_search(
        self,
        owner_id: str,
        query: str,
        analysis: QueryAnalysis | None,
    ) -> RetrievalResult | None:
        try:
            query_embedding = self.embedding_service.get_embedding(
                self._embedding_query(query, analysis)
            )
            matches = self.store.similarity_search(
                owner_id,
                query_embedding,
                threshold=self.settings.similarity_threshold,
                limit=self.settings.vector_match_count,
            )
        except (EmbeddingError, sqlite3.Error, ValueError) as exc:
            logger.warning("Vector search unavailable, falling back: %s", exc)
            return None

        if not matches:
            logger.info("Vector search found no documents above threshold")
            return None

        confidence = self.vector_confidence([score for _, score in matches])
        logger.info(
            "Vector search found %d documents (confidence %.2f)",
            len(matches),
            confidence,
        )
        return RetrievalResult(
            matches=matches, method=SearchMethod.VECTOR, confidence=confidence
        )

    def enhanced_terms(self, analysis: QueryAnalysis) -> list[str]:
        """Pick the leading keywords and entities used for text matching.

        Returns:
            Case-insensitively deduplicated terms of sufficient length.
        """
        candidates = (
            analysis.keywords[: self.settings.enhanced_keyword_terms]
            + analysis.entities[: self.settings.enhanced_entity_terms]
        )
        terms: dict[str, str] = {}
        for candidate in candidates:
            term = candidate.strip()
            if len(term) < self.settings.min_term_length:
                continue
            terms.setdefault(term.lower(), term)
        return list(terms.values())

    def _enhanced_text_search(
        self,
        owner_id: str,
        analysis: QueryAnalysis,
    ) -> RetrievalResult | None:
        terms = self.enhanced_terms(analysis)
        if not terms:
            return None

        filters = analysis.filters
        document_types = None
        if filters.document_types:
            mapped = [
                resolve_document_type(value) for value in filters.document_types
            ]
            document_types = list(
                dict.fromkeys(doc_type for doc_type in mapped if doc_type)
            )

        try:
            documents = self.store.text_search(
                owner_id,
                terms,
                industries=filters.industries,
                document_types=document_types,
                limit=self.settings.enhanced_limit,
            )
        except sqlite3.Error as exc:
            logger.warning("Enhanced text search failed: %s", exc)
            return None

        if not documents:
            return None

        matches = sorted(
            ((document, _term_match_score(terms, document)) for document in documents),
            key=lambda match: match[1],
            reverse=True,
        )
        confidence = self.enhanced_confidence(len(matches), analysis.confidence)
        logger.info(
            "Enhanced text search found %d documents for terms %s",
            len(matches),
            terms,
        )
        return RetrievalResult(
            matches=matches,
            method=SearchMethod.ENHANCED_TEXT,
            confidence=confidence,
        )

    def _basic_text_search(
        self,
        owner_id: str,
        query: str,
    ) -> RetrievalResult | None:
        term = query.strip()
        if not term:
            return None

        try:
            documents = self.store.text_search(
                owner_id,
                [term],
                fields=("title", "summary", "content"),
                limit=self.settings.basic_limit,
            )
        except sqlite3.Error as exc:
            logger.warning("Basic text search failed: %s", exc)
            return None

        if not documents:
            return None

        logger.info("Basic text search found %d documents", len(documents))
        return RetrievalResult(
            matches=[(document, 1.0) for document in documents],
            method=SearchMethod.BASIC_TEXT,
            confidence=self.basic_confidence(len(documents)),
        )
