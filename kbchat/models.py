"""Data models for the knowledgebase assistant."""

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

import numpy as np


class DocumentType(StrEnum):
    """Kinds of business documents kept in the repository."""

    RFP = "RFP"
    CASE_STUDY = "Case Study"
    PROPOSAL = "Proposal"
    WIN_LOSS_ANALYSIS = "Win/Loss Analysis"


class Intent(StrEnum):
    """Classified purpose of a user query."""

    INFORMATION_RETRIEVAL = "information_retrieval"
    COMPARISON = "comparison"
    SUMMARIZATION = "summarization"
    SPECIFIC_SEARCH = "specific_search"
    GENERAL_QUESTION = "general_question"


class SearchMethod(StrEnum):
    """Retrieval strategy that produced a result set."""

    VECTOR = "vector"
    ENHANCED_TEXT = "enhanced_text"
    BASIC_TEXT = "basic_text"
    NONE = "none"


class MessageType(StrEnum):
    USER = "user"
    BOT = "bot"


@dataclass
class Document:
    """A document owned by one user, with optional embedding."""

    owner_id: str
    title: str
    type: DocumentType
    client: str
    industry: str
    geography: str = "Global"
    year: str = ""
    summary: str = ""
    content: str = ""
    tags: list[str] = field(default_factory=list)
    embedding: np.ndarray | None = None
    file_name: str | None = None
    id: int | None = None
    created_at: str | None = None
    has_embedding: bool = False

    def __post_init__(self) -> None:
        if self.embedding is not None:
            self.has_embedding = True

    def metadata_text(self) -> str:
        """Describe the document from its metadata alone.

        Returns:
            Text built from title, type, client, industry and tags.
        """
        parts = [
            self.title,
            f"Type: {self.type}",
            f"Client: {self.client}",
            f"Industry: {self.industry}",
            f"Geography: {self.geography}",
        ]
        if self.year:
            parts.append(f"Year: {self.year}")
        if self.summary:
            parts.append(self.summary)
        if self.tags:
            parts.append("Tags: " + ", ".join(self.tags))
        return ". ".join(parts)

    def searchable_text(self) -> str:
        """Text used for keyword matching; falls back to metadata.

        Returns:
            The extracted content, or metadata text when there is none.
        """
        if self.content and self.content.strip():
            return self.content
        return self.metadata_text()


@dataclass
class SearchFilters:
    """Structured constraints derived from a query.

    ``None`` on a field means no constraint for that category.
    """

    industries: list[str] | None = None
    technologies: list[str] | None = None
    document_types: list[str] | None = None
    timeframe: str | None = None

    def is_empty(self) -> bool:
        return not self.to_dict()

    def to_dict(self) -> dict[str, Any]:
        """Serialize only the fields that carry a constraint.

        Returns:
            Mapping without absent fields.
        """
        values = {
            "industries": self.industries,
            "technologies": self.technologies,
            "documentTypes": self.document_types,
            "timeframe": self.timeframe,
        }
        return {key: value for key, value in values.items() if value is not None}


@dataclass
class QueryAnalysis:
    """Result of analyzing one query."""

    intent: Intent
    confidence: float
    keywords: list[str] = field(default_factory=list)
    entities: list[str] = field(default_factory=list)
    filters: SearchFilters = field(default_factory=SearchFilters)
    source: str = "heuristic"

    def to_dict(self) -> dict[str, Any]:
        return {
            "intent": str(self.intent),
            "confidence": self.confidence,
            "keywords": list(self.keywords),
            "entities": list(self.entities),
            "searchFilters": self.filters.to_dict(),
            "source": self.source,
        }


@dataclass
class RetrievalResult:
    """Ranked documents with the strategy and confidence that produced them."""

    matches: list[tuple[Document, float]]
    method: SearchMethod
    confidence: float

    @property
    def documents(self) -> list[Document]:
        return [document for document, _ in self.matches]

    @property
    def titles(self) -> list[str]:
        return [document.title for document, _ in self.matches]

    @property
    def is_empty(self) -> bool:
        return not self.matches


@dataclass
class Conversation:
    id: int
    owner_id: str
    title: str
    created_at: str | None = None
    updated_at: str | None = None


@dataclass
class Message:
    id: int
    conversation_id: int
    owner_id: str
    type: MessageType
    content: str
    sources: list[str] = field(default_factory=list)
    confidence: float | None = None
    created_at: str | None = None


@dataclass
class ChatResponse:
    """Answer returned to the caller of ``answer_query``."""

    response_text: str
    sources: list[str]
    conversation_id: int
    confidence: float
    search_method: SearchMethod
    analysis: QueryAnalysis | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "response": self.response_text,
            "sources": list(self.sources),
            "conversationId": self.conversation_id,
            "confidence": self.confidence,
            "searchMethod": str(self.search_method),
            "analysis": self.analysis.to_dict() if self.analysis else None,
        }


@dataclass
class BackfillReport:
    """Outcome of an embedding backfill run."""

    processed: int = 0
    errors: int = 0
    skipped: int = 0
    total: int = 0
