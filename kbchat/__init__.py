"""kbchat - retrieval-augmented assistant for a private business document repository."""

from .conversation import ConversationManager
from .document_processing import DocumentBuilder, DocumentLoader
from .document_store import FaissDocumentStore, SQLiteDocumentStore, get_document_store
from .embeddings import EmbeddingService
from .errors import (
    AuthenticationError,
    CompletionError,
    ConversationNotFoundError,
    EmbeddingError,
    InvalidQueryError,
    KnowledgebaseError,
    PersistenceError,
)
from .models import (
    BackfillReport,
    ChatResponse,
    Conversation,
    Document,
    DocumentType,
    Intent,
    Message,
    MessageType,
    QueryAnalysis,
    RetrievalResult,
    SearchFilters,
    SearchMethod,
)
from .pipeline import KnowledgebasePipeline
from .query_analyzer import QueryAnalyzer
from .retrieval import RetrievalEngine, RetrievalSettings
from .synthesis import AnswerSynthesizer

__all__ = [
    "AnswerSynthesizer",
    "AuthenticationError",
    "BackfillReport",
    "ChatResponse",
    "CompletionError",
    "Conversation",
    "ConversationManager",
    "ConversationNotFoundError",
    "Document",
    "DocumentBuilder",
    "DocumentLoader",
    "DocumentType",
    "EmbeddingError",
    "EmbeddingService",
    "FaissDocumentStore",
    "Intent",
    "InvalidQueryError",
    "KnowledgebaseError",
    "KnowledgebasePipeline",
    "Message",
    "MessageType",
    "PersistenceError",
    "QueryAnalysis",
    "QueryAnalyzer",
    "RetrievalEngine",
    "RetrievalResult",
    "RetrievalSettings",
    "SQLiteDocumentStore",
    "SearchFilters",
    "SearchMethod",
    "get_document_store",
]
