"""Error types surfaced by the knowledgebase pipeline."""


class KnowledgebaseError(RuntimeError):
    """Base class for request-level failures with a human-readable message."""

    code = "knowledgebase_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, str]:
        """Structured form returned to callers.

        Returns:
            Mapping with the error code and message.
        """
        return {"error": self.code, "message": self.message}


class AuthenticationError(KnowledgebaseError):
    """Raised when a request carries no authenticated user."""

    code = "authentication_required"


class InvalidQueryError(KnowledgebaseError):
    """Raised when the query text is missing or blank."""

    code = "invalid_query"


class EmbeddingError(KnowledgebaseError):
    """Raised when the embedding service cannot produce a vector."""

    code = "embedding_failed"


class CompletionError(KnowledgebaseError):
    """Raised when the language model fails to produce an answer."""

    code = "completion_failed"


class PersistenceError(KnowledgebaseError):
    """Raised when the conversation or its messages cannot be stored."""

    code = "persistence_failed"


class ConversationNotFoundError(KnowledgebaseError):
    """Raised for conversation ids that are unknown or owned by someone else."""

    code = "conversation_not_found"
