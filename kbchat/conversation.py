"""Answering queries and keeping per-user conversation history."""

import sqlite3

from .config import config
from .document_store import BaseSQLiteStore
from .errors import (
    AuthenticationError,
    ConversationNotFoundError,
    InvalidQueryError,
    PersistenceError,
)
from .models import ChatResponse, Conversation, Message
from .pipeline import KnowledgebasePipeline
from .synthesis import AnswerSynthesizer

logger = config.get_logger(__name__)

TITLE_CHARS = 50


def conversation_title(query: str) -> str:
    """Title for a new conversation from its first query.

    Returns:
        The first 50 characters, with ``...`` when the query is longer.
    """
    if len(query) > TITLE_CHARS:
        return query[:TITLE_CHARS] + "..."
    return query


class ConversationManager:
    """Runs analyze, retrieve, synthesize and persist for each query."""

    def __init__(
        self,
        pipeline: KnowledgebasePipeline,
        openai_api_key: str | None = None,
        *,
        synthesizer: AnswerSynthesizer | None = None,
    ) -> None:
        """Initialize ConversationManager.

        Args:
            pipeline: Knowledgebase pipeline instance.
            openai_api_key: OpenAI API key.
            synthesizer: Prebuilt answer synthesizer.
        """
        self.pipeline = pipeline
        self.synthesizer = synthesizer or AnswerSynthesizer(api_key=openai_api_key)

    @property
    def store(self) -> BaseSQLiteStore:
        return self.pipeline.store

    def answer_query(
        self,
        user_id: str | None,
        query_text: str | None,
        conversation_id: int | None = None,
    ) -> ChatResponse:
        """Answer a question from the user's own documents.

        Args:
            user_id: Authenticated user; required.
            query_text: Question text; must not be blank.
            conversation_id: Existing conversation to append to, or None to
                start a new one.

        Returns:
            The answer with cited source titles, confidence and search method.

        Raises:
            AuthenticationError: If ``user_id`` is missing.
            InvalidQueryError: If ``query_text`` is missing or blank.
            ConversationNotFoundError: If the conversation is not the user's.
            CompletionError: If the answer could not be generated.
            PersistenceError: If the exchange could not be stored.
        """
        if not user_id:
            msg = "User not authenticated"
            raise AuthenticationError(msg)
        if query_text is None or not query_text.strip():
            msg = "Message is required"
            raise InvalidQueryError(msg)

        if (
            conversation_id is not None
            and self.store.get_conversation(user_id, conversation_id) is None
        ):
            msg = f"Conversation {conversation_id} was not found"
            raise ConversationNotFoundError(msg)

        logger.info("Processing question for user %s: %s", user_id, query_text)

        analysis = self.pipeline.analyze(query_text)
        retrieval = self.pipeline.retrieve(user_id, query_text, analysis)
        answer = self.synthesizer.generate(query_text, retrieval, analysis)

        for index, (document, score) in enumerate(retrieval.matches, start=1):
            logger.debug("  Source %d: %s (score: %.4f)", index, document.title, score)

        try:
            stored_conversation_id = self.store.record_exchange(
                user_id,
                conversation_id,
                title=conversation_title(query_text),
                user_text=query_text,
                bot_text=answer,
                sources=retrieval.titles,
                confidence=retrieval.confidence,
            )
        except sqlite3.Error as exc:
            logger.exception("Error storing conversation")
            msg = f"Could not store conversation: {exc}"
            raise PersistenceError(msg) from exc

        logger.info(
            "Answered with %d sources via %s (confidence %.2f)",
            len(retrieval.matches),
            retrieval.method,
            retrieval.confidence,
        )
        return ChatResponse(
            response_text=answer,
            sources=retrieval.titles,
            conversation_id=stored_conversation_id,
            confidence=retrieval.confidence,
            search_method=retrieval.method,
            analysis=analysis,
        )

    def list_conversations(self, user_id: str) -> list[Conversation]:
        if not user_id:
            msg = "User not authenticated"
            raise AuthenticationError(msg)
        return self.store.list_conversations(user_id)

    def get_history(self, user_id: str, conversation_id: int) -> list[Message]:
        """Messages of one of the user's conversations, oldest first.

        Raises:
            AuthenticationError: If ``user_id`` is missing.
        """
        if not user_id:
            msg = "User not authenticated"
            raise AuthenticationError(msg)
        return self.store.list_messages(user_id, conversation_id)
