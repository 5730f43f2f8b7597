"""Shared SQLite persistence for documents, conversations and messages."""

from __future__ import annotations

import json
import sqlite3
from collections.abc import Iterable, Iterator, Sequence
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING

from kbchat.config import config
from kbchat.errors import ConversationNotFoundError
from kbchat.models import (
    Conversation,
    Document,
    DocumentType,
    Message,
    MessageType,
)

if TYPE_CHECKING:
    import numpy as np

TEXT_SEARCH_FIELDS = ("title", "summary", "content", "tags")

_DOCUMENT_COLUMNS = """
    d.id,
    d.owner_id,
    d.title,
    d.type,
    d.client,
    d.industry,
    d.geography,
    d.year,
    d.summary,
    d.content,
    d.file_name,
    d.has_embedding,
    d.created_at
"""

logger = config.get_logger(__name__)


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class BaseSQLiteStore:
    """Schema management and owner-scoped queries shared by every backend.

    Every read takes the caller's ``owner_id`` and filters on it in SQL.
    Subclasses decide where embeddings live and how similarity is computed.
    """

    backend = "base"

    def __init__(self, db_path: Path) -> None:
        """Initialize metadata store and ensure schema exists."""
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(exist_ok=True, parents=True)
        self._create_tables()

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        """Open a connection whose block commits on success and rolls back on error.

        Yields:
            An open SQLite connection.
        """
        conn = sqlite3.connect(str(self.db_path))
        conn.execute("PRAGMA foreign_keys = ON")
        try:
            with conn:
                yield conn
        finally:
            conn.close()

    def _create_tables(self) -> None:
        """Create documents, tags, conversations and messages tables."""
        with self._connect() as conn:
            cursor = conn.cursor()

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS documents (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    owner_id TEXT NOT NULL,
                    title TEXT NOT NULL,
                    type TEXT NOT NULL CHECK(
                        type IN ('RFP','Case Study','Proposal','Win/Loss Analysis')
                    ),
                    client TEXT NOT NULL,
                    industry TEXT NOT NULL,
                    geography TEXT NOT NULL DEFAULT 'Global',
                    year TEXT NOT NULL DEFAULT '',
                    summary TEXT,
                    content TEXT,
                    file_name TEXT,
                    vector_file TEXT,
                    has_embedding INTEGER NOT NULL DEFAULT 0,
                    created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
                    updated_at DATETIME DEFAULT CURRENT_TIMESTAMP
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS document_tags (
                    document_id INTEGER NOT NULL,
                    tag TEXT NOT NULL,
                    FOREIGN KEY (document_id) REFERENCES documents (id)
                        ON DELETE CASCADE
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS conversations (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    owner_id TEXT NOT NULL,
                    title TEXT,
                    created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
                    updated_at DATETIME DEFAULT CURRENT_TIMESTAMP
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS messages (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    conversation_id INTEGER NOT NULL,
                    owner_id TEXT NOT NULL,
                    type TEXT NOT NULL CHECK(type IN ('user','bot')),
                    content TEXT NOT NULL,
                    sources TEXT,
                    confidence REAL,
                    created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
                    FOREIGN KEY (conversation_id) REFERENCES conversations (id)
                        ON DELETE CASCADE
                )
            """)

            self._create_indexes(cursor)

    @staticmethod
    def _create_indexes(cursor: sqlite3.Cursor) -> None:
        """Ensure indexes exist for owner scoping and common filters."""
        cursor.execute(
            "CREATE INDEX IF NOT EXISTS idx_documents_owner ON documents(owner_id)"
        )
        cursor.execute(
            "CREATE INDEX IF NOT EXISTS idx_documents_industry ON documents(industry)"
        )
        cursor.execute(
            "CREATE INDEX IF NOT EXISTS idx_documents_type ON documents(type)"
        )
        cursor.execute(
            "CREATE INDEX IF NOT EXISTS idx_document_tags_document "
            "ON document_tags(document_id)"
        )
        cursor.execute(
            "CREATE INDEX IF NOT EXISTS idx_conversations_owner "
            "ON conversations(owner_id)"
        )
        cursor.execute(
            "CREATE INDEX IF NOT EXISTS idx_messages_conversation "
            "ON messages(conversation_id)"
        )

    @staticmethod
    def _normalize_tags(tags: object) -> list[str]:
        """Convert tags to a deduplicated list of non-empty strings.

        Returns:
            Deduplicated list of string tags.
        """
        if tags is None:
            return []
        if isinstance(tags, str):
            return [tags] if tags.strip() else []
        if isinstance(tags, Iterable):
            normalized = [str(tag).strip() for tag in tags if str(tag).strip()]
            return list(dict.fromkeys(normalized))
        return []

    @staticmethod
    def _replace_tags(
        cursor: sqlite3.Cursor,
        document_id: int,
        tags: list[str],
    ) -> None:
        cursor.execute("DELETE FROM document_tags WHERE document_id = ?", (document_id,))
        cursor.executemany(
            "INSERT INTO document_tags (document_id, tag) VALUES (?, ?)",
            [(document_id, tag) for tag in tags],
        )

    @staticmethod
    def _load_tags(cursor: sqlite3.Cursor, document_id: int) -> list[str]:
        cursor.execute(
            "SELECT tag FROM document_tags WHERE document_id = ? ORDER BY rowid",
            (document_id,),
        )
        return [row[0] for row in cursor.fetchall()]

    def _build_document_from_row(
        self,
        cursor: sqlite3.Cursor,
        row: tuple,
    ) -> Document:
        """Create a Document from a ``_DOCUMENT_COLUMNS`` row.

        Returns:
            Document hydrated with metadata and tags (embedding not loaded).
        """
        (
            document_id,
            owner_id,
            title,
            doc_type,
            client,
            industry,
            geography,
            year,
            summary,
            content,
            file_name,
            has_embedding,
            created_at,
        ) = row

        return Document(
            id=int(document_id),
            owner_id=owner_id,
            title=title,
            type=DocumentType(doc_type),
            client=client,
            industry=industry,
            geography=geography,
            year=year,
            summary=summary or "",
            content=content or "",
            tags=self._load_tags(cursor, int(document_id)),
            file_name=file_name,
            has_embedding=bool(has_embedding),
            created_at=created_at,
        )

    def _fetch_document(
        self,
        cursor: sqlite3.Cursor,
        owner_id: str,
        document_id: int,
    ) -> Document | None:
        cursor.execute(
            f"SELECT {_DOCUMENT_COLUMNS} FROM documents d "  # noqa: S608
            "WHERE d.id = ? AND d.owner_id = ?",
            (int(document_id), owner_id),
        )
        row = cursor.fetchone()
        if row is None:
            return None
        return self._build_document_from_row(cursor, row)

    # Documents

    def add_document(self, document: Document) -> Document:
        """Insert a document and, when present, its embedding.

        Returns:
            The stored document with its assigned id.

        Raises:
            RuntimeError: If the row id cannot be retrieved.
        """
        tags = self._normalize_tags(document.tags)

        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                INSERT INTO documents (
                    owner_id,
                    title,
                    type,
                    client,
                    industry,
                    geography,
                    year,
                    summary,
                    content,
                    file_name
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    document.owner_id,
                    document.title,
                    str(document.type),
                    document.client,
                    document.industry,
                    document.geography,
                    document.year,
                    document.summary,
                    document.content,
                    document.file_name,
                ),
            )
            row_id = cursor.lastrowid
            if row_id is None:
                msg = "Failed to insert document row"
                raise RuntimeError(msg)
            document_id = int(row_id)
            self._replace_tags(cursor, document_id, tags)

        if document.embedding is not None:
            self.update_embedding(document.owner_id, document_id, document.embedding)

        logger.info(
            "Stored document %d '%s' for owner %s (embedding: %s)",
            document_id,
            document.title,
            document.owner_id,
            document.embedding is not None,
        )

        stored = self.get_document(document.owner_id, document_id)
        if stored is None:
            msg = f"Document {document_id} vanished after insert"
            raise RuntimeError(msg)
        stored.embedding = document.embedding
        return stored

    def get_document(
        self,
        owner_id: str,
        document_id: int,
        *,
        load_embedding: bool = False,
    ) -> Document | None:
        """Fetch one of the owner's documents.

        Returns:
            The document, or None if it does not exist or belongs to someone else.
        """
        with self._connect() as conn:
            document = self._fetch_document(conn.cursor(), owner_id, document_id)

        if document is not None and load_embedding and document.has_embedding:
            document.embedding = self._load_embedding(int(document_id))
        return document

    def list_documents(self, owner_id: str) -> list[Document]:
        """List all of the owner's documents, oldest first.

        Returns:
            The owner's documents without embeddings loaded.
        """
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"SELECT {_DOCUMENT_COLUMNS} FROM documents d "  # noqa: S608
                "WHERE d.owner_id = ? ORDER BY d.id",
                (owner_id,),
            )
            rows = cursor.fetchall()
            return [self._build_document_from_row(cursor, row) for row in rows]

    def documents_without_embedding(self, owner_id: str) -> list[Document]:
        """List the owner's documents that still need an embedding.

        Returns:
            Documents whose embedding has not been computed.
        """
        return [
            document
            for document in self.list_documents(owner_id)
            if not document.has_embedding
        ]

    def update_embedding(
        self,
        owner_id: str,
        document_id: int,
        embedding: np.ndarray,
    ) -> None:
        """Attach or replace the embedding of one of the owner's documents.

        Raises:
            ValueError: If the document does not exist for this owner.
        """
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT id FROM documents WHERE id = ? AND owner_id = ?",
                (int(document_id), owner_id),
            )
            if cursor.fetchone() is None:
                msg = f"Document {document_id} not found for owner {owner_id}"
                raise ValueError(msg)

            vector_file = self._write_embedding(int(document_id), embedding)
            cursor.execute(
                """
                UPDATE documents
                SET vector_file = ?, has_embedding = 1,
                    updated_at = CURRENT_TIMESTAMP
                WHERE id = ?
                """,
                (vector_file, int(document_id)),
            )

        self._embeddings_changed()

    def text_search(  # noqa: PLR0913
        self,
        owner_id: str,
        terms: Sequence[str],
        *,
        fields: Sequence[str] = TEXT_SEARCH_FIELDS,
        industries: Sequence[str] | None = None,
        document_types: Sequence[str] | None = None,
        limit: int = 8,
    ) -> list[Document]:
        """Case-insensitive substring search over the owner's documents.

        A document matches when any term appears in any of ``fields``.
        ``industries`` and ``document_types`` further restrict the result when
        given and non-empty.

        Returns:
            Matching documents in insertion order, at most ``limit``.

        Raises:
            ValueError: If an unknown field is requested.
        """
        unknown = set(fields) - set(TEXT_SEARCH_FIELDS)
        if unknown:
            msg = f"Unsupported text search fields: {sorted(unknown)}"
            raise ValueError(msg)

        clauses: list[str] = []
        params: list[object] = [owner_id]
        for term in terms:
            if not term:
                continue
            pattern = f"%{_escape_like(term)}%"
            for field in fields:
                if field == "tags":
                    clauses.append(
                        "EXISTS (SELECT 1 FROM document_tags t "
                        "WHERE t.document_id = d.id AND t.tag LIKE ? ESCAPE '\\')"
                    )
                else:
                    clauses.append(f"d.{field} LIKE ? ESCAPE '\\'")
                params.append(pattern)

        if not clauses:
            return []

        sql = (
            f"SELECT {_DOCUMENT_COLUMNS} FROM documents d "  # noqa: S608
            f"WHERE d.owner_id = ? AND ({' OR '.join(clauses)})"
        )
        if industries:
            placeholders = ", ".join("?" for _ in industries)
            sql += f" AND lower(d.industry) IN ({placeholders})"
            params.extend(industry.lower() for industry in industries)
        if document_types:
            placeholders = ", ".join("?" for _ in document_types)
            sql += f" AND d.type IN ({placeholders})"
            params.extend(str(doc_type) for doc_type in document_types)
        sql += " ORDER BY d.id LIMIT ?"
        params.append(int(limit))

        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(sql, params)
            rows = cursor.fetchall()
            return [self._build_document_from_row(cursor, row) for row in rows]

    def similarity_search(
        self,
        owner_id: str,
        query_embedding: np.ndarray,
        *,
        threshold: float,
        limit: int,
    ) -> list[tuple[Document, float]]:
        """Nearest neighbours among the owner's embedded documents.

        Returns:
            (Document, cosine similarity) pairs above ``threshold``, best first.
        """
        raise NotImplementedError

    # Conversations

    @staticmethod
    def _build_conversation(row: tuple) -> Conversation:
        conversation_id, owner_id, title, created_at, updated_at = row
        return Conversation(
            id=int(conversation_id),
            owner_id=owner_id,
            title=title or "",
            created_at=created_at,
            updated_at=updated_at,
        )

    def create_conversation(self, owner_id: str, title: str) -> Conversation:
        """Create an empty conversation for the owner.

        Returns:
            The new conversation.
        """
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "INSERT INTO conversations (owner_id, title) VALUES (?, ?)",
                (owner_id, title),
            )
            conversation_id = int(cursor.lastrowid or 0)
        conversation = self.get_conversation(owner_id, conversation_id)
        if conversation is None:
            msg = f"Conversation {conversation_id} vanished after insert"
            raise RuntimeError(msg)
        return conversation

    def get_conversation(
        self,
        owner_id: str,
        conversation_id: int,
    ) -> Conversation | None:
        """Fetch one of the owner's conversations.

        Returns:
            The conversation, or None if unknown or owned by someone else.
        """
        with self._connect() as conn:
            row = conn.execute(
                """
                SELECT id, owner_id, title, created_at, updated_at
                FROM conversations WHERE id = ? AND owner_id = ?
                """,
                (int(conversation_id), owner_id),
            ).fetchone()
        return self._build_conversation(row) if row else None

    def list_conversations(self, owner_id: str) -> list[Conversation]:
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT id, owner_id, title, created_at, updated_at
                FROM conversations WHERE owner_id = ?
                ORDER BY updated_at DESC, id DESC
                """,
                (owner_id,),
            ).fetchall()
        return [self._build_conversation(row) for row in rows]

    def list_messages(self, owner_id: str, conversation_id: int) -> list[Message]:
        """List messages of one of the owner's conversations in order.

        Returns:
            Messages oldest first.

        Raises:
            ConversationNotFoundError: If the conversation is not the owner's.
        """
        if self.get_conversation(owner_id, conversation_id) is None:
            msg = f"Conversation {conversation_id} was not found"
            raise ConversationNotFoundError(msg)

        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT id, conversation_id, owner_id, type, content, sources,
                       confidence, created_at
                FROM messages
                WHERE conversation_id = ? AND owner_id = ?
                ORDER BY id
                """,
                (int(conversation_id), owner_id),
            ).fetchall()

        return [
            Message(
                id=int(message_id),
                conversation_id=int(conv_id),
                owner_id=message_owner,
                type=MessageType(message_type),
                content=content,
                sources=json.loads(sources) if sources else [],
                confidence=confidence,
                created_at=created_at,
            )
            for (
                message_id,
                conv_id,
                message_owner,
                message_type,
                content,
                sources,
                confidence,
                created_at,
            ) in rows
        ]

    def record_exchange(  # noqa: PLR0913
        self,
        owner_id: str,
        conversation_id: int | None,
        *,
        title: str,
        user_text: str,
        bot_text: str,
        sources: Sequence[str],
        confidence: float,
    ) -> int:
        """Persist a question and its answer in one transaction.

        A new conversation titled ``title`` is created when
        ``conversation_id`` is None.

        Returns:
            The conversation id the messages were written to.

        Raises:
            ConversationNotFoundError: If ``conversation_id`` is not the owner's.
        """
        with self._connect() as conn:
            cursor = conn.cursor()
            if conversation_id is None:
                cursor.execute(
                    "INSERT INTO conversations (owner_id, title) VALUES (?, ?)",
                    (owner_id, title),
                )
                conversation_id = int(cursor.lastrowid or 0)
            else:
                cursor.execute(
                    "SELECT id FROM conversations WHERE id = ? AND owner_id = ?",
                    (int(conversation_id), owner_id),
                )
                if cursor.fetchone() is None:
                    msg = f"Conversation {conversation_id} was not found"
                    raise ConversationNotFoundError(msg)
                cursor.execute(
                    "UPDATE conversations SET updated_at = CURRENT_TIMESTAMP "
                    "WHERE id = ?",
                    (int(conversation_id),),
                )

            cursor.execute(
                """
                INSERT INTO messages (conversation_id, owner_id, type, content)
                VALUES (?, ?, ?, ?)
                """,
                (conversation_id, owner_id, str(MessageType.USER), user_text),
            )
            cursor.execute(
                """
                INSERT INTO messages (
                    conversation_id, owner_id, type, content, sources, confidence
                )
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    conversation_id,
                    owner_id,
                    str(MessageType.BOT),
                    bot_text,
                    json.dumps(list(sources)),
                    float(confidence),
                ),
            )

        return int(conversation_id)

    # Backend hooks

    def _write_embedding(self, document_id: int, embedding: np.ndarray) -> str | None:
        """Persist an embedding for a document.

        Returns:
            Reference stored in ``documents.vector_file``, if any.
        """
        raise NotImplementedError

    def _load_embedding(self, document_id: int) -> np.ndarray | None:
        """Load a stored embedding.

        Returns:
            Loaded embedding array or None if unavailable.
        """
        raise NotImplementedError

    def _embeddings_changed(self) -> None:
        """Refresh in-memory vector state after an embedding write."""

    def save(self) -> None:
        """Flush in-memory vector state to disk."""
        raise NotImplementedError

    def load(self) -> None:
        """Load in-memory vector state from disk."""
        raise NotImplementedError
