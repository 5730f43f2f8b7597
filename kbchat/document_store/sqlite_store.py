"""SQLite-based document storage with numpy file embeddings."""

from __future__ import annotations

import sqlite3
from pathlib import Path

import numpy as np

from kbchat.config import config
from kbchat.document_store.base import BaseSQLiteStore
from kbchat.models import Document  # noqa: TC001

logger = config.get_logger(__name__)


class SQLiteDocumentStore(BaseSQLiteStore):
    """Documents in SQLite, one ``.npy`` file per document embedding."""

    backend = "sqlite"

    def __init__(
        self,
        db_path: Path = Path("data/knowledgebase.db"),
        vectors_dir: Path = Path("data/vectors"),
    ) -> None:
        """Initialize the store with database and vector directory paths.

        Args:
            db_path: Path to the SQLite database file.
            vectors_dir: Directory to store numpy vector files.
        """
        self.vectors_dir = Path(vectors_dir)
        self.vectors_dir.mkdir(exist_ok=True, parents=True)

        self.embeddings: np.ndarray | None = None
        self._vector_ids: list[int] = []
        self._vector_owners: list[str] = []

        super().__init__(db_path)

    def _write_embedding(self, document_id: int, embedding: np.ndarray) -> str:
        vector = np.asarray(embedding, dtype=np.float32).reshape(-1)
        if self.embeddings is not None and vector.shape[0] != self.embeddings.shape[1]:
            msg = (
                f"Embedding dimension {vector.shape[0]} does not match "
                f"stored dimension {self.embeddings.shape[1]}"
            )
            raise ValueError(msg)

        vector_filename = f"doc{document_id:06d}.npy"
        np.save(self.vectors_dir / vector_filename, vector)
        return vector_filename

    def _load_embedding(self, document_id: int) -> np.ndarray | None:
        """Load a numpy embedding from disk.

        Returns:
            Numpy array if present on disk; otherwise None.
        """
        vector_path = self.vectors_dir / f"doc{document_id:06d}.npy"
        if not vector_path.exists():
            logger.warning("Vector file not found: %s", vector_path)
            return None
        return np.load(vector_path)

    def _embeddings_changed(self) -> None:
        self._rebuild_embeddings_matrix()

    def _rebuild_embeddings_matrix(self) -> None:
        """Rebuild the embeddings matrix from individual vector files."""
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT id, owner_id, vector_file FROM documents
                WHERE vector_file IS NOT NULL
                ORDER BY id
                """
            ).fetchall()

        embeddings_list = []
        vector_ids: list[int] = []
        vector_owners: list[str] = []
        for document_id, owner_id, vector_file in rows:
            vector_path = self.vectors_dir / vector_file
            if vector_path.exists():
                embeddings_list.append(np.load(vector_path))
                vector_ids.append(int(document_id))
                vector_owners.append(owner_id)
            else:
                logger.warning("Vector file not found: %s", vector_path)

        self._vector_ids = vector_ids
        self._vector_owners = vector_owners
        self.embeddings = np.vstack(embeddings_list) if embeddings_list else None

        logger.info("Rebuilt embeddings matrix with %d vectors", len(embeddings_list))

    @staticmethod
    def cosine_similarity(
        query_embedding: np.ndarray,
        embeddings: np.ndarray,
    ) -> np.ndarray:
        """Calculate cosine similarity between query and document embeddings.

        Returns:
            np.ndarray: Array of cosine similarity scores
                    between the query and each document embedding.
        """
        query_norm = np.linalg.norm(query_embedding)
        if query_norm == 0:
            return np.zeros(embeddings.shape[0], dtype=np.float32)
        doc_norms = np.linalg.norm(embeddings, axis=1, keepdims=True)
        doc_norms[doc_norms == 0] = 1.0

        return np.dot(embeddings / doc_norms, query_embedding / query_norm)

    def similarity_search(
        self,
        owner_id: str,
        query_embedding: np.ndarray,
        *,
        threshold: float,
        limit: int,
    ) -> list[tuple[Document, float]]:
        """Rank the owner's embedded documents by cosine similarity.

        Returns:
            (Document, score) pairs with score above ``threshold``, best first.
        """
        if self.embeddings is None:
            self._rebuild_embeddings_matrix()

        if self.embeddings is None or limit <= 0:
            return []

        rows = np.flatnonzero(
            np.array([owner == owner_id for owner in self._vector_owners], dtype=bool)
        )
        if rows.size == 0:
            return []

        query = np.asarray(query_embedding, dtype=np.float32).reshape(-1)
        if query.shape[0] != self.embeddings.shape[1]:
            msg = (
                f"Query embedding dimension {query.shape[0]} does not match "
                f"stored dimension {self.embeddings.shape[1]}"
            )
            raise ValueError(msg)

        similarities = self.cosine_similarity(query, self.embeddings[rows])
        order = np.argsort(-similarities, kind="stable")

        results: list[tuple[Document, float]] = []
        with self._connect() as conn:
            cursor = conn.cursor()
            for position in order:
                score = float(similarities[position])
                if score <= threshold:
                    break
                document = self._fetch_document(
                    cursor, owner_id, self._vector_ids[rows[position]]
                )
                if document:
                    logger.debug(
                        "Retrieved document %s with similarity %.4f",
                        document.id,
                        score,
                    )
                    results.append((document, score))
                if len(results) >= limit:
                    break

        return results

    def save(self) -> None:  # noqa: PLR6301
        """Nothing to flush: rows and vector files are written as they change."""
        logger.info("Data already persisted in SQLite database and vector files")

    def load(self) -> None:
        """Rebuild the in-memory embeddings matrix from disk.

        Raises:
            sqlite3.Error: If an error occurs while reading the database.
        """
        try:
            self._rebuild_embeddings_matrix()
        except sqlite3.Error:
            logger.exception("Error loading from SQLite document store")
            raise
