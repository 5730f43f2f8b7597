"""FAISS-backed document embeddings with SQLite metadata."""

from __future__ import annotations

import sqlite3
from pathlib import Path

import faiss
import numpy as np

from kbchat.config import config
from kbchat.document_store.base import BaseSQLiteStore
from kbchat.models import Document  # noqa: TC001

logger = config.get_logger(__name__)


class FaissDocumentStore(BaseSQLiteStore):
    """Document embeddings in a FAISS inner-product index keyed by document id.

    Vectors are L2-normalized on the way in, so inner product equals cosine
    similarity. Searches are restricted to the caller's documents with an id
    selector.
    """

    backend = "faiss"

    def __init__(
        self,
        db_path: Path = Path("data/knowledgebase.db"),
        index_path: Path = Path("data/faiss/index.faiss"),
    ) -> None:
        """Configure FAISS-backed document store."""
        self.index_path = Path(index_path)
        self.index_path.parent.mkdir(exist_ok=True, parents=True)

        self.index: faiss.IndexIDMap2 | None = None

        super().__init__(db_path)

    @staticmethod
    def _normalize_embedding(embedding: np.ndarray) -> np.ndarray:
        """Normalize embedding for cosine similarity using inner product search.

        Returns:
            Normalized embedding vector.
        """
        vector = np.array(embedding, dtype="float32").reshape(-1)
        norm = np.linalg.norm(vector)
        if norm == 0:
            return vector
        faiss.normalize_L2(vector.reshape(1, -1))
        return vector

    def _init_index(self, dimension: int) -> None:
        base_index = faiss.IndexFlatIP(dimension)
        self.index = faiss.IndexIDMap2(base_index)
        logger.info("Initialized FAISS IndexIDMap2 with dimension %d", dimension)

    def _write_embedding(self, document_id: int, embedding: np.ndarray) -> None:
        """Add or replace the document's vector in the index.

        Raises:
            ValueError: If embedding dimension mismatches the index.
        """
        vector = self._normalize_embedding(embedding)
        if self.index is None:
            self._init_index(vector.shape[0])
        elif vector.shape[0] != self.index.d:
            msg = (
                f"Embedding dimension {vector.shape[0]} does not match "
                f"FAISS index dimension {self.index.d}"
            )
            raise ValueError(msg)

        ids_array = np.asarray([document_id], dtype="int64")
        self.index.remove_ids(ids_array)
        self.index.add_with_ids(vector.reshape(1, -1), ids_array)  # pyright: ignore[reportCallIssue]
        logger.debug("Indexed vector for document %d", document_id)

    def _load_embedding(self, document_id: int) -> np.ndarray | None:
        """Reconstruct a stored (normalized) vector from the index.

        Returns:
            The vector, or None when the index does not hold the id.
        """
        if self.index is None:
            return None
        try:
            return self.index.reconstruct(int(document_id))
        except RuntimeError:
            logger.warning("Document %d not present in FAISS index", document_id)
            return None

    def _embeddings_changed(self) -> None:
        self.save()

    def _owner_embedded_ids(self, owner_id: str) -> np.ndarray:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT id FROM documents WHERE owner_id = ? AND has_embedding = 1",
                (owner_id,),
            ).fetchall()
        return np.asarray([row[0] for row in rows], dtype="int64")

    def similarity_search(
        self,
        owner_id: str,
        query_embedding: np.ndarray,
        *,
        threshold: float,
        limit: int,
    ) -> list[tuple[Document, float]]:
        """Search the owner's vectors in the FAISS index.

        Returns:
            (Document, score) pairs with score above ``threshold``, best first.
        """
        index = self.index
        if index is None:
            if not self.index_path.exists():
                logger.warning("FAISS index not initialized; returning no results")
                return []
            self.load()
            index = self.index

        if index is None or index.ntotal == 0 or limit <= 0:
            return []

        owner_ids = self._owner_embedded_ids(owner_id)
        if owner_ids.size == 0:
            return []

        selector = faiss.IDSelectorBatch(owner_ids.size, faiss.swig_ptr(owner_ids))
        params = faiss.SearchParameters()
        params.sel = selector

        normalized_query = self._normalize_embedding(query_embedding)
        if normalized_query.shape[0] != index.d:
            msg = (
                f"Query embedding dimension {normalized_query.shape[0]} does not "
                f"match FAISS index dimension {index.d}"
            )
            raise ValueError(msg)

        top_k = min(limit, owner_ids.size)
        scores, document_ids = index.search(
            normalized_query.reshape(1, -1),
            top_k,
            params=params,
        )  # pyright: ignore[reportCallIssue]

        results: list[tuple[Document, float]] = []
        with self._connect() as conn:
            cursor = conn.cursor()
            for score, document_id in zip(scores[0], document_ids[0], strict=True):
                if int(document_id) == -1:  # faiss returns -1 for empty results
                    continue
                if float(score) <= threshold:
                    continue
                document = self._fetch_document(cursor, owner_id, int(document_id))
                if document:
                    results.append((document, float(score)))

        return results

    def save(self) -> None:
        """Persist FAISS index to disk."""
        index = self.index
        if index is None:
            logger.warning("No FAISS index to save")
            return

        self.index_path.parent.mkdir(exist_ok=True, parents=True)
        faiss.write_index(index, str(self.index_path))
        logger.info("Saved FAISS index to %s", self.index_path)

    def load(self) -> None:
        """Load the FAISS index from disk and check it against the metadata.

        Raises:
            sqlite3.Error: If metadata read fails.
        """
        if self.index_path.exists():
            loaded_index = faiss.read_index(str(self.index_path))
            if not isinstance(loaded_index, faiss.IndexIDMap2):
                msg = (
                    f"FAISS index at {self.index_path} is "
                    f"{type(loaded_index).__name__}; expected IndexIDMap2"
                )
                raise ValueError(msg)
            self.index = loaded_index
            logger.info(
                "Loaded FAISS index from %s with %d vectors",
                self.index_path,
                loaded_index.ntotal,
            )
        else:
            logger.warning(
                "FAISS index not found at %s. Start with an empty index.",
                self.index_path,
            )
            self.index = None

        try:
            with self._connect() as conn:
                (embedded,) = conn.execute(
                    "SELECT COUNT(*) FROM documents WHERE has_embedding = 1"
                ).fetchone()
        except sqlite3.Error:
            logger.exception("Error loading metadata for FAISS document store")
            raise

        indexed = self.index.ntotal if self.index is not None else 0
        if indexed != embedded:
            logger.warning(
                "FAISS index holds %d vectors but %d documents are marked embedded",
                indexed,
                embedded,
            )
