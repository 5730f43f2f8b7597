"""Document store backends and factory."""

from __future__ import annotations

from typing import TYPE_CHECKING, Literal

from kbchat.config import config

from .base import TEXT_SEARCH_FIELDS, BaseSQLiteStore
from .faiss_store import FaissDocumentStore
from .sqlite_store import SQLiteDocumentStore

if TYPE_CHECKING:
    from pathlib import Path

VectorBackend = Literal["faiss", "sqlite"]


def get_document_store(
    store: VectorBackend | str | None = None,
    *,
    db_path: Path | None = None,
    vectors_dir: Path | None = None,
    index_path: Path | None = None,
) -> FaissDocumentStore | SQLiteDocumentStore:
    """Return a configured document store instance.

    Raises:
        ValueError: If an unsupported backend is requested.
    """
    backend = (store or config.VECTOR_BACKEND).lower()
    if db_path is None:
        db_path = config.VECTOR_STORE_DB_PATH

    if backend == "faiss":
        return FaissDocumentStore(
            db_path=db_path,
            index_path=(
                index_path if index_path is not None else config.FAISS_INDEX_PATH
            ),
        )

    if backend == "sqlite":
        return SQLiteDocumentStore(
            db_path=db_path,
            vectors_dir=(
                vectors_dir if vectors_dir is not None else config.VECTOR_STORE_DIR
            ),
        )

    msg = f"Unsupported vector store backend: {store}"
    raise ValueError(msg)


__all__ = [
    "TEXT_SEARCH_FIELDS",
    "BaseSQLiteStore",
    "FaissDocumentStore",
    "SQLiteDocumentStore",
    "VectorBackend",
    "get_document_store",
]
