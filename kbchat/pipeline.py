"""Knowledgebase pipeline wiring upload, backfill, analysis and retrieval."""

from pathlib import Path

from .config import config
from .document_processing import DocumentBuilder, DocumentLoader
from .document_store import BaseSQLiteStore, get_document_store
from .embeddings import EmbeddingService
from .errors import EmbeddingError
from .models import BackfillReport, Document, QueryAnalysis, RetrievalResult
from .query_analyzer import QueryAnalyzer
from .retrieval import RetrievalEngine, RetrievalSettings

logger = config.get_logger(__name__)


class KnowledgebasePipeline:
    """Owns the document store and the services built around it."""

    def __init__(  # noqa: PLR0913
        self,
        openai_api_key: str | None = None,
        db_path: Path | None = None,
        vectors_dir: Path | None = None,
        vector_backend: str | None = None,
        faiss_index_path: Path | None = None,
        *,
        store: BaseSQLiteStore | None = None,
        embedding_service: EmbeddingService | None = None,
        analyzer: QueryAnalyzer | None = None,
        settings: RetrievalSettings | None = None,
    ) -> None:
        """Initialize the pipeline with configurable storage.

        Args:
            openai_api_key: OpenAI API key.
            db_path: Path for the SQLite database. If None, uses
                config.VECTOR_STORE_DB_PATH.
            vectors_dir: Directory for numpy vector files (SQLite backend).
                If None, uses config.VECTOR_STORE_DIR.
            vector_backend: Which backend to use ("faiss" | "sqlite").
                Defaults to config.VECTOR_BACKEND.
            faiss_index_path: Path to FAISS index file. If None, uses
                config.FAISS_INDEX_PATH.
            store: Prebuilt document store; overrides the path arguments.
            embedding_service: Prebuilt embedding service.
            analyzer: Prebuilt query analyzer.
            settings: Retrieval settings. If None, built from config.
        """
        self.embedding_service = embedding_service or EmbeddingService(
            api_key=openai_api_key
        )
        self.analyzer = analyzer or QueryAnalyzer(api_key=openai_api_key)
        self.builder = DocumentBuilder()

        if store is None:
            store = get_document_store(
                vector_backend,
                db_path=db_path,
                vectors_dir=vectors_dir,
                index_path=faiss_index_path,
            )
            store.load()
        self.store = store
        logger.info("Using %s document storage", self.store.backend)

        self.retrieval = RetrievalEngine(
            self.store, self.embedding_service, settings=settings
        )

    def upload_document(
        self,
        owner_id: str,
        file_path: Path,
        **metadata: str,
    ) -> Document:
        """Extract, embed and store a document for ``owner_id``.

        Args:
            owner_id: Authenticated user uploading the document.
            file_path: File to read.
            **metadata: title, doc_type, client, industry and optionally
                geography and year.

        Returns:
            The stored document.

        Raises:
            FileNotFoundError: If ``file_path`` does not exist.
        """
        file_path = Path(file_path)
        if not file_path.is_file():
            msg = f"File not found: {file_path}"
            raise FileNotFoundError(msg)

        logger.info("Uploading document %s for owner %s", file_path.name, owner_id)
        text = DocumentLoader.extract_text(file_path)
        document = self.builder.build(
            owner_id, text, file_name=file_path.name, **metadata
        )

        try:
            document.embedding = self.embedding_service.get_embedding(
                self.builder.embedding_text(document)
            )
        except EmbeddingError:
            logger.warning(
                "Storing '%s' without embedding; it stays searchable by text",
                document.title,
            )

        stored = self.store.add_document(document)
        self.store.save()
        logger.info("Document %s stored with id %s", stored.title, stored.id)
        return stored

    def backfill_embeddings(self, owner_id: str) -> BackfillReport:
        """Compute embeddings for the owner's documents that lack one.

        Returns:
            Counts of processed, failed and skipped documents.
        """
        pending = self.store.documents_without_embedding(owner_id)
        report = BackfillReport(total=len(pending))
        if not pending:
            logger.info("All documents already have embeddings")
            return report

        to_embed: list[tuple[Document, str]] = []
        for document in pending:
            text = " ".join(
                part
                for part in (
                    document.title,
                    document.summary,
                    document.content[: config.EMBEDDING_CONTENT_CHARS],
                )
                if part
            )
            if not text.strip():
                logger.info("Skipping document %s - no content to embed", document.id)
                report.skipped += 1
                continue
            to_embed.append((document, text))

        embeddings = self._embed_batch([text for _, text in to_embed])
        for index, (document, text) in enumerate(to_embed):
            try:
                if embeddings is None:
                    embedding = self.embedding_service.get_embedding(text)
                else:
                    embedding = embeddings[index]
                self.store.update_embedding(owner_id, document.id, embedding)
            except (EmbeddingError, ValueError) as exc:
                logger.warning("Failed to embed document %s: %s", document.id, exc)
                report.errors += 1
                continue

            report.processed += 1
            logger.info("Generated embedding for document: %s", document.title)

        self.store.save()
        logger.info(
            "Backfill finished: %d processed, %d errors, %d skipped of %d",
            report.processed,
            report.errors,
            report.skipped,
            report.total,
        )
        return report

    def _embed_batch(self, texts: list[str]) -> list | None:
        """Embed ``texts`` in one batched call, or ``None`` to embed one by one."""
        if not texts:
            return []
        try:
            embeddings = self.embedding_service.get_embeddings_batch(texts)
        except EmbeddingError as exc:
            logger.warning("Batch embedding failed, retrying per document: %s", exc)
            return None
        if len(embeddings) != len(texts):
            logger.warning(
                "Batch returned %d embeddings for %d documents, retrying per document",
                len(embeddings),
                len(texts),
            )
            return None
        return embeddings

    def list_documents(self, owner_id: str) -> list[Document]:
        return self.store.list_documents(owner_id)

    def analyze(self, query: str) -> QueryAnalysis:
        return self.analyzer.analyze(query)

    def retrieve(
        self,
        owner_id: str,
        query: str,
        analysis: QueryAnalysis | None = None,
    ) -> RetrievalResult:
        """Run the retrieval cascade for the owner.

        Returns:
            Ranked documents with search method and confidence.
        """
        logger.info("Retrieving documents for query: %s", query)
        return self.retrieval.retrieve(owner_id, query, analysis)
