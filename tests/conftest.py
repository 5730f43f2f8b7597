"""Test configuration and fixtures for kbchat tests.

This module provides reusable test fixtures organized by functionality:
- Constants and sample corpus
- Mock services and API responses
- EmbeddingService fixtures
- Document store fixtures
- Pipeline and conversation factories
"""

import hashlib
from unittest.mock import Mock, create_autospec, patch

import numpy as np
import pytest

from kbchat import (
    AnswerSynthesizer,
    Document,
    DocumentType,
    EmbeddingService,
    FaissDocumentStore,
    KnowledgebasePipeline,
    QueryAnalyzer,
    RetrievalSettings,
    SQLiteDocumentStore,
)


class TestConstants:
    """Centralized test constants shared across the test suite."""

    # API Configuration
    TEST_API_KEY = "test-key"
    TEST_OPENAI_MODEL = "text-embedding-3-small"
    TEST_EMBEDDING_DIMENSIONS = 1536

    # Vectors used by store and retrieval tests
    EMBEDDING_DIMENSION = 8

    # Users
    USER_ID = "user-alice"
    OTHER_USER_ID = "user-bob"


SAMPLE_DOCUMENTS = [
    {
        "title": "Healthcare Cloud Migration RFP Response",
        "type": DocumentType.RFP,
        "client": "MedCenter Corp",
        "industry": "Healthcare",
        "geography": "North America",
        "year": "2024",
        "summary": (
            "Comprehensive cloud migration strategy for a healthcare organization "
            "with 15,000+ employees, focusing on HIPAA compliance and data security."
        ),
        "content": (
            "MedCenter Corp requested a phased migration of clinical workloads to "
            "Azure. Our response covers landing zones, HIPAA controls, encrypted "
            "patient records and a 90-day cutover plan."
        ),
        "tags": ["Cloud Migration", "Azure", "HIPAA", "Security"],
    },
    {
        "title": "Financial Services Digital Transformation",
        "type": DocumentType.CASE_STUDY,
        "client": "SecureBank Inc",
        "industry": "Financial Services",
        "geography": "Europe",
        "year": "2023",
        "summary": (
            "Successful implementation of digital banking platform resulting in 40% "
            "increase in customer satisfaction and 25% reduction in operational costs."
        ),
        "content": (
            "SecureBank Inc replaced branch-centric processes with a mobile-first "
            "banking platform, consolidating onboarding and payments."
        ),
        "tags": ["Digital Transformation", "Banking", "Customer Experience"],
    },
    {
        "title": "Manufacturing IoT Implementation",
        "type": DocumentType.PROPOSAL,
        "client": "TechManufacturing Ltd",
        "industry": "Manufacturing",
        "geography": "Asia Pacific",
        "year": "2024",
        "summary": (
            "IoT-enabled smart factory solution with predictive maintenance "
            "capabilities and real-time production monitoring."
        ),
        "content": (
            "Sensors on every production line stream telemetry into a predictive "
            "maintenance model that schedules repairs before failures occur."
        ),
        "tags": ["IoT", "Smart Factory", "Predictive Maintenance"],
    },
]


def unit_vector(index: int, dimension: int = TestConstants.EMBEDDING_DIMENSION):
    """Unit basis vector used to make similarities predictable."""
    vector = np.zeros(dimension, dtype=np.float32)
    vector[index] = 1.0
    return vector


def make_document(owner_id: str = TestConstants.USER_ID, index: int = 0, **overrides):
    """Build a sample ``Document`` for ``owner_id`` from the corpus."""
    values = {**SAMPLE_DOCUMENTS[index], **overrides}
    return Document(owner_id=owner_id, **values)


class MockEmbeddingService:
    """Mock embedding service for testing without API calls.

    Generates deterministic embeddings based on text content hash,
    ensuring consistent test results across runs.
    """

    def __init__(self, dimension: int = TestConstants.EMBEDDING_DIMENSION) -> None:
        self.dimension = dimension
        self.calls: list[str] = []

    def get_embedding(self, text: str) -> np.ndarray:
        """Generate deterministic mock embedding based on text hash."""
        self.calls.append(text)
        seed = int.from_bytes(
            hashlib.sha256(text.lower().encode("utf-8")).digest()[:8],
            byteorder="big",
            signed=False,
        )
        rng = np.random.default_rng(seed)
        embedding = rng.normal(0, 1, self.dimension)
        return (embedding / np.linalg.norm(embedding)).astype(np.float32)

    def get_embeddings_batch(self, texts: list[str]) -> list[np.ndarray]:
        return [self.get_embedding(text) for text in texts]


def create_mock_openai_response(embeddings: list[list[float]]) -> Mock:
    """Create a mock OpenAI embeddings API response.

    Args:
        embeddings: List of embedding vectors to return.

    Returns:
        Mock object representing OpenAI embeddings API response.
    """
    mock_response = Mock()
    mock_response.data = [Mock(embedding=emb) for emb in embeddings]
    return mock_response


def create_mock_chat_response(content: str | None) -> Mock:
    """Create a mock OpenAI chat completion response.

    Args:
        content: The content for the chat completion response.

    Returns:
        Mock object representing OpenAI chat completion response.
    """
    mock_response = Mock()
    mock_response.choices = [Mock(message=Mock(content=content))]
    return mock_response


def create_mock_chat_client(content: str | None = "Test response") -> Mock:
    """Mock OpenAI client whose chat completions return ``content``."""
    client = Mock()
    client.chat.completions.create.return_value = create_mock_chat_response(content)
    return client


@pytest.fixture
def openai_embeddings_api_mock():
    """Base fixture that patches OpenAI embeddings.create method."""
    with patch("openai.resources.embeddings.Embeddings.create") as mock_create:
        yield mock_create


@pytest.fixture
def openai_embeddings_factory(openai_embeddings_api_mock):
    """Factory for creating OpenAI embeddings API mocks with different scenarios."""
    from openai import OpenAIError  # noqa: PLC0415

    def _create_mock(  # noqa: ANN202
        scenario="single_success",
        embeddings=None,
        error_message="API Error",
        side_effects=None,
    ):
        """Create a mock based on scenario type.

        Args:
            scenario: Type of mock ('single_success', 'batch_success', 'error',
                'multiple_batches', 'partial_failure')
            embeddings: Custom embeddings to return, or None for defaults
            error_message: Custom error message for error scenarios
            side_effects: Custom side effects list for complex scenarios
        """
        openai_embeddings_api_mock.reset_mock()
        openai_embeddings_api_mock.side_effect = None
        openai_embeddings_api_mock.return_value = None

        if scenario == "single_success":
            mock_embedding = embeddings or [0.1, 0.2, 0.3, 0.4, 0.5]
            mock_response = create_mock_openai_response([mock_embedding])
            openai_embeddings_api_mock.return_value = mock_response
        elif scenario == "batch_success":
            mock_embeddings = embeddings or [
                [0.1, 0.2, 0.3],
                [0.4, 0.5, 0.6],
                [0.7, 0.8, 0.9],
            ]
            mock_response = create_mock_openai_response(mock_embeddings)
            openai_embeddings_api_mock.return_value = mock_response
        elif scenario == "error":
            openai_embeddings_api_mock.side_effect = OpenAIError(error_message)
        elif scenario == "multiple_batches":
            if side_effects:
                openai_embeddings_api_mock.side_effect = side_effects
            else:
                mock_response1 = create_mock_openai_response([[0.1, 0.2], [0.3, 0.4]])
                mock_response2 = create_mock_openai_response([[0.5, 0.6], [0.7, 0.8]])
                openai_embeddings_api_mock.side_effect = [
                    mock_response1,
                    mock_response2,
                ]
        elif scenario == "partial_failure":
            mock_response = create_mock_openai_response([[0.1, 0.2]])
            openai_embeddings_api_mock.side_effect = [
                mock_response,
                OpenAIError("Second batch failed"),
            ]

        return openai_embeddings_api_mock

    return _create_mock


@pytest.fixture
def embedding_service_factory():
    """Factory for creating EmbeddingService instances with different configurations."""

    def _create_service(api_key=None, model=None, dimensions=None):  # noqa: ANN202
        api_key = api_key or TestConstants.TEST_API_KEY
        return EmbeddingService(api_key=api_key, model=model, dimensions=dimensions)

    return _create_service


@pytest.fixture
def embedding_service(embedding_service_factory):
    """Default EmbeddingService with test API key for most tests."""
    return embedding_service_factory()


@pytest.fixture
def mock_embedding_service():
    """Deterministic hash-based embedding service."""
    return MockEmbeddingService()


@pytest.fixture
def fixed_embedding_service():
    """Autospec embedding service whose query vector tests set explicitly."""
    service = create_autospec(EmbeddingService, instance=True)
    service.get_embedding.return_value = unit_vector(0)
    return service


@pytest.fixture
def sqlite_store(tmp_path) -> SQLiteDocumentStore:
    """Temporary SQLite document store with numpy vectors."""
    return SQLiteDocumentStore(tmp_path / "test_store.db", tmp_path / "vectors")


@pytest.fixture
def faiss_store(tmp_path) -> FaissDocumentStore:
    """Temporary document store backed by a FAISS index."""
    return FaissDocumentStore(
        db_path=tmp_path / "faiss_store.db",
        index_path=tmp_path / "faiss" / "index.faiss",
    )


@pytest.fixture(params=["sqlite", "faiss"])
def document_store(request, tmp_path):
    """Each store backend in turn."""
    if request.param == "sqlite":
        return SQLiteDocumentStore(tmp_path / "store.db", tmp_path / "vectors")
    return FaissDocumentStore(
        db_path=tmp_path / "store.db",
        index_path=tmp_path / "faiss" / "index.faiss",
    )


@pytest.fixture
def seeded_store(document_store):
    """Store holding the sample corpus for USER_ID, embedded on basis vectors.

    Document ``i`` is stored with ``unit_vector(i)`` as its embedding.
    """
    for index in range(len(SAMPLE_DOCUMENTS)):
        document_store.add_document(
            make_document(index=index, embedding=unit_vector(index))
        )
    return document_store


@pytest.fixture
def text_only_store(sqlite_store):
    """SQLite store holding the sample corpus without embeddings."""
    for index in range(len(SAMPLE_DOCUMENTS)):
        sqlite_store.add_document(make_document(index=index))
    return sqlite_store


@pytest.fixture
def heuristic_analyzer():
    """Query analyzer that never calls the language model."""
    return QueryAnalyzer(use_llm=False)


@pytest.fixture
def retrieval_settings():
    return RetrievalSettings()


@pytest.fixture
def pipeline_factory(heuristic_analyzer, retrieval_settings):
    """Factory for pipelines over a given store and embedding service."""

    def _create_pipeline(store, embedding_service=None) -> KnowledgebasePipeline:
        return KnowledgebasePipeline(
            store=store,
            embedding_service=embedding_service or MockEmbeddingService(),
            analyzer=heuristic_analyzer,
            settings=retrieval_settings,
        )

    return _create_pipeline


@pytest.fixture
def synthesizer_factory():
    """Factory for synthesizers backed by a mock chat client."""

    def _create_synthesizer(
        content: str | None = "Test response", **kwargs
    ) -> AnswerSynthesizer:
        return AnswerSynthesizer(client=create_mock_chat_client(content), **kwargs)

    return _create_synthesizer
