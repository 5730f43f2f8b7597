"""Unit tests for FaissDocumentStore."""

import faiss
import numpy as np
import pytest
from conftest import SAMPLE_DOCUMENTS, TestConstants, make_document, unit_vector

from kbchat import FaissDocumentStore

USER = TestConstants.USER_ID


def test_faiss_add_and_search(faiss_store):
    faiss_store.add_document(make_document(embedding=unit_vector(0)))
    faiss_store.add_document(make_document(index=1, embedding=unit_vector(1)))

    assert isinstance(faiss_store.index, faiss.IndexIDMap2)
    assert faiss_store.index.ntotal == 2

    results = faiss_store.similarity_search(
        USER, unit_vector(0), threshold=0.3, limit=2
    )

    assert len(results) == 1
    document, score = results[0]
    assert document.title == SAMPLE_DOCUMENTS[0]["title"]
    assert score == pytest.approx(1.0, abs=1e-5)


def test_faiss_uses_document_ids_as_vector_ids(faiss_store):
    first = faiss_store.add_document(make_document(embedding=unit_vector(0)))
    second = faiss_store.add_document(make_document(index=1, embedding=unit_vector(1)))

    reconstructed = faiss_store.index.reconstruct(second.id)

    np.testing.assert_allclose(reconstructed, unit_vector(1), atol=1e-6)
    assert first.id != second.id


def test_faiss_normalizes_vectors(faiss_store):
    faiss_store.add_document(make_document(embedding=unit_vector(0) * 5))

    results = faiss_store.similarity_search(
        USER, unit_vector(0) * 0.1, threshold=0.3, limit=1
    )

    assert results[0][1] == pytest.approx(1.0, abs=1e-5)


def test_faiss_update_embedding_replaces_vector(faiss_store):
    stored = faiss_store.add_document(make_document(embedding=unit_vector(0)))

    faiss_store.update_embedding(USER, stored.id, unit_vector(4))

    assert faiss_store.index.ntotal == 1
    assert (
        faiss_store.similarity_search(USER, unit_vector(0), threshold=0.3, limit=8)
        == []
    )
    assert len(
        faiss_store.similarity_search(USER, unit_vector(4), threshold=0.3, limit=8)
    ) == 1


def test_faiss_dimension_mismatch_raises(faiss_store):
    faiss_store.add_document(make_document(embedding=unit_vector(0)))
    stored = faiss_store.add_document(make_document(index=1))

    with pytest.raises(ValueError, match="does not match FAISS index dimension"):
        faiss_store.update_embedding(USER, stored.id, np.ones(4, dtype=np.float32))


def test_faiss_selector_limits_search_to_owner(faiss_store):
    faiss_store.add_document(
        make_document(TestConstants.OTHER_USER_ID, embedding=unit_vector(0))
    )
    nearby = unit_vector(0) * 0.9 + unit_vector(1) * 0.4
    faiss_store.add_document(make_document(index=1, embedding=nearby))

    results = faiss_store.similarity_search(
        USER, unit_vector(0), threshold=0.3, limit=1
    )

    assert [doc.owner_id for doc, _ in results] == [USER]
    assert results[0][0].title == SAMPLE_DOCUMENTS[1]["title"]


def test_faiss_persistence_roundtrip(faiss_store):
    faiss_store.add_document(make_document(embedding=unit_vector(0)))
    faiss_store.save()

    reloaded = FaissDocumentStore(
        db_path=faiss_store.db_path,
        index_path=faiss_store.index_path,
    )
    reloaded.load()

    assert reloaded.index is not None
    assert reloaded.index.ntotal == 1
    results = reloaded.similarity_search(USER, unit_vector(0), threshold=0.3, limit=8)
    assert [doc.title for doc, _ in results] == [SAMPLE_DOCUMENTS[0]["title"]]


def test_faiss_search_loads_index_lazily(faiss_store):
    faiss_store.add_document(make_document(embedding=unit_vector(0)))

    fresh = FaissDocumentStore(
        db_path=faiss_store.db_path,
        index_path=faiss_store.index_path,
    )

    results = fresh.similarity_search(USER, unit_vector(0), threshold=0.3, limit=8)
    assert len(results) == 1


def test_faiss_load_without_index_file(tmp_path):
    store = FaissDocumentStore(
        db_path=tmp_path / "empty.db",
        index_path=tmp_path / "missing" / "index.faiss",
    )
    store.load()

    assert store.index is None
    assert store.similarity_search(USER, unit_vector(0), threshold=0.3, limit=8) == []


def test_faiss_load_rejects_index_without_id_map(tmp_path):
    index_path = tmp_path / "faiss" / "index.faiss"
    store = FaissDocumentStore(db_path=tmp_path / "store.db", index_path=index_path)
    faiss.write_index(faiss.IndexFlatIP(TestConstants.EMBEDDING_DIMENSION), str(index_path))

    with pytest.raises(ValueError, match="expected IndexIDMap2"):
        store.load()
