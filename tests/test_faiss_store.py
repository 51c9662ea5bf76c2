"""
FAISS-backed vector index; same contract as the in-memory store.
"""

import numpy as np
import pytest

faiss = pytest.importorskip("faiss")

from tiered_retrieval.core.errors import DimensionMismatch
from tiered_retrieval.vector import FaissVectorStore, VectorRecord


def unit(dim, index):
    v = np.zeros(dim, dtype=np.float32)
    v[index] = 1.0
    return v


@pytest.fixture
def store():
    store = FaissVectorStore(dimension=8)
    store.put("first", unit(8, 0), text="first text", metadata={"kind": "qa"})
    store.put("middle", unit(8, 4), text="middle text", metadata={"kind": "chunk"})
    return store


def test_faiss_store_initialization():
    store = FaissVectorStore(dimension=384)

    assert store.dimension == 384
    assert store.count() == 0
    assert store.stats()["indexed"] == 0


def test_faiss_store_search(store):
    results = store.search_similar(unit(8, 0), limit=2)

    assert results[0].id == "first"
    assert results[0].score == pytest.approx(1.0, abs=1e-6)
    assert results[0].text == "first text"
    assert results[0].metadata == {"kind": "qa"}
    assert results[1].score == pytest.approx(0.0, abs=1e-6)


def test_faiss_store_threshold(store):
    results = store.search_similar(unit(8, 0), limit=5, threshold=0.5)

    assert [r.id for r in results] == ["first"]


def test_faiss_store_replace(store):
    store.put("first", unit(8, 2), text="moved")

    assert store.count() == 2
    assert store.stats()["indexed"] == 2
    assert store.search_similar(unit(8, 2), limit=1)[0].id == "first"
    assert store.get("first").text == "moved"


def test_faiss_store_delete(store):
    assert store.delete("first") is True
    assert store.delete("first") is False

    results = store.search_similar(unit(8, 0), limit=5)
    assert "first" not in [r.id for r in results]
    assert store.count() == 1


def test_faiss_store_batch_put():
    store = FaissVectorStore(dimension=8)
    records = [
        VectorRecord(id=f"r{i}", vector=unit(8, i), metadata={"i": i})
        for i in range(5)
    ]

    store.batch_put(records)

    assert store.count() == 5
    assert store.search_similar(unit(8, 3), limit=1)[0].id == "r3"


def test_faiss_store_zero_vector_is_kept_but_not_indexed():
    store = FaissVectorStore(dimension=4)
    store.put("zero", np.zeros(4))

    assert store.get("zero") is not None
    assert store.stats()["indexed"] == 0
    assert store.search_similar(unit(4, 0)) == []


def test_faiss_store_dimension_mismatch(store):
    with pytest.raises(DimensionMismatch):
        store.put("bad", np.ones(4))

    with pytest.raises(DimensionMismatch):
        store.search_similar(np.ones(4))


def test_faiss_store_metadata_and_clear(store):
    assert [r.id for r in store.search_by_metadata({"kind": "chunk"})] == ["middle"]

    store.clear()

    assert store.count() == 0
    assert store.search_similar(unit(8, 0)) == []
