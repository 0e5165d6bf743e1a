"""
Test cases for the optional FAISS-backed index.
"""

import pytest
import numpy as np

faiss = pytest.importorskip("faiss")

from memvector.errors import DimensionMismatch, InvalidArgument
from memvector.vector.faiss_index import FaissIndex
from memvector.vector.index import IndexType, create_index


def test_faiss_index_initialization():
    """FaissIndex can be created with or without a dimension."""
    index = FaissIndex(dimension=384)
    assert index.index is not None
    assert index.dimension == 384

    lazy = FaissIndex()
    assert lazy.index is None
    assert lazy.dimension is None


def test_faiss_index_add_and_query():
    index = FaissIndex()
    index.add("a", [1.0, 0.0, 0.0])
    index.add("b", [0.8, 0.6, 0.0])
    index.add("c", [0.0, 0.0, 1.0])

    results = index.query_with_scores([1.0, 0.0, 0.0], 2)

    assert [r.id for r in results] == ["a", "b"]
    assert results[0].score == pytest.approx(1.0, abs=1e-6)
    assert results[1].score == pytest.approx(0.8, abs=1e-6)


def test_faiss_index_remove():
    """Unlike a bare flat index, entries can be removed by id."""
    index = FaissIndex(dimension=2)
    index.add("a", [1.0, 0.0])
    index.add("b", [0.0, 1.0])

    assert index.remove("a") is True
    assert index.remove("a") is False
    assert index.size() == 1
    assert index.index.ntotal == 1
    assert index.query([1.0, 0.0], 5) == ["b"]


def test_faiss_index_replace():
    index = FaissIndex(dimension=2)
    index.add("a", [1.0, 0.0])
    index.add("a", [0.0, 1.0])

    assert index.size() == 1
    assert index.query([0.0, 1.0], 1) == ["a"]


def test_faiss_index_dimension_guard():
    index = FaissIndex(dimension=3)
    with pytest.raises(DimensionMismatch):
        index.add("a", [1.0, 0.0])
    with pytest.raises(DimensionMismatch):
        index.query([1.0, 0.0], 1)
    with pytest.raises(InvalidArgument):
        index.query([1.0, 0.0, 0.0], 0)


def test_faiss_index_clear():
    index = FaissIndex()
    index.add("a", np.array([0.5] * 8))
    index.clear()

    assert index.size() == 0
    assert index.ids() == []
    assert index.query(np.array([0.5] * 8), 5) == []


def test_faiss_index_empty_search():
    index = FaissIndex(dimension=3)
    assert index.query([1.0, 0.0, 0.0], 5) == []


def test_create_index_faiss():
    index = create_index("faiss", dimension=4)
    assert isinstance(index, FaissIndex)
    assert index.get_stats().index_type == IndexType.FAISS.value


def test_faiss_index_stats_report_stored_rows():
    index = FaissIndex(dimension=2)
    index.add("a", [1.0, 0.0])
    index.add("b", [0.0, 1.0])
    index.remove("a")

    stats = index.get_stats().to_dict()
    assert stats["faiss_ntotal"] == 1
    assert stats["total_vectors"] == 1
