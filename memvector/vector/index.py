"""
Vector core - nearest-neighbour indexes.
Exact cosine top-k over every indexed vector; dense and sparse strategies share one contract.
"""

from abc import ABC, abstractmethod
from collections import defaultdict
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple
import threading
import time
import numpy as np

from ..errors import DimensionMismatch, InvalidArgument
from .similarity import (
    SPARSE_EPSILON,
    SparseVector,
    cosine_similarity,
    cosine_similarity_matrix,
    sparse_memory_bytes,
    sparse_norm,
    to_dense,
    to_sparse,
    top_k,
)
from .types import IndexStats, QueryResult


class IndexType(str, Enum):
    DENSE = "dense"      # every dimension stored
    SPARSE = "sparse"    # only non-zero dimensions stored
    FAISS = "faiss"      # faiss flat inner-product index


class INearestNeighborIndex(ABC):
    """Abstract interface for nearest-neighbour index operations."""

    index_type: IndexType

    @property
    @abstractmethod
    def dimension(self) -> Optional[int]:
        """Established vector dimension, None until configured or first add."""
        pass

    @abstractmethod
    def add(self, record_id: str, embedding) -> None:
        """Insert or replace the entry for record_id."""
        pass

    @abstractmethod
    def remove(self, record_id: str) -> bool:
        """Remove the entry for record_id; returns whether anything was removed."""
        pass

    @abstractmethod
    def query_with_scores(self, query_vector, k: int) -> List[QueryResult]:
        """Top-k entries by cosine similarity, best first."""
        pass

    def query(self, query_vector, k: int) -> List[str]:
        """Top-k ids by cosine similarity, best first."""
        return [result.id for result in self.query_with_scores(query_vector, k)]

    @abstractmethod
    def size(self) -> int:
        pass

    @abstractmethod
    def clear(self) -> None:
        """Remove every entry. The established dimension is kept."""
        pass

    @abstractmethod
    def contains_id(self, record_id: str) -> bool:
        pass

    @abstractmethod
    def ids(self) -> List[str]:
        pass

    @abstractmethod
    def get_stats(self) -> IndexStats:
        pass


class BaseIndex(INearestNeighborIndex):
    """Dimension bookkeeping, locking and query statistics shared by the in-process indexes."""

    def __init__(self, dimension: Optional[int] = None):
        if dimension is not None and dimension <= 0:
            raise InvalidArgument(f"Index dimension must be positive, got {dimension}")
        self._dimension = dimension
        self._lock = threading.RLock()
        self._total_queries = 0
        self._total_query_time = 0.0

    @property
    def dimension(self) -> Optional[int]:
        return self._dimension

    def _check_dimension(self, length: int) -> None:
        if self._dimension is not None and length != self._dimension:
            raise DimensionMismatch(self._dimension, length)

    def add(self, record_id: str, embedding) -> None:
        vector = np.array(embedding, dtype=np.float64).reshape(-1)
        if vector.shape[0] == 0:
            raise InvalidArgument("Cannot index an empty vector")

        with self._lock:
            self._check_dimension(vector.shape[0])
            if self._dimension is None:
                self._dimension = int(vector.shape[0])
            self._add(record_id, vector)

    def remove(self, record_id: str) -> bool:
        with self._lock:
            return self._remove(record_id)

    def query_with_scores(self, query_vector, k: int) -> List[QueryResult]:
        if k <= 0:
            raise InvalidArgument(f"Number of similar vectors must be positive, got {k}")
        query = np.asarray(query_vector, dtype=np.float64).reshape(-1)

        start = time.perf_counter()
        with self._lock:
            if self._dimension is None:
                return []
            self._check_dimension(query.shape[0])
            if self.size() == 0:
                return []

            results = self._rank(query, k)

            self._total_queries += 1
            self._total_query_time += time.perf_counter() - start

        return results

    def get_stats(self) -> IndexStats:
        with self._lock:
            average_ms = (self._total_query_time / self._total_queries * 1000) if self._total_queries else 0.0
            return IndexStats(
                index_type=self.index_type.value,
                dimension=self._dimension,
                total_vectors=self.size(),
                total_queries=self._total_queries,
                average_query_time_ms=average_ms,
                memory_bytes=self._memory_bytes(),
                extra=self._extra_stats(),
            )

    @abstractmethod
    def _add(self, record_id: str, vector: np.ndarray) -> None:
        pass

    @abstractmethod
    def _remove(self, record_id: str) -> bool:
        pass

    @abstractmethod
    def _rank(self, query: np.ndarray, k: int) -> List[QueryResult]:
        """Top-k hits for a non-empty index; called with the lock held and the dimension checked."""
        pass

    @abstractmethod
    def _memory_bytes(self) -> int:
        pass

    def _extra_stats(self) -> Dict[str, Any]:
        """Strategy-specific figures merged into get_stats()."""
        return {}


class ScanIndex(BaseIndex):
    """Exhaustive index: every entry is scored, then the stable top-k is taken."""

    def _rank(self, query: np.ndarray, k: int) -> List[QueryResult]:
        ids, scores = self._score_all(query)
        ranked = top_k(range(len(ids)), scores, k)
        return [QueryResult(id=ids[i], score=float(scores[i])) for i in ranked]

    @abstractmethod
    def _score_all(self, query: np.ndarray) -> Tuple[List[str], np.ndarray]:
        """Ids in insertion order and their cosine similarity to query."""
        pass


class DenseIndex(ScanIndex):
    """Dense index scanning a stacked matrix of every stored vector."""

    index_type = IndexType.DENSE

    def __init__(self, dimension: Optional[int] = None):
        super().__init__(dimension)
        self._vectors: Dict[str, np.ndarray] = {}  # record_id -> vector, insertion ordered
        self._matrix: Optional[np.ndarray] = None  # rebuilt lazily after mutation
        self._matrix_ids: List[str] = []

    def _add(self, record_id: str, vector: np.ndarray) -> None:
        # Replacement counts as a fresh insertion for tie ordering
        self._vectors.pop(record_id, None)
        self._vectors[record_id] = vector
        self._matrix = None

    def _remove(self, record_id: str) -> bool:
        if self._vectors.pop(record_id, None) is None:
            return False
        self._matrix = None
        return True

    def _score_all(self, query: np.ndarray) -> Tuple[List[str], np.ndarray]:
        if self._matrix is None:
            self._matrix_ids = list(self._vectors.keys())
            self._matrix = np.vstack(list(self._vectors.values()))
        return self._matrix_ids, cosine_similarity_matrix(self._matrix, query)

    def size(self) -> int:
        return len(self._vectors)

    def clear(self) -> None:
        with self._lock:
            self._vectors.clear()
            self._matrix = None
            self._matrix_ids = []

    def contains_id(self, record_id: str) -> bool:
        return record_id in self._vectors

    def ids(self) -> List[str]:
        with self._lock:
            return list(self._vectors.keys())

    def _memory_bytes(self) -> int:
        return sum(vector.nbytes for vector in self._vectors.values())


class SparseIndex(ScanIndex):
    """Sparse index keeping only non-zero components.

    An inverted list per dimension means a query only touches entries that
    share a non-zero dimension with it; every other entry scores exactly 0.0.

    A non-zero vector whose components all fall below ``epsilon`` has an
    empty sparse form. Such entries keep their dense vector and are scored
    directly, and a query of that kind is scored densely against every
    entry, so it still matches itself.
    """

    index_type = IndexType.SPARSE

    def __init__(self, dimension: Optional[int] = None, epsilon: float = SPARSE_EPSILON):
        super().__init__(dimension)
        self.epsilon = epsilon
        self._vectors: Dict[str, SparseVector] = {}
        self._norms: Dict[str, float] = {}
        self._postings: Dict[int, Dict[str, float]] = defaultdict(dict)  # dimension -> {record_id: value}
        self._below_epsilon: Dict[str, np.ndarray] = {}  # record_id -> dense vector

    def _add(self, record_id: str, vector: np.ndarray) -> None:
        self._remove(record_id)
        sparse = to_sparse(vector, self.epsilon)
        self._vectors[record_id] = sparse
        self._norms[record_id] = sparse_norm(sparse)
        for position, value in sparse.items():
            self._postings[position][record_id] = value
        if not sparse and np.any(vector != 0):
            self._below_epsilon[record_id] = vector

    def _remove(self, record_id: str) -> bool:
        sparse = self._vectors.pop(record_id, None)
        if sparse is None:
            return False
        del self._norms[record_id]
        self._below_epsilon.pop(record_id, None)
        for position in sparse:
            posting = self._postings[position]
            posting.pop(record_id, None)
            if not posting:
                del self._postings[position]
        return True

    def _score_all(self, query: np.ndarray) -> Tuple[List[str], np.ndarray]:
        ids = list(self._vectors.keys())
        scores = np.zeros(len(ids), dtype=np.float64)
        if not np.any(query != 0):
            return ids, scores

        sparse_query = to_sparse(query, self.epsilon)
        if not sparse_query:
            for i, record_id in enumerate(ids):
                stored = self._below_epsilon.get(record_id)
                if stored is None:
                    stored = to_dense(self._vectors[record_id], self._dimension)
                scores[i] = cosine_similarity(stored, query)
            return ids, scores

        query_norm = sparse_norm(sparse_query)
        positions = {record_id: i for i, record_id in enumerate(ids)}
        dots = np.zeros(len(ids), dtype=np.float64)
        for position, query_value in sparse_query.items():
            for record_id, value in self._postings.get(position, {}).items():
                dots[positions[record_id]] += value * query_value

        for i, record_id in enumerate(ids):
            norm = self._norms[record_id]
            if norm > 0 and dots[i] != 0:
                scores[i] = dots[i] / (norm * query_norm)

        for record_id, stored in self._below_epsilon.items():
            scores[positions[record_id]] = cosine_similarity(stored, query)
        return ids, scores

    def size(self) -> int:
        return len(self._vectors)

    def clear(self) -> None:
        with self._lock:
            self._vectors.clear()
            self._norms.clear()
            self._postings.clear()
            self._below_epsilon.clear()

    def contains_id(self, record_id: str) -> bool:
        return record_id in self._vectors

    def ids(self) -> List[str]:
        with self._lock:
            return list(self._vectors.keys())

    def _memory_bytes(self) -> int:
        sparse_bytes = sum(sparse_memory_bytes(sparse) for sparse in self._vectors.values())
        return sparse_bytes + sum(vector.nbytes for vector in self._below_epsilon.values())

    def _extra_stats(self) -> Dict[str, Any]:
        nonzero = sum(len(sparse) for sparse in self._vectors.values())
        capacity = len(self._vectors) * (self._dimension or 0)
        return {
            "epsilon": self.epsilon,
            "nonzero_entries": nonzero,
            "density": round(nonzero / capacity, 4) if capacity else 0.0,
            "below_epsilon_vectors": len(self._below_epsilon),
        }


def create_index(index_type="dense", dimension: Optional[int] = None,
                 epsilon: float = SPARSE_EPSILON) -> INearestNeighborIndex:
    """Build an index of the requested strategy."""
    try:
        index_type = IndexType(index_type)
    except ValueError:
        raise InvalidArgument(f"Unknown index type: {index_type}")

    if index_type == IndexType.DENSE:
        return DenseIndex(dimension)
    if index_type == IndexType.SPARSE:
        return SparseIndex(dimension, epsilon=epsilon)

    from .faiss_index import FaissIndex
    return FaissIndex(dimension)
