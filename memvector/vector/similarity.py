"""
Vector core - similarity math.
Pure functions shared by the dense and sparse indexes and the duplicate check.
"""

from typing import Dict, List, Sequence, TypeVar
import numpy as np

from ..errors import DimensionMismatch, InvalidArgument

SPARSE_EPSILON = 1e-10

T = TypeVar("T")

SparseVector = Dict[int, float]


def _as_vector(v) -> np.ndarray:
    return np.asarray(v, dtype=np.float64).reshape(-1)


def cosine_similarity(a, b) -> float:
    """Cosine similarity of two dense vectors, 0.0 when either norm is zero."""
    a = _as_vector(a)
    b = _as_vector(b)
    if a.shape[0] != b.shape[0]:
        raise DimensionMismatch(a.shape[0], b.shape[0], "Vectors must have same dimension")

    norm_a = np.linalg.norm(a)
    norm_b = np.linalg.norm(b)
    if norm_a == 0 or norm_b == 0:
        return 0.0

    return float(np.dot(a, b) / (norm_a * norm_b))


def cosine_similarity_matrix(matrix: np.ndarray, query) -> np.ndarray:
    """Cosine similarity of ``query`` against every row of ``matrix``.

    Same definition as cosine_similarity: rows (or a query) with zero norm
    score 0.0.
    """
    query = _as_vector(query)
    if matrix.shape[0] == 0:
        return np.zeros(0, dtype=np.float64)
    if matrix.shape[1] != query.shape[0]:
        raise DimensionMismatch(matrix.shape[1], query.shape[0])

    query_norm = np.linalg.norm(query)
    if query_norm == 0:
        return np.zeros(matrix.shape[0], dtype=np.float64)

    row_norms = np.linalg.norm(matrix, axis=1)
    dots = matrix @ query
    denominators = row_norms * query_norm
    scores = np.zeros(matrix.shape[0], dtype=np.float64)
    nonzero = denominators > 0
    scores[nonzero] = dots[nonzero] / denominators[nonzero]
    return scores


def normalize(v) -> np.ndarray:
    """Scale to unit length; a zero vector is returned unchanged."""
    v = _as_vector(v)
    norm = np.linalg.norm(v)
    if norm == 0:
        return v
    return v / norm


def to_sparse(v, epsilon: float = SPARSE_EPSILON) -> SparseVector:
    """Keep only components with absolute value above ``epsilon``."""
    v = _as_vector(v)
    nonzero = np.flatnonzero(np.abs(v) > epsilon)
    return {int(i): float(v[i]) for i in nonzero}


def to_dense(sparse: SparseVector, dimension: int) -> np.ndarray:
    dense = np.zeros(dimension, dtype=np.float64)
    for index, value in sparse.items():
        dense[index] = value
    return dense


def sparse_norm(sparse: SparseVector) -> float:
    return float(np.sqrt(sum(value * value for value in sparse.values())))


def sparse_dot(a: SparseVector, b: SparseVector) -> float:
    # Iterate the smaller map
    small, large = (a, b) if len(a) <= len(b) else (b, a)
    return float(sum(value * large[index] for index, value in small.items() if index in large))


def cosine_similarity_sparse(a: SparseVector, b: SparseVector) -> float:
    """Cosine similarity of two sparse vectors; agrees with the dense form."""
    dot = sparse_dot(a, b)
    norm_a = sparse_norm(a)
    norm_b = sparse_norm(b)
    if norm_a == 0 or norm_b == 0:
        return 0.0

    return float(dot / (norm_a * norm_b))


def top_k(candidates: Sequence[T], scores: Sequence[float], k: int) -> List[T]:
    """Highest-scoring ``k`` candidates, best first.

    Ties keep their input order so repeated identical queries rank identically.
    """
    if len(candidates) != len(scores):
        raise InvalidArgument("Candidates and scores must have same size")
    if k <= 0:
        raise InvalidArgument(f"k must be positive, got {k}")

    if not len(candidates):
        return []

    order = np.argsort(-np.asarray(scores, dtype=np.float64), kind="stable")
    return [candidates[i] for i in order[:k]]


def vector_memory_bytes(v) -> int:
    return int(_as_vector(v).nbytes)


def sparse_memory_bytes(sparse: SparseVector) -> int:
    # One int32 index plus one float64 value per stored component
    return len(sparse) * (4 + 8)
