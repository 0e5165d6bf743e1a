"""
Vector core - data types.
Records are immutable once built; replacing content means delete + insert.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional
import numpy as np

from ..errors import ValidationError


def _freeze(embedding) -> Optional[np.ndarray]:
    if embedding is None:
        return None
    try:
        array = np.array(embedding, dtype=np.float64)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"Embedding must be a sequence of numbers: {e}") from e
    if array.ndim != 1:
        raise ValidationError(f"Embedding must be one-dimensional, got shape {array.shape}")
    array.flags.writeable = False
    return array


@dataclass(frozen=True, eq=False)
class VectorRecord:
    """Represents a stored embedding with its provenance tag."""

    id: Optional[str]
    """Unique identifier, assigned by the service when absent"""

    embedding: Optional[np.ndarray]
    """Read-only float64 vector"""

    metadata: Optional[str] = None
    """Opaque provenance tag, e.g. a source filename or "text-input" """

    dimension: Optional[int] = None
    """Declared length of the embedding; inferred when omitted"""

    def __post_init__(self):
        frozen = _freeze(self.embedding)
        object.__setattr__(self, "embedding", frozen)
        if self.dimension is None and frozen is not None:
            object.__setattr__(self, "dimension", int(frozen.shape[0]))

    def with_id(self, record_id: str) -> "VectorRecord":
        """Return a copy of this record carrying ``record_id``."""
        return VectorRecord(
            id=record_id,
            embedding=self.embedding,
            metadata=self.metadata,
            dimension=self.dimension,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "embedding": self.embedding.tolist() if self.embedding is not None else None,
            "metadata": self.metadata,
            "dimension": self.dimension,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VectorRecord":
        return cls(
            id=data.get("id"),
            embedding=data.get("embedding"),
            metadata=data.get("metadata"),
            dimension=data.get("dimension"),
        )


@dataclass
class QueryResult:
    """Represents a ranked hit from a nearest-neighbour index."""

    id: str
    """Identifier for the matching record"""

    score: float
    """Cosine similarity of the match (-1 to 1)"""


@dataclass
class IndexStats:
    """Point-in-time statistics for an index."""

    index_type: str
    dimension: Optional[int]
    total_vectors: int
    total_queries: int = 0
    average_query_time_ms: float = 0.0
    memory_bytes: int = 0
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index_type": self.index_type,
            "dimension": self.dimension,
            "total_vectors": self.total_vectors,
            "total_queries": self.total_queries,
            "average_query_time_ms": round(self.average_query_time_ms, 3),
            "memory_bytes": self.memory_bytes,
            **self.extra,
        }
