"""
Vector service - transactional boundary of the vector database.
Validates input, rejects near-duplicates, assigns ids and serializes creation.
"""

import threading
import uuid
from typing import Any, Dict, List, Optional, Tuple
import numpy as np

from util.logging import logger, summarize_vector

from ..errors import DuplicateVector, InvalidArgument
from ..vector.similarity import cosine_similarity
from ..vector.types import VectorRecord
from .config import DEFAULT_SIMILARITY_THRESHOLD
from .store import VectorStore
from .validation import require_id, validate_record


class VectorService:
    """Creation, lookup and similarity search over a VectorStore.

    ``create`` is serialized by one gate shared by all callers, making the
    duplicate check and the insert a single atomic step. Every other
    operation reads committed state directly and never waits on the gate.
    """

    def __init__(self, store: Optional[VectorStore] = None,
                 similarity_threshold: float = DEFAULT_SIMILARITY_THRESHOLD):
        if not 0.0 <= similarity_threshold <= 1.0:
            raise InvalidArgument(f"Similarity threshold must be within [0, 1]: {similarity_threshold}")
        self.store = store if store is not None else VectorStore()
        self.similarity_threshold = similarity_threshold
        self._create_lock = threading.Lock()

    def _find_duplicate(self, embedding) -> Optional[Tuple[VectorRecord, float]]:
        # Only the single nearest neighbour is compared against the threshold
        nearest = self.store.find_nearest(embedding, 1)
        if not nearest:
            return None

        most_similar = nearest[0]
        similarity = cosine_similarity(embedding, most_similar.embedding)
        logger.debug(f"Nearest existing vector {most_similar.id} has similarity {similarity:.6f}")
        if similarity >= self.similarity_threshold:
            return most_similar, similarity
        return None

    def create(self, record: VectorRecord) -> VectorRecord:
        """Store a new vector unless a near-duplicate already exists.

        Args:
            record: Record to create; an id is generated when ``record.id`` is None

        Returns:
            The stored record, carrying its id

        Raises:
            ValidationError: malformed record, raised before any locking
            DuplicateVector: nearest stored vector is at or above the threshold
            DimensionMismatch: embedding length differs from the index dimension
        """
        validate_record(record)

        with self._create_lock:
            duplicate = self._find_duplicate(record.embedding)
            if duplicate is not None:
                existing, similarity = duplicate
                logger.log_duplicate_rejection(existing.id, similarity, self.similarity_threshold)
                raise DuplicateVector(existing.id, similarity, self.similarity_threshold)

            if record.id is None:
                record = record.with_id(str(uuid.uuid4()))
            self.store.store(record)

        logger.log_vector_operation("create", record.id, {
            "metadata": record.metadata,
            "embedding": summarize_vector(record.embedding)
        })
        return record

    def get(self, record_id: str) -> Optional[VectorRecord]:
        require_id(record_id)
        return self.store.retrieve(record_id)

    def get_all(self) -> List[VectorRecord]:
        return self.store.retrieve_all()

    def delete(self, record_id: str) -> None:
        """Delete by id; deleting an absent id succeeds."""
        require_id(record_id)
        self.store.remove(record_id)

    def find_similar_with_scores(self, query_vector, k: int) -> List[Tuple[VectorRecord, float]]:
        if query_vector is None:
            raise InvalidArgument("Query vector cannot be null")
        if isinstance(k, bool) or not isinstance(k, (int, np.integer)) or k <= 0:
            raise InvalidArgument(f"Number of similar vectors must be positive, got {k}")

        try:
            query = np.asarray(query_vector, dtype=np.float64)
        except (TypeError, ValueError) as e:
            raise InvalidArgument(f"Query vector must be a sequence of numbers: {e}") from e
        if query.ndim != 1 or query.shape[0] == 0:
            raise InvalidArgument("Query vector must be a non-empty one-dimensional sequence")

        return self.store.find_nearest_with_scores(query, k)

    def find_similar(self, query_vector, k: int) -> List[VectorRecord]:
        """The k stored vectors most similar to query_vector, best first."""
        return [record for record, _ in self.find_similar_with_scores(query_vector, k)]

    def count(self) -> int:
        return self.store.size()

    def stats(self) -> Dict[str, Any]:
        return {
            "vector_count": self.count(),
            "similarity_threshold": self.similarity_threshold,
            "index": self.store.index_stats().to_dict(),
        }
