"""
Vector core - FAISS-backed index.
Exact flat inner-product search over unit vectors; cosine up to float32 precision.
"""

from typing import Dict, List, Optional
import numpy as np

from .index import BaseIndex, IndexType
from .similarity import normalize
from .types import QueryResult


class FaissIndex(BaseIndex):
    """FAISS-backed implementation of INearestNeighborIndex."""

    index_type = IndexType.FAISS

    def __init__(self, dimension: Optional[int] = None):
        """
        Initialize FAISS index.

        Args:
            dimension: Dimension of the vectors; when None the first add fixes it
        """
        try:
            import faiss
            self.faiss = faiss
        except ImportError:
            raise ImportError("FAISS not installed. Please install faiss-cpu package.")

        super().__init__(dimension)
        self.index = None
        if dimension is not None:
            self.index = self._new_index(dimension)

        # faiss addresses vectors by int64; keep both directions of the mapping
        self.id_to_faiss_id: Dict[str, int] = {}
        self.faiss_id_to_id: Dict[int, str] = {}
        self.next_faiss_id = 0

    def _new_index(self, dimension: int):
        return self.faiss.IndexIDMap2(self.faiss.IndexFlatIP(dimension))

    def _add(self, record_id: str, vector: np.ndarray) -> None:
        if self.index is None:
            self.index = self._new_index(self._dimension)
        self._remove(record_id)

        faiss_id = self.next_faiss_id
        self.next_faiss_id += 1

        vector_array = np.array(normalize(vector), dtype=np.float32).reshape(1, -1)
        self.index.add_with_ids(vector_array, np.array([faiss_id], dtype=np.int64))

        self.id_to_faiss_id[record_id] = faiss_id
        self.faiss_id_to_id[faiss_id] = record_id

    def _remove(self, record_id: str) -> bool:
        faiss_id = self.id_to_faiss_id.pop(record_id, None)
        if faiss_id is None:
            return False
        self.index.remove_ids(np.array([faiss_id], dtype=np.int64))
        del self.faiss_id_to_id[faiss_id]
        return True

    def _rank(self, query: np.ndarray, k: int) -> List[QueryResult]:
        query_array = np.array(normalize(query), dtype=np.float32).reshape(1, -1)
        scores, indices = self.index.search(query_array, min(k, self.index.ntotal))

        results = []
        for score, faiss_id in zip(scores[0], indices[0]):
            # -1 marks an empty slot
            if faiss_id == -1:
                continue
            record_id = self.faiss_id_to_id.get(int(faiss_id))
            if record_id is not None:
                results.append(QueryResult(id=record_id, score=float(score)))
        return results

    def size(self) -> int:
        return len(self.id_to_faiss_id)

    def clear(self) -> None:
        with self._lock:
            if self._dimension is not None:
                self.index = self._new_index(self._dimension)
            self.id_to_faiss_id.clear()
            self.faiss_id_to_id.clear()
            self.next_faiss_id = 0

    def contains_id(self, record_id: str) -> bool:
        return record_id in self.id_to_faiss_id

    def ids(self) -> List[str]:
        with self._lock:
            return list(self.id_to_faiss_id.keys())

    def _memory_bytes(self) -> int:
        # Flat index stores one float32 row per vector
        return self.size() * (self._dimension or 0) * 4

    def _extra_stats(self):
        return {"faiss_ntotal": int(self.index.ntotal) if self.index is not None else 0}
