"""
Error taxonomy for the vector database core.
Every error here is a caller contract violation and is raised, never retried.
"""

from typing import Optional


class VectorDBError(Exception):
    """Base class for all vector database errors."""


class ValidationError(VectorDBError):
    """Malformed input: missing or empty embedding, bad dimension, bad id."""


class InvalidArgument(VectorDBError):
    """Argument outside its allowed range, e.g. k <= 0 in a similarity query."""


class DimensionMismatch(VectorDBError):
    """Vector length disagrees with the dimension established for the index."""

    def __init__(self, expected: int, actual: int, message: Optional[str] = None):
        self.expected = expected
        self.actual = actual
        super().__init__(message or f"Vector dimension {actual} does not match expected dimension {expected}")


class DuplicateVector(VectorDBError):
    """A stored vector is at least as similar as the configured threshold."""

    def __init__(self, existing_id: str, similarity: float, threshold: float):
        self.existing_id = existing_id
        self.similarity = similarity
        self.threshold = threshold
        super().__init__(
            f"A similar vector already exists in the database "
            f"(id={existing_id}, similarity={similarity:.4f}, threshold={threshold})"
        )


class VectorNotFound(VectorDBError):
    """Lookup by id found nothing."""

    def __init__(self, vector_id: str):
        self.vector_id = vector_id
        super().__init__(f"Vector not found with id: {vector_id}")


class SnapshotError(VectorDBError):
    """Snapshot file is missing, malformed or fails its checksum."""
