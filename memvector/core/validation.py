"""
Record validation shared by the service create path and snapshot import.
"""

from typing import Optional
import numpy as np

from ..errors import ValidationError
from ..vector.types import VectorRecord


def validate_record(record: Optional[VectorRecord]) -> None:
    """Raise ValidationError unless the record is well formed."""
    if record is None:
        raise ValidationError("Vector cannot be null")
    if record.embedding is None:
        raise ValidationError("Vector embedding cannot be null")
    if record.embedding.shape[0] == 0:
        raise ValidationError("Vector embedding cannot be empty")
    if record.dimension is None or record.dimension <= 0:
        raise ValidationError("Vector dimension must be positive")
    if record.embedding.shape[0] != record.dimension:
        raise ValidationError(
            f"Vector dimension must match embedding length "
            f"(dimension={record.dimension}, length={record.embedding.shape[0]})"
        )
    if not np.all(np.isfinite(record.embedding)):
        raise ValidationError("Vector embedding must contain only finite numbers")
    if record.id is not None and (not isinstance(record.id, str) or not record.id.strip()):
        raise ValidationError("Vector ID must be a non-empty string when supplied")


def require_id(record_id: str) -> None:
    if not isinstance(record_id, str) or not record_id.strip():
        raise ValidationError("Vector ID cannot be null or empty")
