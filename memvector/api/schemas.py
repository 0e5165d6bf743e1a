"""
Request and response models for the HTTP front-end.
"""

from pydantic import BaseModel, field_validator
from typing import Optional, List, Dict, Any
from datetime import datetime

from ..vector.types import VectorRecord


class VectorCreateRequest(BaseModel):
    id: Optional[str] = None
    embedding: List[float]
    metadata: Optional[str] = None
    dimension: Optional[int] = None

    @field_validator('id')
    @classmethod
    def id_must_not_be_blank(cls, v):
        if v is not None and not v.strip():
            raise ValueError('id cannot be blank')
        return v

    @field_validator('embedding')
    @classmethod
    def embedding_must_not_be_empty(cls, v):
        if not v:
            raise ValueError('Embedding cannot be empty')
        return v

    @field_validator('dimension')
    @classmethod
    def dimension_must_be_positive(cls, v):
        if v is not None and v <= 0:
            raise ValueError('Dimension must be a positive number')
        return v

    def to_record(self) -> VectorRecord:
        return VectorRecord(
            id=self.id,
            embedding=self.embedding,
            metadata=self.metadata,
            dimension=self.dimension
        )


class VectorResponse(BaseModel):
    id: str
    embedding: List[float]
    metadata: Optional[str] = None
    dimension: int

    @classmethod
    def from_record(cls, record: VectorRecord) -> "VectorResponse":
        return cls(
            id=record.id,
            embedding=record.embedding.tolist(),
            metadata=record.metadata,
            dimension=record.dimension
        )


class SearchHitResponse(VectorResponse):
    score: float

    @classmethod
    def from_hit(cls, record: VectorRecord, score: float) -> "SearchHitResponse":
        return cls(
            id=record.id,
            embedding=record.embedding.tolist(),
            metadata=record.metadata,
            dimension=record.dimension,
            score=score
        )


class HeartbeatResponse(BaseModel):
    status: str
    version: str
    timestamp: datetime
    start_time: datetime
    uptime: str
    memory: Dict[str, str]
    vector_count: int
    similarity_threshold: float
    index: Dict[str, Any]


class ErrorResponse(BaseModel):
    timestamp: datetime
    status: int
    error: str
    message: str
