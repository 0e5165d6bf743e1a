"""
Vector core - records, similarity math and nearest-neighbour indexes.
"""

from .types import VectorRecord, QueryResult, IndexStats
from .index import INearestNeighborIndex, DenseIndex, SparseIndex, IndexType, create_index
from .embeddings import EmbeddingProducer, HashingEmbedder, SentenceTransformerEmbedder
from . import similarity

__all__ = [
    'VectorRecord',
    'QueryResult',
    'IndexStats',
    'INearestNeighborIndex',
    'DenseIndex',
    'SparseIndex',
    'IndexType',
    'create_index',
    'EmbeddingProducer',
    'HashingEmbedder',
    'SentenceTransformerEmbedder',
    'similarity'
]
