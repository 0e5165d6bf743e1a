"""
Configuration for the vector database.
Values come from the environment (a local .env file is loaded first) and are read at call time.
"""

import os
from typing import List, Optional

from dotenv import load_dotenv

load_dotenv()

# Version string
VERSION = "1.0.0"

DEFAULT_SIMILARITY_THRESHOLD = 0.95
DEFAULT_INDEX_TYPE = "dense"  # dense|sparse|faiss
DEFAULT_EMBED_PROVIDER = "hash"  # hash|sentence-transformers
DEFAULT_EMBED_DIMENSION = 384
DEFAULT_EMBED_MODEL_NAME = "all-mpnet-base-v2"
DEFAULT_EMBED_CACHE_SIZE = 1024
DEFAULT_SPARSE_EPSILON = 1e-10
DEFAULT_K = 10

VALID_INDEX_TYPES = ["dense", "sparse", "faiss"]
VALID_EMBED_PROVIDERS = ["hash", "sentence-transformers"]


def _optional_int(name: str) -> Optional[int]:
    value = os.getenv(name, "").strip()
    return int(value) if value else None


def get_similarity_threshold() -> float:
    """Duplicate rejection threshold (cosine similarity, 0-1)."""
    return float(os.getenv("SIMILARITY_THRESHOLD", str(DEFAULT_SIMILARITY_THRESHOLD)))


def get_vector_dimension() -> Optional[int]:
    """Index dimension fixed up front; None lets the first insertion decide."""
    return _optional_int("VECTOR_DIMENSION")


def get_index_type() -> str:
    return os.getenv("INDEX_TYPE", DEFAULT_INDEX_TYPE).lower()


def get_sparse_epsilon() -> float:
    return float(os.getenv("SPARSE_EPSILON", str(DEFAULT_SPARSE_EPSILON)))


def get_embed_provider_name() -> str:
    return os.getenv("EMBED_PROVIDER", DEFAULT_EMBED_PROVIDER).lower()


def get_embed_dimension() -> int:
    return int(os.getenv("EMBED_DIMENSION", str(DEFAULT_EMBED_DIMENSION)))


def get_embed_model_name() -> str:
    return os.getenv("EMBED_MODEL_NAME", DEFAULT_EMBED_MODEL_NAME)


def get_embed_cache_size() -> int:
    return int(os.getenv("EMBED_CACHE_SIZE", str(DEFAULT_EMBED_CACHE_SIZE)))


def get_snapshot_path() -> Optional[str]:
    """Snapshot file imported at startup and exported at shutdown, if set."""
    return os.getenv("SNAPSHOT_PATH") or None


def get_default_k() -> int:
    return int(os.getenv("DEFAULT_K", str(DEFAULT_K)))


def debug_enabled() -> bool:
    """Check if debug mode is enabled."""
    return os.getenv("DEBUG", "true").lower() == "true"


def validate_config() -> List[str]:
    """Validate configuration and return any issues."""
    issues = []

    try:
        threshold = get_similarity_threshold()
        if not 0.0 <= threshold <= 1.0:
            issues.append(f"SIMILARITY_THRESHOLD must be within [0, 1]: {threshold}")
    except ValueError:
        issues.append(f"Invalid SIMILARITY_THRESHOLD: {os.getenv('SIMILARITY_THRESHOLD')}")

    try:
        dimension = get_vector_dimension()
        if dimension is not None and dimension <= 0:
            issues.append(f"VECTOR_DIMENSION must be positive: {dimension}")
    except ValueError:
        issues.append(f"Invalid VECTOR_DIMENSION: {os.getenv('VECTOR_DIMENSION')}")

    if get_index_type() not in VALID_INDEX_TYPES:
        issues.append(f"Invalid INDEX_TYPE: {get_index_type()}")

    if get_embed_provider_name() not in VALID_EMBED_PROVIDERS:
        issues.append(f"Invalid EMBED_PROVIDER: {get_embed_provider_name()}")

    try:
        if get_embed_dimension() <= 0:
            issues.append("EMBED_DIMENSION must be positive")
    except ValueError:
        issues.append(f"Invalid EMBED_DIMENSION: {os.getenv('EMBED_DIMENSION')}")

    try:
        if get_embed_cache_size() < 0:
            issues.append("EMBED_CACHE_SIZE cannot be negative")
    except ValueError:
        issues.append(f"Invalid EMBED_CACHE_SIZE: {os.getenv('EMBED_CACHE_SIZE')}")

    try:
        if get_default_k() < 1:
            issues.append("DEFAULT_K must be >= 1")
    except ValueError:
        issues.append(f"Invalid DEFAULT_K: {os.getenv('DEFAULT_K')}")

    return issues


def get_index():
    """Get configured nearest-neighbour index implementation."""
    from ..vector.index import create_index
    return create_index(get_index_type(), get_vector_dimension(), epsilon=get_sparse_epsilon())


def get_embedding_provider():
    """Get configured embedding producer implementation."""
    if get_embed_provider_name() == "sentence-transformers":
        from ..vector.embeddings import SentenceTransformerEmbedder
        return SentenceTransformerEmbedder(get_embed_model_name(), cache_size=get_embed_cache_size())

    from ..vector.embeddings import HashingEmbedder
    return HashingEmbedder(get_embed_dimension(), cache_size=get_embed_cache_size())


def get_vector_service():
    """Build a VectorService over a fresh store using the configured index and threshold."""
    issues = validate_config()
    if issues:
        raise ValueError(f"Vector database configuration invalid: {issues}")

    from .store import VectorStore
    from .service import VectorService
    return VectorService(VectorStore(get_index()), similarity_threshold=get_similarity_threshold())
