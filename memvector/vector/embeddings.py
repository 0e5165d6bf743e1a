"""
Embedding producers for the ingestion front-end.
The core only ever sees the finished vector; these turn text into one.
"""

from abc import ABC, abstractmethod
from collections import OrderedDict
import hashlib
import threading
from typing import List, Tuple

import numpy as np

from util.logging import logger

from ..errors import ValidationError

DEFAULT_CACHE_SIZE = 1024


class EmbeddingProducer(ABC):
    """Turns text into a fixed-length vector.

    Results are memoised per text in a bounded LRU cache shared by all
    threads using the producer; ``cache_size=0`` disables it.
    """

    def __init__(self, cache_size: int = DEFAULT_CACHE_SIZE):
        if cache_size < 0:
            raise ValueError(f"Cache size cannot be negative: {cache_size}")
        self.cache_size = cache_size
        self._cache: "OrderedDict[str, Tuple[float, ...]]" = OrderedDict()
        self._cache_lock = threading.Lock()

    @property
    @abstractmethod
    def dimension(self) -> int:
        ...

    @abstractmethod
    def _encode(self, text: str) -> np.ndarray:
        ...

    def is_available(self) -> bool:
        return True

    def embed(self, text: str) -> List[float]:
        """Embed one non-blank text."""
        if text is None or not text.strip():
            raise ValidationError("Input text cannot be empty")

        with self._cache_lock:
            cached = self._cache.get(text)
            if cached is not None:
                self._cache.move_to_end(text)
                return list(cached)

        vector = [float(x) for x in self._encode(text)]
        logger.debug(f"Embedded {len(text)} chars into {len(vector)} dimensions")

        if self.cache_size:
            with self._cache_lock:
                self._cache[text] = tuple(vector)
                while len(self._cache) > self.cache_size:
                    self._cache.popitem(last=False)
        return vector

    def embed_batch(self, texts: List[str]) -> List[List[float]]:
        return [self.embed(text) for text in texts]

    def cached_count(self) -> int:
        with self._cache_lock:
            return len(self._cache)


class HashingEmbedder(EmbeddingProducer):
    """Feature-hashing embedder needing no model download.

    Each lowercased whitespace token lands in a signed bucket chosen by its
    md5 digest, and the bucket counts are scaled to unit length. Texts that
    share words get similar vectors; identical texts get identical ones.
    """

    def __init__(self, dimension: int = 384, cache_size: int = DEFAULT_CACHE_SIZE):
        super().__init__(cache_size)
        if dimension <= 0:
            raise ValueError(f"Embedding dimension must be positive: {dimension}")
        self._dimension = dimension

    @property
    def dimension(self) -> int:
        return self._dimension

    def _encode(self, text: str) -> np.ndarray:
        buckets = np.zeros(self._dimension, dtype=np.float64)
        for token in text.lower().split():
            digest = hashlib.md5(token.encode("utf-8")).digest()
            slot = int.from_bytes(digest[:4], "big") % self._dimension
            buckets[slot] += -1.0 if digest[4] & 1 else 1.0

        length = np.linalg.norm(buckets)
        return buckets / length if length > 0 else buckets


class SentenceTransformerEmbedder(EmbeddingProducer):
    """Embedder backed by a pre-trained sentence-transformers model.

    The package is an optional extra (``pip install memvector[embeddings]``)
    and the model is loaded on first use.
    """

    def __init__(self, model_name: str = "all-mpnet-base-v2", cache_size: int = DEFAULT_CACHE_SIZE):
        super().__init__(cache_size)
        self.model_name = model_name
        self._model = None
        self._load_lock = threading.Lock()

    def _load(self):
        with self._load_lock:
            if self._model is None:
                from sentence_transformers import SentenceTransformer
                logger.info(f"Loading sentence-transformers model {self.model_name}")
                self._model = SentenceTransformer(self.model_name)
        return self._model

    @property
    def dimension(self) -> int:
        return self._load().get_sentence_embedding_dimension()

    def _encode(self, text: str) -> np.ndarray:
        return np.asarray(self._load().encode(text, convert_to_tensor=False), dtype=np.float64)

    def is_available(self) -> bool:
        try:
            import sentence_transformers  # noqa: F401
        except ImportError:
            return False
        return True
