"""
Embedder interface used by vector indexing and vector retrieval.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List


@dataclass
class EmbeddingResult:
    """Vectors for a batch of chunk texts, in input order"""
    embeddings: List[List[float]]
    model: str
    dimensions: int
    processing_time_ms: float = 0


class Embedder(ABC):
    """
    Turns chunk text and queries into vectors.

    The indexer sizes a new collection from `EmbeddingResult.dimensions`, so
    every call on one instance must return vectors of the same width.
    """

    @abstractmethod
    async def embed(self, texts: List[str], batch_size: int = 64) -> EmbeddingResult:
        """
        Embed chunk texts.

        Raises:
            DependencyError: the backing model or service failed
        """
        pass

    @abstractmethod
    async def embed_query(self, text: str) -> List[float]:
        pass

    async def open(self) -> None:
        """Acquire connections; optional for implementations"""
        pass

    async def close(self) -> None:
        pass

    @staticmethod
    def _normalize(text: str) -> str:
        return ' '.join(text.split())
