"""
Vector Retriever

Similarity search across the per-source collections of a chat's sources.
"""

import logging
from typing import Any, Dict, List, Sequence

from ..embedders.base import Embedder
from ..errors import ValidationError
from ..vector_index import collection_name_for
from ..vector_stores.base import VectorStore

logger = logging.getLogger(__name__)


class VectorRetriever:
    """Searches each source's collection and merges hits by score"""

    def __init__(
        self,
        vector_store: VectorStore,
        embedder: Embedder,
        collection_prefix: str = "source"
    ):
        self.vector_store = vector_store
        self.embedder = embedder
        self.collection_prefix = collection_prefix

    async def search(
        self,
        query: str,
        source_ids: Sequence[str],
        k: int = 5
    ) -> List[Dict[str, Any]]:
        """
        Retrieve the k most similar chunks across sources.

        Returns:
            [{"text", "score", "metadata"}] sorted by score, highest first
        """
        if not isinstance(query, str) or not query.strip():
            raise ValidationError("Query is required and must be a non-empty string")
        if isinstance(source_ids, str) or not source_ids:
            raise ValidationError("source_ids must be a non-empty list")
        if k < 1:
            raise ValidationError(f"Invalid k {k!r}: must be positive")

        query_vector = await self.embedder.embed_query(query.strip())

        contexts: List[Dict[str, Any]] = []
        for source_id in source_ids:
            collection = collection_name_for(str(source_id), self.collection_prefix)
            if not await self.vector_store.collection_exists(collection):
                logger.warning(f"Collection {collection} not found, skipping")
                continue

            results = await self.vector_store.search(
                collection,
                query_vector,
                limit=k,
                filter={"metadata.sourceId": str(source_id)},
            )
            for result in results:
                contexts.append({
                    "text": result.payload.get("text", ""),
                    "score": result.score,
                    "metadata": result.payload.get("metadata", {}),
                })

        contexts.sort(key=lambda c: c["score"], reverse=True)
        return contexts[:k]
