"""
Qdrant Vector Store Implementation

- Per-source cosine collections, created on first upsert
- Batched upserts that raise unless Qdrant reports them completed
- Payload filters translated to the Qdrant filter DSL
"""

import logging
from typing import List, Dict, Any, Optional

from qdrant_client import AsyncQdrantClient
from qdrant_client.http.models import (
    Distance,
    VectorParams,
    PointStruct,
    Filter,
    FieldCondition,
    MatchAny,
    MatchValue,
    UpdateStatus
)

from .base import VectorStore, VectorRecord, SearchResult
from ..errors import DependencyError

logger = logging.getLogger(__name__)


def build_qdrant_filter(conditions: Optional[Dict[str, Any]]) -> Optional[Filter]:
    """
    Translate {"metadata.sourceId": "abc"} style conditions into a Filter.

    A value of {"$in": [...]} matches any of the listed values; anything
    else is an exact match. All conditions must hold.
    """
    if not conditions:
        return None

    must = []
    for key, value in conditions.items():
        if isinstance(value, dict) and "$in" in value:
            match = MatchAny(any=list(value["$in"]))
        else:
            match = MatchValue(value=value)
        must.append(FieldCondition(key=key, match=match))

    return Filter(must=must)


class QdrantStore(VectorStore):
    """Qdrant over the async client; connect() must succeed before use"""

    def __init__(
        self,
        url: str = "http://localhost:6333",
        api_key: Optional[str] = None,
        timeout: int = 30,
        batch_size: int = 100
    ):
        self.url = url
        self.api_key = api_key
        self.timeout = timeout
        self.batch_size = batch_size

        self._client: Optional[AsyncQdrantClient] = None

    @property
    def client(self) -> AsyncQdrantClient:
        if self._client is None:
            raise DependencyError("qdrant", "store is not connected")
        return self._client

    async def connect(self) -> bool:
        try:
            self._client = AsyncQdrantClient(url=self.url, api_key=self.api_key, timeout=self.timeout)
            await self._client.get_collections()
            logger.info(f"Connected to Qdrant at {self.url}")
            return True
        except Exception as e:
            logger.error(f"Failed to connect to Qdrant at {self.url}: {e}")
            return False

    async def disconnect(self) -> None:
        if self._client:
            await self._client.close()
            self._client = None
        logger.info("Disconnected from Qdrant")

    # Collections

    async def ensure_collection(self, name: str, vector_size: int) -> None:
        try:
            if await self.client.collection_exists(name):
                return
            await self.client.create_collection(
                collection_name=name,
                vectors_config=VectorParams(size=vector_size, distance=Distance.COSINE),
            )
            logger.info(f"Created collection {name} ({vector_size} dims)")
        except DependencyError:
            raise
        except Exception as e:
            raise DependencyError("qdrant", f"failed to create collection {name}: {e}", e) from e

    async def delete_collection(self, name: str) -> bool:
        try:
            deleted = await self.client.delete_collection(name)
        except Exception as e:
            logger.error(f"Failed to delete collection {name}: {e}")
            return False

        if deleted:
            logger.info(f"Deleted collection {name}")
        else:
            logger.warning(f"Collection {name} was already gone")
        return bool(deleted)

    async def collection_exists(self, name: str) -> bool:
        try:
            return await self.client.collection_exists(name)
        except Exception as e:
            logger.error(f"Failed to check collection {name}: {e}")
            return False

    # Points

    async def upsert(self, collection: str, records: List[VectorRecord], wait: bool = True) -> int:
        written = 0
        for start in range(0, len(records), self.batch_size):
            batch = records[start:start + self.batch_size]
            points = [
                PointStruct(id=record.id, vector=record.vector, payload=record.payload or {})
                for record in batch
            ]

            try:
                result = await self.client.upsert(collection_name=collection, points=points, wait=wait)
            except DependencyError:
                raise
            except Exception as e:
                raise DependencyError("qdrant", f"upsert into {collection} failed: {e}", e) from e

            if wait and result.status != UpdateStatus.COMPLETED:
                raise DependencyError(
                    "qdrant", f"upsert into {collection} ended with status {result.status}"
                )
            written += len(batch)

        logger.debug(f"Upserted {written} points into {collection}")
        return written

    async def search(
        self,
        collection: str,
        query_vector: List[float],
        limit: int = 10,
        filter: Optional[Dict[str, Any]] = None,
        score_threshold: Optional[float] = None
    ) -> List[SearchResult]:
        try:
            response = await self.client.query_points(
                collection_name=collection,
                query=query_vector,
                limit=limit,
                query_filter=build_qdrant_filter(filter),
                with_payload=True,
                score_threshold=score_threshold
            )
        except Exception as e:
            logger.error(f"Search in {collection} failed: {e}")
            return []

        return [
            SearchResult(id=str(point.id), score=point.score, payload=point.payload or {})
            for point in response.points
        ]
