"""
Vector store interface.

One collection per source; every point payload carries `text` and a
`metadata` object tagged with `sourceId` and `sourceType`.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Dict, Any, Optional


@dataclass
class VectorRecord:
    """A point to upsert"""
    id: str
    vector: List[float]
    payload: Dict[str, Any] = field(default_factory=dict)


@dataclass
class SearchResult:
    id: str
    score: float
    payload: Dict[str, Any]


class VectorStore(ABC):
    """
    Collection-per-source similarity store.

    Write paths raise DependencyError. Delete and read paths log and degrade
    (False / []) because they run during best-effort cleanup and fan-out
    search.
    """

    @abstractmethod
    async def connect(self) -> bool:
        pass

    @abstractmethod
    async def disconnect(self) -> None:
        pass

    @abstractmethod
    async def ensure_collection(self, name: str, vector_size: int) -> None:
        """Create a cosine collection sized for vector_size if it is missing"""
        pass

    @abstractmethod
    async def delete_collection(self, name: str) -> bool:
        """True only when a collection was actually dropped"""
        pass

    @abstractmethod
    async def collection_exists(self, name: str) -> bool:
        pass

    @abstractmethod
    async def upsert(self, collection: str, records: List[VectorRecord], wait: bool = True) -> int:
        """Return the number of points written"""
        pass

    @abstractmethod
    async def search(
        self,
        collection: str,
        query_vector: List[float],
        limit: int = 10,
        filter: Optional[Dict[str, Any]] = None,
        score_threshold: Optional[float] = None
    ) -> List[SearchResult]:
        """
        Nearest points in one collection, best first.

        Args:
            filter: Payload conditions keyed by dotted path, e.g.
                {"metadata.sourceId": "abc"} or {"metadata.sourceId": {"$in": [...]}}
        """
        pass
