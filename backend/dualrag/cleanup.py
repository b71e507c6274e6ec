"""
Source Deletion

Removes a source's metadata in one transaction, then clears its vector
collection and graph scope concurrently on a best-effort basis.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Dict, List, Tuple

from .graph_stores.base import GraphStore
from .metadata_store import MetadataStore
from .vector_index import VectorIndexer, collection_name_for

logger = logging.getLogger(__name__)


@dataclass
class DeleteResult:
    source_id: str
    vector_deleted: bool
    graph_deleted: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sourceId": self.source_id,
            "vectorDeleted": self.vector_deleted,
            "graphDeleted": self.graph_deleted,
        }


async def settle_all(tasks: List[Tuple[str, Awaitable[Any]]]) -> Dict[str, Any]:
    """
    Await every labeled awaitable and log each failure.

    Returns a mapping of label to result, or to the exception raised.
    Never raises.
    """
    labels = [label for label, _ in tasks]
    results = await asyncio.gather(*(aw for _, aw in tasks), return_exceptions=True)

    settled: Dict[str, Any] = {}
    for label, result in zip(labels, results):
        if isinstance(result, BaseException):
            logger.error(f"{label} failed: {result}")
        settled[label] = result
    return settled


class CleanupOrchestrator:
    """Deletes a source across the metadata store, vector store and graph"""

    def __init__(
        self,
        metadata_store: MetadataStore,
        vector_indexer: VectorIndexer,
        graph_store: GraphStore,
        collection_prefix: str = "source"
    ):
        self.metadata_store = metadata_store
        self.vector_indexer = vector_indexer
        self.graph_store = graph_store
        self.collection_prefix = collection_prefix

    async def delete_source(self, source_id: str, owner_id: str) -> DeleteResult:
        """
        Delete an owned source.

        Raises:
            SourceNotFoundError: absent or not owned; nothing is touched
        """
        _, vector_metadata = await self.metadata_store.delete_source(source_id, owner_id)

        if vector_metadata is not None:
            collection = vector_metadata.collection_name
        else:
            collection = collection_name_for(source_id, self.collection_prefix)

        settled = await settle_all([
            (f"Vector cleanup for {source_id}", self.vector_indexer.delete_collection(collection)),
            (f"Graph cleanup for {source_id}", self.graph_store.delete_by_source(source_id)),
        ])
        vector_outcome, graph_outcome = settled.values()

        result = DeleteResult(
            source_id=source_id,
            vector_deleted=vector_outcome is True,
            graph_deleted=not isinstance(graph_outcome, BaseException),
        )
        logger.info(
            f"Deleted source {source_id} "
            f"(vector={result.vector_deleted}, graph={result.graph_deleted})"
        )
        return result
