"""
Vector Indexing

Embeds chunks and upserts them into a per-source similarity collection.
Runs in the request path: any failure raises and aborts ingestion.
"""

import logging
import uuid
from dataclasses import dataclass
from typing import List, Union

from .chunkers.base import Chunk
from .embedders.base import Embedder
from .errors import DependencyError, ValidationError
from .models import SourceType
from .vector_stores.base import VectorRecord, VectorStore

logger = logging.getLogger(__name__)


# Namespace for deterministic point ids so re-indexing overwrites in place
POINT_NAMESPACE = uuid.UUID("6f1c9a52-4be3-4f0e-9d0e-8f3a1f2c7d10")


def collection_name_for(source_id: str, prefix: str = "source") -> str:
    """Collection name derived from the source id alone"""
    return f"{prefix}_{source_id}"


def point_id_for(source_id: str, chunk_index: int) -> str:
    return str(uuid.uuid5(POINT_NAMESPACE, f"{source_id}:{chunk_index}"))


@dataclass
class VectorIndexResult:
    """Outcome of indexing one source"""
    collection: str
    chunks_indexed: int


class VectorIndexer:
    """Tags, embeds and upserts chunks into one collection per source"""

    def __init__(self, vector_store: VectorStore, embedder: Embedder, provider: str = "qdrant"):
        self.vector_store = vector_store
        self.embedder = embedder
        self.provider = provider

    async def index(
        self,
        chunks: List[Chunk],
        collection_name: str,
        source_id: str,
        source_type: Union[SourceType, str]
    ) -> VectorIndexResult:
        """
        Index chunks for one source.

        Every chunk's metadata gains sourceId and sourceType before upsert so
        later searches can be scoped.

        Raises:
            ValidationError: missing collection name, chunks, source id or type
            DependencyError: embedding or store failure
        """
        if not collection_name:
            raise ValidationError("Collection name is required")
        if not chunks:
            raise ValidationError("No chunks to index")
        if not source_id:
            raise ValidationError("Source id is required")
        if not source_type:
            raise ValidationError("Source type is required")

        source_type_value = SourceType(source_type).value

        for chunk in chunks:
            chunk.metadata['sourceId'] = source_id
            chunk.metadata['sourceType'] = source_type_value

        result = await self.embedder.embed([chunk.content for chunk in chunks])
        if len(result.embeddings) != len(chunks):
            raise DependencyError(
                "embedding",
                f"expected {len(chunks)} embeddings, got {len(result.embeddings)}"
            )

        await self.vector_store.ensure_collection(collection_name, result.dimensions)

        records = [
            VectorRecord(
                id=point_id_for(source_id, chunk.index),
                vector=vector,
                payload={
                    'text': chunk.content,
                    'metadata': dict(chunk.metadata),
                }
            )
            for chunk, vector in zip(chunks, result.embeddings)
        ]

        added = await self.vector_store.upsert(collection_name, records)
        logger.info(f"Indexed {added} chunks into {collection_name} for source {source_id}")

        return VectorIndexResult(collection=collection_name, chunks_indexed=added)

    async def delete_collection(self, collection_name: str) -> bool:
        """Drop a collection; a collection that is already gone is not an error"""
        if not collection_name:
            raise ValidationError("Collection name is required to delete")
        return await self.vector_store.delete_collection(collection_name)
