"""
Knowledge Graph Construction

Extracts typed entities and relationships per chunk and merges them into the
source-scoped graph.
Features:
- Bounded extraction concurrency (asyncio.Semaphore)
- Vocabulary per source type
- Merge-by-key persistence, so reruns and overlapping chunks converge
- Per-chunk failure isolation
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Union

from .chunkers.base import Chunk
from .errors import DependencyError, ValidationError
from .extraction.base import (
    ExtractionResult,
    Extractor,
    REPO_NODE_TYPES,
    REPO_RELATIONSHIP_TYPES,
)
from .graph_stores.base import GraphStore, normalize_predicate
from .models import SourceType

logger = logging.getLogger(__name__)


@dataclass
class GraphBuildResult:
    """Counters for one build job"""
    nodes_added: int = 0
    relationships_added: int = 0
    files_count: int = 0
    chunks_failed: int = 0


@dataclass
class _ChunkCounts:
    nodes: int = 0
    relationships: int = 0


class GraphBuilder:
    """Builds the knowledge graph for one source from its chunks"""

    def __init__(
        self,
        graph_store: GraphStore,
        extractor: Extractor,
        concurrency: int = 3
    ):
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self.graph_store = graph_store
        self.extractor = extractor
        self.concurrency = concurrency

    async def build(
        self,
        source_id: str,
        chunks: List[Chunk],
        source_type: Union[SourceType, str]
    ) -> GraphBuildResult:
        """
        Build the graph for a source.

        Errors inside a single chunk are logged and counted; errors outside
        chunk processing (the Source node, File nodes) propagate.
        """
        if not source_id:
            raise ValidationError("Source id is required to build a graph")
        if not chunks:
            raise ValidationError("No chunks to build a graph from")

        source_type = SourceType(source_type)
        is_repo = source_type == SourceType.REPO

        await self.graph_store.merge_source(source_id, source_type.value)

        result = GraphBuildResult()

        if is_repo:
            result.files_count = await self._merge_files(source_id, chunks)

        allowed_nodes = REPO_NODE_TYPES if is_repo else None
        allowed_relationships = REPO_RELATIONSHIP_TYPES if is_repo else None
        semaphore = asyncio.Semaphore(self.concurrency)

        async def process(chunk: Chunk) -> Optional[_ChunkCounts]:
            async with semaphore:
                try:
                    extraction = await self.extractor.extract(
                        chunk.content, allowed_nodes, allowed_relationships
                    )
                    return await self._persist(source_id, chunk, extraction, is_repo)
                except Exception as e:
                    logger.error(f"Graph build for source {source_id} skipped chunk {chunk.index}: {e}")
                    return None

        outcomes = await asyncio.gather(*(process(chunk) for chunk in chunks))

        for counts in outcomes:
            if counts is None:
                result.chunks_failed += 1
                continue
            result.nodes_added += counts.nodes
            result.relationships_added += counts.relationships

        if result.chunks_failed == len(chunks):
            # Partial graphs are fine, an empty one from total failure is not
            raise DependencyError("graph", f"every chunk failed for source {source_id}")

        logger.info(
            f"Graph build for source {source_id}: {result.nodes_added} nodes, "
            f"{result.relationships_added} relationships, "
            f"{result.chunks_failed}/{len(chunks)} chunks failed"
        )
        return result

    async def _merge_files(self, source_id: str, chunks: List[Chunk]) -> int:
        """Merge one File node per distinct path before any chunk is processed"""
        files: Dict[str, Chunk] = {}
        for chunk in chunks:
            path = chunk.metadata.get('path')
            if path and path not in files:
                files[path] = chunk

        for path, chunk in files.items():
            await self.graph_store.merge_file(
                source_id,
                path,
                chunk.metadata.get('language') or "unknown",
                chunk.metadata.get('fileType') or "unknown",
            )
        return len(files)

    async def _persist(
        self,
        source_id: str,
        chunk: Chunk,
        extraction: ExtractionResult,
        is_repo: bool
    ) -> _ChunkCounts:
        counts = _ChunkCounts()
        path = chunk.metadata.get('path') if is_repo else None

        merged_names = []
        for node in extraction.nodes:
            if not node.id or not node.type:
                continue
            name = str(node.id).strip()
            if not name:
                continue
            await self.graph_store.merge_entity(source_id, name, str(node.type))
            merged_names.append(name)
            counts.nodes += 1

        if path:
            for name in merged_names:
                await self.graph_store.merge_mention(source_id, path, name)

        for rel in extraction.relationships:
            predicate = normalize_predicate(rel.type)
            if not predicate or not rel.source_id or not rel.target_id:
                continue
            merged = await self.graph_store.merge_relationship(
                source_id,
                str(rel.source_id).strip(),
                str(rel.target_id).strip(),
                predicate,
            )
            if merged:
                counts.relationships += 1

        return counts
