"""
Source Lifecycle Management

Drives a source from upload to indexed:
1. Load and chunk the content (rejecting empty input before any write)
2. Create the Source row
3. Vector index in the request path
4. Hand the graph build to the worker pool and return a receipt

The Source row is the only state shared with the background job.
"""

import asyncio
import logging
import os
import uuid
from typing import Any, Dict, List, Optional, Sequence, Union

from .chunkers.base import Chunk
from .chunkers.loaders import GitHubRepoLoader, LoadedDocument, load_directory, load_pdf
from .chunkers.source_chunker import SourceChunker
from .errors import (
    InvalidTransitionError,
    QueueFullError,
    SourceNotFoundError,
    ValidationError,
)
from .graph_index import GraphBuilder
from .metadata_store import MetadataStore
from .models import (
    GraphMetadata,
    Source,
    SourceStatus,
    SourceType,
    VectorIndexMetadata,
)
from .vector_index import VectorIndexer, collection_name_for
from .worker_pool import BuildJob, GraphBuildQueue

logger = logging.getLogger(__name__)


class SourceLifecycleManager:
    """Ingests files and repositories into both indexes"""

    def __init__(
        self,
        metadata_store: MetadataStore,
        chunker: SourceChunker,
        vector_indexer: VectorIndexer,
        graph_builder: GraphBuilder,
        build_queue: GraphBuildQueue,
        collection_prefix: str = "source",
        github_loader: Optional[GitHubRepoLoader] = None
    ):
        self.metadata_store = metadata_store
        self.chunker = chunker
        self.vector_indexer = vector_indexer
        self.graph_builder = graph_builder
        self.build_queue = build_queue
        self.collection_prefix = collection_prefix
        self.github_loader = github_loader

    # Ingestion

    async def ingest_file(
        self,
        owner_id: str,
        title: Optional[str] = None,
        file_path: Optional[str] = None,
        file_url: Optional[str] = None,
        content: Optional[Union[str, Sequence[LoadedDocument]]] = None
    ) -> Dict[str, Any]:
        """
        Ingest a PDF (by local path) or already extracted text.

        On any failure the local upload is removed, as it would otherwise be
        orphaned.

        Returns:
            Ingestion receipt with sourceId, status and statusUrl
        """
        try:
            if not owner_id:
                raise ValidationError("Owner id is required")
            if content is None:
                if not file_path:
                    raise ValidationError("PDF file is required")
                content = await asyncio.to_thread(load_pdf, file_path)

            if not title:
                title = os.path.splitext(os.path.basename(file_path))[0] if file_path else "Untitled"

            return await self._ingest(
                Source(
                    id=uuid.uuid4().hex,
                    title=title,
                    source_type=SourceType.FILE,
                    owner_id=owner_id,
                    file_path=file_path,
                    file_url=file_url,
                ),
                content,
            )
        except Exception:
            self._discard_upload(file_path)
            raise

    async def ingest_repo(
        self,
        owner_id: str,
        title: Optional[str] = None,
        repo_url: Optional[str] = None,
        branch: str = "main",
        directory: Optional[str] = None
    ) -> Dict[str, Any]:
        """Ingest a GitHub repository, or a local checkout when directory is given"""
        if not owner_id:
            raise ValidationError("Owner id is required")

        branch = branch or "main"
        if directory:
            documents = await asyncio.to_thread(load_directory, directory)
        elif repo_url:
            if self.github_loader is None:
                raise ValidationError("GitHub loading is not configured")
            documents = await self.github_loader.load(repo_url, branch)
        else:
            raise ValidationError("Repository URL or directory is required")

        if not title:
            origin = (repo_url or directory).rstrip("/")
            title = origin.rsplit("/", 1)[-1].removesuffix(".git") or origin

        return await self._ingest(
            Source(
                id=uuid.uuid4().hex,
                title=title,
                source_type=SourceType.REPO,
                owner_id=owner_id,
                repo_url=repo_url or directory,
                branch=branch,
            ),
            documents,
        )

    async def _ingest(
        self,
        source: Source,
        content: Union[str, Sequence[LoadedDocument]]
    ) -> Dict[str, Any]:
        chunks = self.chunker.split(content, source.source_type)

        source = await self.metadata_store.create_source(source)
        collection = collection_name_for(source.id, self.collection_prefix)

        # Anything failing before the source reaches indexing leaves it failed
        try:
            vector_result = await self.vector_indexer.index(
                chunks, collection, source.id, source.source_type
            )
            await self.metadata_store.save_vector_metadata(VectorIndexMetadata(
                source_id=source.id,
                provider=self.vector_indexer.provider,
                collection_name=collection,
            ))
            source = await self.metadata_store.update_status(source.id, SourceStatus.INDEXING)
        except Exception as e:
            await self._mark_failed(source.id, e, stage="Vector indexing")
            raise

        await self._schedule_graph_build(source, chunks)

        return {
            "sourceId": source.id,
            "title": source.title,
            "sourceType": source.source_type.value,
            "status": source.status.value,
            "collection": collection,
            "chunksIndexed": vector_result.chunks_indexed,
            "statusUrl": f"/sources/{source.id}/status",
        }

    async def _schedule_graph_build(self, source: Source, chunks: List[Chunk]) -> None:
        source_id = source.id
        source_type = source.source_type

        async def run() -> None:
            await self._build_graph(source_id, chunks, source_type)

        async def on_error(error: BaseException) -> None:
            await self._mark_failed(source_id, error)

        try:
            self.build_queue.submit(BuildJob(
                name=f"graph-build:{source_id}",
                run=run,
                on_error=on_error,
            ))
        except QueueFullError as e:
            # Caller gets the error; the vector index stays in place
            await self._mark_failed(source_id, e)
            raise

    async def _build_graph(
        self,
        source_id: str,
        chunks: List[Chunk],
        source_type: SourceType
    ) -> None:
        result = await self.graph_builder.build(source_id, chunks, source_type)

        if await self.metadata_store.get_source(source_id) is None:
            # Deleted while building: drop what this job wrote
            logger.warning(f"Source {source_id} was deleted during its graph build")
            await self.graph_builder.graph_store.delete_by_source(source_id)
            return

        await self.metadata_store.save_graph_metadata(GraphMetadata(
            source_id=source_id,
            entity_count=result.nodes_added,
            relation_count=result.relationships_added,
        ))
        await self.metadata_store.update_status(source_id, SourceStatus.INDEXED)
        logger.info(f"Graph indexing completed for source {source_id}")

    async def _mark_failed(
        self,
        source_id: str,
        error: BaseException,
        stage: str = "Graph indexing"
    ) -> None:
        logger.error(f"{stage} failed for source {source_id}: {error}")
        try:
            await self.metadata_store.update_status(source_id, SourceStatus.FAILED)
        except (SourceNotFoundError, InvalidTransitionError) as e:
            logger.warning(f"Could not mark source {source_id} failed: {e}")

    def _discard_upload(self, file_path: Optional[str]) -> None:
        if not file_path or not os.path.exists(file_path):
            return
        try:
            os.unlink(file_path)
            logger.info(f"Removed local upload {file_path}")
        except OSError as e:
            logger.error(f"Failed to delete local file during cleanup: {e}")

    # Queries

    async def get_source(self, source_id: str, owner_id: str) -> Source:
        source = await self.metadata_store.get_source(source_id, owner_id)
        if source is None:
            raise SourceNotFoundError(source_id)
        return source

    async def list_sources(
        self,
        owner_id: str,
        source_type: Optional[Union[SourceType, str]] = None,
        page: int = 1,
        limit: int = 10
    ) -> List[Source]:
        if not owner_id:
            raise ValidationError("Owner id is required")
        if source_type is not None:
            try:
                source_type = SourceType(source_type)
            except ValueError:
                raise ValidationError(f"Unsupported source type: {source_type!r}")
        return await self.metadata_store.list_sources(owner_id, source_type, page, limit)

    async def get_status(self, source_id: str, owner_id: str) -> Dict[str, Any]:
        """Readiness of both indexes for one owned source"""
        source = await self.get_source(source_id, owner_id)
        vector_metadata = await self.metadata_store.get_vector_metadata(source_id)
        graph_metadata = await self.metadata_store.get_graph_metadata(source_id)

        graph: Dict[str, Any] = {"ready": graph_metadata is not None}
        if graph_metadata is not None:
            graph["entityCount"] = graph_metadata.entity_count
            graph["relationCount"] = graph_metadata.relation_count

        return {
            "sourceId": source.id,
            "status": source.status.value,
            "vector": {"ready": vector_metadata is not None},
            "graph": graph,
        }
