"""
dualrag Service Container

Builds every client from configuration, opens them in dependency order and
wires the pipeline components together. Nothing is created at import time.

Usage:
    async with DualRAGService.from_config(get_config()) as service:
        receipt = await service.lifecycle.ingest_file(owner_id, file_path="a.pdf")
        facts = await service.graph_retriever.fetch_facts("cache", [receipt["sourceId"]])
"""

import logging
from typing import Optional

from .chunkers.loaders import GitHubRepoLoader
from .chunkers.source_chunker import SourceChunker, build_chunker
from .cleanup import CleanupOrchestrator, settle_all
from .config import DualRAGConfig, get_config
from .embedders.api_embedder import APIEmbedder
from .embedders.base import Embedder
from .errors import DependencyError
from .extraction.base import Extractor
from .extraction.llm_extractor import LLMExtractor
from .graph_index import GraphBuilder
from .graph_stores.base import GraphStore
from .graph_stores.memory_store import InMemoryGraphStore
from .graph_stores.neo4j_store import Neo4jGraphStore
from .lifecycle import SourceLifecycleManager
from .log_setup import setup_logging
from .metadata_store import MetadataStore
from .retrievers.graph_retriever import GraphRetriever
from .retrievers.vector_retriever import VectorRetriever
from .vector_index import VectorIndexer
from .vector_stores.base import VectorStore
from .vector_stores.qdrant_store import QdrantStore
from .worker_pool import GraphBuildQueue

logger = logging.getLogger(__name__)


class DualRAGService:
    """Owns the store clients and the components built on them"""

    def __init__(
        self,
        metadata_store: MetadataStore,
        vector_store: VectorStore,
        graph_store: GraphStore,
        embedder: Embedder,
        extractor: Extractor,
        chunker: Optional[SourceChunker] = None,
        build_queue: Optional[GraphBuildQueue] = None,
        github_loader: Optional[GitHubRepoLoader] = None,
        collection_prefix: str = "source",
        extraction_concurrency: int = 3
    ):
        self.metadata_store = metadata_store
        self.vector_store = vector_store
        self.graph_store = graph_store
        self.embedder = embedder
        self.extractor = extractor
        self.build_queue = build_queue or GraphBuildQueue()

        self.vector_indexer = VectorIndexer(vector_store, embedder)
        self.graph_builder = GraphBuilder(graph_store, extractor, concurrency=extraction_concurrency)
        self.lifecycle = SourceLifecycleManager(
            metadata_store=metadata_store,
            chunker=chunker or SourceChunker(),
            vector_indexer=self.vector_indexer,
            graph_builder=self.graph_builder,
            build_queue=self.build_queue,
            collection_prefix=collection_prefix,
            github_loader=github_loader,
        )
        self.cleanup = CleanupOrchestrator(
            metadata_store, self.vector_indexer, graph_store, collection_prefix
        )
        self.graph_retriever = GraphRetriever(graph_store)
        self.vector_retriever = VectorRetriever(vector_store, embedder, collection_prefix)
        self._opened = False

    @classmethod
    def from_config(cls, config: Optional[DualRAGConfig] = None) -> "DualRAGService":
        """Construct (but do not open) every client from configuration"""
        config = config or get_config()
        setup_logging(config.log_level)

        if config.use_memory_graph:
            graph_store: GraphStore = InMemoryGraphStore()
        else:
            graph_store = Neo4jGraphStore(
                uri=config.neo4j_uri,
                user=config.neo4j_user,
                password=config.neo4j_password,
                database=config.neo4j_database,
            )

        return cls(
            metadata_store=MetadataStore(config.metadata_db_path),
            vector_store=QdrantStore(
                url=config.qdrant_url,
                api_key=config.qdrant_api_key,
                timeout=config.request_timeout,
            ),
            graph_store=graph_store,
            embedder=APIEmbedder(
                model_name=config.embedding_model,
                api_key=config.openai_api_key,
                base_url=config.openai_base_url,
                timeout=config.request_timeout,
            ),
            extractor=LLMExtractor(
                model=config.llm_model,
                api_key=config.openai_api_key,
                base_url=config.openai_base_url,
                timeout=config.request_timeout,
            ),
            chunker=build_chunker(config),
            build_queue=GraphBuildQueue(
                workers=config.graph_workers,
                maxsize=config.graph_queue_size,
            ),
            github_loader=GitHubRepoLoader(
                access_token=config.github_token,
                timeout=config.request_timeout,
            ),
            collection_prefix=config.collection_prefix,
            extraction_concurrency=config.extraction_concurrency,
        )

    async def open(self) -> None:
        """Open stores and clients, then start the worker pool"""
        if self._opened:
            return
        try:
            await self.metadata_store.open()
            if not await self.vector_store.connect():
                raise DependencyError("qdrant", "could not connect")
            if not await self.graph_store.connect():
                raise DependencyError("graph", "could not connect")
            await self.embedder.open()
            await self.extractor.open()
            await self.build_queue.start()
        except Exception:
            await self._close_clients()
            raise
        self._opened = True
        logger.info("dualrag service ready")

    async def close(self) -> None:
        """Drain pending graph builds, then close clients in reverse order"""
        await self.build_queue.stop()
        await self._close_clients()
        self._opened = False
        logger.info("dualrag service closed")

    async def _close_clients(self) -> None:
        await settle_all([
            ("Extractor close", self.extractor.close()),
            ("Embedder close", self.embedder.close()),
        ])
        await settle_all([("Graph store close", self.graph_store.close())])
        await settle_all([("Vector store disconnect", self.vector_store.disconnect())])
        await settle_all([("Metadata store close", self.metadata_store.close())])

    async def __aenter__(self) -> "DualRAGService":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
