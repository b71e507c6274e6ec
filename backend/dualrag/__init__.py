"""
Dual-Index Retrieval Pipeline

This module provides:
- Source ingestion for PDF files and GitHub repositories
- Per-source Qdrant collections for similarity search
- A source-scoped knowledge graph on Neo4j built in a background worker pool
- Bounded multi-hop graph retrieval with relevance scoring
- Cascading source deletion across all stores
"""

from .cleanup import CleanupOrchestrator, DeleteResult, settle_all
from .config import DualRAGConfig, get_config
from .errors import (
    DualRAGError,
    ValidationError,
    DependencyError,
    SourceNotFoundError,
    InvalidTransitionError,
    QueueFullError,
)
from .graph_index import GraphBuilder, GraphBuildResult
from .lifecycle import SourceLifecycleManager
from .log_setup import setup_logging
from .metadata_store import MetadataStore
from .models import Source, SourceStatus, SourceType, VectorIndexMetadata, GraphMetadata
from .retrievers import GraphFact, GraphRetriever, VectorRetriever
from .service import DualRAGService
from .vector_index import VectorIndexer, collection_name_for
from .worker_pool import BuildJob, GraphBuildQueue

__all__ = [
    'CleanupOrchestrator',
    'DeleteResult',
    'settle_all',
    'DualRAGConfig',
    'get_config',
    'DualRAGError',
    'ValidationError',
    'DependencyError',
    'SourceNotFoundError',
    'InvalidTransitionError',
    'QueueFullError',
    'GraphBuilder',
    'GraphBuildResult',
    'SourceLifecycleManager',
    'setup_logging',
    'MetadataStore',
    'Source',
    'SourceStatus',
    'SourceType',
    'VectorIndexMetadata',
    'GraphMetadata',
    'GraphFact',
    'GraphRetriever',
    'VectorRetriever',
    'DualRAGService',
    'VectorIndexer',
    'collection_name_for',
    'BuildJob',
    'GraphBuildQueue',
]
