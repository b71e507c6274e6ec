"""Vector store backends"""
from .base import VectorStore, VectorRecord, SearchResult
from .qdrant_store import QdrantStore, build_qdrant_filter

__all__ = [
    'VectorStore',
    'VectorRecord',
    'SearchResult',
    'QdrantStore',
    'build_qdrant_filter',
]
