"""Embedding model interfaces"""
from .base import Embedder, EmbeddingResult
from .api_embedder import APIEmbedder

__all__ = [
    'Embedder',
    'EmbeddingResult',
    'APIEmbedder',
]
