"""Chunking strategies and content loaders"""
from .base import Chunk, Chunker, ChunkingConfig
from .recursive_chunker import RecursiveChunker
from .source_chunker import SourceChunker, build_chunker, infer_language, infer_file_type
from .loaders import LoadedDocument, GitHubRepoLoader, load_pdf, load_directory

__all__ = [
    'Chunk',
    'Chunker',
    'ChunkingConfig',
    'RecursiveChunker',
    'SourceChunker',
    'build_chunker',
    'infer_language',
    'infer_file_type',
    'LoadedDocument',
    'GitHubRepoLoader',
    'load_pdf',
    'load_directory',
]
