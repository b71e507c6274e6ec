"""
Source-Aware Chunker

Picks the splitting strategy by source type:
- Files: overlapping recursive windows over every page
- Repositories: one unit per small file, disjoint windows for large files,
  each tagged with path, language and file type
"""

import logging
from typing import Any, Dict, List, Optional, Sequence, Union

from .base import Chunk, ChunkingConfig
from .loaders import LoadedDocument
from .recursive_chunker import RecursiveChunker
from ..errors import ValidationError
from ..models import SourceType

logger = logging.getLogger(__name__)


LANGUAGE_BY_EXTENSION = {
    "js": "javascript",
    "ts": "typescript",
    "jsx": "javascript",
    "tsx": "typescript",
    "py": "python",
    "java": "java",
    "cpp": "cpp",
    "c": "c",
    "go": "go",
    "rs": "rust",
    "rb": "ruby",
    "php": "php",
    "swift": "swift",
    "kotlin": "kotlin",
    "cs": "csharp",
    "html": "html",
    "css": "css",
    "scss": "scss",
    "json": "json",
    "xml": "xml",
    "sql": "sql",
    "sh": "shell",
}

MARKDOWN_EXTENSIONS = {"md", "markdown", "txt"}


def file_extension(path: str) -> str:
    name = path.rsplit("/", 1)[-1]
    if "." not in name.strip("."):
        return ""
    return name.rsplit(".", 1)[-1].lower()


def infer_language(path: str) -> str:
    """Language by extension; unknown extensions pass through"""
    ext = file_extension(path)
    return LANGUAGE_BY_EXTENSION.get(ext, ext or "unknown")


def infer_file_type(path: str) -> str:
    return "markdown" if file_extension(path) in MARKDOWN_EXTENSIONS else "code"


class SourceChunker:
    """Split loaded content into chunks with a strategy per source type"""

    def __init__(
        self,
        chunk_size: int = 1000,
        chunk_overlap: int = 200,
        repo_chunk_size: int = 1500,
        repo_whole_file_limit: int = 2000
    ):
        self.file_chunker = RecursiveChunker(ChunkingConfig(
            chunk_size=chunk_size,
            chunk_overlap=chunk_overlap,
        ))
        self.repo_chunker = RecursiveChunker(ChunkingConfig(
            chunk_size=repo_chunk_size,
            chunk_overlap=0,
        ))
        self.repo_whole_file_limit = repo_whole_file_limit

    def split(
        self,
        content: Union[str, Sequence[LoadedDocument]],
        source_type: Union[SourceType, str]
    ) -> List[Chunk]:
        """
        Split content into an ordered list of chunks.

        Args:
            content: Raw text, or loaded pages/files
            source_type: SourceType.FILE or SourceType.REPO

        Returns:
            Chunks with globally sequential indexes

        Raises:
            ValidationError: if the input is empty or yields no chunks
        """
        try:
            source_type = SourceType(source_type)
        except ValueError:
            raise ValidationError(f"Unsupported source type: {source_type!r}")

        documents = self._as_documents(content)
        if not documents:
            raise ValidationError("Nothing to index: content is empty")

        if source_type == SourceType.REPO:
            chunks = self._split_repo(documents)
        else:
            chunks = self._split_file(documents)

        if not chunks:
            raise ValidationError("Nothing to index: content produced no chunks")

        total = len(chunks)
        for index, chunk in enumerate(chunks):
            chunk.index = index
            chunk.metadata['chunk_index'] = index
            chunk.metadata['total_chunks'] = total

        logger.info(f"Split {len(documents)} documents into {total} chunks ({source_type.value})")
        return chunks

    def _as_documents(self, content: Union[str, Sequence[LoadedDocument], None]) -> List[LoadedDocument]:
        if content is None:
            return []
        if isinstance(content, str):
            return [LoadedDocument(text=content)] if content.strip() else []
        return [doc for doc in content if doc.text and doc.text.strip()]

    def _split_file(self, documents: List[LoadedDocument]) -> List[Chunk]:
        chunks: List[Chunk] = []
        for document in documents:
            chunks.extend(self.file_chunker.chunk(document.text, document.metadata))
        return chunks

    def _split_repo(self, documents: List[LoadedDocument]) -> List[Chunk]:
        chunks: List[Chunk] = []
        for document in documents:
            path = document.metadata.get('path') or document.metadata.get('source')
            if not path:
                raise ValidationError("Repository documents need a 'path' in metadata")

            metadata: Dict[str, Any] = {
                **document.metadata,
                'path': path,
                'language': infer_language(path),
                'fileType': infer_file_type(path),
            }

            if len(document.text) < self.repo_whole_file_limit:
                # Small file: keep whole for structural extraction
                chunks.append(Chunk(
                    content=document.text,
                    index=len(chunks),
                    start_char=0,
                    end_char=len(document.text),
                    metadata={**metadata, 'chunking_strategy': 'whole_file'}
                ))
            else:
                chunks.extend(self.repo_chunker.chunk(document.text, metadata))
        return chunks


def build_chunker(config: Optional[Any] = None) -> SourceChunker:
    """Create a SourceChunker from a DualRAGConfig"""
    if config is None:
        return SourceChunker()
    return SourceChunker(
        chunk_size=config.chunk_size,
        chunk_overlap=config.chunk_overlap,
        repo_chunk_size=config.repo_chunk_size,
        repo_whole_file_limit=config.repo_whole_file_limit,
    )
