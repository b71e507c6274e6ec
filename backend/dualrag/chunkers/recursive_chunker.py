"""
Recursive Character Chunker

Hierarchically splits text using multiple separators, then merges the pieces
back into windows of at most chunk_size characters with a trailing overlap.
"""

from typing import List, Optional, Dict, Any
import re
from .base import Chunker, Chunk, ChunkingConfig


class RecursiveChunker(Chunker):
    """
    Recursive text chunking with hierarchical separators.

    Features:
    - Separator levels (paragraphs -> lines -> words -> characters)
    - Separators are kept at the start of the piece that follows them
    - Overlap is built from whole pieces of the previous window
    """

    # Default separators in order of priority
    DEFAULT_SEPARATORS = [
        "\n\n",        # Paragraph breaks
        "\n",          # Line breaks
        " ",           # Words
        ""             # Characters (fallback)
    ]

    def __init__(
        self,
        config: Optional[ChunkingConfig] = None,
        separators: Optional[List[str]] = None
    ):
        super().__init__(config)
        self.separators = separators or self.DEFAULT_SEPARATORS

    def chunk(self, text: str, metadata: Optional[Dict[str, Any]] = None) -> List[Chunk]:
        """Recursively split text using hierarchical separators"""
        text = self._strip_control_chars(text or "")
        if not text.strip():
            return []

        pieces = self.split_text(text)

        chunks = []
        search_from = 0

        for content in pieces:
            if len(content) < self.config.min_chunk_size:
                continue

            # Find position in original text; overlapping windows start
            # before the previous window ends
            start = text.find(content, search_from)
            if start == -1:
                start = search_from
            end = start + len(content)

            chunks.append(Chunk(
                content=content,
                index=len(chunks),
                start_char=start,
                end_char=end,
                metadata={
                    **(metadata or {}),
                    'chunking_strategy': 'recursive',
                }
            ))

            search_from = start + 1

        total = len(chunks)
        for chunk in chunks:
            chunk.metadata['total_chunks'] = total

        return chunks

    def split_text(self, text: str) -> List[str]:
        """Split text into window strings without building Chunk objects"""
        return self._split_recursive(text, self.separators)

    def _split_recursive(self, text: str, separators: List[str]) -> List[str]:
        """Recursively split text using separators"""
        final_chunks = []

        # Pick the first separator present in the text
        separator = separators[-1]
        remaining_separators: List[str] = []
        for i, candidate in enumerate(separators):
            if candidate == "":
                separator = candidate
                break
            if candidate in text:
                separator = candidate
                remaining_separators = separators[i + 1:]
                break

        splits = self._split_keeping_separator(text, separator)

        good_splits = []
        for split in splits:
            if len(split) < self.config.chunk_size:
                good_splits.append(split)
                continue

            if good_splits:
                final_chunks.extend(self._merge_splits(good_splits))
                good_splits = []

            if remaining_separators:
                final_chunks.extend(self._split_recursive(split, remaining_separators))
            else:
                # Force split at max size
                for j in range(0, len(split), self.config.chunk_size):
                    piece = split[j:j + self.config.chunk_size].strip()
                    if piece:
                        final_chunks.append(piece)

        if good_splits:
            final_chunks.extend(self._merge_splits(good_splits))

        return final_chunks

    def _split_keeping_separator(self, text: str, separator: str) -> List[str]:
        if separator == "":
            return list(text)

        parts = re.split(f"({re.escape(separator)})", text)
        splits = [parts[0]] + [
            parts[i] + parts[i + 1] for i in range(1, len(parts) - 1, 2)
        ]
        return [s for s in splits if s != ""]

    def _merge_splits(self, splits: List[str]) -> List[str]:
        """Merge small pieces into windows, carrying up to chunk_overlap chars forward"""
        chunk_size = self.config.chunk_size
        overlap = self.config.chunk_overlap

        windows = []
        current: List[str] = []
        total = 0

        for split in splits:
            length = len(split)

            if total + length > chunk_size and current:
                window = "".join(current).strip()
                if window:
                    windows.append(window)

                # Drop pieces from the front until what remains fits as overlap
                while total > overlap or (total + length > chunk_size and total > 0):
                    total -= len(current[0])
                    current.pop(0)

            current.append(split)
            total += length

        window = "".join(current).strip()
        if window:
            windows.append(window)

        return windows
