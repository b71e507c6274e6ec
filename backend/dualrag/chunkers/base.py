"""
Chunk model and splitter interface shared by the file and repository paths.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional, Dict, Any
import re

_CONTROL_CHARS = re.compile(r'[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]')


@dataclass
class ChunkingConfig:
    """Window sizes for one splitter, in characters"""
    chunk_size: int = 1000
    chunk_overlap: int = 200  # 0 gives disjoint windows
    min_chunk_size: int = 1  # stripped pieces shorter than this are dropped


@dataclass
class Chunk:
    """
    One unit of indexing.

    `index` is rewritten by SourceChunker so that it is sequential across the
    whole source, not just within one page or file. `metadata` carries the
    page number or repository path plus whatever the indexers add.
    """
    content: str
    index: int
    start_char: int
    end_char: int
    metadata: Dict[str, Any] = field(default_factory=dict)


class Chunker(ABC):
    """Splits one document's text into ordered chunks"""

    def __init__(self, config: Optional[ChunkingConfig] = None):
        self.config = config or ChunkingConfig()
        if self.config.chunk_overlap >= self.config.chunk_size:
            raise ValueError(
                f"chunk_overlap ({self.config.chunk_overlap}) must be smaller "
                f"than chunk_size ({self.config.chunk_size})"
            )

    @abstractmethod
    def chunk(self, text: str, metadata: Optional[Dict[str, Any]] = None) -> List[Chunk]:
        """Return chunks of text, each carrying a copy of metadata"""
        pass

    @staticmethod
    def _strip_control_chars(text: str) -> str:
        # PDF extraction leaves form feeds and NULs behind; tabs and newlines stay
        return _CONTROL_CHARS.sub('', text)
