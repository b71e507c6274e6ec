"""
Entity/Relationship Extraction Interface

An extractor turns a chunk of text into typed nodes and relationships,
optionally restricted to a vocabulary of allowed labels.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional


# Repository sources use a constrained vocabulary; files are open
REPO_NODE_TYPES = ["Class", "Function", "Module", "Component", "Service", "Concept"]
REPO_RELATIONSHIP_TYPES = ["USES", "DEPENDS_ON", "IMPLEMENTS", "PART_OF", "RELATED_TO"]


@dataclass
class ExtractedNode:
    """A node as returned by the extractor, before normalization"""
    id: Optional[str]
    type: Optional[str]


@dataclass
class ExtractedRelationship:
    """A directed relationship between two extracted node ids"""
    source_id: Optional[str]
    target_id: Optional[str]
    type: Optional[str]


@dataclass
class ExtractionResult:
    """Nodes and relationships found in one chunk"""
    nodes: List[ExtractedNode] = field(default_factory=list)
    relationships: List[ExtractedRelationship] = field(default_factory=list)


class Extractor(ABC):
    """
    Abstract base class for graph extraction.

    Implementations:
    - LLMExtractor: OpenAI-compatible chat completion with JSON output
    """

    @abstractmethod
    async def extract(
        self,
        text: str,
        allowed_nodes: Optional[List[str]] = None,
        allowed_relationships: Optional[List[str]] = None
    ) -> ExtractionResult:
        """
        Extract nodes and relationships from text.

        Args:
            text: Chunk text
            allowed_nodes: Node labels to keep, or None for any
            allowed_relationships: Relationship types to keep, or None for any

        Raises:
            DependencyError: the extraction service failed
        """
        pass

    async def open(self) -> None:
        pass

    async def close(self) -> None:
        """Release any held connections"""
        pass
