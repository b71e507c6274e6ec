"""
Base Graph Store Interface

Source-scoped knowledge graph primitives: merge-by-key writes, scoped
deletion, anchor lookup and bounded path expansion.

Keys:
- Source: id
- File: (path, sourceId)
- Entity: (name, sourceId)
- Relationship: (sourceId, from name, to name, predicate)
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional, Sequence
import re

from ..errors import ValidationError

MIN_HOP_DEPTH = 1
MAX_HOP_DEPTH = 5

# Expansion budget, applied to each anchor separately
MAX_PATHS_PER_ANCHOR = 500

_PREDICATE_PATTERN = re.compile(r'^[A-Z][A-Z0-9_]*$')


def normalize_predicate(raw: Optional[str]) -> Optional[str]:
    """Upper-case a relationship type and collapse non-word runs into '_'"""
    if raw is None:
        return None
    predicate = re.sub(r'[^A-Za-z0-9]+', '_', str(raw).strip()).strip('_').upper()
    if not predicate:
        return None
    if predicate[0].isdigit():
        predicate = f"REL_{predicate}"
    return predicate


def validate_predicate(predicate: str) -> str:
    """Reject anything that is not a plain upper-case identifier"""
    if not predicate or not _PREDICATE_PATTERN.match(predicate):
        raise ValidationError(f"Invalid relationship type: {predicate!r}")
    return predicate


def validate_hop_depth(hop_depth) -> int:
    """Hop depth must be a real integer within [1, 5]"""
    if isinstance(hop_depth, bool) or not isinstance(hop_depth, int):
        raise ValidationError(
            f"Invalid hop_depth {hop_depth!r}: must be an integer between "
            f"{MIN_HOP_DEPTH} and {MAX_HOP_DEPTH}"
        )
    if not MIN_HOP_DEPTH <= hop_depth <= MAX_HOP_DEPTH:
        raise ValidationError(
            f"Invalid hop_depth {hop_depth}: must be between {MIN_HOP_DEPTH} and {MAX_HOP_DEPTH}"
        )
    return hop_depth


def match_score(name: str, query: str) -> int:
    """3 for an exact name, 2 for a name prefix, 1 for anything else"""
    name = (name or "").lower()
    query = (query or "").lower()
    if name == query:
        return 3
    if name.startswith(query):
        return 2
    return 1


@dataclass
class NodeRef:
    """Name and type of an Entity node"""
    name: str
    type: Optional[str]


@dataclass
class AnchorMatch:
    """An Entity selected as a direct query match"""
    name: str
    type: Optional[str]
    source_id: str
    match_score: int
    defined_in: Optional[str] = None


@dataclass
class PathEdge:
    """One relationship on an expansion path, oriented as stored"""
    edge_id: str
    subject: NodeRef
    predicate: str
    object: NodeRef


@dataclass
class GraphPath:
    """Relationships along one path starting at an anchor, in hop order"""
    anchor_name: str
    anchor_source_id: str
    edges: List[PathEdge] = field(default_factory=list)


class GraphStore(ABC):
    """
    Abstract base class for graph store implementations.

    Implementations:
    - Neo4jGraphStore: Neo4j via the async bolt driver
    - InMemoryGraphStore: process-local dictionaries
    """

    @abstractmethod
    async def connect(self) -> bool:
        """Open the connection and prepare indexes"""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close the connection"""
        pass

    # Writes

    @abstractmethod
    async def merge_source(self, source_id: str, source_type: str) -> None:
        pass

    @abstractmethod
    async def merge_file(self, source_id: str, path: str, language: str, file_type: str) -> None:
        """Merge a File node and its HAS_FILE edge from the Source node"""
        pass

    @abstractmethod
    async def merge_entity(self, source_id: str, name: str, entity_type: str) -> None:
        pass

    @abstractmethod
    async def merge_relationship(
        self,
        source_id: str,
        from_name: str,
        to_name: str,
        predicate: str
    ) -> bool:
        """Merge a typed edge; False when either endpoint is missing"""
        pass

    @abstractmethod
    async def merge_mention(self, source_id: str, path: str, entity_name: str) -> None:
        """Merge File-[:MENTIONS]->Entity within one source"""
        pass

    @abstractmethod
    async def delete_by_source(self, source_id: str) -> int:
        """Detach-delete every node carrying this source id; returns nodes removed"""
        pass

    # Reads

    @abstractmethod
    async def find_anchors(
        self,
        query: str,
        source_ids: Sequence[str],
        limit: int
    ) -> List[AnchorMatch]:
        """
        Entities whose name or type contains the query, case-insensitively.

        Ordered by match score descending then name ascending, with the
        defining file (if any File mentions the entity) filled in.
        """
        pass

    @abstractmethod
    async def expand(
        self,
        anchors: Sequence[AnchorMatch],
        source_ids: Sequence[str],
        hop_depth: int
    ) -> List[GraphPath]:
        """
        Undirected paths of 1..hop_depth relationships from each anchor.

        Every node on a path is an Entity inside source_ids. Paths come back
        grouped by anchor in the given order, shorter paths first.
        """
        pass
