"""
In-Memory Graph Store

Process-local graph with the same keys and scoping rules as the Neo4j
store. Used for local development without a database and in tests.
"""

import logging
from collections import defaultdict
from typing import Dict, List, Optional, Sequence, Set, Tuple

from .base import (
    AnchorMatch,
    GraphPath,
    GraphStore,
    MAX_PATHS_PER_ANCHOR,
    NodeRef,
    PathEdge,
    match_score,
    validate_hop_depth,
    validate_predicate,
)

logger = logging.getLogger(__name__)

EntityKey = Tuple[str, str]  # (name, source_id)
EdgeKey = Tuple[str, str, str, str]  # (source_id, from, to, predicate)


class InMemoryGraphStore(GraphStore):
    """Dictionary-backed graph store"""

    def __init__(self, max_paths_per_anchor: int = MAX_PATHS_PER_ANCHOR):
        self.max_paths_per_anchor = max_paths_per_anchor
        self.sources: Dict[str, str] = {}
        self.files: Dict[Tuple[str, str], Dict[str, str]] = {}
        self.has_file: Set[Tuple[str, str]] = set()
        self.entities: Dict[EntityKey, Optional[str]] = {}
        self.edges: Dict[EdgeKey, str] = {}
        self.mentions: Set[Tuple[str, str, str]] = set()
        self._next_edge_id = 0
        self.connected = False

    async def connect(self) -> bool:
        self.connected = True
        logger.info("Using in-memory graph store")
        return True

    async def close(self) -> None:
        self.connected = False

    # Writes

    async def merge_source(self, source_id: str, source_type: str) -> None:
        self.sources[source_id] = source_type

    async def merge_file(self, source_id: str, path: str, language: str, file_type: str) -> None:
        self.files[(path, source_id)] = {"language": language, "fileType": file_type}
        if source_id in self.sources:
            self.has_file.add((source_id, path))

    async def merge_entity(self, source_id: str, name: str, entity_type: str) -> None:
        self.entities[(name, source_id)] = entity_type

    async def merge_relationship(
        self,
        source_id: str,
        from_name: str,
        to_name: str,
        predicate: str
    ) -> bool:
        validate_predicate(predicate)
        if (from_name, source_id) not in self.entities or (to_name, source_id) not in self.entities:
            return False
        key = (source_id, from_name, to_name, predicate)
        if key not in self.edges:
            self._next_edge_id += 1
            self.edges[key] = f"edge-{self._next_edge_id}"
        return True

    async def merge_mention(self, source_id: str, path: str, entity_name: str) -> None:
        if (path, source_id) in self.files and (entity_name, source_id) in self.entities:
            self.mentions.add((source_id, path, entity_name))

    async def delete_by_source(self, source_id: str) -> int:
        entity_keys = [key for key in self.entities if key[1] == source_id]
        file_keys = [key for key in self.files if key[1] == source_id]

        for key in entity_keys:
            del self.entities[key]
        for key in file_keys:
            del self.files[key]

        self.edges = {k: v for k, v in self.edges.items() if k[0] != source_id}
        self.mentions = {m for m in self.mentions if m[0] != source_id}
        self.has_file = {h for h in self.has_file if h[0] != source_id}
        self.sources.pop(source_id, None)

        return len(entity_keys) + len(file_keys)

    # Reads

    async def find_anchors(
        self,
        query: str,
        source_ids: Sequence[str],
        limit: int
    ) -> List[AnchorMatch]:
        needle = query.lower()
        scope = set(source_ids)

        anchors = [
            AnchorMatch(
                name=name,
                type=entity_type,
                source_id=source_id,
                match_score=match_score(name, query),
            )
            for (name, source_id), entity_type in self.entities.items()
            if source_id in scope
            and (needle in name.lower() or needle in (entity_type or "").lower())
        ]
        anchors.sort(key=lambda a: (-a.match_score, a.name, a.source_id))
        anchors = anchors[:limit]

        for anchor in anchors:
            paths = sorted(
                path for (sid, path, name) in self.mentions
                if sid == anchor.source_id and name == anchor.name
            )
            anchor.defined_in = paths[0] if paths else None

        return anchors

    async def expand(
        self,
        anchors: Sequence[AnchorMatch],
        source_ids: Sequence[str],
        hop_depth: int
    ) -> List[GraphPath]:
        hop_depth = validate_hop_depth(hop_depth)
        scope = set(source_ids)

        adjacency: Dict[EntityKey, List[EdgeKey]] = defaultdict(list)
        for key in self.edges:
            source_id, from_name, to_name, _ = key
            adjacency[(from_name, source_id)].append(key)
            if from_name != to_name:
                adjacency[(to_name, source_id)].append(key)

        paths: List[GraphPath] = []
        for anchor in anchors:
            start = (anchor.name, anchor.source_id)
            if start not in self.entities or anchor.source_id not in scope:
                continue

            found: List[List[EdgeKey]] = []

            def walk(node: EntityKey, trail: List[EdgeKey]):
                if len(trail) == hop_depth:
                    return
                for key in adjacency.get(node, []):
                    # A path never reuses a relationship
                    if key in trail:
                        continue
                    source_id, from_name, to_name, _ = key
                    neighbor = (to_name, source_id) if node == (from_name, source_id) else (from_name, source_id)
                    if neighbor[1] not in scope:
                        continue
                    found.append(trail + [key])
                    walk(neighbor, trail + [key])

            walk(start, [])
            found.sort(key=len)
            if len(found) > self.max_paths_per_anchor:
                logger.warning(
                    f"Expansion from {anchor.name} in {anchor.source_id} hit the "
                    f"{self.max_paths_per_anchor} path cap, farther relations are omitted"
                )
                found = found[:self.max_paths_per_anchor]

            for trail in found:
                paths.append(GraphPath(
                    anchor_name=anchor.name,
                    anchor_source_id=anchor.source_id,
                    edges=[self._path_edge(key) for key in trail],
                ))

        return paths

    def _path_edge(self, key: EdgeKey) -> PathEdge:
        source_id, from_name, to_name, predicate = key
        return PathEdge(
            edge_id=self.edges[key],
            subject=NodeRef(from_name, self.entities.get((from_name, source_id))),
            predicate=predicate,
            object=NodeRef(to_name, self.entities.get((to_name, source_id))),
        )

    # Introspection helpers

    def count_entities(self, source_id: Optional[str] = None) -> int:
        return sum(1 for key in self.entities if source_id is None or key[1] == source_id)

    def count_edges(self, source_id: Optional[str] = None) -> int:
        return sum(1 for key in self.edges if source_id is None or key[0] == source_id)
