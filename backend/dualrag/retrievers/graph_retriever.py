"""
Graph Retriever

Turns a user query into ranked facts from the source-scoped knowledge graph:
anchor entities matched by name or type, plus the relationships reachable
from them within a bounded number of hops.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..errors import ValidationError
from ..graph_stores.base import NodeRef, GraphStore, validate_hop_depth

logger = logging.getLogger(__name__)

HOP_DISTANCE_PENALTY = 0.3
MIN_RELEVANCE_SCORE = 0.1


@dataclass
class GraphFact:
    """An entity or relation fact with its relevance"""
    kind: str  # entity, relation
    relevance: float
    # entity facts
    name: Optional[str] = None
    type: Optional[str] = None
    defined_in: Optional[str] = None
    # relation facts
    subject: Optional[NodeRef] = None
    predicate: Optional[str] = None
    object: Optional[NodeRef] = None

    def to_dict(self) -> Dict[str, Any]:
        if self.kind == "entity":
            return {
                "kind": "entity",
                "entity": {
                    "name": self.name,
                    "type": self.type,
                    "definedIn": self.defined_in,
                },
                "relevance": self.relevance,
            }
        return {
            "kind": "relation",
            "subject": {"name": self.subject.name, "type": self.subject.type},
            "predicate": self.predicate,
            "object": {"name": self.object.name, "type": self.object.type},
            "relevance": self.relevance,
        }

    def to_text(self) -> str:
        if self.kind == "entity":
            label = f"{self.name} ({self.type})" if self.type else self.name
            return f"{label} defined in {self.defined_in}"
        return f"{self.subject.name} -[{self.predicate}]-> {self.object.name}"


def relation_relevance(anchor_score: float, hop: int) -> float:
    """Decay the anchor score by hop distance, never below the floor"""
    return max(MIN_RELEVANCE_SCORE, round(anchor_score - HOP_DISTANCE_PENALTY * hop, 6))


class GraphRetriever:
    """Read-only fact retrieval over a GraphStore"""

    def __init__(self, graph_store: GraphStore):
        self.graph_store = graph_store

    async def fetch_facts(
        self,
        query: str,
        source_ids: Sequence[str],
        anchor_limit: int = 10,
        hop_depth: int = 2
    ) -> List[GraphFact]:
        """
        Fetch ranked graph facts for a query.

        Args:
            query: Free text matched against entity names and types
            source_ids: Sources the traversal is confined to
            anchor_limit: Maximum number of anchor entities
            hop_depth: Maximum relationships per path, 1 to 5

        Returns:
            Facts sorted by relevance, highest first. Empty when nothing matches.

        Raises:
            ValidationError: bad query, scope, limit or depth
            DependencyError: graph store failure
        """
        if not isinstance(query, str) or not query.strip():
            raise ValidationError("Query is required and must be a non-empty string")
        if isinstance(source_ids, str) or not source_ids:
            raise ValidationError("source_ids must be a non-empty list")
        if isinstance(anchor_limit, bool) or not isinstance(anchor_limit, int) or anchor_limit < 1:
            raise ValidationError(f"Invalid anchor_limit {anchor_limit!r}: must be a positive integer")
        hop_depth = validate_hop_depth(hop_depth)

        query = query.strip()
        source_ids = [str(s) for s in source_ids]

        anchors = await self.graph_store.find_anchors(query, source_ids, anchor_limit)
        if not anchors:
            logger.debug(f"No anchors for query '{query}' in {len(source_ids)} sources")
            return []

        paths = await self.graph_store.expand(anchors, source_ids, hop_depth)

        facts: List[GraphFact] = []
        anchor_scores: Dict[Tuple[str, str], int] = {}

        for anchor in anchors:
            key = (anchor.name, anchor.source_id)
            if key in anchor_scores:
                continue
            anchor_scores[key] = anchor.match_score
            facts.append(GraphFact(
                kind="entity",
                relevance=anchor.match_score,
                name=anchor.name,
                type=anchor.type,
                defined_in=anchor.defined_in or "unknown",
            ))

        # One fact per edge, scored by its closest anchor
        relation_facts: Dict[str, GraphFact] = {}
        for path in paths:
            anchor_score = anchor_scores.get((path.anchor_name, path.anchor_source_id))
            if anchor_score is None:
                continue
            for position, edge in enumerate(path.edges):
                relevance = relation_relevance(anchor_score, position + 1)
                existing = relation_facts.get(edge.edge_id)
                if existing is not None:
                    existing.relevance = max(existing.relevance, relevance)
                    continue
                fact = GraphFact(
                    kind="relation",
                    relevance=relevance,
                    subject=edge.subject,
                    predicate=edge.predicate,
                    object=edge.object,
                )
                relation_facts[edge.edge_id] = fact
                facts.append(fact)

        # Stable: ties keep anchor order, then discovery order
        facts.sort(key=lambda fact: fact.relevance, reverse=True)

        logger.info(
            f"Graph retrieval for '{query}': {len(anchor_scores)} anchors, "
            f"{len(facts) - len(anchor_scores)} relations (depth {hop_depth})"
        )
        return facts

    async def fetch_context(
        self,
        query: str,
        source_ids: Sequence[str],
        anchor_limit: int = 10,
        hop_depth: int = 2
    ) -> str:
        """Render facts as numbered lines for prompt assembly"""
        facts = await self.fetch_facts(query, source_ids, anchor_limit, hop_depth)
        return "\n".join(f"{i}. {fact.to_text()}" for i, fact in enumerate(facts, 1))
