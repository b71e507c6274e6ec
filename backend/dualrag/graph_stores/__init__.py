"""Graph store backends"""
from .base import (
    GraphStore,
    AnchorMatch,
    GraphPath,
    PathEdge,
    NodeRef,
    normalize_predicate,
    validate_hop_depth,
    match_score,
)
from .memory_store import InMemoryGraphStore
from .neo4j_store import Neo4jGraphStore, EXPAND_QUERIES

__all__ = [
    'GraphStore',
    'AnchorMatch',
    'GraphPath',
    'PathEdge',
    'NodeRef',
    'normalize_predicate',
    'validate_hop_depth',
    'match_score',
    'InMemoryGraphStore',
    'Neo4jGraphStore',
    'EXPAND_QUERIES',
]
