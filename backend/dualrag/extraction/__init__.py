"""Graph extraction from text"""
from .base import (
    Extractor,
    ExtractedNode,
    ExtractedRelationship,
    ExtractionResult,
    REPO_NODE_TYPES,
    REPO_RELATIONSHIP_TYPES,
)
from .llm_extractor import LLMExtractor, parse_extraction

__all__ = [
    'Extractor',
    'ExtractedNode',
    'ExtractedRelationship',
    'ExtractionResult',
    'REPO_NODE_TYPES',
    'REPO_RELATIONSHIP_TYPES',
    'LLMExtractor',
    'parse_extraction',
]
