"""Query-time retrieval over both indexes"""
from .graph_retriever import GraphFact, GraphRetriever, relation_relevance
from .vector_retriever import VectorRetriever

__all__ = [
    'GraphFact',
    'GraphRetriever',
    'relation_relevance',
    'VectorRetriever',
]
