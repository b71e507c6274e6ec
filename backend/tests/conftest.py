"""
Pytest configuration and fixtures for dualrag tests.

Sets up the Python path to import the backend package and provides
in-process doubles for the external services.

Run with:
    pytest backend/tests -v
"""

import asyncio
import os
import sys
from pathlib import Path
from typing import Dict, List, Optional, Set
from unittest.mock import AsyncMock

import pytest

# Add the backend directory to the Python path
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

# Set environment variables for testing
os.environ.setdefault("GRAPH_BACKEND", "memory")
os.environ.setdefault("LOG_LEVEL", "DEBUG")
os.environ.setdefault("NO_COLOR", "1")

from dualrag.chunkers.base import Chunk
from dualrag.embedders.base import Embedder, EmbeddingResult
from dualrag.errors import DependencyError
from dualrag.extraction.base import (
    ExtractedNode,
    ExtractedRelationship,
    ExtractionResult,
    Extractor,
)
from dualrag.graph_stores.memory_store import InMemoryGraphStore
from dualrag.metadata_store import MetadataStore
from dualrag.vector_stores.base import SearchResult


class FakeEmbedder(Embedder):
    """Deterministic 4-dimensional embeddings"""

    dimensions = 4

    def __init__(self):
        self.calls: List[List[str]] = []

    async def embed(self, texts: List[str], batch_size: int = 64) -> EmbeddingResult:
        self.calls.append(list(texts))
        vectors = [[float(len(t) % 7), 1.0, 0.5, float(i)] for i, t in enumerate(texts)]
        return EmbeddingResult(embeddings=vectors, model="fake", dimensions=self.dimensions)

    async def embed_query(self, text: str) -> List[float]:
        return [float(len(text) % 7), 1.0, 0.5, 0.0]


class FakeExtractor(Extractor):
    """
    Scripted extractor.

    Responses are looked up by exact chunk text; texts listed in fail_on raise
    DependencyError. Tracks the peak number of concurrent calls.
    """

    def __init__(
        self,
        responses: Optional[Dict[str, ExtractionResult]] = None,
        default: Optional[ExtractionResult] = None,
        fail_on: Optional[Set[str]] = None,
        delay: float = 0.01
    ):
        self.responses = responses or {}
        self.default = default or ExtractionResult()
        self.fail_on = fail_on or set()
        self.delay = delay
        self.calls: List[dict] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def extract(self, text, allowed_nodes=None, allowed_relationships=None) -> ExtractionResult:
        self.calls.append({
            "text": text,
            "allowed_nodes": allowed_nodes,
            "allowed_relationships": allowed_relationships,
        })
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
            if text in self.fail_on:
                raise DependencyError("extraction", f"scripted failure for {text!r}")
            return self.responses.get(text, self.default)
        finally:
            self.in_flight -= 1


def extraction(nodes, relationships=()):
    """Build an ExtractionResult from (name, type) and (from, to, type) tuples"""
    return ExtractionResult(
        nodes=[ExtractedNode(id=name, type=node_type) for name, node_type in nodes],
        relationships=[
            ExtractedRelationship(source_id=a, target_id=b, type=rel_type)
            for a, b, rel_type in relationships
        ],
    )


def make_chunks(texts, metadata=None) -> List[Chunk]:
    return [
        Chunk(content=text, index=i, start_char=0, end_char=len(text), metadata=dict(metadata or {}))
        for i, text in enumerate(texts)
    ]


@pytest.fixture
def graph_store():
    return InMemoryGraphStore()


@pytest.fixture
def fake_embedder():
    return FakeEmbedder()


@pytest.fixture
def fake_extractor():
    return FakeExtractor()


@pytest.fixture
def mock_vector_store():
    store = AsyncMock()
    store.connect.return_value = True
    store.ensure_collection.return_value = None
    store.upsert.side_effect = lambda collection, records, **kwargs: len(records)
    store.delete_collection.return_value = True
    store.collection_exists.return_value = True
    store.search.return_value = [
        SearchResult(id="p1", score=0.9, payload={"text": "hit", "metadata": {"sourceId": "s1"}})
    ]
    return store


@pytest.fixture
async def metadata_store(tmp_path):
    store = MetadataStore(str(tmp_path / "metadata.db"))
    await store.open()
    yield store
    await store.close()
