"""
Tests for vector indexing, the Qdrant store adapter and vector retrieval.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from qdrant_client.models import FieldCondition, MatchAny, MatchValue

from dualrag.errors import DependencyError, ValidationError
from dualrag.models import SourceType
from dualrag.retrievers import VectorRetriever
from dualrag.vector_index import VectorIndexer, collection_name_for, point_id_for
from dualrag.vector_stores import QdrantStore, SearchResult, VectorRecord, build_qdrant_filter

from conftest import make_chunks


class TestCollectionNaming:
    def test_collection_name_is_derived_from_id(self):
        assert collection_name_for("abc123") == "source_abc123"
        assert collection_name_for("abc123", prefix="docs") == "docs_abc123"

    def test_point_ids_are_deterministic(self):
        assert point_id_for("s1", 0) == point_id_for("s1", 0)
        assert point_id_for("s1", 0) != point_id_for("s1", 1)
        assert point_id_for("s1", 0) != point_id_for("s2", 0)


class TestVectorIndexer:
    """Test tagging, embedding and upsert."""

    async def test_index_tags_and_upserts(self, mock_vector_store, fake_embedder):
        indexer = VectorIndexer(mock_vector_store, fake_embedder)
        chunks = make_chunks(["alpha", "beta", "gamma"], {"page_number": 1})

        result = await indexer.index(chunks, "source_s1", "s1", SourceType.FILE)

        assert result.collection == "source_s1"
        assert result.chunks_indexed == 3
        mock_vector_store.ensure_collection.assert_awaited_once_with("source_s1", 4)

        collection, records = mock_vector_store.upsert.call_args.args
        assert collection == "source_s1"
        assert [r.payload["text"] for r in records] == ["alpha", "beta", "gamma"]
        for record in records:
            assert record.payload["metadata"]["sourceId"] == "s1"
            assert record.payload["metadata"]["sourceType"] == "file"
            assert record.payload["metadata"]["page_number"] == 1
        assert records[0].id == point_id_for("s1", 0)

    @pytest.mark.parametrize("kwargs", [
        {"collection_name": ""},
        {"chunks": []},
        {"source_id": ""},
        {"source_type": None},
    ])
    async def test_missing_inputs_are_rejected(self, mock_vector_store, fake_embedder, kwargs):
        indexer = VectorIndexer(mock_vector_store, fake_embedder)
        params = {
            "chunks": make_chunks(["alpha"]),
            "collection_name": "source_s1",
            "source_id": "s1",
            "source_type": "file",
        }
        params.update(kwargs)

        with pytest.raises(ValidationError):
            await indexer.index(**params)
        mock_vector_store.upsert.assert_not_awaited()

    async def test_store_failure_propagates(self, mock_vector_store, fake_embedder):
        mock_vector_store.upsert.side_effect = DependencyError("qdrant", "down")
        indexer = VectorIndexer(mock_vector_store, fake_embedder)

        with pytest.raises(DependencyError):
            await indexer.index(make_chunks(["alpha"]), "source_s1", "s1", "file")

    async def test_embedding_count_mismatch(self, mock_vector_store, fake_embedder):
        fake_embedder.embed = AsyncMock(return_value=MagicMock(embeddings=[[1.0]], dimensions=1))
        indexer = VectorIndexer(mock_vector_store, fake_embedder)

        with pytest.raises(DependencyError):
            await indexer.index(make_chunks(["a", "b"]), "source_s1", "s1", "file")

    async def test_delete_collection_passes_through(self, mock_vector_store, fake_embedder):
        mock_vector_store.delete_collection.return_value = False
        indexer = VectorIndexer(mock_vector_store, fake_embedder)

        assert await indexer.delete_collection("source_gone") is False


class TestQdrantFilter:
    def test_none(self):
        assert build_qdrant_filter(None) is None
        assert build_qdrant_filter({}) is None

    def test_exact_and_in(self):
        result = build_qdrant_filter({
            "metadata.sourceId": "s1",
            "metadata.sourceType": {"$in": ["file", "repo"]},
        })
        first, second = result.must
        assert first == FieldCondition(key="metadata.sourceId", match=MatchValue(value="s1"))
        assert second == FieldCondition(key="metadata.sourceType", match=MatchAny(any=["file", "repo"]))


class TestQdrantStore:
    """Test the adapter against a mocked async client."""

    def make_store(self):
        store = QdrantStore(batch_size=2)
        store._client = AsyncMock()
        return store

    def test_client_requires_connect(self):
        with pytest.raises(DependencyError):
            QdrantStore().client

    async def test_connect_failure_returns_false(self):
        with patch("dualrag.vector_stores.qdrant_store.AsyncQdrantClient") as client_cls:
            client_cls.return_value.get_collections = AsyncMock(side_effect=ConnectionError("refused"))
            assert await QdrantStore().connect() is False

    async def test_ensure_collection_skips_existing(self):
        store = self.make_store()
        store._client.collection_exists.return_value = True

        await store.ensure_collection("source_s1", 4)

        store._client.create_collection.assert_not_awaited()

    async def test_ensure_collection_creates_missing(self):
        store = self.make_store()
        store._client.collection_exists.return_value = False

        await store.ensure_collection("source_s1", 4)

        kwargs = store._client.create_collection.call_args.kwargs
        assert kwargs["collection_name"] == "source_s1"
        assert kwargs["vectors_config"].size == 4

    async def test_upsert_batches(self):
        store = self.make_store()
        store._client.upsert.return_value = MagicMock(status="completed")
        records = [VectorRecord(id=point_id_for("s1", i), vector=[0.1], payload={}) for i in range(5)]

        assert await store.upsert("source_s1", records) == 5
        assert store._client.upsert.await_count == 3

    async def test_upsert_failure_raises(self):
        store = self.make_store()
        store._client.upsert.side_effect = RuntimeError("timeout")

        with pytest.raises(DependencyError):
            await store.upsert("source_s1", [VectorRecord(id="x", vector=[0.1])])

    async def test_delete_missing_collection_returns_false(self):
        store = self.make_store()
        store._client.delete_collection.side_effect = RuntimeError("Not found")

        assert await store.delete_collection("source_gone") is False

    async def test_search_maps_points(self):
        store = self.make_store()
        point = MagicMock(id="p1", score=0.75, payload={"text": "hit"})
        store._client.query_points.return_value = MagicMock(points=[point])

        results = await store.search("source_s1", [0.1], limit=3, filter={"metadata.sourceId": "s1"})

        assert results == [SearchResult(id="p1", score=0.75, payload={"text": "hit"})]
        assert store._client.query_points.call_args.kwargs["limit"] == 3


class TestVectorRetriever:
    """Test scoped search across source collections."""

    async def test_merges_by_score_and_filters_per_source(self, mock_vector_store, fake_embedder):
        async def search(collection, vector, limit, filter):
            score = 0.5 if collection == "source_a" else 0.8
            return [SearchResult(id=collection, score=score, payload={
                "text": f"from {collection}",
                "metadata": {"sourceId": filter["metadata.sourceId"]},
            })]

        mock_vector_store.search.side_effect = search
        retriever = VectorRetriever(mock_vector_store, fake_embedder)

        results = await retriever.search("what is a cache", ["a", "b"], k=5)

        assert [r["text"] for r in results] == ["from source_b", "from source_a"]
        assert results[0]["metadata"] == {"sourceId": "b"}

    async def test_missing_collection_is_skipped(self, mock_vector_store, fake_embedder):
        mock_vector_store.collection_exists.side_effect = lambda name: name != "source_gone"
        retriever = VectorRetriever(mock_vector_store, fake_embedder)

        results = await retriever.search("cache", ["gone", "s1"])

        assert len(results) == 1
        assert mock_vector_store.search.await_count == 1

    @pytest.mark.parametrize("query,source_ids", [("", ["s1"]), ("cache", []), ("cache", "s1")])
    async def test_validation(self, mock_vector_store, fake_embedder, query, source_ids):
        with pytest.raises(ValidationError):
            await VectorRetriever(mock_vector_store, fake_embedder).search(query, source_ids)
