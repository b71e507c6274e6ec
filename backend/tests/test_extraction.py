"""
Tests for LLM graph extraction and the embedding client, with HTTP sessions
replaced by in-memory responses.
"""

import json
from unittest.mock import MagicMock

import pytest

from dualrag.embedders.api_embedder import APIEmbedder
from dualrag.errors import DependencyError
from dualrag.extraction import REPO_NODE_TYPES, REPO_RELATIONSHIP_TYPES, LLMExtractor, parse_extraction


class FakeResponse:
    def __init__(self, status=200, body=None, text=""):
        self.status = status
        self._body = body
        self._text = text

    async def json(self):
        return self._body

    async def text(self):
        return self._text

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False


def fake_session(response):
    session = MagicMock()
    session.closed = False
    session.post.return_value = response
    return session


def chat_answer(content):
    return {"choices": [{"message": {"content": content}}]}


class TestParseExtraction:
    """Test parsing of model answers."""

    def test_open_vocabulary_keeps_everything(self):
        answer = json.dumps({
            "nodes": [{"id": "Alice", "type": "Person"}, {"id": "Acme", "type": "Company"}],
            "relationships": [{"source": "Alice", "target": "Acme", "type": "works at"}],
        })
        result = parse_extraction(answer)

        assert [(n.id, n.type) for n in result.nodes] == [("Alice", "Person"), ("Acme", "Company")]
        assert len(result.relationships) == 1
        rel = result.relationships[0]
        assert (rel.source_id, rel.target_id, rel.type) == ("Alice", "Acme", "works at")

    def test_json_inside_prose(self):
        answer = 'Sure! Here it is:\n```json\n{"nodes": [{"id": "X", "type": "Concept"}]}\n```'
        result = parse_extraction(answer)
        assert result.nodes[0].id == "X"
        assert result.relationships == []

    def test_constrained_vocabulary_filters_and_canonicalizes(self):
        answer = json.dumps({
            "nodes": [
                {"id": "Cache", "type": "class"},
                {"id": "Alice", "type": "Person"},
            ],
            "relationships": [
                {"source": "Cache", "target": "Store", "type": "uses"},
                {"source": "Cache", "target": "Alice", "type": "LOVES"},
            ],
        })
        result = parse_extraction(answer, REPO_NODE_TYPES, REPO_RELATIONSHIP_TYPES)

        assert [(n.id, n.type) for n in result.nodes] == [("Cache", "Class")]
        assert [r.type for r in result.relationships] == ["USES"]

    def test_non_dict_items_are_skipped(self):
        result = parse_extraction('{"nodes": ["bad", {"id": "A", "type": "T"}], "relationships": null}')
        assert len(result.nodes) == 1
        assert result.relationships == []

    @pytest.mark.parametrize("answer", ["no json here", "{not: valid json}", ""])
    def test_bad_answers_raise(self, answer):
        with pytest.raises(DependencyError) as exc_info:
            parse_extraction(answer)
        assert exc_info.value.service == "extraction"


class TestLLMExtractor:
    """Test the chat completion client."""

    async def test_extract_posts_prompt_with_constraints(self):
        extractor = LLMExtractor(model="test-model", api_key="key", base_url="http://llm/v1/")
        answer = json.dumps({"nodes": [{"id": "Cache", "type": "Class"}], "relationships": []})
        extractor._session = fake_session(FakeResponse(body=chat_answer(answer)))

        result = await extractor.extract("class Cache: pass", REPO_NODE_TYPES, REPO_RELATIONSHIP_TYPES)

        assert result.nodes[0].type == "Class"
        args, kwargs = extractor._session.post.call_args
        assert args[0] == "http://llm/v1/chat/completions"
        assert kwargs["headers"]["Authorization"] == "Bearer key"
        payload = kwargs["json"]
        assert payload["model"] == "test-model"
        prompt = payload["messages"][0]["content"]
        assert "Node types must be one of: Class, Function" in prompt
        assert "class Cache: pass" in prompt

    async def test_open_vocabulary_prompt_has_no_constraints(self):
        extractor = LLMExtractor()
        extractor._session = fake_session(FakeResponse(body=chat_answer('{"nodes": []}')))

        await extractor.extract("some text")

        prompt = extractor._session.post.call_args.kwargs["json"]["messages"][0]["content"]
        assert "Node types must be one of" not in prompt
        assert "Relationship types must be one of" not in prompt

    async def test_http_error_raises_dependency_error(self):
        extractor = LLMExtractor()
        extractor._session = fake_session(FakeResponse(status=500, text="boom"))

        with pytest.raises(DependencyError) as exc_info:
            await extractor.extract("text")
        assert "500" in str(exc_info.value)

    async def test_unexpected_shape_raises(self):
        extractor = LLMExtractor()
        extractor._session = fake_session(FakeResponse(body={"choices": []}))

        with pytest.raises(DependencyError):
            await extractor.extract("text")


class TestAPIEmbedder:
    """Test the embedding client."""

    async def test_embed_orders_by_index_and_sets_dimensions(self):
        embedder = APIEmbedder(model_name="custom-model", base_url="http://emb/v1")
        body = {"data": [
            {"index": 1, "embedding": [0.0, 1.0, 0.0]},
            {"index": 0, "embedding": [1.0, 0.0, 0.0]},
        ]}
        embedder._session = fake_session(FakeResponse(body=body))

        result = await embedder.embed(["first", "second"])

        assert result.embeddings == [[1.0, 0.0, 0.0], [0.0, 1.0, 0.0]]
        assert result.dimensions == 3
        assert result.model == "custom-model"
        assert embedder._session.post.call_args.args[0] == "http://emb/v1/embeddings"

    async def test_count_mismatch_raises(self):
        embedder = APIEmbedder()
        body = {"data": [{"index": 0, "embedding": [1.0]}]}
        embedder._session = fake_session(FakeResponse(body=body))

        with pytest.raises(DependencyError):
            await embedder.embed(["a", "b"])

    async def test_api_error_raises(self):
        embedder = APIEmbedder()
        embedder._session = fake_session(FakeResponse(status=401, text="unauthorized"))

        with pytest.raises(DependencyError) as exc_info:
            await embedder.embed_query("hello")
        assert exc_info.value.service == "embedding"
