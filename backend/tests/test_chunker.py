"""
Tests for source-aware chunking.

Coverage:
- Overlapping recursive windows for files
- Whole-file and disjoint-window units for repositories
- Language and file type inference
- Empty input rejection
"""

import pytest

from dualrag.chunkers import LoadedDocument, RecursiveChunker, ChunkingConfig, SourceChunker
from dualrag.chunkers.source_chunker import build_chunker, infer_file_type, infer_language
from dualrag.config import DualRAGConfig
from dualrag.errors import ValidationError
from dualrag.models import SourceType


def word_text(count: int) -> str:
    return " ".join(f"w{i:04d}" for i in range(count))


class TestRecursiveChunker:
    """Test recursive window merging."""

    def test_rejects_overlap_not_smaller_than_size(self):
        with pytest.raises(ValueError):
            RecursiveChunker(ChunkingConfig(chunk_size=100, chunk_overlap=100))

    def test_short_text_is_one_chunk(self):
        chunker = RecursiveChunker(ChunkingConfig(chunk_size=100, chunk_overlap=20))
        chunks = chunker.chunk("hello world")
        assert len(chunks) == 1
        assert chunks[0].content == "hello world"
        assert chunks[0].metadata["chunking_strategy"] == "recursive"
        assert chunks[0].metadata["total_chunks"] == 1

    def test_prefers_paragraph_breaks(self):
        chunker = RecursiveChunker(ChunkingConfig(chunk_size=30, chunk_overlap=0))
        text = "first paragraph here\n\nsecond paragraph here"
        assert chunker.split_text(text) == ["first paragraph here", "second paragraph here"]

    def test_whitespace_only_yields_nothing(self):
        chunker = RecursiveChunker()
        assert chunker.chunk("   \n\n  ") == []


class TestSourceChunkerFiles:
    """Test file sources."""

    def test_windows_respect_size_and_overlap(self):
        text = word_text(500)
        chunks = SourceChunker().split(text, SourceType.FILE)

        assert len(chunks) > 1
        for chunk in chunks:
            assert len(chunk.content) <= 1000
            assert text[chunk.start_char:chunk.end_char] == chunk.content

        for previous, current in zip(chunks, chunks[1:]):
            # Each window starts inside the tail of the previous one
            assert current.start_char < previous.end_char
            assert previous.end_char - current.start_char <= 200

    def test_indexes_are_global_across_pages(self):
        pages = [
            LoadedDocument(text=word_text(300), metadata={"page_number": 1}),
            LoadedDocument(text=word_text(300), metadata={"page_number": 2}),
        ]
        chunks = SourceChunker().split(pages, "file")

        assert [c.index for c in chunks] == list(range(len(chunks)))
        assert [c.metadata["chunk_index"] for c in chunks] == list(range(len(chunks)))
        assert all(c.metadata["total_chunks"] == len(chunks) for c in chunks)
        assert {c.metadata["page_number"] for c in chunks} == {1, 2}

    def test_blank_pages_are_skipped(self):
        pages = [
            LoadedDocument(text="   ", metadata={"page_number": 1}),
            LoadedDocument(text="real content", metadata={"page_number": 2}),
        ]
        chunks = SourceChunker().split(pages, SourceType.FILE)
        assert len(chunks) == 1
        assert chunks[0].metadata["page_number"] == 2

    @pytest.mark.parametrize("content", ["", "   \n", [], None])
    def test_empty_content_is_rejected(self, content):
        with pytest.raises(ValidationError):
            SourceChunker().split(content, SourceType.FILE)

    def test_unknown_source_type_is_rejected(self):
        with pytest.raises(ValidationError):
            SourceChunker().split("text", "website")


class TestSourceChunkerRepos:
    """Test repository sources."""

    def test_small_file_is_kept_whole(self):
        body = "def main():\n    return 1\n"
        chunks = SourceChunker().split(
            [LoadedDocument(text=body, metadata={"path": "src/main.py"})],
            SourceType.REPO,
        )
        assert len(chunks) == 1
        chunk = chunks[0]
        assert chunk.content == body
        assert chunk.metadata["path"] == "src/main.py"
        assert chunk.metadata["language"] == "python"
        assert chunk.metadata["fileType"] == "code"
        assert chunk.metadata["chunking_strategy"] == "whole_file"

    def test_large_file_uses_disjoint_windows(self):
        body = word_text(700)  # 4199 characters
        chunks = SourceChunker().split(
            [LoadedDocument(text=body, metadata={"path": "docs/guide.md"})],
            SourceType.REPO,
        )
        assert len(chunks) >= 3
        for chunk in chunks:
            assert len(chunk.content) <= 1500
            assert chunk.metadata["fileType"] == "markdown"
            assert chunk.metadata["language"] == "md"
        for previous, current in zip(chunks, chunks[1:]):
            assert current.start_char >= previous.end_char

    def test_indexes_span_files(self):
        docs = [
            LoadedDocument(text="a = 1", metadata={"path": "a.py"}),
            LoadedDocument(text="b = 2", metadata={"path": "b.go"}),
        ]
        chunks = SourceChunker().split(docs, SourceType.REPO)
        assert [c.index for c in chunks] == [0, 1]
        assert [c.metadata["language"] for c in chunks] == ["python", "go"]

    def test_documents_without_path_are_rejected(self):
        with pytest.raises(ValidationError):
            SourceChunker().split([LoadedDocument(text="x = 1")], SourceType.REPO)


class TestLanguageInference:
    """Test extension mapping."""

    @pytest.mark.parametrize("path,language", [
        ("src/app.ts", "typescript"),
        ("web/App.jsx", "javascript"),
        ("lib/core.rs", "rust"),
        ("Program.cs", "csharp"),
        ("scripts/run.sh", "shell"),
        ("tools/build.zig", "zig"),
        ("Makefile", "unknown"),
        (".gitignore", "unknown"),
    ])
    def test_language(self, path, language):
        assert infer_language(path) == language

    @pytest.mark.parametrize("path,file_type", [
        ("README.md", "markdown"),
        ("docs/intro.markdown", "markdown"),
        ("NOTES.TXT", "markdown"),
        ("main.py", "code"),
        ("Makefile", "code"),
    ])
    def test_file_type(self, path, file_type):
        assert infer_file_type(path) == file_type


class TestBuildChunker:
    def test_uses_config_sizes(self):
        chunker = build_chunker(DualRAGConfig(chunk_size=500, chunk_overlap=50, repo_whole_file_limit=10))
        assert chunker.file_chunker.config.chunk_size == 500
        assert chunker.file_chunker.config.chunk_overlap == 50
        assert chunker.repo_chunker.config.chunk_overlap == 0
        assert chunker.repo_whole_file_limit == 10
