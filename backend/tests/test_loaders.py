"""
Tests for content loaders: ignore rules, local directories, PDFs and the
GitHub loader with its HTTP calls patched out.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import aiohttp
import pytest
from PyPDF2 import PdfWriter

from dualrag.chunkers.loaders import (
    GitHubRepoLoader,
    is_ignored,
    load_directory,
    load_pdf,
    parse_github_url,
)
from dualrag.errors import ValidationError


class TestIgnoreRules:
    @pytest.mark.parametrize("path", [
        "package.json",
        "config/settings.json",
        "poetry.lock",
        ".github/workflows/ci.yml",
        "docker-compose.yaml",
        ".gitignore",
        ".dockerignore",
    ])
    def test_ignored(self, path):
        assert is_ignored(path)

    @pytest.mark.parametrize("path", ["src/main.py", "README.md", "web/index.ts"])
    def test_kept(self, path):
        assert not is_ignored(path)


class TestLoadDirectory:
    def test_loads_text_files_with_relative_paths(self, tmp_path):
        (tmp_path / "src").mkdir()
        (tmp_path / "src" / "cache.py").write_text("class Cache:\n    pass\n")
        (tmp_path / "README.md").write_text("# Project\n")
        (tmp_path / "package.json").write_text("{}")
        (tmp_path / "empty.py").write_text("   ")
        (tmp_path / "node_modules").mkdir()
        (tmp_path / "node_modules" / "dep.js").write_text("module.exports = 1")

        documents = load_directory(str(tmp_path))

        paths = [doc.metadata["path"] for doc in documents]
        assert paths == ["README.md", "src/cache.py"]
        assert documents[1].text.startswith("class Cache")

    def test_missing_directory(self, tmp_path):
        with pytest.raises(ValidationError):
            load_directory(str(tmp_path / "nope"))

    def test_directory_with_nothing_indexable(self, tmp_path):
        (tmp_path / "package.json").write_text("{}")
        with pytest.raises(ValidationError):
            load_directory(str(tmp_path))


class TestLoadPdf:
    def test_missing_file(self, tmp_path):
        with pytest.raises(ValidationError):
            load_pdf(str(tmp_path / "missing.pdf"))

    def test_requires_path(self):
        with pytest.raises(ValidationError):
            load_pdf("")

    def test_pdf_without_text_is_rejected(self, tmp_path):
        path = tmp_path / "blank.pdf"
        writer = PdfWriter()
        writer.add_blank_page(width=200, height=200)
        with open(path, "wb") as f:
            writer.write(f)

        with pytest.raises(ValidationError):
            load_pdf(str(path))


class TestParseGithubUrl:
    @pytest.mark.parametrize("url", [
        "https://github.com/acme/widgets",
        "https://github.com/acme/widgets.git",
        "https://www.github.com/acme/widgets/",
        "github.com/acme/widgets",
    ])
    def test_valid(self, url):
        assert parse_github_url(url) == ("acme", "widgets")

    @pytest.mark.parametrize("url", ["", "https://gitlab.com/acme/widgets", "https://github.com/acme"])
    def test_invalid(self, url):
        with pytest.raises(ValidationError):
            parse_github_url(url)


class TestGitHubRepoLoader:
    def test_headers_include_token(self):
        loader = GitHubRepoLoader(access_token="tok")
        assert loader._get_headers()["Authorization"] == "Bearer tok"
        assert loader._get_headers(raw=True)["Accept"] == "application/vnd.github.raw"
        assert "Authorization" not in GitHubRepoLoader()._get_headers()

    async def test_load_builds_documents(self):
        loader = GitHubRepoLoader(access_token="tok")
        files = {"src/app.py": "print('hi')\n", "docs/empty.md": "  "}

        async def fetch(session, owner, repo, branch, path):
            return files[path]

        with patch.object(loader, "_list_files", AsyncMock(return_value=list(files))), \
                patch.object(loader, "_fetch_file", side_effect=fetch):
            documents = await loader.load("https://github.com/acme/widgets", "dev")

        assert len(documents) == 1
        assert documents[0].metadata == {
            "source": "src/app.py",
            "path": "src/app.py",
            "repository": "acme/widgets",
            "branch": "dev",
        }

    async def test_empty_repository_is_rejected(self):
        loader = GitHubRepoLoader()
        with patch.object(loader, "_list_files", AsyncMock(return_value=[])):
            with pytest.raises(ValidationError):
                await loader.load("https://github.com/acme/widgets")


class RawResponse:
    def __init__(self, status=200, body=b""):
        self.status = status
        self._body = body

    async def read(self):
        return self._body

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False


class TestFetchFile:
    async def fetch(self, session):
        return await GitHubRepoLoader()._fetch_file(session, "acme", "widgets", "main", "src/app.py")

    async def test_returns_decoded_text(self):
        session = MagicMock()
        session.get.return_value = RawResponse(body=b"print('hi')\n")

        assert await self.fetch(session) == "print('hi')\n"
        assert session.get.call_args.kwargs["params"] == {"ref": "main"}

    async def test_error_status_skips_file(self):
        session = MagicMock()
        session.get.return_value = RawResponse(status=502)

        assert await self.fetch(session) is None

    async def test_connection_error_skips_file(self):
        session = MagicMock()
        session.get.side_effect = aiohttp.ClientConnectionError("reset by peer")

        assert await self.fetch(session) is None

    async def test_binary_file_is_skipped(self):
        session = MagicMock()
        session.get.return_value = RawResponse(body=b"\xff\xfe\x00\x81")

        assert await self.fetch(session) is None
