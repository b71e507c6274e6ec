"""
Content Loaders

Turn raw inputs into LoadedDocument lists for the chunker:
- PDF files via PyPDF2, one document per non-empty page
- Local repository checkouts
- GitHub repositories through the REST API
"""

import asyncio
import fnmatch
import logging
import os
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import aiohttp
from PyPDF2 import PdfReader
from PyPDF2.errors import PdfReadError

from ..errors import DependencyError, ValidationError

logger = logging.getLogger(__name__)


# Files never worth indexing from a repository
REPO_IGNORE_PATTERNS = [
    "*.json",
    "*.lock",
    "*.yml",
    "*.yaml",
    ".*ignore",
    "package.json",
]

SKIPPED_DIRS = {".git", "node_modules", "__pycache__", ".venv", "venv"}


@dataclass
class LoadedDocument:
    """Raw text of one page or one file, before chunking"""
    text: str
    metadata: Dict[str, Any] = field(default_factory=dict)


def is_ignored(path: str) -> bool:
    """Check a repository path against the ignore globs"""
    name = path.rsplit("/", 1)[-1]
    return any(fnmatch.fnmatch(name, pattern) for pattern in REPO_IGNORE_PATTERNS)


def load_pdf(path: str) -> List[LoadedDocument]:
    """Load a PDF, one LoadedDocument per page with text"""
    if not path:
        raise ValidationError("Document local path is required")
    if not os.path.isfile(path):
        raise ValidationError(f"PDF not found: {path}")

    try:
        reader = PdfReader(path)
        pages = reader.pages
        total_pages = len(pages)
        documents = []
        for number, page in enumerate(pages, start=1):
            text = page.extract_text() or ""
            if not text.strip():
                continue
            documents.append(LoadedDocument(
                text=text,
                metadata={
                    'source': path,
                    'page_number': number,
                    'total_pages': total_pages,
                }
            ))
    except PdfReadError as e:
        raise ValidationError(f"Failed to parse PDF {path}: {e}") from e

    if not documents:
        raise ValidationError(f"Failed to load PDF or PDF is empty: {path}")

    logger.info(f"Loaded {len(documents)} pages from {path}")
    return documents


def load_directory(root: str) -> List[LoadedDocument]:
    """Load every readable text file under a local repository checkout"""
    if not os.path.isdir(root):
        raise ValidationError(f"Repository directory not found: {root}")

    documents = []
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(d for d in dirnames if d not in SKIPPED_DIRS)
        for filename in sorted(filenames):
            full_path = os.path.join(dirpath, filename)
            rel_path = os.path.relpath(full_path, root).replace(os.sep, "/")
            if is_ignored(rel_path):
                continue
            try:
                with open(full_path, encoding="utf-8") as f:
                    text = f.read()
            except (UnicodeDecodeError, OSError) as e:
                logger.debug(f"Skipping unreadable file {rel_path}: {e}")
                continue
            if not text.strip():
                continue
            documents.append(LoadedDocument(
                text=text,
                metadata={'source': rel_path, 'path': rel_path}
            ))

    if not documents:
        raise ValidationError(f"Repository is empty: {root}")

    logger.info(f"Loaded {len(documents)} files from {root}")
    return documents


_GITHUB_URL = re.compile(
    r'^(?:https?://)?(?:www\.)?github\.com/([^/\s]+)/([^/\s]+?)(?:\.git)?/?$'
)


def parse_github_url(repo_url: str) -> Tuple[str, str]:
    """Return (owner, repo) from a github.com URL"""
    match = _GITHUB_URL.match((repo_url or "").strip())
    if not match:
        raise ValidationError(f"Not a GitHub repository URL: {repo_url!r}")
    return match.group(1), match.group(2)


class GitHubRepoLoader:
    """
    Loads repository files through the GitHub REST API.

    Lists the branch tree recursively, filters ignored files, then fetches
    raw contents with a small concurrency cap.
    """

    def __init__(
        self,
        access_token: Optional[str] = None,
        api_url: str = "https://api.github.com",
        timeout: int = 60,
        max_concurrent_fetches: int = 8,
        max_file_bytes: int = 1_000_000
    ):
        self.access_token = access_token
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self.max_concurrent_fetches = max_concurrent_fetches
        self.max_file_bytes = max_file_bytes

    def _get_headers(self, raw: bool = False) -> Dict[str, str]:
        headers = {
            "Accept": "application/vnd.github.raw" if raw else "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        if self.access_token:
            headers["Authorization"] = f"Bearer {self.access_token}"
        return headers

    async def load(self, repo_url: str, branch: str = "main") -> List[LoadedDocument]:
        owner, repo = parse_github_url(repo_url)
        branch = branch or "main"

        if not self.access_token:
            logger.warning("No GitHub token configured, requests are rate limited")

        timeout = aiohttp.ClientTimeout(total=self.timeout)
        async with aiohttp.ClientSession(timeout=timeout) as session:
            paths = await self._list_files(session, owner, repo, branch)
            semaphore = asyncio.Semaphore(self.max_concurrent_fetches)

            async def fetch(path: str) -> Optional[LoadedDocument]:
                async with semaphore:
                    text = await self._fetch_file(session, owner, repo, branch, path)
                if text is None or not text.strip():
                    return None
                return LoadedDocument(
                    text=text,
                    metadata={
                        'source': path,
                        'path': path,
                        'repository': f"{owner}/{repo}",
                        'branch': branch,
                    }
                )

            results = await asyncio.gather(*(fetch(p) for p in paths))

        documents = [doc for doc in results if doc is not None]
        if not documents:
            raise ValidationError(
                f"Failed to load GitHub repository or repository is empty: {repo_url}"
            )

        logger.info(f"Loaded {len(documents)} files from {owner}/{repo}@{branch}")
        return documents

    async def _list_files(
        self,
        session: aiohttp.ClientSession,
        owner: str,
        repo: str,
        branch: str
    ) -> List[str]:
        url = f"{self.api_url}/repos/{owner}/{repo}/git/trees/{branch}"
        try:
            async with session.get(url, headers=self._get_headers(), params={"recursive": "1"}) as response:
                if response.status == 404:
                    raise ValidationError(f"Repository or branch not found: {owner}/{repo}@{branch}")
                if response.status != 200:
                    error = await response.text()
                    raise DependencyError("github", f"tree listing failed ({response.status}): {error}")
                result = await response.json()
        except aiohttp.ClientError as e:
            raise DependencyError("github", f"tree listing failed: {e}", e) from e

        if result.get("truncated"):
            logger.warning(f"GitHub tree for {owner}/{repo} is truncated, some files are skipped")

        return [
            entry["path"]
            for entry in result.get("tree", [])
            if entry.get("type") == "blob"
            and entry.get("size", 0) <= self.max_file_bytes
            and not is_ignored(entry["path"])
        ]

    async def _fetch_file(
        self,
        session: aiohttp.ClientSession,
        owner: str,
        repo: str,
        branch: str,
        path: str
    ) -> Optional[str]:
        url = f"{self.api_url}/repos/{owner}/{repo}/contents/{path}"
        try:
            async with session.get(url, headers=self._get_headers(raw=True), params={"ref": branch}) as response:
                if response.status != 200:
                    logger.warning(f"Skipping {path}: GitHub returned {response.status}")
                    return None
                body = await response.read()
        except aiohttp.ClientError as e:
            # Same as a non-200: one unreadable file does not sink the repository
            logger.warning(f"Skipping {path}: fetch failed: {e}")
            return None

        try:
            return body.decode("utf-8")
        except UnicodeDecodeError:
            logger.debug(f"Skipping binary file {path}")
            return None
