"""
API-Based Embedding Models

Speaks the OpenAI /embeddings protocol, which also covers local
llama.cpp and other compatible servers.
"""

import logging
import time
from typing import List, Optional, Dict

import aiohttp

from .base import Embedder, EmbeddingResult
from ..errors import DependencyError

logger = logging.getLogger(__name__)


# Known model dimensions; anything else is learned from the first response
MODEL_DIMENSIONS = {
    "text-embedding-3-small": 1536,
    "text-embedding-3-large": 3072,
    "text-embedding-ada-002": 1536,
    "nomic-embed-text-v1.5": 768,
    "bge-m3": 1024,
}


class APIEmbedder(Embedder):
    """
    API-based embedding over an OpenAI-compatible endpoint.

    Owns one aiohttp session between open() and close().
    """

    def __init__(
        self,
        model_name: str = "text-embedding-3-small",
        api_key: Optional[str] = None,
        base_url: str = "https://api.openai.com/v1",
        timeout: int = 60
    ):
        self.model_name = model_name
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.dimensions: Optional[int] = MODEL_DIMENSIONS.get(model_name)
        self._session: Optional[aiohttp.ClientSession] = None

    async def open(self) -> None:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            )

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None

    def _get_headers(self) -> Dict[str, str]:
        """Get request headers"""
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def _embed_batch(self, texts: List[str]) -> List[List[float]]:
        await self.open()
        url = f"{self.base_url}/embeddings"
        payload = {
            "model": self.model_name,
            "input": texts
        }

        try:
            async with self._session.post(url, headers=self._get_headers(), json=payload) as response:
                if response.status != 200:
                    error = await response.text()
                    raise DependencyError("embedding", f"API error {response.status}: {error}")
                result = await response.json()
        except aiohttp.ClientError as e:
            raise DependencyError("embedding", f"request failed: {e}", e) from e

        # Sort by index to ensure correct order
        embeddings_data = sorted(result["data"], key=lambda x: x["index"])
        return [item["embedding"] for item in embeddings_data]

    async def embed(
        self,
        texts: List[str],
        batch_size: int = 64
    ) -> EmbeddingResult:
        start = time.time()
        cleaned = [self._normalize(t) for t in texts]

        embeddings: List[List[float]] = []
        for i in range(0, len(cleaned), batch_size):
            embeddings.extend(await self._embed_batch(cleaned[i:i + batch_size]))

        if len(embeddings) != len(texts):
            raise DependencyError(
                "embedding",
                f"expected {len(texts)} embeddings, got {len(embeddings)}"
            )

        if embeddings:
            self.dimensions = len(embeddings[0])

        return EmbeddingResult(
            embeddings=embeddings,
            model=self.model_name,
            dimensions=self.dimensions or 0,
            processing_time_ms=(time.time() - start) * 1000
        )

    async def embed_query(self, text: str) -> List[float]:
        result = await self._embed_batch([self._normalize(text)])
        return result[0]
