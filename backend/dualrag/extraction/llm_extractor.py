"""
LLM Graph Extractor

Asks an OpenAI-compatible chat model for a JSON object of nodes and
relationships, then filters the answer to the allowed vocabulary.
"""

import json
import logging
import re
from typing import Any, Dict, List, Optional

import aiohttp

from .base import (
    ExtractedNode,
    ExtractedRelationship,
    ExtractionResult,
    Extractor,
)
from ..errors import DependencyError

logger = logging.getLogger(__name__)


EXTRACTION_PROMPT = """Extract a knowledge graph from the text below.

Return only a JSON object of this shape:
{{"nodes": [{{"id": "exact entity name", "type": "Label"}}],
 "relationships": [{{"source": "node id", "target": "node id", "type": "RELATION_TYPE"}}]}}

Rules:
- Use the entity's name as it appears in the text for "id".
- Every relationship endpoint must be one of the node ids.
{constraints}
Text:
{text}
"""


def _constraints(allowed_nodes: Optional[List[str]], allowed_relationships: Optional[List[str]]) -> str:
    lines = []
    if allowed_nodes:
        lines.append(f"- Node types must be one of: {', '.join(allowed_nodes)}.")
    if allowed_relationships:
        lines.append(f"- Relationship types must be one of: {', '.join(allowed_relationships)}.")
    return "\n".join(lines) + ("\n" if lines else "")


def _match_vocabulary(value: Optional[str], allowed: Optional[List[str]]) -> Optional[str]:
    """Map value onto the allowed vocabulary case-insensitively; None if outside it"""
    if value is None or allowed is None:
        return value
    lookup = {item.lower(): item for item in allowed}
    return lookup.get(str(value).strip().lower())


def parse_extraction(
    content: str,
    allowed_nodes: Optional[List[str]] = None,
    allowed_relationships: Optional[List[str]] = None
) -> ExtractionResult:
    """Parse a model answer into an ExtractionResult"""
    json_match = re.search(r'\{.*\}', content or "", re.DOTALL)
    if not json_match:
        raise DependencyError("extraction", "model answer contained no JSON object")

    try:
        data: Dict[str, Any] = json.loads(json_match.group())
    except json.JSONDecodeError as e:
        raise DependencyError("extraction", f"model answer is not valid JSON: {e}", e) from e

    nodes = []
    for item in data.get("nodes") or []:
        if not isinstance(item, dict):
            continue
        node_type = _match_vocabulary(item.get("type"), allowed_nodes)
        if allowed_nodes is not None and node_type is None:
            continue
        nodes.append(ExtractedNode(id=item.get("id"), type=node_type))

    relationships = []
    for item in data.get("relationships") or []:
        if not isinstance(item, dict):
            continue
        rel_type = _match_vocabulary(item.get("type"), allowed_relationships)
        if allowed_relationships is not None and rel_type is None:
            continue
        relationships.append(ExtractedRelationship(
            source_id=item.get("source"),
            target_id=item.get("target"),
            type=rel_type,
        ))

    return ExtractionResult(nodes=nodes, relationships=relationships)


class LLMExtractor(Extractor):
    """Graph extraction through an OpenAI-compatible chat completion endpoint"""

    def __init__(
        self,
        model: str = "gpt-4",
        api_key: Optional[str] = None,
        base_url: str = "https://api.openai.com/v1",
        timeout: int = 60,
        max_text_chars: int = 8000
    ):
        self.model = model
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_text_chars = max_text_chars
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

    async def extract(
        self,
        text: str,
        allowed_nodes: Optional[List[str]] = None,
        allowed_relationships: Optional[List[str]] = None
    ) -> ExtractionResult:
        await self.open()

        prompt = EXTRACTION_PROMPT.format(
            constraints=_constraints(allowed_nodes, allowed_relationships),
            text=text[:self.max_text_chars],
        )

        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        payload = {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": 0,
        }

        try:
            async with self._session.post(
                f"{self.base_url}/chat/completions",
                headers=headers,
                json=payload
            ) as response:
                if response.status != 200:
                    error = await response.text()
                    raise DependencyError("extraction", f"LLM request failed ({response.status}): {error}")
                result = await response.json()
        except aiohttp.ClientError as e:
            raise DependencyError("extraction", f"LLM request failed: {e}", e) from e

        try:
            content = result['choices'][0]['message']['content']
        except (KeyError, IndexError, TypeError) as e:
            raise DependencyError("extraction", f"unexpected LLM response shape: {e}", e) from e

        extraction = parse_extraction(content, allowed_nodes, allowed_relationships)
        logger.debug(
            f"Extracted {len(extraction.nodes)} nodes and "
            f"{len(extraction.relationships)} relationships"
        )
        return extraction
