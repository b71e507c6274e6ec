"""
dualrag Configuration Management

Centralized configuration for the ingestion pipeline, the stores and the
retrievers. Values come from environment variables with sane local defaults.
"""

import os
from dataclasses import dataclass
from typing import Optional
import logging

logger = logging.getLogger(__name__)


@dataclass
class DualRAGConfig:
    """Configuration for dualrag services."""

    # Neo4j settings
    neo4j_uri: str = "bolt://localhost:7687"
    neo4j_user: str = "neo4j"
    neo4j_password: str = "password"
    neo4j_database: Optional[str] = None
    graph_backend: str = "neo4j"  # neo4j, memory

    # Qdrant settings
    qdrant_url: str = "http://localhost:6333"
    qdrant_api_key: Optional[str] = None
    collection_prefix: str = "source"

    # OpenAI-compatible embedding / extraction endpoints
    openai_api_key: Optional[str] = None
    openai_base_url: str = "https://api.openai.com/v1"
    embedding_model: str = "text-embedding-3-small"
    llm_model: str = "gpt-4"

    # Chunking
    chunk_size: int = 1000
    chunk_overlap: int = 200
    repo_chunk_size: int = 1500
    repo_whole_file_limit: int = 2000

    # Background graph build
    extraction_concurrency: int = 3
    graph_workers: int = 2
    graph_queue_size: int = 100

    # Metadata store
    metadata_db_path: str = "data/dualrag/metadata.db"

    github_token: Optional[str] = None
    request_timeout: int = 60
    log_level: str = "INFO"

    @property
    def use_memory_graph(self) -> bool:
        """Check if the in-process graph store is selected."""
        return self.graph_backend == "memory"


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"Invalid integer for {name}={raw!r}, using {default}")
        return default


_config: Optional[DualRAGConfig] = None


def get_config() -> DualRAGConfig:
    """Get or create dualrag configuration from environment."""
    global _config

    if _config is None:
        graph_backend = os.getenv("GRAPH_BACKEND", "neo4j").lower()
        if graph_backend not in ("neo4j", "memory"):
            logger.warning(f"Unknown GRAPH_BACKEND '{graph_backend}', using neo4j")
            graph_backend = "neo4j"

        _config = DualRAGConfig(
            neo4j_uri=os.getenv("NEO4J_URI", "bolt://localhost:7687"),
            neo4j_user=os.getenv("NEO4J_USERNAME", os.getenv("NEO4J_USER", "neo4j")),
            neo4j_password=os.getenv("NEO4J_PASSWORD", "password"),
            neo4j_database=os.getenv("NEO4J_DATABASE") or None,
            graph_backend=graph_backend,
            qdrant_url=os.getenv("QDRANT_URL", "http://localhost:6333"),
            qdrant_api_key=os.getenv("QDRANT_API_KEY") or None,
            collection_prefix=os.getenv("COLLECTION_PREFIX", "source"),
            openai_api_key=os.getenv("OPENAI_API_KEY") or None,
            openai_base_url=os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1"),
            embedding_model=os.getenv("OPENAI_EMBEDDING_MODEL", "text-embedding-3-small"),
            llm_model=os.getenv("OPENAI_LLM_MODEL", "gpt-4"),
            chunk_size=_env_int("CHUNK_SIZE", 1000),
            chunk_overlap=_env_int("CHUNK_OVERLAP", 200),
            repo_chunk_size=_env_int("REPO_CHUNK_SIZE", 1500),
            repo_whole_file_limit=_env_int("REPO_WHOLE_FILE_LIMIT", 2000),
            extraction_concurrency=_env_int("EXTRACTION_CONCURRENCY", 3),
            graph_workers=_env_int("GRAPH_WORKERS", 2),
            graph_queue_size=_env_int("GRAPH_QUEUE_SIZE", 100),
            metadata_db_path=os.getenv("METADATA_DB_PATH", "data/dualrag/metadata.db"),
            github_token=os.getenv("GITHUB_TOKEN") or None,
            request_timeout=_env_int("REQUEST_TIMEOUT", 60),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )

        logger.info(
            f"dualrag config: graph_backend={_config.graph_backend}, "
            f"qdrant={_config.qdrant_url}, neo4j={_config.neo4j_uri}"
        )

    return _config


def reset_config() -> None:
    """Drop the cached configuration so the next get_config() re-reads env."""
    global _config
    _config = None
