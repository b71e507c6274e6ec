"""
Source Metadata Store

SQLite persistence for sources and their index metadata.
Features:
- One connection held between open() and close()
- Status changes checked against the source state machine
- Owner-scoped lookups, listing and cascading delete
"""

import logging
import os
from typing import List, Optional, Tuple

import aiosqlite

from .errors import DependencyError, InvalidTransitionError, SourceNotFoundError
from .models import (
    ALLOWED_TRANSITIONS,
    GraphMetadata,
    Source,
    SourceStatus,
    SourceType,
    VectorIndexMetadata,
    utc_now,
)

logger = logging.getLogger(__name__)


class MetadataStore:
    """
    Stores Source rows plus VectorIndexMetadata and GraphMetadata rows.

    The Source row is the synchronization point between the request path and
    background graph builds.
    """

    def __init__(self, db_path: str = "data/dualrag/metadata.db"):
        self.db_path = db_path
        self._db: Optional[aiosqlite.Connection] = None

    @property
    def db(self) -> aiosqlite.Connection:
        if self._db is None:
            raise DependencyError("metadata", "store is not open")
        return self._db

    async def open(self) -> None:
        """Open the connection and create the schema"""
        if self._db is not None:
            return

        directory = os.path.dirname(self.db_path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        self._db = await aiosqlite.connect(self.db_path)
        self._db.row_factory = aiosqlite.Row
        await self._db.execute("PRAGMA foreign_keys = ON")

        await self._db.execute("""
            CREATE TABLE IF NOT EXISTS sources (
                id TEXT PRIMARY KEY,
                title TEXT NOT NULL,
                source_type TEXT NOT NULL,
                owner_id TEXT NOT NULL,
                status TEXT NOT NULL DEFAULT 'uploaded',
                file_path TEXT,
                file_url TEXT,
                repo_url TEXT,
                branch TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        """)

        await self._db.execute("""
            CREATE TABLE IF NOT EXISTS vector_index_metadata (
                source_id TEXT PRIMARY KEY,
                provider TEXT NOT NULL,
                collection_name TEXT NOT NULL,
                indexed_at TEXT NOT NULL,
                FOREIGN KEY (source_id) REFERENCES sources(id) ON DELETE CASCADE
            )
        """)

        await self._db.execute("""
            CREATE TABLE IF NOT EXISTS graph_metadata (
                source_id TEXT PRIMARY KEY,
                entity_count INTEGER DEFAULT 0,
                relation_count INTEGER DEFAULT 0,
                built_at TEXT NOT NULL,
                FOREIGN KEY (source_id) REFERENCES sources(id) ON DELETE CASCADE
            )
        """)

        await self._db.execute("CREATE INDEX IF NOT EXISTS idx_sources_owner ON sources(owner_id)")
        await self._db.execute("CREATE INDEX IF NOT EXISTS idx_sources_status ON sources(status)")
        await self._db.commit()

        logger.info(f"Metadata store opened at {self.db_path}")

    async def close(self) -> None:
        if self._db is not None:
            await self._db.close()
            self._db = None
            logger.info("Metadata store closed")

    # Sources

    async def create_source(self, source: Source) -> Source:
        now = utc_now()
        source.created_at = source.created_at or now
        source.updated_at = now

        await self.db.execute("""
            INSERT INTO sources (
                id, title, source_type, owner_id, status,
                file_path, file_url, repo_url, branch, created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """, (
            source.id, source.title, source.source_type.value, source.owner_id,
            source.status.value, source.file_path, source.file_url,
            source.repo_url, source.branch, source.created_at, source.updated_at
        ))
        await self.db.commit()

        logger.info(f"Created source {source.id} ({source.source_type.value}) for owner {source.owner_id}")
        return source

    async def get_source(self, source_id: str, owner_id: Optional[str] = None) -> Optional[Source]:
        """Get a source, optionally only if owned by owner_id"""
        if owner_id is None:
            cursor = await self.db.execute("SELECT * FROM sources WHERE id = ?", (source_id,))
        else:
            cursor = await self.db.execute(
                "SELECT * FROM sources WHERE id = ? AND owner_id = ?",
                (source_id, owner_id)
            )
        row = await cursor.fetchone()
        return Source.from_dict(dict(row)) if row else None

    async def list_sources(
        self,
        owner_id: str,
        source_type: Optional[SourceType] = None,
        page: int = 1,
        limit: int = 10
    ) -> List[Source]:
        page = max(1, page)
        limit = max(1, limit)
        conditions = ["owner_id = ?"]
        params: list = [owner_id]

        if source_type:
            conditions.append("source_type = ?")
            params.append(SourceType(source_type).value)

        cursor = await self.db.execute(
            f"SELECT * FROM sources WHERE {' AND '.join(conditions)} "
            f"ORDER BY created_at DESC, id ASC LIMIT ? OFFSET ?",
            params + [limit, (page - 1) * limit]
        )
        rows = await cursor.fetchall()
        return [Source.from_dict(dict(row)) for row in rows]

    async def update_status(self, source_id: str, status: SourceStatus) -> Source:
        """Move a source to a new status, enforcing allowed transitions"""
        status = SourceStatus(status)
        source = await self.get_source(source_id)
        if source is None:
            raise SourceNotFoundError(source_id)

        if status not in ALLOWED_TRANSITIONS[source.status]:
            raise InvalidTransitionError(source_id, source.status.value, status.value)

        now = utc_now()
        cursor = await self.db.execute(
            "UPDATE sources SET status = ?, updated_at = ? WHERE id = ? AND status = ?",
            (status.value, now, source_id, source.status.value)
        )
        await self.db.commit()

        if cursor.rowcount == 0:
            # Changed or removed underneath us
            current = await self.get_source(source_id)
            if current is None:
                raise SourceNotFoundError(source_id)
            raise InvalidTransitionError(source_id, current.status.value, status.value)

        logger.info(f"Source {source_id}: {source.status.value} -> {status.value}")
        source.status = status
        source.updated_at = now
        return source

    # Index metadata

    async def save_vector_metadata(self, metadata: VectorIndexMetadata) -> VectorIndexMetadata:
        metadata.indexed_at = metadata.indexed_at or utc_now()
        await self.db.execute("""
            INSERT INTO vector_index_metadata (source_id, provider, collection_name, indexed_at)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(source_id) DO UPDATE SET
                provider = excluded.provider,
                collection_name = excluded.collection_name,
                indexed_at = excluded.indexed_at
        """, (metadata.source_id, metadata.provider, metadata.collection_name, metadata.indexed_at))
        await self.db.commit()
        return metadata

    async def get_vector_metadata(self, source_id: str) -> Optional[VectorIndexMetadata]:
        cursor = await self.db.execute(
            "SELECT * FROM vector_index_metadata WHERE source_id = ?", (source_id,)
        )
        row = await cursor.fetchone()
        return VectorIndexMetadata(**dict(row)) if row else None

    async def save_graph_metadata(self, metadata: GraphMetadata) -> GraphMetadata:
        metadata.built_at = metadata.built_at or utc_now()
        await self.db.execute("""
            INSERT INTO graph_metadata (source_id, entity_count, relation_count, built_at)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(source_id) DO UPDATE SET
                entity_count = excluded.entity_count,
                relation_count = excluded.relation_count,
                built_at = excluded.built_at
        """, (metadata.source_id, metadata.entity_count, metadata.relation_count, metadata.built_at))
        await self.db.commit()
        return metadata

    async def get_graph_metadata(self, source_id: str) -> Optional[GraphMetadata]:
        cursor = await self.db.execute(
            "SELECT * FROM graph_metadata WHERE source_id = ?", (source_id,)
        )
        row = await cursor.fetchone()
        return GraphMetadata(**dict(row)) if row else None

    # Deletion

    async def delete_source(
        self,
        source_id: str,
        owner_id: str
    ) -> Tuple[Source, Optional[VectorIndexMetadata]]:
        """
        Delete an owned source and both metadata rows in one transaction.

        Returns the deleted source and its vector metadata (if any) so the
        caller can clean external stores.

        Raises:
            SourceNotFoundError: absent or owned by someone else
        """
        source = await self.get_source(source_id, owner_id)
        if source is None:
            raise SourceNotFoundError(source_id)

        vector_metadata = await self.get_vector_metadata(source_id)

        try:
            await self.db.execute("DELETE FROM vector_index_metadata WHERE source_id = ?", (source_id,))
            await self.db.execute("DELETE FROM graph_metadata WHERE source_id = ?", (source_id,))
            await self.db.execute(
                "DELETE FROM sources WHERE id = ? AND owner_id = ?", (source_id, owner_id)
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(f"Deleted source {source_id} and its metadata rows")
        return source, vector_metadata
