"""
Source records and index metadata.

Sources move through a small state machine:
    uploaded -> indexing -> indexed
    uploaded -> failed
    indexing -> failed
"""

from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, FrozenSet, Mapping, Optional


class SourceType(str, Enum):
    """Kinds of ingested content"""
    FILE = "file"
    REPO = "repo"


class SourceStatus(str, Enum):
    """Source indexing status"""
    UPLOADED = "uploaded"
    INDEXING = "indexing"
    INDEXED = "indexed"
    FAILED = "failed"


ALLOWED_TRANSITIONS: Mapping[SourceStatus, FrozenSet[SourceStatus]] = {
    SourceStatus.UPLOADED: frozenset({SourceStatus.INDEXING, SourceStatus.FAILED}),
    SourceStatus.INDEXING: frozenset({SourceStatus.INDEXED, SourceStatus.FAILED}),
    SourceStatus.INDEXED: frozenset(),
    SourceStatus.FAILED: frozenset(),
}


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class Source:
    """One ingested file or repository"""
    id: str
    title: str
    source_type: SourceType
    owner_id: str
    status: SourceStatus = SourceStatus.UPLOADED
    # Origin
    file_path: Optional[str] = None
    file_url: Optional[str] = None
    repo_url: Optional[str] = None
    branch: Optional[str] = None
    # Timestamps
    created_at: str = ""
    updated_at: str = ""

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['source_type'] = self.source_type.value
        data['status'] = self.status.value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Source':
        data = dict(data)
        data['source_type'] = SourceType(data['source_type'])
        data['status'] = SourceStatus(data['status'])
        return cls(**data)


@dataclass
class VectorIndexMetadata:
    """Record of a successful vector index for one source"""
    source_id: str
    provider: str
    collection_name: str
    indexed_at: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class GraphMetadata:
    """Record of a completed graph build for one source"""
    source_id: str
    entity_count: int = 0
    relation_count: int = 0
    built_at: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
