"""
Neo4j Graph Store

Source-scoped knowledge graph on Neo4j using the async bolt driver.
Features:
- MERGE-based idempotent writes keyed per source
- Source-scoped DETACH DELETE
- Anchor ranking in Cypher
- Bounded expansion with one precompiled query per allowed depth
"""

import logging
from collections import Counter
from typing import Any, Dict, List, Optional, Sequence

from neo4j import AsyncDriver, AsyncGraphDatabase, RoutingControl
from neo4j.exceptions import DriverError, Neo4jError

from .base import (
    AnchorMatch,
    GraphPath,
    GraphStore,
    MAX_HOP_DEPTH,
    MAX_PATHS_PER_ANCHOR,
    MIN_HOP_DEPTH,
    NodeRef,
    PathEdge,
    validate_hop_depth,
    validate_predicate,
)
from ..errors import DependencyError

logger = logging.getLogger(__name__)


SCHEMA_QUERIES = [
    "CREATE INDEX source_id IF NOT EXISTS FOR (s:Source) ON (s.id)",
    "CREATE INDEX entity_key IF NOT EXISTS FOR (e:Entity) ON (e.name, e.sourceId)",
    "CREATE INDEX entity_source IF NOT EXISTS FOR (e:Entity) ON (e.sourceId)",
    "CREATE INDEX file_key IF NOT EXISTS FOR (f:File) ON (f.path, f.sourceId)",
]

MERGE_SOURCE_QUERY = """
MERGE (s:Source {id: $source_id})
SET s.sourceType = $source_type
"""

MERGE_FILE_QUERY = """
MERGE (f:File {path: $path, sourceId: $source_id})
SET f.language = $language, f.fileType = $file_type
WITH f
MATCH (s:Source {id: $source_id})
MERGE (s)-[:HAS_FILE]->(f)
"""

MERGE_ENTITY_QUERY = """
MERGE (e:Entity {name: $name, sourceId: $source_id})
SET e.type = $type
"""

MERGE_MENTION_QUERY = """
MATCH (f:File {path: $path, sourceId: $source_id})
MATCH (e:Entity {name: $name, sourceId: $source_id})
MERGE (f)-[:MENTIONS]->(e)
"""

# Relationship types cannot be parameters; the predicate is validated as a
# plain upper-case identifier before it is placed between backticks
MERGE_RELATIONSHIP_TEMPLATE = """
MATCH (a:Entity {name: $from_name, sourceId: $source_id})
MATCH (b:Entity {name: $to_name, sourceId: $source_id})
MERGE (a)-[r:`__PREDICATE__` {sourceId: $source_id}]->(b)
RETURN count(r) AS merged
"""

DELETE_SCOPE_QUERY = """
MATCH (n)
WHERE (n:Entity OR n:File) AND n.sourceId = $source_id
DETACH DELETE n
RETURN count(n) AS deleted
"""

DELETE_SOURCE_NODE_QUERY = """
MATCH (s:Source {id: $source_id})
DETACH DELETE s
"""

FIND_ANCHORS_QUERY = """
MATCH (anchor:Entity)
WHERE anchor.sourceId IN $source_ids
  AND (
    toLower(anchor.name) CONTAINS toLower($query)
    OR toLower(coalesce(anchor.type, '')) CONTAINS toLower($query)
  )
WITH anchor,
  CASE
    WHEN toLower(anchor.name) = toLower($query) THEN 3
    WHEN toLower(anchor.name) STARTS WITH toLower($query) THEN 2
    ELSE 1
  END AS matchScore
ORDER BY matchScore DESC, anchor.name ASC, anchor.sourceId ASC
LIMIT $limit
OPTIONAL MATCH (f:File)-[:MENTIONS]->(anchor)
WHERE f.sourceId IN $source_ids
WITH anchor, matchScore, min(f.path) AS filePath
RETURN anchor.name AS name, anchor.type AS type, anchor.sourceId AS sourceId,
       matchScore, filePath
ORDER BY matchScore DESC, name ASC, sourceId ASC
"""

_EXPAND_TEMPLATE = """
UNWIND $anchors AS a
MATCH (anchor:Entity {name: a.name, sourceId: a.sourceId})
CALL {
  WITH anchor
  MATCH path = (anchor)-[*1..__DEPTH__]-(:Entity)
  WHERE ALL(n IN nodes(path) WHERE n:Entity AND n.sourceId IN $source_ids)
  RETURN path
  ORDER BY length(path) ASC
  LIMIT $max_paths_per_anchor
}
WITH a, path
ORDER BY a.rank ASC, length(path) ASC
RETURN a.name AS anchorName, a.sourceId AS anchorSourceId,
       [r IN relationships(path) | {
         id: elementId(r),
         predicate: type(r),
         subjectName: startNode(r).name,
         subjectType: startNode(r).type,
         objectName: endNode(r).name,
         objectType: endNode(r).type
       }] AS edges
"""

# One fixed query per allowed depth, selected by validated integer
EXPAND_QUERIES: Dict[int, str] = {
    depth: _EXPAND_TEMPLATE.replace("__DEPTH__", str(depth))
    for depth in range(MIN_HOP_DEPTH, MAX_HOP_DEPTH + 1)
}


class Neo4jGraphStore(GraphStore):
    """Graph store backed by Neo4j"""

    def __init__(
        self,
        uri: str = "bolt://localhost:7687",
        user: str = "neo4j",
        password: str = "password",
        database: Optional[str] = None,
        max_paths_per_anchor: int = MAX_PATHS_PER_ANCHOR
    ):
        self.uri = uri
        self.user = user
        self.password = password
        self.database = database
        self.max_paths_per_anchor = max_paths_per_anchor
        self._driver: Optional[AsyncDriver] = None

    async def connect(self) -> bool:
        """Connect to Neo4j and create indexes"""
        try:
            self._driver = AsyncGraphDatabase.driver(self.uri, auth=(self.user, self.password))
            await self._driver.verify_connectivity()
            for query in SCHEMA_QUERIES:
                await self._run(query)
            logger.info(f"Connected to Neo4j at {self.uri}")
            return True
        except Exception as e:
            logger.error(f"Failed to connect to Neo4j: {e}")
            return False

    async def close(self) -> None:
        if self._driver:
            await self._driver.close()
            self._driver = None
        logger.info("Disconnected from Neo4j")

    async def _run(
        self,
        query: str,
        parameters: Optional[Dict[str, Any]] = None,
        read: bool = False
    ) -> List[Any]:
        if self._driver is None:
            raise DependencyError("neo4j", "store is not connected")
        try:
            result = await self._driver.execute_query(
                query,
                parameters_=parameters or {},
                routing_=RoutingControl.READ if read else RoutingControl.WRITE,
                database_=self.database,
            )
        except (Neo4jError, DriverError) as e:
            raise DependencyError("neo4j", str(e), e) from e
        return result.records

    # Writes

    async def merge_source(self, source_id: str, source_type: str) -> None:
        await self._run(MERGE_SOURCE_QUERY, {"source_id": source_id, "source_type": source_type})

    async def merge_file(self, source_id: str, path: str, language: str, file_type: str) -> None:
        await self._run(MERGE_FILE_QUERY, {
            "source_id": source_id,
            "path": path,
            "language": language,
            "file_type": file_type,
        })

    async def merge_entity(self, source_id: str, name: str, entity_type: str) -> None:
        await self._run(MERGE_ENTITY_QUERY, {"source_id": source_id, "name": name, "type": entity_type})

    async def merge_relationship(
        self,
        source_id: str,
        from_name: str,
        to_name: str,
        predicate: str
    ) -> bool:
        query = MERGE_RELATIONSHIP_TEMPLATE.replace("__PREDICATE__", validate_predicate(predicate))
        records = await self._run(query, {
            "source_id": source_id,
            "from_name": from_name,
            "to_name": to_name,
        })
        return bool(records) and records[0]["merged"] > 0

    async def merge_mention(self, source_id: str, path: str, entity_name: str) -> None:
        await self._run(MERGE_MENTION_QUERY, {"source_id": source_id, "path": path, "name": entity_name})

    async def delete_by_source(self, source_id: str) -> int:
        records = await self._run(DELETE_SCOPE_QUERY, {"source_id": source_id})
        await self._run(DELETE_SOURCE_NODE_QUERY, {"source_id": source_id})
        deleted = records[0]["deleted"] if records else 0
        logger.info(f"Deleted {deleted} graph nodes for source {source_id}")
        return deleted

    # Reads

    async def find_anchors(
        self,
        query: str,
        source_ids: Sequence[str],
        limit: int
    ) -> List[AnchorMatch]:
        records = await self._run(FIND_ANCHORS_QUERY, {
            "query": query,
            "source_ids": [str(s) for s in source_ids],
            "limit": limit,
        }, read=True)

        return [
            AnchorMatch(
                name=record["name"],
                type=record["type"],
                source_id=record["sourceId"],
                match_score=record["matchScore"],
                defined_in=record["filePath"],
            )
            for record in records
        ]

    async def expand(
        self,
        anchors: Sequence[AnchorMatch],
        source_ids: Sequence[str],
        hop_depth: int
    ) -> List[GraphPath]:
        query = EXPAND_QUERIES[validate_hop_depth(hop_depth)]
        if not anchors:
            return []

        records = await self._run(query, {
            "anchors": [
                {"name": anchor.name, "sourceId": anchor.source_id, "rank": rank}
                for rank, anchor in enumerate(anchors)
            ],
            "source_ids": [str(s) for s in source_ids],
            "max_paths_per_anchor": self.max_paths_per_anchor,
        }, read=True)

        paths = [
            GraphPath(
                anchor_name=record["anchorName"],
                anchor_source_id=record["anchorSourceId"],
                edges=[
                    PathEdge(
                        edge_id=edge["id"],
                        subject=NodeRef(edge["subjectName"], edge["subjectType"]),
                        predicate=edge["predicate"],
                        object=NodeRef(edge["objectName"], edge["objectType"]),
                    )
                    for edge in record["edges"]
                ],
            )
            for record in records
        ]

        per_anchor = Counter((path.anchor_name, path.anchor_source_id) for path in paths)
        for (name, source_id), count in per_anchor.items():
            if count >= self.max_paths_per_anchor:
                logger.warning(
                    f"Expansion from {name} in {source_id} hit the {self.max_paths_per_anchor} path cap, "
                    f"farther relations are omitted"
                )
        return paths
