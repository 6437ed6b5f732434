"""
Neo4j 图镜像存储层

所有 Cypher 都集中在这里。每个节点和边都带 run_id，
每条查询都按 run_id 过滤；数值在此统一转换为 Python int。
"""

import math
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any, Protocol

from neo4j import AsyncDriver, AsyncGraphDatabase
from neo4j.exceptions import AuthError, DriverError, Neo4jError, ServiceUnavailable

from domains.core.exceptions import MirrorConnectionError, MirrorStoreError
from domains.core.logging_config import get_logger

from .models import MIRROR_STATE_NAME, MirrorCounts, RowKind, TraversalRow
from .settings import Neo4jConnectionConfig

logger = get_logger(__name__)


# ==================== Schema ====================

SCHEMA_CYPHER = (
    "CREATE CONSTRAINT mirror_note_run_path_unique IF NOT EXISTS "
    "FOR (n:MirrorNote) REQUIRE (n.run_id, n.path) IS UNIQUE",
    "CREATE CONSTRAINT mirror_target_run_target_unique IF NOT EXISTS "
    "FOR (t:MirrorTarget) REQUIRE (t.run_id, t.target) IS UNIQUE",
    "CREATE CONSTRAINT mirror_state_name_unique IF NOT EXISTS "
    "FOR (s:MirrorState) REQUIRE s.name IS UNIQUE",
)

# ==================== 批量写入 ====================

UPSERT_NOTES_CYPHER = """
UNWIND $rows AS row
MERGE (n:MirrorNote {run_id: $run_id, path: row.path})
SET n.note_id = row.note_id,
    n.created = row.created,
    n.title = row.title,
    n.summary = row.summary,
    n.entity = row.entity,
    n.layer = row.layer,
    n.status = row.status,
    n.updated = row.updated
"""

UPSERT_TARGETS_CYPHER = """
UNWIND $rows AS row
MERGE (t:MirrorTarget {run_id: $run_id, target: row.target})
"""

INSERT_TYPED_LINKS_CYPHER = """
UNWIND $rows AS row
MATCH (from:MirrorNote {run_id: $run_id, path: row.from_path})
MATCH (target:MirrorTarget {run_id: $run_id, target: row.target})
CREATE (from)-[:MIRROR_TYPED_LINK {
    run_id: $run_id,
    edge_key: row.edge_key,
    rel: row.rel,
    to_wikilink: row.to_wikilink,
    position: row.position
}]->(target)
"""

UPSERT_RESOLVED_LINKS_CYPHER = """
UNWIND $rows AS row
MATCH (target:MirrorTarget {run_id: $run_id, target: row.target})
MATCH (to:MirrorNote {run_id: $run_id, path: row.to_path})
MERGE (target)-[r:MIRROR_RESOLVES_TO {run_id: $run_id, to_path: row.to_path}]->(to)
SET r.matched_by = row.matched_by
"""

WRITE_CYPHER_BY_KIND = {
    RowKind.NOTES: UPSERT_NOTES_CYPHER,
    RowKind.TARGETS: UPSERT_TARGETS_CYPHER,
    RowKind.TYPED_LINKS: INSERT_TYPED_LINKS_CYPHER,
    RowKind.RESOLVED_LINKS: UPSERT_RESOLVED_LINKS_CYPHER,
}

# ==================== 计数与状态 ====================

READ_COUNTS_CYPHER = """
CALL {
    MATCH (n:MirrorNote {run_id: $run_id})
    RETURN count(n) AS notes
}
CALL {
    MATCH ()-[r:MIRROR_TYPED_LINK {run_id: $run_id}]->()
    RETURN count(r) AS typed_links
}
CALL {
    MATCH (t:MirrorTarget {run_id: $run_id})
    RETURN count(t) AS targets
}
CALL {
    MATCH ()-[r:MIRROR_RESOLVES_TO {run_id: $run_id}]->()
    RETURN count(r) AS resolved_links
}
RETURN notes, typed_links, targets, resolved_links
"""

READ_STATE_CYPHER = """
MATCH (s:MirrorState {name: $name})
RETURN s.active_run_id AS active_run_id,
       s.status AS status,
       s.last_success_at AS last_success_at,
       s.last_error AS last_error,
       s.last_error_at AS last_error_at
LIMIT 1
"""

# 切换: 单条语句原子地更新单例节点
MARK_ACTIVE_CYPHER = """
MERGE (s:MirrorState {name: $name})
SET s.active_run_id = $run_id,
    s.status = 'ok',
    s.last_success_at = $at,
    s.last_error = null,
    s.last_error_at = null
"""

# 不触碰 active_run_id
MARK_ERROR_CYPHER = """
MERGE (s:MirrorState {name: $name})
SET s.status = 'error',
    s.last_error = $message,
    s.last_error_at = $at
"""

# ==================== 遍历 ====================

SEED_EXISTS_CYPHER = """
MATCH (n:MirrorNote {run_id: $run_id, path: $path})
RETURN n.path AS path
LIMIT 1
"""

OUTGOING_CYPHER = """
MATCH (from:MirrorNote {run_id: $run_id, path: $path})
      -[edge:MIRROR_TYPED_LINK {run_id: $run_id}]->
      (target:MirrorTarget {run_id: $run_id})
OPTIONAL MATCH (target)-[:MIRROR_RESOLVES_TO {run_id: $run_id}]->(to:MirrorNote {run_id: $run_id})
WITH from, edge, target, to
WHERE to IS NOT NULL OR $include_unresolved
RETURN from.path AS from_path,
       to.path AS to_path,
       edge.rel AS rel,
       target.target AS target,
       edge.to_wikilink AS to_wikilink,
       edge.position AS position
ORDER BY position, rel, target, to_path
LIMIT $limit
"""

INCOMING_CYPHER = """
MATCH (target:MirrorTarget {run_id: $run_id})
      -[:MIRROR_RESOLVES_TO {run_id: $run_id}]->
      (to:MirrorNote {run_id: $run_id, path: $path})
MATCH (from:MirrorNote {run_id: $run_id})-[edge:MIRROR_TYPED_LINK {run_id: $run_id}]->(target)
RETURN from.path AS from_path,
       to.path AS to_path,
       edge.rel AS rel,
       target.target AS target,
       edge.to_wikilink AS to_wikilink,
       edge.position AS position
ORDER BY from_path, position, rel, target
LIMIT $limit
"""

# ==================== 清理 ====================

LIST_RUN_IDS_CYPHER = """
MATCH (n:MirrorNote)
RETURN DISTINCT n.run_id AS run_id
UNION
MATCH (t:MirrorTarget)
RETURN DISTINCT t.run_id AS run_id
"""

DELETE_RUN_BATCH_CYPHER = """
MATCH (n {run_id: $run_id})
WHERE n:MirrorNote OR n:MirrorTarget
WITH n LIMIT $limit
DETACH DELETE n
RETURN count(*) AS deleted
"""


# ==================== 边界转换 ====================


def to_int(value: Any) -> int:
    """
    把驱动返回的数值统一转换为 int

    所有跨越存储边界的计数都经过这里。
    """
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else 0
    if isinstance(value, str):
        try:
            return int(value.strip(), 10)
        except ValueError:
            return 0
    if value is not None and hasattr(value, "__int__"):
        return int(value)
    return 0


def _str_or_empty(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _str_or_none(value: Any) -> str | None:
    return value if isinstance(value, str) else None


def _record_to_row(record: dict[str, Any]) -> TraversalRow:
    return TraversalRow(
        from_path=_str_or_empty(record.get("from_path")),
        to_path=_str_or_none(record.get("to_path")),
        rel=_str_or_empty(record.get("rel")),
        target=_str_or_empty(record.get("target")),
        to_wikilink=_str_or_empty(record.get("to_wikilink")),
    )


class MirrorStore(Protocol):
    """镜像存储接口（Neo4j 实现与测试用内存实现共用）"""

    async def ensure_schema(self) -> None: ...

    async def write_rows(self, kind: RowKind, run_id: str, rows: list[dict[str, Any]]) -> None: ...

    async def read_counts(self, run_id: str) -> MirrorCounts: ...

    async def read_state(self) -> dict[str, Any] | None: ...

    async def mark_active(self, run_id: str, at: str) -> None: ...

    async def mark_error(self, message: str, at: str) -> None: ...

    async def note_exists(self, run_id: str, path: str) -> bool: ...

    async def query_outgoing(
        self, run_id: str, path: str, limit: int, include_unresolved: bool = False
    ) -> list[TraversalRow]: ...

    async def query_incoming(self, run_id: str, path: str, limit: int) -> list[TraversalRow]: ...

    async def list_run_ids(self) -> list[str]: ...

    async def delete_run(self, run_id: str, batch_size: int = 1000) -> int: ...


class Neo4jMirrorStore:
    """
    Neo4j 图镜像存储

    使用异步驱动，每次操作一个 session、一个事务。
    通过 open_mirror_store() 获取已校验连通性的实例。
    """

    def __init__(self, config: Neo4jConnectionConfig, driver: AsyncDriver | None = None):
        self._config = config
        self._driver = driver

    @property
    def config(self) -> Neo4jConnectionConfig:
        return self._config

    async def connect(self) -> None:
        """创建驱动并校验连通性"""
        if self._driver is None:
            self._driver = AsyncGraphDatabase.driver(
                self._config.uri,
                auth=(self._config.username, self._config.password),
                max_connection_lifetime=3600,
            )
        try:
            await self._driver.verify_connectivity()
        except (ServiceUnavailable, AuthError, DriverError, Neo4jError, OSError) as e:
            await self.close()
            raise MirrorConnectionError(self._config.uri, str(e), cause=e) from e
        logger.debug("neo4j_connected", uri=self._config.uri, database=self._config.database)

    async def close(self) -> None:
        """关闭驱动"""
        if self._driver is not None:
            driver, self._driver = self._driver, None
            try:
                await driver.close()
            except (DriverError, OSError) as e:
                logger.warning("neo4j_close_failed", error=str(e))

    def _require_driver(self) -> AsyncDriver:
        if self._driver is None:
            raise MirrorStoreError("session", "驱动未连接，请先调用 connect()")
        return self._driver

    async def _write(self, operation: str, cypher: str, **params: Any) -> None:
        async def work(tx):
            result = await tx.run(cypher, params)
            await result.consume()

        driver = self._require_driver()
        try:
            async with driver.session(database=self._config.database) as session:
                await session.execute_write(work)
        except (Neo4jError, DriverError, OSError) as e:
            raise MirrorStoreError(operation, str(e), cause=e) from e

    async def _read(self, operation: str, cypher: str, **params: Any) -> list[dict[str, Any]]:
        async def work(tx):
            result = await tx.run(cypher, params)
            return await result.data()

        driver = self._require_driver()
        try:
            async with driver.session(database=self._config.database) as session:
                return await session.execute_read(work)
        except (Neo4jError, DriverError, OSError) as e:
            raise MirrorStoreError(operation, str(e), cause=e) from e

    # ==================== Schema ====================

    async def ensure_schema(self) -> None:
        """创建唯一约束（幂等）"""
        for cypher in SCHEMA_CYPHER:
            await self._write("ensure_schema", cypher)

    # ==================== 写入 ====================

    async def write_rows(self, kind: RowKind, run_id: str, rows: list[dict[str, Any]]) -> None:
        """在单个事务中写入一批行"""
        await self._write(f"write_{kind.value}", WRITE_CYPHER_BY_KIND[kind], rows=rows, run_id=run_id)

    # ==================== 计数与状态 ====================

    async def read_counts(self, run_id: str) -> MirrorCounts:
        records = await self._read("read_counts", READ_COUNTS_CYPHER, run_id=run_id)
        if not records:
            return MirrorCounts()
        row = records[0]
        return MirrorCounts(
            notes=to_int(row.get("notes")),
            typed_links=to_int(row.get("typed_links")),
            targets=to_int(row.get("targets")),
            resolved_links=to_int(row.get("resolved_links")),
        )

    async def read_state(self) -> dict[str, Any] | None:
        records = await self._read("read_state", READ_STATE_CYPHER, name=MIRROR_STATE_NAME)
        return records[0] if records else None

    async def mark_active(self, run_id: str, at: str) -> None:
        await self._write("mark_active", MARK_ACTIVE_CYPHER, name=MIRROR_STATE_NAME, run_id=run_id, at=at)

    async def mark_error(self, message: str, at: str) -> None:
        await self._write("mark_error", MARK_ERROR_CYPHER, name=MIRROR_STATE_NAME, message=message, at=at)

    # ==================== 遍历 ====================

    async def note_exists(self, run_id: str, path: str) -> bool:
        records = await self._read("seed_check", SEED_EXISTS_CYPHER, run_id=run_id, path=path)
        return len(records) > 0

    async def query_outgoing(
        self, run_id: str, path: str, limit: int, include_unresolved: bool = False
    ) -> list[TraversalRow]:
        """未解析目标在查询内过滤，LIMIT 只计算可能成为边的行"""
        records = await self._read(
            "query_outgoing",
            OUTGOING_CYPHER,
            run_id=run_id,
            path=path,
            limit=limit,
            include_unresolved=include_unresolved,
        )
        return [_record_to_row(r) for r in records]

    async def query_incoming(self, run_id: str, path: str, limit: int) -> list[TraversalRow]:
        records = await self._read("query_incoming", INCOMING_CYPHER, run_id=run_id, path=path, limit=limit)
        return [_record_to_row(r) for r in records]

    # ==================== 清理 ====================

    async def list_run_ids(self) -> list[str]:
        records = await self._read("list_run_ids", LIST_RUN_IDS_CYPHER)
        return sorted({r["run_id"] for r in records if isinstance(r.get("run_id"), str)})

    async def delete_run(self, run_id: str, batch_size: int = 1000) -> int:
        """分批删除某个运行的全部节点（连同其边）"""
        total = 0
        while True:
            deleted = await self._delete_batch(run_id, batch_size)
            total += deleted
            if deleted < batch_size:
                return total

    async def _delete_batch(self, run_id: str, limit: int) -> int:
        async def work(tx):
            result = await tx.run(DELETE_RUN_BATCH_CYPHER, {"run_id": run_id, "limit": limit})
            record = await result.single()
            return to_int(record["deleted"]) if record else 0

        driver = self._require_driver()
        try:
            async with driver.session(database=self._config.database) as session:
                return await session.execute_write(work)
        except (Neo4jError, DriverError, OSError) as e:
            raise MirrorStoreError("delete_run", str(e), cause=e) from e


@asynccontextmanager
async def open_mirror_store(config: Neo4jConnectionConfig) -> AsyncIterator[Neo4jMirrorStore]:
    """
    打开镜像存储的上下文管理器

    Yields:
        已校验连通性的 Neo4jMirrorStore，退出时关闭驱动
    """
    store = Neo4jMirrorStore(config)
    await store.connect()
    try:
        yield store
    finally:
        await store.close()


__all__ = [
    "MirrorStore",
    "Neo4jMirrorStore",
    "open_mirror_store",
    "to_int",
]
