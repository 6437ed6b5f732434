"""
SQLite 规范图数据源

通过 SQLAlchemy 读取索引器维护的 notes / typed_links 表。
"""

from typing import Optional

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from domains.core.exceptions import ExternalServiceError
from domains.core.logging_config import get_logger

from ..core.models import GraphCounts, NoteRow, ResolvedTarget, TypedLinkRow, clamp_int
from .base import GraphSource

logger = get_logger(__name__)

LIST_NOTES_SQL = text("""
    SELECT path, note_id, created, title, summary, entity, layer, status, updated
    FROM notes
    ORDER BY path
""")

LIST_TYPED_LINKS_SQL = text("""
    SELECT from_path, rel, to_target, to_wikilink, position
    FROM typed_links
    ORDER BY from_path, position, rel, to_target
""")

COUNT_NOTES_SQL = text("SELECT COUNT(*) FROM notes")
COUNT_TYPED_LINKS_SQL = text("SELECT COUNT(*) FROM typed_links")

MATCH_BY_PATH_SQL = text("""
    SELECT path FROM notes
    WHERE path = :target OR path LIKE :suffix
    ORDER BY path
    LIMIT :limit
""")

MATCH_BY_NOTE_ID_SQL = text("""
    SELECT path FROM notes
    WHERE note_id = :target
    ORDER BY path
    LIMIT :limit
""")

MATCH_BY_TITLE_SQL = text("""
    SELECT path FROM notes
    WHERE title = :target
    ORDER BY path
    LIMIT :limit
""")


def split_target(target: str) -> tuple[str, str]:
    """返回 (去掉 .md 的目标, 带 .md 的目标)"""
    if target.lower().endswith(".md"):
        return target[:-3], target
    return target, f"{target}.md"


class SqliteGraphSource(GraphSource):
    """
    SQLite 数据源

    解析顺序: 路径匹配 -> note_id -> title，按 path 去重。
    """

    def __init__(self, database_url: str, engine: Optional[Engine] = None):
        self.database_url = database_url
        self._engine = engine

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            self._engine = create_engine(self.database_url)
        return self._engine

    def close(self):
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None

    def _fetch(self, statement, **params) -> list:
        try:
            with self.engine.connect() as conn:
                return list(conn.execute(statement, params))
        except SQLAlchemyError as e:
            logger.warning("sqlite_query_failed", error=str(e))
            raise ExternalServiceError("SQLite", str(e), cause=e) from e

    def list_notes_for_sync(self) -> list[NoteRow]:
        return [
            NoteRow(
                path=row.path,
                note_id=row.note_id,
                created=row.created,
                title=row.title,
                summary=row.summary,
                entity=row.entity,
                layer=row.layer,
                status=row.status,
                updated=row.updated,
            )
            for row in self._fetch(LIST_NOTES_SQL)
        ]

    def list_typed_links_for_sync(self) -> list[TypedLinkRow]:
        return [
            TypedLinkRow(
                from_path=row.from_path,
                rel=row.rel,
                to_target=row.to_target,
                to_wikilink=row.to_wikilink,
                position=int(row.position),
            )
            for row in self._fetch(LIST_TYPED_LINKS_SQL)
        ]

    def get_graph_counts(self) -> GraphCounts:
        notes = self._fetch(COUNT_NOTES_SQL)[0][0]
        typed_links = self._fetch(COUNT_TYPED_LINKS_SQL)[0][0]
        return GraphCounts(notes=int(notes), typed_links=int(typed_links))

    def resolve_paths_by_target(self, target: str, limit: int = 20) -> list[ResolvedTarget]:
        trimmed = (target or "").strip()
        if not trimmed:
            return []

        limit = clamp_int(limit, 20, 1, 200)
        without_ext, with_ext = split_target(trimmed)

        candidates = (
            ("path", self._fetch(MATCH_BY_PATH_SQL, target=with_ext, suffix=f"%/{with_ext}", limit=limit)),
            ("note_id", self._fetch(MATCH_BY_NOTE_ID_SQL, target=without_ext, limit=limit)),
            ("title", self._fetch(MATCH_BY_TITLE_SQL, target=without_ext, limit=limit)),
        )

        resolved: list[ResolvedTarget] = []
        seen: set[str] = set()
        for matched_by, rows in candidates:
            for row in rows:
                if row.path in seen:
                    continue
                seen.add(row.path)
                resolved.append(ResolvedTarget(path=row.path, matched_by=matched_by))
                if len(resolved) >= limit:
                    return resolved
        return resolved


__all__ = ["SqliteGraphSource", "split_target"]
