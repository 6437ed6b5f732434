"""Dependency injection for FastAPI routes.

测试时通过 app.dependency_overrides 替换 get_mirror_service。
"""

from functools import lru_cache

from app.core.config import get_settings
from domains.mirror_hub.services import MirrorService
from domains.mirror_hub.source import SqliteGraphSource


@lru_cache
def get_graph_source() -> SqliteGraphSource:
    """Get SqliteGraphSource singleton instance."""
    return SqliteGraphSource(get_settings().SOURCE_DATABASE_URL)


def get_mirror_service() -> MirrorService:
    """Get MirrorService bound to the canonical source."""
    return MirrorService(get_graph_source())
