"""规范图数据源"""

from .base import GraphSource
from .sqlite_source import SqliteGraphSource

__all__ = ["GraphSource", "SqliteGraphSource"]
