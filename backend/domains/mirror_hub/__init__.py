"""
Mirror Hub - 笔记图 Neo4j 镜像

将规范的关系型笔记图（笔记、类型链接、链接目标、解析结果）
全量镜像到 Neo4j，并在镜像上提供有界遍历查询。

- 每次同步写入新的运行 (run)，校验一致后原子切换
- 遍历只读取当前激活运行
"""

from .core import (
    MirrorState,
    MirrorStatus,
    Neo4jConnectionConfig,
    SyncSummary,
    TraversalDirection,
    TraversalOptions,
    TraversalResult,
)
from .services import (
    MirrorService,
    read_mirror_status,
    sync_graph_to_mirror,
    traverse_mirror,
)

__all__ = [
    "MirrorState",
    "MirrorStatus",
    "Neo4jConnectionConfig",
    "SyncSummary",
    "TraversalDirection",
    "TraversalOptions",
    "TraversalResult",
    "MirrorService",
    "read_mirror_status",
    "sync_graph_to_mirror",
    "traverse_mirror",
]
