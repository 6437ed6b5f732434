"""
Mirror Hub 核心层

数据模型、配置、存储以及批量写入、运行管理、一致性校验。
"""

from .batch import BatchWriter
from .consistency import describe_mismatch, is_consistent
from .models import (
    GraphCounts,
    MirrorCounts,
    MirrorState,
    MirrorStatus,
    NoteRow,
    ResolvedTarget,
    RowKind,
    StatusSummary,
    SyncOptions,
    SyncSummary,
    TraversalDirection,
    TraversalEdge,
    TraversalNode,
    TraversalOptions,
    TraversalResult,
    TraversalRow,
    TypedLinkRow,
)
from .runs import RunManager, new_run_id
from .settings import (
    Neo4jConnectionConfig,
    Neo4jIntegration,
    Neo4jSettings,
    get_neo4j_settings,
    reload_neo4j_settings,
    resolve_neo4j_integration,
)
from .store import MirrorStore, Neo4jMirrorStore, open_mirror_store, to_int

__all__ = [
    "BatchWriter",
    "describe_mismatch",
    "is_consistent",
    "GraphCounts",
    "MirrorCounts",
    "MirrorState",
    "MirrorStatus",
    "NoteRow",
    "ResolvedTarget",
    "RowKind",
    "StatusSummary",
    "SyncOptions",
    "SyncSummary",
    "TraversalDirection",
    "TraversalEdge",
    "TraversalNode",
    "TraversalOptions",
    "TraversalResult",
    "TraversalRow",
    "TypedLinkRow",
    "RunManager",
    "new_run_id",
    "Neo4jConnectionConfig",
    "Neo4jIntegration",
    "Neo4jSettings",
    "get_neo4j_settings",
    "reload_neo4j_settings",
    "resolve_neo4j_integration",
    "MirrorStore",
    "Neo4jMirrorStore",
    "open_mirror_store",
    "to_int",
]
