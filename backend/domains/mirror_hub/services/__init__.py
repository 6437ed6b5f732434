"""
Mirror Hub 服务层
"""

from .mirror_service import MirrorHealth, MirrorService, classify_health
from .sync_service import (
    MirrorSyncService,
    prune_mirror_runs,
    prune_superseded_runs,
    read_mirror_status,
    sync_graph_to_mirror,
)
from .traversal import TraversalEngine, normalize_traversal_options, traverse_mirror

__all__ = [
    "MirrorHealth",
    "MirrorService",
    "classify_health",
    "MirrorSyncService",
    "prune_mirror_runs",
    "prune_superseded_runs",
    "read_mirror_status",
    "sync_graph_to_mirror",
    "TraversalEngine",
    "normalize_traversal_options",
    "traverse_mirror",
]
