"""
图镜像数据模型

定义笔记图（笔记、类型链接、链接目标、解析结果）在同步与遍历
过程中使用的数据结构。
"""

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any


class MirrorStatus(str, Enum):
    """镜像生命周期状态"""

    EMPTY = "empty"  # 从未成功同步
    OK = "ok"  # 最近一次同步成功
    ERROR = "error"  # 最近一次同步失败


class RowKind(str, Enum):
    """
    批量写入的行类型

    按依赖顺序排列: 节点类型在前，边类型在后。
    """

    NOTES = "notes"
    TARGETS = "targets"
    TYPED_LINKS = "typed_links"
    RESOLVED_LINKS = "resolved_links"


class TraversalDirection(str, Enum):
    """遍历方向"""

    OUTGOING = "outgoing"
    INCOMING = "incoming"
    BOTH = "both"

    @property
    def includes_outgoing(self) -> bool:
        return self in (TraversalDirection.OUTGOING, TraversalDirection.BOTH)

    @property
    def includes_incoming(self) -> bool:
        return self in (TraversalDirection.INCOMING, TraversalDirection.BOTH)


# 单例状态节点的固定主键
MIRROR_STATE_NAME = "default"


def clamp_int(value: int | None, default: int, lower: int, upper: int) -> int:
    """取默认值并限制到 [lower, upper]"""
    if value is None:
        value = default
    return min(max(lower, int(value)), upper)


# ==================== 数据源行 ====================


@dataclass
class NoteRow:
    """数据源中的笔记行，以 path 为稳定主键"""

    path: str
    note_id: str | None = None
    created: str | None = None
    title: str | None = None
    summary: str | None = None
    entity: str | None = None
    layer: str | None = None
    status: str | None = None
    updated: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class TypedLinkRow:
    """数据源中的类型链接行（笔记 -> 原始目标字符串）"""

    from_path: str
    rel: str
    to_target: str
    to_wikilink: str
    position: int

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class ResolvedTarget:
    """目标字符串的一个解析候选"""

    path: str
    matched_by: str  # path / note_id / title

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


# ==================== 计数 ====================


@dataclass
class GraphCounts:
    """数据源计数"""

    notes: int = 0
    typed_links: int = 0

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


@dataclass
class MirrorCounts:
    """某个运行在镜像中的计数"""

    notes: int = 0
    typed_links: int = 0
    targets: int = 0
    resolved_links: int = 0

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


# ==================== 生命周期 ====================


@dataclass
class MirrorState:
    """
    镜像生命周期单例记录

    active_run_id 只会指向通过一致性校验的运行。
    """

    active_run_id: str | None = None
    status: MirrorStatus = MirrorStatus.EMPTY
    last_success_at: str | None = None
    last_error: str | None = None
    last_error_at: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "active_run_id": self.active_run_id,
            "status": self.status.value,
            "last_success_at": self.last_success_at,
            "last_error": self.last_error,
            "last_error_at": self.last_error_at,
        }

    @classmethod
    def from_record(cls, record: dict[str, Any] | None) -> "MirrorState":
        """从存储记录创建，缺失时返回 empty 状态"""
        if not record:
            return cls()

        status = record.get("status") or MirrorStatus.EMPTY.value
        try:
            status = MirrorStatus(status)
        except ValueError:
            status = MirrorStatus.ERROR

        return cls(
            active_run_id=record.get("active_run_id"),
            status=status,
            last_success_at=record.get("last_success_at"),
            last_error=record.get("last_error"),
            last_error_at=record.get("last_error_at"),
        )


# ==================== 同步 ====================


@dataclass
class SyncOptions:
    """同步参数"""

    batch_size: int | None = None
    max_resolutions_per_target: int | None = None

    def normalized(self) -> "SyncOptions":
        return SyncOptions(
            batch_size=clamp_int(self.batch_size, 500, 1, 2000),
            max_resolutions_per_target=clamp_int(self.max_resolutions_per_target, 20, 1, 200),
        )


@dataclass
class SyncSummary:
    """同步结果"""

    run_id: str
    source_counts: GraphCounts
    mirrored_counts: MirrorCounts
    consistent: bool
    state: MirrorState

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "source_counts": self.source_counts.to_dict(),
            "mirrored_counts": self.mirrored_counts.to_dict(),
            "consistent": self.consistent,
            "active_run_id": self.state.active_run_id,
            "mirror_status": self.state.status.value,
            "last_success_at": self.state.last_success_at,
            "last_error": self.state.last_error,
            "last_error_at": self.state.last_error_at,
        }


@dataclass
class StatusSummary:
    """只读健康检查结果"""

    source_counts: GraphCounts
    mirrored_counts: MirrorCounts | None
    consistent: bool | None
    state: MirrorState

    def to_dict(self) -> dict[str, Any]:
        return {
            "source_counts": self.source_counts.to_dict(),
            "mirrored_counts": self.mirrored_counts.to_dict() if self.mirrored_counts else None,
            "consistent": self.consistent,
            "active_run_id": self.state.active_run_id,
            "mirror_status": self.state.status.value,
            "last_success_at": self.state.last_success_at,
            "last_error": self.state.last_error,
            "last_error_at": self.state.last_error_at,
        }


# ==================== 遍历 ====================


@dataclass
class TraversalOptions:
    """
    遍历参数

    所有预算在 normalized() 中取默认值并限制范围。
    """

    path: str
    direction: TraversalDirection | str = TraversalDirection.BOTH
    max_hops: int | None = None
    max_notes: int | None = None
    max_edges: int | None = None
    max_links_per_note: int | None = None
    include_unresolved_targets: bool = False

    def normalized(self) -> "TraversalOptions":
        direction = self.direction
        if direction is None:
            direction = TraversalDirection.BOTH
        direction = TraversalDirection(direction)

        return TraversalOptions(
            path=(self.path or "").strip(),
            direction=direction,
            max_hops=clamp_int(self.max_hops, 2, 1, 6),
            max_notes=clamp_int(self.max_notes, 80, 1, 400),
            max_edges=clamp_int(self.max_edges, 1500, 1, 10000),
            max_links_per_note=clamp_int(self.max_links_per_note, 80, 1, 500),
            include_unresolved_targets=bool(self.include_unresolved_targets),
        )

    def to_dict(self) -> dict[str, Any]:
        direction = self.direction
        return {
            "path": self.path,
            "direction": direction.value if isinstance(direction, TraversalDirection) else direction,
            "max_hops": self.max_hops,
            "max_notes": self.max_notes,
            "max_edges": self.max_edges,
            "max_links_per_note": self.max_links_per_note,
            "include_unresolved_targets": self.include_unresolved_targets,
        }


@dataclass
class TraversalRow:
    """遍历查询返回的原始行"""

    from_path: str
    to_path: str | None
    rel: str
    target: str
    to_wikilink: str


@dataclass
class TraversalNode:
    """遍历结果中的节点"""

    path: str
    hop: int

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class TraversalEdge:
    """遍历结果中的边"""

    direction: TraversalDirection
    from_path: str
    to_path: str | None
    rel: str
    target: str
    to_wikilink: str

    @property
    def dedupe_key(self) -> tuple[str, str, str, str, str, str]:
        return (
            self.direction.value,
            self.from_path,
            self.to_path or "",
            self.rel,
            self.target,
            self.to_wikilink,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "direction": self.direction.value,
            "from_path": self.from_path,
            "to_path": self.to_path,
            "rel": self.rel,
            "target": self.target,
            "to_wikilink": self.to_wikilink,
        }


@dataclass
class TraversalResult:
    """遍历结果"""

    active_run_id: str
    nodes: list[TraversalNode] = field(default_factory=list)
    edges: list[TraversalEdge] = field(default_factory=list)
    truncated: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "active_run_id": self.active_run_id,
            "nodes": [n.to_dict() for n in self.nodes],
            "edges": [e.to_dict() for e in self.edges],
            "truncated": self.truncated,
        }


__all__ = [
    "MirrorStatus",
    "RowKind",
    "TraversalDirection",
    "MIRROR_STATE_NAME",
    "clamp_int",
    "NoteRow",
    "TypedLinkRow",
    "ResolvedTarget",
    "GraphCounts",
    "MirrorCounts",
    "MirrorState",
    "SyncOptions",
    "SyncSummary",
    "StatusSummary",
    "TraversalOptions",
    "TraversalRow",
    "TraversalNode",
    "TraversalEdge",
    "TraversalResult",
]
