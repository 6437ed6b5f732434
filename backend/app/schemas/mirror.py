"""
Mirror 模块 Pydantic Schemas

定义图镜像 API 的请求和响应模型。
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class TraversalDirection(str, Enum):
    """遍历方向"""

    OUTGOING = "outgoing"
    INCOMING = "incoming"
    BOTH = "both"


# ==================== 计数 ====================


class SourceCounts(BaseModel):
    """数据源计数"""

    notes: int
    typed_links: int


class MirroredCounts(BaseModel):
    """镜像计数"""

    notes: int
    typed_links: int
    targets: int
    resolved_links: int


# ==================== 同步 ====================


class SyncRequest(BaseModel):
    """同步请求"""

    batch_size: Optional[int] = Field(None, ge=1, le=2000, description="每批写入行数")
    max_resolutions_per_target: Optional[int] = Field(
        None, ge=1, le=200, description="每个目标最多解析的笔记数"
    )


class SyncResult(BaseModel):
    """同步结果"""

    run_id: str
    source_counts: SourceCounts
    mirrored_counts: MirroredCounts
    consistent: bool
    active_run_id: Optional[str] = None
    mirror_status: str
    last_success_at: Optional[str] = None
    last_error: Optional[str] = None
    last_error_at: Optional[str] = None


# ==================== 状态 ====================


class MirrorStatusResponse(BaseModel):
    """健康状态"""

    enabled: bool
    configured: bool
    available: bool
    sync_on_index: bool
    strict_mode: bool
    reason: Optional[str] = None
    health: str = Field(..., description="disabled / unavailable / empty / ok / stale / broken")
    active_run_id: Optional[str] = None
    mirror_status: str
    last_success_at: Optional[str] = None
    last_error: Optional[str] = None
    last_error_at: Optional[str] = None
    source_counts: SourceCounts
    mirrored_counts: Optional[MirroredCounts] = None
    consistent: Optional[bool] = None


# ==================== 遍历 ====================


class TraversalNode(BaseModel):
    """遍历节点"""

    path: str
    hop: int


class TraversalEdge(BaseModel):
    """遍历边"""

    direction: TraversalDirection
    from_path: str
    to_path: Optional[str] = None
    rel: str
    target: str
    to_wikilink: str


class TraversalResponse(BaseModel):
    """遍历结果"""

    active_run_id: str
    nodes: list[TraversalNode]
    edges: list[TraversalEdge]
    truncated: bool
