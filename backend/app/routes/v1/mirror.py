"""
Mirror API 路由

提供笔记图 Neo4j 镜像的同步、状态和遍历端点。
"""

from typing import Optional

from fastapi import APIRouter, Body, Depends, Query

from app.core.deps import get_mirror_service
from app.schemas.common import ApiResponse
from app.schemas.mirror import (
    MirrorStatusResponse,
    SyncRequest,
    SyncResult,
    TraversalDirection,
    TraversalResponse,
)
from domains.mirror_hub.core.models import TraversalOptions
from domains.mirror_hub.services import MirrorService

router = APIRouter()


@router.post("/sync", response_model=ApiResponse[SyncResult])
async def sync_mirror(
    request: Optional[SyncRequest] = Body(None),
    service: MirrorService = Depends(get_mirror_service),
):
    """
    全量同步

    写入新的运行，校验一致后切换；失败时上一个激活运行保持不变。
    """
    request = request or SyncRequest()
    summary = await service.sync(
        batch_size=request.batch_size,
        max_resolutions_per_target=request.max_resolutions_per_target,
    )
    return ApiResponse(data=SyncResult(**summary.to_dict()), message="同步完成")


@router.get("/status", response_model=ApiResponse[MirrorStatusResponse])
async def mirror_status(service: MirrorService = Depends(get_mirror_service)):
    """健康状态（只读）"""
    payload = await service.status()
    return ApiResponse(data=MirrorStatusResponse(**payload))


@router.get("/traverse", response_model=ApiResponse[TraversalResponse])
async def traverse_mirror(
    path: str = Query(..., description="起点笔记路径"),
    direction: TraversalDirection = Query(TraversalDirection.BOTH, description="遍历方向"),
    max_hops: Optional[int] = Query(None, description="最大跳数 [1,6]"),
    max_notes: Optional[int] = Query(None, description="最大节点数 [1,400]"),
    max_edges: Optional[int] = Query(None, description="最大边数 [1,10000]"),
    max_links_per_note: Optional[int] = Query(None, description="单节点展开上限 [1,500]"),
    include_unresolved_targets: bool = Query(False, description="是否输出未解析目标的边"),
    service: MirrorService = Depends(get_mirror_service),
):
    """
    有界遍历

    只读取当前激活运行；超出预算时 truncated=true。
    """
    result = await service.traverse(TraversalOptions(
        path=path,
        direction=direction.value,
        max_hops=max_hops,
        max_notes=max_notes,
        max_edges=max_edges,
        max_links_per_note=max_links_per_note,
        include_unresolved_targets=include_unresolved_targets,
    ))
    return ApiResponse(data=TraversalResponse(**result.to_dict()))
