"""
图镜像业务服务

统一入口: 解析 Neo4j 集成配置，未启用或未配置时直接报告
"集成不可用"，不会发起连接；对运维输出区分 stale / broken 的健康状态。
"""

from collections.abc import Callable
from contextlib import AbstractAsyncContextManager
from enum import Enum
from typing import Any, Optional

from domains.core.exceptions import ApplicationError, IntegrationUnavailableError
from domains.core.logging_config import get_logger

from ..core.models import MirrorStatus, SyncOptions, SyncSummary, TraversalOptions, TraversalResult
from ..core.settings import (
    Neo4jConnectionConfig,
    Neo4jIntegration,
    Neo4jSettings,
    get_neo4j_settings,
    resolve_neo4j_integration,
)
from ..core.store import MirrorStore, open_mirror_store
from ..source.base import GraphSource
from .sync_service import MirrorSyncService, prune_superseded_runs
from .traversal import TraversalEngine, normalize_traversal_options

logger = get_logger(__name__)

StoreFactory = Callable[[Neo4jConnectionConfig], AbstractAsyncContextManager[MirrorStore]]


class MirrorHealth(str, Enum):
    """运维视角的健康状态"""

    DISABLED = "disabled"  # 未启用
    UNAVAILABLE = "unavailable"  # 配置不完整或连接失败
    EMPTY = "empty"  # 从未成功同步
    OK = "ok"
    STALE = "stale"  # 最近一次同步失败，仍在提供上一个激活运行
    BROKEN = "broken"  # 同步失败且没有激活运行


def classify_health(status: MirrorStatus, active_run_id: Optional[str]) -> MirrorHealth:
    if status == MirrorStatus.ERROR:
        return MirrorHealth.STALE if active_run_id else MirrorHealth.BROKEN
    if not active_run_id:
        return MirrorHealth.EMPTY
    return MirrorHealth.OK


class MirrorService:
    """图镜像业务服务"""

    def __init__(
        self,
        source: GraphSource,
        settings: Optional[Neo4jSettings] = None,
        store_factory: StoreFactory = open_mirror_store,
    ):
        self.source = source
        self._settings = settings
        self._store_factory = store_factory

    @property
    def settings(self) -> Neo4jSettings:
        if self._settings is None:
            self._settings = get_neo4j_settings()
        return self._settings

    @property
    def integration(self) -> Neo4jIntegration:
        return resolve_neo4j_integration(self.settings)

    def _require_config(self) -> Neo4jConnectionConfig:
        integration = self.integration
        if integration.config is None:
            raise IntegrationUnavailableError(integration.unavailable_reason or "Neo4j 集成不可用")
        return integration.config

    # ==================== 同步 ====================

    async def sync(
        self,
        batch_size: Optional[int] = None,
        max_resolutions_per_target: Optional[int] = None,
    ) -> SyncSummary:
        """
        全量同步

        Raises:
            IntegrationUnavailableError: 集成未启用或未配置
        """
        config = self._require_config()
        options = SyncOptions(
            batch_size=batch_size if batch_size is not None else self.settings.batch_size,
            max_resolutions_per_target=(
                max_resolutions_per_target
                if max_resolutions_per_target is not None
                else self.settings.max_resolutions_per_target
            ),
        )
        async with self._store_factory(config) as store:
            return await MirrorSyncService(self.source, store).sync(options)

    async def sync_after_index(self) -> dict[str, Any]:
        """
        索引完成后的同步钩子

        未启用、未配置或关闭 sync_on_index 时跳过；
        失败时 strict_mode 下抛出，否则记录日志并返回失败结果。
        """
        integration = self.integration
        if not integration.available:
            return {"synced": False, "skipped": True, "reason": integration.unavailable_reason}
        if not integration.sync_on_index:
            return {"synced": False, "skipped": True, "reason": "NEO4J_SYNC_ON_INDEX 已关闭"}

        try:
            summary = await self.sync()
        except ApplicationError as e:
            if integration.strict_mode:
                raise
            logger.warning("mirror_sync_after_index_failed", code=e.code, error=e.message)
            return {"synced": False, "skipped": False, "error": e.message, "code": e.code}

        return {"synced": True, "skipped": False, **summary.to_dict()}

    # ==================== 状态 ====================

    def _base_status(self, integration: Neo4jIntegration) -> dict[str, Any]:
        source_counts = self.source.get_graph_counts()
        return {
            "enabled": integration.enabled,
            "configured": integration.config is not None,
            "available": False,
            "sync_on_index": integration.sync_on_index,
            "strict_mode": integration.strict_mode,
            "reason": integration.unavailable_reason,
            "health": (
                MirrorHealth.DISABLED.value if not integration.enabled
                else MirrorHealth.UNAVAILABLE.value
            ),
            "active_run_id": None,
            "mirror_status": MirrorStatus.EMPTY.value,
            "last_success_at": None,
            "last_error": None,
            "last_error_at": None,
            "source_counts": source_counts.to_dict(),
            "mirrored_counts": None,
            "consistent": None,
        }

    async def status(self) -> dict[str, Any]:
        """
        健康状态

        存储层错误不会抛出，而是体现在 health=unavailable 与 reason 中。
        """
        integration = self.integration
        payload = self._base_status(integration)
        if integration.config is None:
            return payload

        try:
            async with self._store_factory(integration.config) as store:
                summary = await MirrorSyncService(self.source, store).status()
        except ApplicationError as e:
            logger.warning("mirror_status_failed", code=e.code, error=e.message)
            payload.update({
                "reason": f"Neo4j 不可用: {e.message}",
                "mirror_status": MirrorStatus.ERROR.value,
                "last_error": e.message,
            })
            return payload

        payload.update(summary.to_dict())
        payload["available"] = True
        payload["reason"] = None
        payload["health"] = classify_health(
            summary.state.status, summary.state.active_run_id
        ).value
        return payload

    # ==================== 遍历 ====================

    async def traverse(self, options: TraversalOptions) -> TraversalResult:
        """
        遍历激活运行

        参数在连接之前校验。
        """
        options = normalize_traversal_options(options)
        config = self._require_config()
        async with self._store_factory(config) as store:
            return await TraversalEngine(store).traverse(options)

    # ==================== 清理 ====================

    async def prune(self, batch_size: int = 1000) -> dict[str, Any]:
        """删除所有非激活运行"""
        config = self._require_config()
        async with self._store_factory(config) as store:
            return await prune_superseded_runs(store, batch_size)


__all__ = [
    "MirrorHealth",
    "MirrorService",
    "classify_health",
]
