"""
图镜像同步服务

全量同步流程:
1. 读取数据源快照（笔记、类型链接、计数）
2. 派生去重排序后的链接目标
3. 逐个目标解析候选笔记
4. 在新的运行 ID 下按依赖顺序批量写入
5. 读取暂存计数
6. 一致性校验，不一致则拒绝切换
7. 原子切换激活运行
"""

from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

from domains.core.exceptions import MirrorConsistencyError
from domains.core.logging_config import bound_run_context, get_logger

from ..core.batch import BatchWriter
from ..core.consistency import describe_mismatch, is_consistent
from ..core.models import (
    GraphCounts,
    MirrorCounts,
    RowKind,
    StatusSummary,
    SyncOptions,
    SyncSummary,
    TypedLinkRow,
)
from ..core.runs import RunManager, new_run_id
from ..core.settings import Neo4jConnectionConfig
from ..core.store import MirrorStore, open_mirror_store
from ..source.base import GraphSource

logger = get_logger(__name__)


def utc_now_iso() -> str:
    """当前 UTC 时间（ISO-8601，毫秒精度）"""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def build_edge_key(index: int, link: TypedLinkRow) -> str:
    return f"{index}:{link.from_path}:{link.rel}:{link.to_target}:{link.position}"


class MirrorSyncService:
    """
    同步编排

    只有 mark_active 会改变遍历看到的数据；
    之前的任何失败都保留上一个激活运行。
    """

    def __init__(
        self,
        source: GraphSource,
        store: MirrorStore,
        clock: Callable[[], str] = utc_now_iso,
    ):
        self.source = source
        self.store = store
        self.clock = clock
        self.runs = RunManager(store)

    async def sync(self, options: SyncOptions | None = None) -> SyncSummary:
        """
        全量同步并切换

        Raises:
            MirrorConsistencyError: 暂存计数与数据源不一致
            ApplicationError: 数据源或存储失败（已尽力记录到 MirrorState）
        """
        options = (options or SyncOptions()).normalized()
        run_id = new_run_id()
        with bound_run_context(run_id):
            return await self._sync(run_id, options)

    async def _sync(self, run_id: str, options: SyncOptions) -> SyncSummary:
        logger.info(
            "mirror_sync_started",
            batch_size=options.batch_size,
            max_resolutions_per_target=options.max_resolutions_per_target,
        )

        try:
            source_counts, mirrored_counts = await self._stage(run_id, options)
        except Exception as e:
            logger.error("mirror_sync_failed", error=str(e))
            await self.runs.mark_error_best_effort(str(e), self.clock())
            raise

        if not is_consistent(source_counts, mirrored_counts):
            error = MirrorConsistencyError(
                run_id,
                source_counts.to_dict(),
                mirrored_counts.to_dict(),
            )
            logger.error(
                "mirror_sync_inconsistent",
                mismatch=describe_mismatch(source_counts, mirrored_counts),
            )
            await self.runs.mark_error_best_effort(error.message, self.clock())
            raise error

        await self.runs.mark_active(run_id, self.clock())
        state = await self.runs.read_state()

        logger.info(
            "mirror_sync_completed",
            notes=mirrored_counts.notes,
            typed_links=mirrored_counts.typed_links,
            targets=mirrored_counts.targets,
            resolved_links=mirrored_counts.resolved_links,
        )
        return SyncSummary(
            run_id=run_id,
            source_counts=source_counts,
            mirrored_counts=mirrored_counts,
            consistent=True,
            state=state,
        )

    async def _stage(self, run_id: str, options: SyncOptions) -> tuple[GraphCounts, MirrorCounts]:
        """读取快照并写入暂存运行，返回 (数据源计数, 暂存计数)"""
        source_counts = self.source.get_graph_counts()
        notes = self.source.list_notes_for_sync()
        typed_links = self.source.list_typed_links_for_sync()

        targets = sorted({link.to_target for link in typed_links})

        resolved_rows: list[dict[str, Any]] = []
        for target in targets:
            for match in self.source.resolve_paths_by_target(target, options.max_resolutions_per_target):
                resolved_rows.append({
                    "target": target,
                    "to_path": match.path,
                    "matched_by": match.matched_by,
                })

        typed_link_rows = [
            {
                "edge_key": build_edge_key(index, link),
                "from_path": link.from_path,
                "rel": link.rel,
                "target": link.to_target,
                "to_wikilink": link.to_wikilink,
                "position": link.position,
            }
            for index, link in enumerate(typed_links)
        ]

        await self.runs.ensure_schema()

        writer = BatchWriter(self.store, options.batch_size)
        await writer.write(RowKind.NOTES, run_id, [note.to_dict() for note in notes])
        await writer.write(RowKind.TARGETS, run_id, [{"target": target} for target in targets])
        await writer.write(RowKind.TYPED_LINKS, run_id, typed_link_rows)
        await writer.write(RowKind.RESOLVED_LINKS, run_id, resolved_rows)

        mirrored_counts = await self.store.read_counts(run_id)
        return source_counts, mirrored_counts

    async def status(self) -> StatusSummary:
        """只读健康检查: 数据源计数 vs 激活运行计数"""
        source_counts = self.source.get_graph_counts()
        state = await self.runs.read_state()

        if not state.active_run_id:
            return StatusSummary(
                source_counts=source_counts,
                mirrored_counts=None,
                consistent=None,
                state=state,
            )

        mirrored_counts = await self.store.read_counts(state.active_run_id)
        return StatusSummary(
            source_counts=source_counts,
            mirrored_counts=mirrored_counts,
            consistent=is_consistent(source_counts, mirrored_counts),
            state=state,
        )


# ==================== 运行清理 ====================


async def prune_superseded_runs(store: MirrorStore, batch_size: int = 1000) -> dict[str, Any]:
    """
    删除所有非激活运行的数据

    不要与同步并发执行: 正在暂存的运行同样会被删除。
    """
    state = await RunManager(store).read_state()
    active_run_id = state.active_run_id

    deleted_runs: list[str] = []
    deleted_nodes = 0
    for run_id in await store.list_run_ids():
        if run_id == active_run_id:
            continue
        deleted_nodes += await store.delete_run(run_id, batch_size)
        deleted_runs.append(run_id)
        logger.info("mirror_run_pruned", run_id=run_id)

    return {
        "active_run_id": active_run_id,
        "deleted_runs": deleted_runs,
        "deleted_nodes": deleted_nodes,
    }


# ==================== 入口函数 ====================


async def sync_graph_to_mirror(
    source: GraphSource,
    config: Neo4jConnectionConfig,
    batch_size: int | None = None,
    max_resolutions_per_target: int | None = None,
) -> SyncSummary:
    """连接 Neo4j 并执行一次全量同步"""
    async with open_mirror_store(config) as store:
        service = MirrorSyncService(source, store)
        return await service.sync(SyncOptions(
            batch_size=batch_size,
            max_resolutions_per_target=max_resolutions_per_target,
        ))


async def read_mirror_status(source: GraphSource, config: Neo4jConnectionConfig) -> StatusSummary:
    """连接 Neo4j 并读取健康状态"""
    async with open_mirror_store(config) as store:
        return await MirrorSyncService(source, store).status()


async def prune_mirror_runs(config: Neo4jConnectionConfig, batch_size: int = 1000) -> dict[str, Any]:
    """连接 Neo4j 并清理非激活运行"""
    async with open_mirror_store(config) as store:
        return await prune_superseded_runs(store, batch_size)


__all__ = [
    "MirrorSyncService",
    "build_edge_key",
    "utc_now_iso",
    "prune_superseded_runs",
    "sync_graph_to_mirror",
    "read_mirror_status",
    "prune_mirror_runs",
]
