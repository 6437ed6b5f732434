"""
图镜像遍历

从起点笔记出发的有界广度优先遍历，只读取当前激活运行。

预算（均在对应操作之前检查）:
- max_hops: 最大跳数，到达后节点仍然输出但不再展开
- max_notes: 输出节点总数
- max_edges: 输出边总数
- max_links_per_note: 单个节点单方向的展开上限

出方向展开因任一预算被截断时，跳过同一节点的入方向展开。
"""

from collections import deque

from domains.core.exceptions import MirrorEmptyError, SeedNotFoundError, ValidationError
from domains.core.logging_config import get_logger

from ..core.models import (
    TraversalDirection,
    TraversalEdge,
    TraversalNode,
    TraversalOptions,
    TraversalResult,
    TraversalRow,
)
from ..core.runs import RunManager
from ..core.settings import Neo4jConnectionConfig
from ..core.store import MirrorStore, open_mirror_store

logger = get_logger(__name__)


def normalize_traversal_options(options: TraversalOptions) -> TraversalOptions:
    """
    取默认值并限制范围

    Raises:
        ValidationError: 方向无效或起点为空
    """
    try:
        normalized = options.normalized()
    except ValueError as e:
        raise ValidationError(
            f"无效的遍历方向: {options.direction}，可选: outgoing / incoming / both",
            field="direction",
        ) from e

    if not normalized.path:
        raise ValidationError("遍历起点 path 不能为空", field="path")
    return normalized


class _Walk:
    """一次遍历的可变状态"""

    def __init__(self, seed: str):
        self.nodes: list[TraversalNode] = []
        self.edges: list[TraversalEdge] = []
        self.edge_seen: set[tuple] = set()
        self.visited: set[str] = {seed}
        self.queue: deque[tuple[str, int]] = deque([(seed, 0)])
        self.truncated = False
        self.edges_exhausted = False


class TraversalEngine:
    """有界 BFS 遍历"""

    def __init__(self, store: MirrorStore):
        self.store = store
        self.runs = RunManager(store)

    async def traverse(self, options: TraversalOptions) -> TraversalResult:
        """
        执行遍历

        Args:
            options: 遍历参数（未规范化也可以）

        Returns:
            TraversalResult，truncated 表示有数据因预算被省略

        Raises:
            ValidationError: 参数无效
            MirrorEmptyError: 没有激活运行
            SeedNotFoundError: 起点不在激活运行中
        """
        options = normalize_traversal_options(options)

        state = await self.runs.read_state()
        run_id = state.active_run_id
        if not run_id:
            raise MirrorEmptyError()

        if not await self.store.note_exists(run_id, options.path):
            raise SeedNotFoundError(options.path, run_id)

        walk = _Walk(options.path)
        direction = options.direction

        while walk.queue and len(walk.nodes) < options.max_notes:
            path, hop = walk.queue.popleft()
            walk.nodes.append(TraversalNode(path=path, hop=hop))

            if hop >= options.max_hops or walk.edges_exhausted:
                continue

            budget_hit = False
            if direction.includes_outgoing:
                budget_hit = await self._expand(
                    run_id, walk, options, path, hop, TraversalDirection.OUTGOING
                )

            if direction.includes_incoming and not budget_hit and not walk.edges_exhausted:
                await self._expand(run_id, walk, options, path, hop, TraversalDirection.INCOMING)

        logger.info(
            "mirror_traverse_done",
            run_id=run_id,
            seed=options.path,
            direction=direction.value,
            nodes=len(walk.nodes),
            edges=len(walk.edges),
            truncated=walk.truncated,
        )
        return TraversalResult(
            active_run_id=run_id,
            nodes=walk.nodes,
            edges=walk.edges,
            truncated=walk.truncated,
        )

    @staticmethod
    def _accepts(row: TraversalRow, direction: TraversalDirection, options: TraversalOptions) -> bool:
        if not row.from_path or not row.rel or not row.target:
            return False
        if direction is TraversalDirection.OUTGOING and row.to_path is None:
            return options.include_unresolved_targets
        return True

    async def _expand(
        self,
        run_id: str,
        walk: _Walk,
        options: TraversalOptions,
        path: str,
        hop: int,
        direction: TraversalDirection,
    ) -> bool:
        """
        单方向展开一个节点

        Returns:
            是否有数据因预算被省略（单节点展开、边或节点预算）
        """
        limit = options.max_links_per_note
        if direction is TraversalDirection.OUTGOING:
            rows = await self.store.query_outgoing(
                run_id, path, limit + 1, options.include_unresolved_targets
            )
        else:
            rows = await self.store.query_incoming(run_id, path, limit + 1)

        # 多取一行用于判断单节点展开是否被截断
        budget_hit = False
        if len(rows) > limit:
            if self._accepts(rows[limit], direction, options):
                walk.truncated = True
                budget_hit = True
            rows = rows[:limit]

        for row in rows:
            if not self._accepts(row, direction, options):
                continue

            edge = TraversalEdge(
                direction=direction,
                from_path=row.from_path,
                to_path=row.to_path,
                rel=row.rel,
                target=row.target,
                to_wikilink=row.to_wikilink,
            )
            if edge.dedupe_key in walk.edge_seen:
                continue

            if len(walk.edges) >= options.max_edges:
                walk.truncated = True
                walk.edges_exhausted = True
                budget_hit = True
                break

            walk.edge_seen.add(edge.dedupe_key)
            walk.edges.append(edge)

            neighbor = row.to_path if direction is TraversalDirection.OUTGOING else row.from_path
            if not neighbor or neighbor in walk.visited:
                continue
            if len(walk.nodes) + len(walk.queue) >= options.max_notes:
                walk.truncated = True
                budget_hit = True
                continue

            walk.visited.add(neighbor)
            walk.queue.append((neighbor, hop + 1))

        return budget_hit


async def traverse_mirror(
    config: Neo4jConnectionConfig,
    path: str,
    direction: TraversalDirection | str | None = None,
    max_hops: int | None = None,
    max_notes: int | None = None,
    max_edges: int | None = None,
    max_links_per_note: int | None = None,
    include_unresolved_targets: bool = False,
) -> TraversalResult:
    """连接 Neo4j 并执行一次遍历（参数在连接前校验）"""
    options = normalize_traversal_options(TraversalOptions(
        path=path,
        direction=direction or TraversalDirection.BOTH,
        max_hops=max_hops,
        max_notes=max_notes,
        max_edges=max_edges,
        max_links_per_note=max_links_per_note,
        include_unresolved_targets=include_unresolved_targets,
    ))
    async with open_mirror_store(config) as store:
        return await TraversalEngine(store).traverse(options)


__all__ = [
    "TraversalEngine",
    "normalize_traversal_options",
    "traverse_mirror",
]
