"""
批量写入器

按固定大小分块写入镜像存储，每块一个事务，顺序等待。
"""

from typing import Any

from domains.core.logging_config import get_logger

from .models import RowKind, clamp_int
from .store import MirrorStore

logger = get_logger(__name__)

DEFAULT_BATCH_SIZE = 500
MAX_BATCH_SIZE = 2000


class BatchWriter:
    """
    分块写入

    失败不重试: 第一个失败的块直接向上抛出。
    未激活运行下的部分写入不会被遍历看到。
    """

    def __init__(self, store: MirrorStore, batch_size: int | None = None):
        self.store = store
        self.batch_size = clamp_int(batch_size, DEFAULT_BATCH_SIZE, 1, MAX_BATCH_SIZE)

    async def write(self, kind: RowKind, run_id: str, rows: list[dict[str, Any]]) -> int:
        """
        写入一组行

        Returns:
            写入的行数
        """
        if not rows:
            return 0

        written = 0
        for start in range(0, len(rows), self.batch_size):
            chunk = rows[start:start + self.batch_size]
            await self.store.write_rows(kind, run_id, chunk)
            written += len(chunk)
            logger.debug(
                "mirror_batch_written",
                kind=kind.value,
                run_id=run_id,
                offset=start,
                size=len(chunk),
            )
        return written


__all__ = ["BatchWriter", "DEFAULT_BATCH_SIZE", "MAX_BATCH_SIZE"]
