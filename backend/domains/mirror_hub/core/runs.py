"""
运行管理

负责生成运行 ID，以及单例 MirrorState 的读取、切换和错误标注。
"""

import uuid

from domains.core.logging_config import get_logger

from .models import MirrorState
from .store import MirrorStore

logger = get_logger(__name__)


def new_run_id() -> str:
    """生成新的运行 ID"""
    return uuid.uuid4().hex


class RunManager:
    """MirrorState 生命周期管理"""

    def __init__(self, store: MirrorStore):
        self.store = store

    async def ensure_schema(self) -> None:
        await self.store.ensure_schema()

    async def read_state(self) -> MirrorState:
        """读取状态，不存在时返回 empty"""
        record = await self.store.read_state()
        return MirrorState.from_record(record)

    async def mark_active(self, run_id: str, at: str) -> None:
        """
        切换激活运行

        唯一会改变遍历可见数据的操作，单条原子写入。
        """
        await self.store.mark_active(run_id, at)
        logger.info("mirror_cutover", run_id=run_id, at=at)

    async def mark_error(self, message: str, at: str) -> None:
        """记录错误，保持 active_run_id 不变"""
        await self.store.mark_error(message, at)

    async def mark_error_best_effort(self, message: str, at: str) -> bool:
        """
        尽力记录错误

        记录失败只写 warning 日志，不影响调用方看到的原始错误。

        Returns:
            是否记录成功
        """
        try:
            await self.mark_error(message, at)
            return True
        except Exception as e:
            # 唯一吞掉异常的地方: 调用方必须看到原始错误
            logger.warning(
                "mirror_error_annotation_failed",
                error=str(e),
                error_type=type(e).__name__,
                original_error=message,
            )
            return False


__all__ = ["RunManager", "new_run_id"]
