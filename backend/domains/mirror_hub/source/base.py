"""
规范图数据源接口

图镜像只读取数据源，不写入。
"""

from abc import ABC, abstractmethod

from ..core.models import GraphCounts, NoteRow, ResolvedTarget, TypedLinkRow


class GraphSource(ABC):
    """规范笔记图数据源"""

    @abstractmethod
    def list_notes_for_sync(self) -> list[NoteRow]:
        """列出全部笔记"""

    @abstractmethod
    def list_typed_links_for_sync(self) -> list[TypedLinkRow]:
        """列出全部类型链接"""

    @abstractmethod
    def resolve_paths_by_target(self, target: str, limit: int) -> list[ResolvedTarget]:
        """
        将链接目标解析为笔记路径

        Args:
            target: 原始链接目标
            limit: 最多返回数量

        Returns:
            按匹配优先级排列的候选
        """

    @abstractmethod
    def get_graph_counts(self) -> GraphCounts:
        """笔记数与类型链接数"""


__all__ = ["GraphSource"]
