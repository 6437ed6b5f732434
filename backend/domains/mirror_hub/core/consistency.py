"""
一致性校验

比较数据源计数与暂存运行计数，只看 notes 与 typed_links。
"""

from .models import GraphCounts, MirrorCounts


def is_consistent(source: GraphCounts, mirrored: GraphCounts | MirrorCounts) -> bool:
    return source.notes == mirrored.notes and source.typed_links == mirrored.typed_links


def describe_mismatch(source: GraphCounts, mirrored: GraphCounts | MirrorCounts) -> str:
    """生成错误信息中使用的计数对比"""
    return (
        f"source(notes={source.notes}, typed_links={source.typed_links}) "
        f"!= mirrored(notes={mirrored.notes}, typed_links={mirrored.typed_links})"
    )


__all__ = ["is_consistent", "describe_mismatch"]
