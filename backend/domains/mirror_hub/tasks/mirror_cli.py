"""
图镜像运维命令

使用方法:
    # 全量同步
    python -m domains.mirror_hub.tasks.mirror_cli sync

    # 健康状态
    python -m domains.mirror_hub.tasks.mirror_cli status

    # 从某篇笔记出发遍历
    python -m domains.mirror_hub.tasks.mirror_cli traverse notes/a.md --direction outgoing --max-hops 1

    # 删除非激活运行（不要与同步并发执行）
    python -m domains.mirror_hub.tasks.mirror_cli prune

结果以 JSON 输出到 stdout。
"""

import argparse
import asyncio
import json
import sys

from domains.core.exceptions import ApplicationError
from domains.core.logging_config import configure_logging, get_logger

from ..core.models import TraversalDirection, TraversalOptions
from ..services.mirror_service import MirrorService
from ..source.sqlite_source import SqliteGraphSource

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="笔记图 Neo4j 镜像运维")
    parser.add_argument(
        "--database-url",
        default=None,
        help="规范图 SQLite 地址（默认读取 SOURCE_DATABASE_URL）",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    sync_parser = subparsers.add_parser("sync", help="全量同步并切换激活运行")
    sync_parser.add_argument("--batch-size", type=int, default=None, help="每批写入行数")
    sync_parser.add_argument(
        "--max-resolutions-per-target", type=int, default=None, help="每个目标最多解析的笔记数"
    )

    subparsers.add_parser("status", help="查看健康状态")

    traverse_parser = subparsers.add_parser("traverse", help="从起点笔记遍历")
    traverse_parser.add_argument("path", help="起点笔记路径")
    traverse_parser.add_argument(
        "--direction",
        choices=[d.value for d in TraversalDirection],
        default=TraversalDirection.BOTH.value,
    )
    traverse_parser.add_argument("--max-hops", type=int, default=None)
    traverse_parser.add_argument("--max-notes", type=int, default=None)
    traverse_parser.add_argument("--max-edges", type=int, default=None)
    traverse_parser.add_argument("--max-links-per-note", type=int, default=None)
    traverse_parser.add_argument(
        "--include-unresolved", action="store_true", help="输出未解析目标的边"
    )

    prune_parser = subparsers.add_parser("prune", help="删除非激活运行")
    prune_parser.add_argument("--batch-size", type=int, default=1000)

    return parser


async def run_command(service: MirrorService, args: argparse.Namespace) -> dict:
    if args.command == "sync":
        summary = await service.sync(
            batch_size=args.batch_size,
            max_resolutions_per_target=args.max_resolutions_per_target,
        )
        return summary.to_dict()

    if args.command == "status":
        return await service.status()

    if args.command == "traverse":
        result = await service.traverse(TraversalOptions(
            path=args.path,
            direction=args.direction,
            max_hops=args.max_hops,
            max_notes=args.max_notes,
            max_edges=args.max_edges,
            max_links_per_note=args.max_links_per_note,
            include_unresolved_targets=args.include_unresolved,
        ))
        return result.to_dict()

    if args.command == "prune":
        return await service.prune(batch_size=args.batch_size)

    raise ValueError(f"未知命令: {args.command}")


def main(argv: list[str] | None = None) -> int:
    """CLI 入口"""
    args = build_parser().parse_args(argv)
    configure_logging()

    database_url = args.database_url
    if not database_url:
        from app.core.config import settings
        database_url = settings.SOURCE_DATABASE_URL

    source = SqliteGraphSource(database_url)
    service = MirrorService(source)
    try:
        result = asyncio.run(run_command(service, args))
    except ApplicationError as e:
        logger.error("mirror_cli_failed", command=args.command, code=e.code, error=e.message)
        print(json.dumps({"success": False, **e.to_dict()}, ensure_ascii=False, indent=2), file=sys.stderr)
        return 1
    finally:
        source.close()

    print(json.dumps(result, ensure_ascii=False, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
