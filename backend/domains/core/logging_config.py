"""
结构化日志配置

structlog 与标准库 logging 共用一条处理链，neo4j 驱动和 uvicorn 的日志
与业务日志格式一致。通过环境变量控制:
- LOG_LEVEL: 日志级别，默认 INFO
- LOG_FORMAT: json（默认，生产环境）或 console（开发环境）
"""

import logging
import os
import sys
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Iterator, Optional

import structlog


class LogFormat(str, Enum):
    """日志格式"""
    JSON = "json"
    CONSOLE = "console"


@dataclass
class LogConfig:
    """日志配置"""
    level: str = "INFO"
    format: LogFormat = LogFormat.JSON
    add_timestamp: bool = True
    service_name: str = "note-graph-mirror"

    @classmethod
    def from_env(cls, service_name: str = "note-graph-mirror") -> "LogConfig":
        """从环境变量创建配置"""
        format_str = os.getenv("LOG_FORMAT", "json").lower()
        return cls(
            level=os.getenv("LOG_LEVEL", "INFO").upper(),
            format=LogFormat.CONSOLE if format_str == "console" else LogFormat.JSON,
            service_name=service_name,
        )


# 第三方 logger 的级别，避免驱动的连接池日志淹没同步日志
_QUIET_LOGGERS = {
    "uvicorn.access": logging.WARNING,
    "neo4j": logging.WARNING,
    "sqlalchemy": logging.WARNING,
}


def _shared_processors(config: LogConfig) -> list:
    """structlog 与标准库 logging 共用的前置处理器"""
    def add_service(_, __, event_dict):
        event_dict.setdefault("service", config.service_name)
        return event_dict

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        add_service,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]
    if config.add_timestamp:
        processors.insert(0, structlog.processors.TimeStamper(fmt="iso"))
    return processors


def _renderer(config: LogConfig):
    if config.format == LogFormat.CONSOLE:
        return structlog.dev.ConsoleRenderer(
            colors=sys.stderr.isatty(),
            exception_formatter=structlog.dev.plain_traceback,
        )
    return structlog.processors.JSONRenderer(ensure_ascii=False)


def configure_logging(config: Optional[LogConfig] = None, service_name: str = "note-graph-mirror"):
    """
    配置结构化日志

    日志输出到 stderr，CLI 的 stdout 只留给命令结果。

    Args:
        config: 日志配置，None 则从环境变量读取
        service_name: 服务名称（写入每条日志的 service 字段）
    """
    if config is None:
        config = LogConfig.from_env(service_name=service_name)

    log_level = getattr(logging, config.level, logging.INFO)
    shared = _shared_processors(config)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *shared,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(structlog.stdlib.ProcessorFormatter(
        processor=_renderer(config),
        foreign_pre_chain=shared,
    ))

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(log_level)

    logging.getLogger("uvicorn").setLevel(log_level)
    for name, level in _QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(level)


def get_logger(name: Optional[str] = None) -> structlog.stdlib.BoundLogger:
    """
    获取结构化日志器

    使用示例:
        logger = get_logger(__name__)
        logger.info("mirror_cutover", run_id="3f2c...", notes=120)
    """
    return structlog.get_logger(name)


def bind_request_context(request_id: str, **extra):
    """绑定请求上下文（request_id 及额外字段）到之后的所有日志"""
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(request_id=request_id, **extra)


def clear_request_context():
    """清除请求上下文"""
    structlog.contextvars.clear_contextvars()


@contextmanager
def bound_run_context(run_id: str) -> Iterator[None]:
    """在一次同步期间给所有日志附加 run_id，退出时恢复原上下文"""
    with structlog.contextvars.bound_contextvars(run_id=run_id):
        yield


__all__ = [
    "LogConfig",
    "LogFormat",
    "configure_logging",
    "get_logger",
    "bind_request_context",
    "clear_request_context",
    "bound_run_context",
]
