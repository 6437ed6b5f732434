"""
Core - 通用应用基础设施

提供与具体存储无关的基础设施组件:
- 统一异常体系
- 结构化日志
"""

from .exceptions import (
    ApplicationError,
    BusinessError,
    ErrorCategory,
    ExternalServiceError,
    IntegrationUnavailableError,
    MirrorConnectionError,
    MirrorConsistencyError,
    MirrorEmptyError,
    MirrorStoreError,
    NotFoundError,
    SeedNotFoundError,
    ValidationError,
)
from .logging_config import (
    LogConfig,
    LogFormat,
    bind_request_context,
    bound_run_context,
    clear_request_context,
    configure_logging,
    get_logger,
)

__all__ = [
    # Exceptions
    "ErrorCategory",
    "ApplicationError",
    "NotFoundError",
    "ValidationError",
    "BusinessError",
    "ExternalServiceError",
    "IntegrationUnavailableError",
    "MirrorConnectionError",
    "MirrorStoreError",
    "MirrorConsistencyError",
    "MirrorEmptyError",
    "SeedNotFoundError",
    # Logging
    "LogConfig",
    "LogFormat",
    "configure_logging",
    "get_logger",
    "bind_request_context",
    "clear_request_context",
    "bound_run_context",
]
