"""
统一异常体系

图镜像各层抛出的错误都继承 ApplicationError:
- 参数与起点错误 (VALIDATION / NOT_FOUND)
- 镜像状态错误 (BUSINESS)，如镜像为空、一致性校验失败
- 外部依赖错误 (EXTERNAL)，如 Neo4j、SQLite
- 集成不可用 (UNAVAILABLE)，未启用或配置不完整时不发起连接

API 层通过 http_status_code 映射响应码，CLI 通过 to_dict() 输出。
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional


class ErrorCategory(str, Enum):
    """错误分类"""
    VALIDATION = "validation"      # 参数验证错误
    NOT_FOUND = "not_found"        # 资源不存在
    BUSINESS = "business"          # 镜像状态不满足操作前提
    EXTERNAL = "external"          # 外部服务错误
    UNAVAILABLE = "unavailable"    # 集成未启用或未配置
    INTERNAL = "internal"          # 内部错误


_HTTP_STATUS = {
    ErrorCategory.VALIDATION: 400,
    ErrorCategory.NOT_FOUND: 404,
    ErrorCategory.BUSINESS: 422,
    ErrorCategory.EXTERNAL: 502,
    ErrorCategory.UNAVAILABLE: 503,
    ErrorCategory.INTERNAL: 500,
}


@dataclass
class ApplicationError(Exception):
    """
    应用层异常基类

    使用示例:
        raise ValidationError("遍历起点 path 不能为空", field="path")
        raise SeedNotFoundError("notes/a.md", run_id)
        raise MirrorStoreError("write_notes", "tx aborted", cause=e)
    """
    code: str                                    # 错误码 (如 "MIRROR_EMPTY")
    message: str                                 # 用户可读的错误信息
    category: ErrorCategory = ErrorCategory.INTERNAL
    details: Optional[Dict[str, Any]] = None    # 附加详情
    cause: Optional[Exception] = None           # 原始异常

    def __post_init__(self):
        super().__init__(self.message)

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"

    @property
    def http_status_code(self) -> int:
        return _HTTP_STATUS.get(self.category, 500)

    def to_dict(self) -> Dict[str, Any]:
        """转换为字典格式（API 与 CLI 输出）"""
        result = {
            "code": self.code,
            "message": self.message,
            "category": self.category.value,
        }
        if self.details:
            result["details"] = self.details
        return result


# ==================== 通用异常 ====================

class NotFoundError(ApplicationError):
    """资源不存在"""
    def __init__(
        self,
        resource_type: str,
        resource_id: Any,
        details: Optional[Dict] = None,
        message: Optional[str] = None,
        code: str = "NOT_FOUND",
    ):
        super().__init__(
            code=code,
            message=message or f"{resource_type}不存在: {resource_id}",
            category=ErrorCategory.NOT_FOUND,
            details=details or {"resource_type": resource_type, "resource_id": str(resource_id)},
        )
        self.resource_type = resource_type
        self.resource_id = resource_id


class ValidationError(ApplicationError):
    """参数验证错误，field 指出出错的参数"""
    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(
            code="VALIDATION_ERROR",
            message=message,
            category=ErrorCategory.VALIDATION,
            details={"field": field} if field else None,
        )
        self.field = field


class BusinessError(ApplicationError):
    """镜像状态不允许执行该操作"""
    def __init__(self, code: str, message: str, details: Optional[Dict] = None):
        super().__init__(
            code=code,
            message=message,
            category=ErrorCategory.BUSINESS,
            details=details,
        )


class ExternalServiceError(ApplicationError):
    """外部服务错误"""
    def __init__(
        self,
        service_name: str,
        message: str,
        details: Optional[Dict] = None,
        cause: Optional[Exception] = None,
        code: str = "EXTERNAL_SERVICE_ERROR",
    ):
        super().__init__(
            code=code,
            message=f"{service_name}: {message}",
            category=ErrorCategory.EXTERNAL,
            details=details or {"service": service_name},
            cause=cause,
        )
        self.service_name = service_name


# ==================== 集成 ====================

class IntegrationUnavailableError(ApplicationError):
    """Neo4j 集成未启用或配置不完整（不会发起连接）"""
    def __init__(self, reason: str):
        super().__init__(
            code="INTEGRATION_UNAVAILABLE",
            message=reason,
            category=ErrorCategory.UNAVAILABLE,
            details={"reason": reason},
        )
        self.reason = reason


class MirrorConnectionError(ExternalServiceError):
    """Neo4j 不可达或认证失败"""
    def __init__(self, uri: str, message: str, cause: Optional[Exception] = None):
        super().__init__(
            service_name="Neo4j",
            message=f"连接失败 ({uri}): {message}",
            details={"service": "Neo4j", "uri": uri},
            cause=cause,
            code="MIRROR_CONNECTION_ERROR",
        )
        self.uri = uri


class MirrorStoreError(ExternalServiceError):
    """Neo4j 查询或写入失败"""
    def __init__(self, operation: str, message: str, cause: Optional[Exception] = None):
        super().__init__(
            service_name="Neo4j",
            message=f"{operation} 失败: {message}",
            details={"service": "Neo4j", "operation": operation},
            cause=cause,
            code="MIRROR_STORE_ERROR",
        )
        self.operation = operation


# ==================== 镜像状态 ====================

class MirrorConsistencyError(BusinessError):
    """暂存运行的计数与数据源不一致，拒绝切换"""
    def __init__(self, run_id: str, source_counts: Dict[str, int], mirrored_counts: Dict[str, int]):
        super().__init__(
            code="MIRROR_INCONSISTENT",
            message=(
                f"图镜像一致性校验失败 (run_id={run_id}): "
                f"source={source_counts}, mirrored={mirrored_counts}"
            ),
            details={
                "run_id": run_id,
                "source_counts": source_counts,
                "mirrored_counts": mirrored_counts,
            },
        )
        self.run_id = run_id
        self.source_counts = source_counts
        self.mirrored_counts = mirrored_counts


class MirrorEmptyError(BusinessError):
    """镜像没有任何已激活的运行"""
    def __init__(self):
        super().__init__(
            code="MIRROR_EMPTY",
            message="Neo4j 图镜像为空（没有已激活的运行），请先执行同步",
        )


class SeedNotFoundError(NotFoundError):
    """遍历起点不在当前激活的运行中"""
    def __init__(self, path: str, run_id: str):
        super().__init__(
            "起点笔记",
            path,
            details={"path": path, "run_id": run_id},
            message=(
                f'起点笔记不存在: path="{path}" (run_id={run_id})。'
                "请重新执行同步以刷新图镜像"
            ),
            code="SEED_NOT_FOUND",
        )
        self.path = path
        self.run_id = run_id


__all__ = [
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
]
