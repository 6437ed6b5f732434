"""Exception handling utilities for FastAPI routes.

ApplicationError 按 category 映射 HTTP 状态码，响应体统一为 ErrorResponse。
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.schemas.common import ErrorResponse
from domains.core import ApplicationError, get_logger

logger = get_logger(__name__)


def error_response(status_code: int, body: ErrorResponse) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


def register_exception_handlers(app: FastAPI) -> None:
    """注册 ApplicationError 与兜底异常处理器"""

    @app.exception_handler(ApplicationError)
    async def application_error_handler(request: Request, exc: ApplicationError) -> JSONResponse:
        # 5xx 表示镜像依赖出了问题，4xx 是调用方或镜像状态问题
        log = logger.error if exc.http_status_code >= 500 else logger.warning
        log(
            "application_error",
            code=exc.code,
            category=exc.category.value,
            error=exc.message,
            path=request.url.path,
        )
        return error_response(
            exc.http_status_code,
            ErrorResponse(error=exc.message, code=exc.code, details=exc.details),
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception(
            "unhandled_exception",
            error_type=type(exc).__name__,
            path=request.url.path,
            method=request.method,
        )
        return error_response(
            500,
            ErrorResponse(
                error=f"Internal server error: {type(exc).__name__}",
                code="INTERNAL_ERROR",
            ),
        )


__all__ = ["register_exception_handlers", "error_response"]
