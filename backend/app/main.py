"""FastAPI application entry point."""

import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from app.core.config import settings
from app.core.deps import get_graph_source
from app.core.exceptions import register_exception_handlers
from app.routes.v1.router import api_router
from domains.core import bind_request_context, clear_request_context, configure_logging, get_logger
from domains.mirror_hub.core.settings import get_neo4j_settings, resolve_neo4j_integration

configure_logging(service_name="api")
logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    HTTP 请求日志中间件

    沿用调用方传入的 X-Request-ID（没有则生成），并写回响应头，
    便于把一次同步或遍历的日志串起来。
    """

    SKIP_PATHS = ("/health", "/docs", "/redoc", "/openapi.json", "/favicon.ico")

    async def dispatch(self, request: Request, call_next) -> Response:
        if request.url.path.startswith(self.SKIP_PATHS):
            return await call_next(request)

        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex[:8]
        bind_request_context(request_id)
        started = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                "http_request_error",
                method=request.method,
                path=request.url.path,
                duration_ms=round((time.perf_counter() - started) * 1000, 2),
                error=str(e),
                error_type=type(e).__name__,
            )
            raise
        finally:
            clear_request_context()

        log = logger.error if response.status_code >= 500 else logger.info
        log(
            "http_request",
            request_id=request_id,
            method=request.method,
            path=request.url.path,
            query=str(request.query_params),
            status_code=response.status_code,
            duration_ms=round((time.perf_counter() - started) * 1000, 2),
        )
        response.headers[REQUEST_ID_HEADER] = request_id
        return response


@asynccontextmanager
async def lifespan(app: FastAPI):
    """启动时报告 Neo4j 集成状态，关闭时释放 SQLite 连接池"""
    integration = resolve_neo4j_integration(get_neo4j_settings())
    if integration.available:
        logger.info("app_started", neo4j_available=True)
    else:
        logger.warning("app_started", neo4j_available=False, reason=integration.unavailable_reason)
    yield
    get_graph_source().close()
    logger.info("app_stopped")


def create_application() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title=settings.PROJECT_NAME,
        description="笔记图 Neo4j 镜像 REST API",
        version=settings.VERSION,
        openapi_url=f"{settings.API_V1_STR}/openapi.json",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[REQUEST_ID_HEADER],
    )
    # 后添加的中间件先执行
    app.add_middleware(RequestLoggingMiddleware)

    app.include_router(api_router, prefix=settings.API_V1_STR)
    register_exception_handlers(app)

    @app.get("/health")
    async def health_check():
        """进程存活检查，不连接 Neo4j（镜像健康见 /api/v1/mirror/status）"""
        integration = resolve_neo4j_integration(get_neo4j_settings())
        return {
            "status": "healthy",
            "version": settings.VERSION,
            "neo4j_enabled": integration.enabled,
            "neo4j_available": integration.available,
        }

    return app


app = create_application()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("app.main:app", host="0.0.0.0", port=8000, log_config=None)
