"""
Neo4j 集成配置（基于 pydantic-settings）

提供:
- 环境变量自动绑定 (NEO4J_*)
- 连接配置解析，缺失时给出 "集成不可用" 原因而不是发起连接
"""

from dataclasses import dataclass
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


@dataclass(frozen=True)
class Neo4jConnectionConfig:
    """Neo4j 连接配置"""

    uri: str
    username: str
    password: str
    database: str = "neo4j"


@dataclass(frozen=True)
class Neo4jIntegration:
    """解析后的集成状态"""

    enabled: bool
    sync_on_index: bool
    strict_mode: bool
    config: Neo4jConnectionConfig | None
    unavailable_reason: str | None

    @property
    def available(self) -> bool:
        return self.enabled and self.config is not None


class Neo4jSettings(BaseSettings):
    """Neo4j 图镜像配置"""

    model_config = SettingsConfigDict(
        env_prefix="NEO4J_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    enabled: bool = Field(default=False, description="是否启用 Neo4j 图镜像")
    uri: str | None = Field(default=None, description="连接地址，如 bolt://localhost:7687")
    username: str | None = Field(default=None, description="用户名")
    password: str | None = Field(default=None, description="密码")
    database: str | None = Field(default="neo4j", description="数据库名")
    sync_on_index: bool = Field(default=True, description="索引完成后是否自动同步")
    strict_mode: bool = Field(default=False, description="同步失败时是否中断调用方")
    batch_size: int = Field(default=500, ge=1, le=2000, description="每批写入行数")
    max_resolutions_per_target: int = Field(
        default=20, ge=1, le=200, description="每个链接目标最多解析的笔记数"
    )

    @field_validator("uri", "username", "password", "database")
    @classmethod
    def strip_blank(cls, v):
        if v is None:
            return None
        v = v.strip()
        return v or None


def resolve_neo4j_integration(settings: Neo4jSettings) -> Neo4jIntegration:
    """
    解析集成状态

    Args:
        settings: Neo4j 配置

    Returns:
        Neo4jIntegration，config 为 None 时 unavailable_reason 说明原因
    """
    if not settings.enabled:
        return Neo4jIntegration(
            enabled=False,
            sync_on_index=settings.sync_on_index,
            strict_mode=settings.strict_mode,
            config=None,
            unavailable_reason="Neo4j 集成未启用。设置 NEO4J_ENABLED=1 以启用",
        )

    missing = [
        f"NEO4J_{name.upper()}"
        for name in ("uri", "username", "password")
        if not getattr(settings, name)
    ]
    if missing:
        return Neo4jIntegration(
            enabled=True,
            sync_on_index=settings.sync_on_index,
            strict_mode=settings.strict_mode,
            config=None,
            unavailable_reason=f"Neo4j 已启用但配置不完整，缺少: {', '.join(missing)}",
        )

    return Neo4jIntegration(
        enabled=True,
        sync_on_index=settings.sync_on_index,
        strict_mode=settings.strict_mode,
        config=Neo4jConnectionConfig(
            uri=settings.uri,
            username=settings.username,
            password=settings.password,
            database=settings.database or "neo4j",
        ),
        unavailable_reason=None,
    )


@lru_cache
def get_neo4j_settings() -> Neo4jSettings:
    """获取配置单例"""
    return Neo4jSettings()


def reload_neo4j_settings() -> Neo4jSettings:
    """清除缓存并重新加载配置"""
    get_neo4j_settings.cache_clear()
    return get_neo4j_settings()


__all__ = [
    "Neo4jConnectionConfig",
    "Neo4jIntegration",
    "Neo4jSettings",
    "resolve_neo4j_integration",
    "get_neo4j_settings",
    "reload_neo4j_settings",
]
