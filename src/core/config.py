"""Application configuration."""

import warnings
from typing import Literal, Self

from pydantic import HttpUrl, computed_field, model_validator
from pydantic_core import MultiHostUrl
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_ignore_empty=True,
        extra="ignore",
    )

    # Application
    PROJECT_NAME: str = "CatalogSync"
    SERVER_PORT: int = 8000
    ROOTPATH: str = ""
    API_V1_STR: str = "/api/v1"
    ENVIRONMENT: Literal["local", "staging", "production"] = "local"
    LOG_LEVEL: str = "INFO"
    TIMEZONE: str = "UTC"

    # Sentry
    SENTRY_DSN: HttpUrl | None = None

    # PostgreSQL
    POSTGRES_SERVER: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = ""
    POSTGRES_DB: str = "catalogsync"

    @computed_field
    @property
    def database_url_object(self) -> MultiHostUrl:
        return MultiHostUrl.build(
            scheme="postgresql+psycopg",
            username=self.POSTGRES_USER,
            password=self.POSTGRES_PASSWORD,
            host=self.POSTGRES_SERVER,
            port=self.POSTGRES_PORT,
            path=self.POSTGRES_DB,
        )

    @computed_field
    @property
    def SQLALCHEMY_DATABASE_URI(self) -> str:
        return str(self.database_url_object)

    # Redis
    REDIS_URL: str = "redis://localhost:6379/0"
    REDIS_CLIENT_TIMEOUT_SEC: float = 5.0

    # Upstream providers
    XTREAM_TIMEOUT_SEC: float = 30.0
    M3U_FETCH_TIMEOUT_SEC: float = 60.0
    UPSTREAM_USER_AGENT: str = "Mozilla/5.0 (compatible; CatalogSync/1.0)"
    DEFAULT_REFRESH_INTERVAL_MIN: int = 360  # 6 小时

    # Sync Engine
    SYNC_CATEGORY_CONCURRENCY: int = 5  # 分类并发抓取上限
    SYNC_SERIES_CONCURRENCY: int = 10  # 剧集详情并发上限
    SYNC_CATEGORY_UPSERT_CONCURRENCY: int = 10
    SYNC_LOCK_TTL_SEC: int = 900  # 必须大于同步任务硬超时
    SYNC_LOCK_HEARTBEAT_SEC: int = 120
    SYNC_PROGRESS_FLUSH_INTERVAL_SEC: float = 1.0
    CATALOG_SWAP_BATCH_SIZE: int = 5000
    SYNC_SCHEDULE_INTERVAL_SEC: int = 3600
    SYNC_TASK_TIME_LIMIT_SEC: int = 840
    SYNC_API_TOKEN: str | None = None

    # Celery Settings
    CELERY_BROKER_URL: str | None = None  # 默认使用 REDIS_URL
    CELERY_RESULT_BACKEND: str | None = None  # 默认使用 REDIS_URL
    CELERY_TASK_SERIALIZER: str = "json"
    CELERY_RESULT_SERIALIZER: str = "json"
    CELERY_ACCEPT_CONTENT: list[str] = ["json"]

    @computed_field
    @property
    def celery_broker_url(self) -> str:
        """获取 Celery Broker URL，默认使用 Redis URL。"""
        return self.CELERY_BROKER_URL or self.REDIS_URL

    @computed_field
    @property
    def celery_result_backend(self) -> str:
        """获取 Celery Result Backend URL，默认使用 Redis URL。"""
        return self.CELERY_RESULT_BACKEND or self.REDIS_URL

    def _check_default_secret(self, var_name: str, value: str | None) -> None:
        if value == "changethis":
            message = (
                f'The value of {var_name} is "changethis", '
                "for security, please change it, at least for deployments."
            )
            if self.ENVIRONMENT == "local":
                warnings.warn(message, stacklevel=1)
            else:
                raise ValueError(message)

    @model_validator(mode="after")
    def _enforce_non_default_secrets(self) -> Self:
        self._check_default_secret("SYNC_API_TOKEN", self.SYNC_API_TOKEN)
        return self

    @model_validator(mode="after")
    def _check_lock_ttl(self) -> Self:
        # 锁过期时间必须覆盖单次同步的最长处理时间
        if self.SYNC_LOCK_TTL_SEC <= self.SYNC_TASK_TIME_LIMIT_SEC:
            raise ValueError(
                "SYNC_LOCK_TTL_SEC must be greater than SYNC_TASK_TIME_LIMIT_SEC"
            )
        return self


settings = Settings()
