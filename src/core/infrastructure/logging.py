"""Logging configuration with structlog integration.

提供两种日志记录方式：
1. loguru: 用于一般调试日志
2. structlog: 用于关键业务事件的结构化日志
"""

import sys
from typing import Any

import structlog
from loguru import logger

from src.core.config import settings


def setup_logging() -> None:
    """Configure application logging with structlog and loguru."""
    # 配置 structlog
    _configure_structlog()

    # 配置 loguru
    _configure_loguru()

    logger.info(f"Logging configured with level: {settings.LOG_LEVEL}")


def _configure_structlog() -> None:
    """配置 structlog 处理器链。"""
    # 根据环境选择渲染器
    if settings.ENVIRONMENT == "local":
        # 本地开发使用人类可读格式
        renderer = structlog.dev.ConsoleRenderer(colors=True)
    else:
        # 生产环境使用 JSON 格式
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.CallsiteParameterAdder(
                [
                    structlog.processors.CallsiteParameter.MODULE,
                    structlog.processors.CallsiteParameter.FUNC_NAME,
                    structlog.processors.CallsiteParameter.LINENO,
                ]
            ),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            _get_log_level_number(settings.LOG_LEVEL)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


def _configure_loguru() -> None:
    """配置 loguru。"""
    logger.remove()

    logger.add(
        sys.stderr,
        level=settings.LOG_LEVEL,
        format=(
            "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
            "<level>{message}</level>"
        ),
        colorize=True,
    )

    # 生产环境额外写入按天滚动的文件
    if settings.ENVIRONMENT != "local":
        logger.add(
            "logs/catalogsync_{time:YYYY-MM-DD}.log",
            rotation="00:00",
            retention="30 days",
            level="INFO",
            format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}",
        )


def _get_log_level_number(level: str) -> int:
    """将日志级别字符串转换为数字。"""
    levels = {
        "DEBUG": 10,
        "INFO": 20,
        "WARNING": 30,
        "ERROR": 40,
        "CRITICAL": 50,
    }
    return levels.get(level.upper(), 20)


# ============================================================================
# 业务事件日志记录器
# ============================================================================


def get_business_logger() -> structlog.BoundLogger:
    """获取业务事件日志记录器。

    Usage:
        from src.core.infrastructure.logging import get_business_logger

        log = get_business_logger()
        log.info("sync_started", owner_id="...", providers=3)
    """
    return structlog.get_logger("business")


class BusinessEvents:
    """同步引擎业务事件日志助手。

    Usage:
        BusinessEvents.provider_sync_completed(provider_id="p1", channel_count=120)
    """

    _log = get_business_logger()

    @classmethod
    def sync_started(cls, owner_id: str, provider_count: int, **extra: Any) -> None:
        """记录同步开始事件。"""
        cls._log.info(
            "sync_started",
            event_type="sync",
            owner_id=owner_id,
            provider_count=provider_count,
            **extra,
        )

    @classmethod
    def sync_completed(
        cls,
        owner_id: str,
        status: str,
        providers_processed: int,
        total_channels: int,
        error_count: int,
        **extra: Any,
    ) -> None:
        """记录同步结束事件（含 completed_with_errors / error）。"""
        level = "info" if error_count == 0 else "warning"
        getattr(cls._log, level)(
            "sync_completed",
            event_type="sync",
            owner_id=owner_id,
            status=status,
            providers_processed=providers_processed,
            total_channels=total_channels,
            error_count=error_count,
            **extra,
        )

    @classmethod
    def sync_cancelled(cls, owner_id: str, **extra: Any) -> None:
        """记录同步被用户取消事件。"""
        cls._log.info("sync_cancelled", event_type="sync", owner_id=owner_id, **extra)

    @classmethod
    def sync_stale_run_recovered(cls, **extra: Any) -> None:
        """记录检测到僵死同步并强制收尾的事件。"""
        cls._log.warning(
            "sync_stale_run_recovered", event_type="sync_recovery", **extra
        )

    @classmethod
    def provider_sync_completed(
        cls,
        provider_id: str,
        channel_count: int,
        duration_ms: int | None = None,
        **extra: Any,
    ) -> None:
        """记录单个 Provider 同步成功事件。"""
        cls._log.info(
            "provider_sync_completed",
            event_type="provider_sync",
            provider_id=provider_id,
            channel_count=channel_count,
            duration_ms=duration_ms,
            **extra,
        )

    @classmethod
    def provider_sync_failed(
        cls,
        provider_id: str,
        error: str,
        **extra: Any,
    ) -> None:
        """记录单个 Provider 同步失败事件。"""
        cls._log.warning(
            "provider_sync_failed",
            event_type="provider_sync_error",
            provider_id=provider_id,
            error=error,
            **extra,
        )

    @classmethod
    def catalog_swapped(
        cls,
        provider_id: str,
        channel_count: int,
        batches: int,
        **extra: Any,
    ) -> None:
        """记录频道整体替换事件。"""
        cls._log.info(
            "catalog_swapped",
            event_type="catalog",
            provider_id=provider_id,
            channel_count=channel_count,
            batches=batches,
            **extra,
        )
