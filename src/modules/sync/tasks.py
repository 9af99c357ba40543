"""目录同步 Celery 任务。

包含：
- 全量同步（Celery Beat 定时触发，也可由 HTTP 接口投递）
- 单个 Provider 同步

每个任务在 asyncio.run() 中运行，并为本次事件循环新建 Redis 连接，结束时关闭。
"""

import asyncio
from typing import Any

from celery import shared_task
from celery.signals import worker_process_init
from loguru import logger

from src.core.config import settings
from src.core.infrastructure.celery.queues import Queues
from src.core.infrastructure.celery.retry import INFRA_RETRYABLE_EXCEPTIONS
from src.core.infrastructure.logging import setup_logging


@worker_process_init.connect
def _init_worker_logging(**_kwargs: Any) -> None:
    setup_logging()


@shared_task(
    name="src.modules.sync.tasks.run_full_sync",
    bind=True,
    max_retries=2,
    autoretry_for=INFRA_RETRYABLE_EXCEPTIONS,
    retry_backoff=True,
    queue=Queues.SYNC,
)
def run_full_sync(_self: object) -> dict[str, Any]:
    """同步全部启用的 Provider。

    锁被占用时直接返回 "already running" 结果，不重试。
    """
    return asyncio.run(_run_full_sync_async())


async def _run_full_sync_async() -> dict[str, Any]:
    from src.core.infrastructure.database.session import async_engine
    from src.core.infrastructure.redis import get_async_redis_client
    from src.modules.sync.application.progress_tracker import ProgressTracker
    from src.modules.sync.infrastructure.dependencies import build_sync_orchestrator

    try:
        async with get_async_redis_client(
            timeout=settings.REDIS_CLIENT_TIMEOUT_SEC
        ) as redis:
            progress = ProgressTracker(redis)
            try:
                orchestrator = build_sync_orchestrator(redis, progress=progress)
                result = await orchestrator.run_full_sync()
            finally:
                await progress.aclose()
    finally:
        await async_engine.dispose()

    logger.info(
        f"Full sync finished: success={result.success}, "
        f"providers={result.providers_processed}, channels={result.total_channels}"
    )
    return result.model_dump()


@shared_task(
    name="src.modules.sync.tasks.run_provider_sync",
    bind=True,
    max_retries=2,
    autoretry_for=INFRA_RETRYABLE_EXCEPTIONS,
    retry_backoff=True,
    queue=Queues.SYNC,
)
def run_provider_sync(_self: object, provider_id: str) -> dict[str, Any]:
    """同步单个 Provider。

    Args:
        provider_id: 要同步的 Provider ID
    """
    return asyncio.run(_run_provider_sync_async(provider_id))


async def _run_provider_sync_async(provider_id: str) -> dict[str, Any]:
    from src.core.infrastructure.database.session import async_engine
    from src.core.infrastructure.redis import get_async_redis_client
    from src.modules.sync.infrastructure.dependencies import build_sync_orchestrator

    try:
        async with get_async_redis_client(
            timeout=settings.REDIS_CLIENT_TIMEOUT_SEC
        ) as redis:
            orchestrator = build_sync_orchestrator(redis)
            result = await orchestrator.run_provider_sync(provider_id)
    finally:
        await async_engine.dispose()

    if result.success:
        logger.info(f"Provider {provider_id} synced: {result.channel_count} channels")
    else:
        logger.warning(f"Provider {provider_id} sync failed: {result.error}")
    return result.model_dump()
