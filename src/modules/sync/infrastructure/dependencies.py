"""Sync module dependencies.

HTTP 请求、Celery 任务与运维脚本都通过这里组装同步引擎。
"""

from fastapi import Depends

from src.core.domain.ports.kv import KVClient
from src.core.infrastructure.redis import get_redis_client
from src.modules.catalog.application.category_discovery_service import (
    CategoryDiscoveryService,
)
from src.modules.catalog.infrastructure.repositories import (
    PostgreSQLCategoryRepository,
    PostgreSQLChannelRepository,
    PostgreSQLProviderRepository,
)
from src.modules.sync.application.catalog_swap import CatalogSwap
from src.modules.sync.application.lock import SyncLock
from src.modules.sync.application.orchestrator import SyncOrchestrator
from src.modules.sync.application.progress_tracker import ProgressTracker
from src.modules.sync.infrastructure.providers.factory import CatalogProviderFactory


def build_sync_orchestrator(
    kv: KVClient,
    progress: ProgressTracker | None = None,
) -> SyncOrchestrator:
    """组装同步引擎（PostgreSQL 仓储 + 共享 KV 中的锁与进度）。"""
    return SyncOrchestrator(
        provider_repository=PostgreSQLProviderRepository(),
        category_repository=PostgreSQLCategoryRepository(),
        catalog_swap=CatalogSwap(PostgreSQLChannelRepository()),
        lock=SyncLock(kv),
        progress=progress or ProgressTracker(kv),
        provider_factory=CatalogProviderFactory(),
    )


def build_category_discovery_service() -> CategoryDiscoveryService:
    return CategoryDiscoveryService(
        provider_repository=PostgreSQLProviderRepository(),
        category_repository=PostgreSQLCategoryRepository(),
        provider_factory=CatalogProviderFactory(),
    )


def get_kv_client() -> KVClient:
    return get_redis_client()


async def get_sync_orchestrator(
    kv: KVClient = Depends(get_kv_client),
) -> SyncOrchestrator:
    return build_sync_orchestrator(kv)


async def get_category_discovery_service() -> CategoryDiscoveryService:
    return build_category_discovery_service()
