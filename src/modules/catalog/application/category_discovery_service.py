"""Category discovery.

从上游拉取当前存在的分类，按 (provider, provider_category_id, type) 写入，
并删除上游已不存在的分类。已有分类只刷新名称，启用状态保持不变。
"""

from loguru import logger

from src.modules.catalog.application.models import CategoryDiscoveryResult
from src.modules.catalog.domain.repository import (
    CategoryRepository,
    ProviderRepository,
)
from src.modules.sync.domain.provider import CatalogProviderResolver


class CategoryDiscoveryService:
    """Discover and persist upstream categories for one provider."""

    def __init__(
        self,
        provider_repository: ProviderRepository,
        category_repository: CategoryRepository,
        provider_factory: CatalogProviderResolver,
    ) -> None:
        self.provider_repository = provider_repository
        self.category_repository = category_repository
        self.provider_factory = provider_factory

    async def discover(self, provider_id: str) -> CategoryDiscoveryResult:
        provider = await self.provider_repository.get_by_id(provider_id)
        if provider is None:
            return CategoryDiscoveryResult(success=False, error="Provider not found")

        try:
            fetcher = self.provider_factory.create(provider.protocol)
            specs = await fetcher.discover_categories(provider)

            for spec in specs:
                await self.category_repository.upsert(provider.id, spec)

            keep = {(s.provider_category_id, str(s.category_type)) for s in specs}
            removed = await self.category_repository.delete_missing(provider.id, keep)
        except Exception as e:
            message = str(e) or e.__class__.__name__
            logger.warning(f"Category discovery failed for {provider.name}: {message}")
            await self.provider_repository.record_sync_error(provider.id, message)
            return CategoryDiscoveryResult(success=False, error=message)

        logger.info(
            f"Discovered {len(specs)} categories for {provider.name}, "
            f"removed {removed}"
        )
        return CategoryDiscoveryResult(success=True, count=len(specs), removed=removed)
