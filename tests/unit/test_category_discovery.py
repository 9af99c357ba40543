"""Tests for category discovery."""

import pytest

from src.modules.catalog.application.category_discovery_service import (
    CategoryDiscoveryService,
)
from src.modules.catalog.domain.entities import (
    Category,
    CategorySpec,
    CategoryType,
    ChannelRecord,
    Provider,
    ProviderProtocol,
)
from src.modules.sync.domain.exceptions import UpstreamAuthError
from src.modules.sync.domain.provider import CatalogProvider, FetchContext
from tests.fakes import (
    InMemoryCategoryRepository,
    InMemoryProviderRepository,
    make_provider,
)

pytestmark = pytest.mark.anyio


class DiscoveringProvider(CatalogProvider):
    def __init__(self, specs: list[CategorySpec] | None = None, error=None) -> None:
        self.specs = specs or []
        self.error = error

    def total_categories(self, provider: Provider) -> int:
        return 0

    async def fetch_catalog(self, ctx: FetchContext) -> list[ChannelRecord]:
        return []

    async def discover_categories(self, provider: Provider) -> list[CategorySpec]:
        if self.error is not None:
            raise self.error
        return self.specs


class Resolver:
    def __init__(self, fetcher: CatalogProvider) -> None:
        self.fetcher = fetcher

    def create(self, protocol: ProviderProtocol) -> CatalogProvider:
        return self.fetcher


def _service(
    providers: InMemoryProviderRepository,
    categories: InMemoryCategoryRepository,
    fetcher: CatalogProvider,
) -> CategoryDiscoveryService:
    return CategoryDiscoveryService(
        provider_repository=providers,
        category_repository=categories,
        provider_factory=Resolver(fetcher),
    )


async def test_discover_upserts_and_removes_missing() -> None:
    provider = make_provider("Alpha")
    kept = Category(
        provider_id=provider.id,
        provider_category_id="1",
        name="Old name",
        category_type=CategoryType.LIVE,
        enabled=False,
    )
    gone = Category(
        provider_id=provider.id,
        provider_category_id="9",
        name="Gone",
        category_type=CategoryType.LIVE,
    )
    # 同一个上游 ID 在不同类型下是不同的分类
    same_id_other_type = Category(
        provider_id=provider.id,
        provider_category_id="1",
        name="Movies",
        category_type=CategoryType.MOVIE,
    )
    categories = InMemoryCategoryRepository([kept, gone, same_id_other_type])
    fetcher = DiscoveringProvider(
        [
            CategorySpec(
                provider_category_id="1", name="News", category_type=CategoryType.LIVE
            ),
            CategorySpec(
                provider_category_id="2",
                name="Series",
                category_type=CategoryType.SERIES,
            ),
        ]
    )
    service = _service(InMemoryProviderRepository([provider]), categories, fetcher)

    result = await service.discover(provider.id)

    assert result.model_dump() == {
        "success": True,
        "count": 2,
        "removed": 2,
        "error": None,
    }
    remaining = await categories.list_by_provider(provider.id, enabled_only=False)
    assert sorted((c.provider_category_id, c.category_type) for c in remaining) == [
        ("1", CategoryType.LIVE),
        ("2", CategoryType.SERIES),
    ]
    news = next(c for c in remaining if c.provider_category_id == "1")
    assert news.name == "News"
    # 已有分类的启用状态保持不变
    assert news.enabled is False


async def test_discover_provider_not_found() -> None:
    service = _service(
        InMemoryProviderRepository(),
        InMemoryCategoryRepository(),
        DiscoveringProvider(),
    )

    result = await service.discover("missing")

    assert result.success is False
    assert result.error == "Provider not found"


async def test_discover_failure_records_provider_error() -> None:
    provider = make_provider("Alpha")
    providers = InMemoryProviderRepository([provider])
    categories = InMemoryCategoryRepository()
    service = _service(
        providers, categories, DiscoveringProvider(error=UpstreamAuthError())
    )

    result = await service.discover(provider.id)

    assert result.success is False
    assert result.error == "Xtream authentication failed"
    assert providers.error_calls == [(provider.id, "Xtream authentication failed")]
    assert await categories.list_by_provider(provider.id) == []
