"""测试用内存实现与构造函数。"""

import copy
import json
from datetime import datetime, timedelta
from typing import Any

from src.modules.catalog.domain.entities import (
    Category,
    CategorySpec,
    CategoryType,
    ChannelRecord,
    Provider,
    ProviderProtocol,
)
from src.modules.catalog.domain.repository import (
    CategoryRepository,
    ChannelRepository,
    ProviderRepository,
)


class InMemoryKV:
    """内存版共享 KV，值按 JSON 序列化存储以模拟 Redis。"""

    def __init__(self) -> None:
        self.data: dict[str, str] = {}
        self.writes = 0

    async def ping(self) -> bool:
        return True

    async def get_json(self, key: str) -> Any | None:
        raw = self.data.get(key)
        return json.loads(raw) if raw is not None else None

    async def set_json(
        self,
        key: str,
        value: Any,
        ex: int | timedelta | None = None,
    ) -> bool:
        self.data[key] = json.dumps(value)
        self.writes += 1
        return True

    async def delete(self, *keys: str) -> int:
        removed = 0
        for key in keys:
            if self.data.pop(key, None) is not None:
                removed += 1
        return removed

    async def compare_and_set_json(
        self,
        key: str,
        expected: Any | None,
        value: Any | None,
    ) -> bool:
        if await self.get_json(key) != expected:
            return False
        if value is None:
            self.data.pop(key, None)
        else:
            self.data[key] = json.dumps(value)
            self.writes += 1
        return True


class InMemoryProviderRepository(ProviderRepository):
    def __init__(self, providers: list[Provider] | None = None) -> None:
        self.providers = {p.id: p for p in providers or []}
        self.success_calls: list[tuple[str, int]] = []
        self.error_calls: list[tuple[str, str]] = []

    async def get_by_id(self, provider_id: str) -> Provider | None:
        provider = self.providers.get(provider_id)
        return copy.deepcopy(provider) if provider else None

    async def list_enabled(self) -> list[Provider]:
        enabled = [p for p in self.providers.values() if p.enabled]
        return [copy.deepcopy(p) for p in sorted(enabled, key=lambda p: (p.name, p.id))]

    async def record_sync_success(
        self,
        provider_id: str,
        channel_count: int,
        synced_at: datetime,
    ) -> None:
        self.success_calls.append((provider_id, channel_count))
        provider = self.providers[provider_id]
        provider.last_synced_at = synced_at
        provider.last_sync_channel_count = channel_count
        provider.last_sync_error = None

    async def record_sync_error(self, provider_id: str, error: str) -> None:
        self.error_calls.append((provider_id, error))
        self.providers[provider_id].last_sync_error = error


class InMemoryCategoryRepository(CategoryRepository):
    def __init__(self, categories: list[Category] | None = None) -> None:
        self.categories: dict[tuple[str, str, CategoryType], Category] = {
            c.identity: c for c in categories or []
        }

    async def list_by_provider(
        self,
        provider_id: str,
        enabled_only: bool = True,
    ) -> list[Category]:
        return [
            c
            for c in self.categories.values()
            if c.provider_id == provider_id and (c.enabled or not enabled_only)
        ]

    async def upsert(self, provider_id: str, spec: CategorySpec) -> Category:
        key = (provider_id, spec.provider_category_id, spec.category_type)
        existing = self.categories.get(key)
        if existing is not None:
            existing.name = spec.name
            return existing
        category = Category(
            provider_id=provider_id,
            provider_category_id=spec.provider_category_id,
            name=spec.name,
            category_type=spec.category_type,
        )
        self.categories[key] = category
        return category

    async def delete_missing(
        self,
        provider_id: str,
        keep: set[tuple[str, str]],
    ) -> int:
        stale = [
            key
            for key, c in self.categories.items()
            if c.provider_id == provider_id
            and (c.provider_category_id, str(c.category_type)) not in keep
        ]
        for key in stale:
            del self.categories[key]
        return len(stale)


class InMemoryChannelRepository(ChannelRepository):
    def __init__(self) -> None:
        self.channels: dict[str, list[ChannelRecord]] = {}

    async def replace_for_provider(
        self,
        provider_id: str,
        channels: list[ChannelRecord],
    ) -> int:
        self.channels[provider_id] = list(channels)
        return 1

    async def count_by_provider(self, provider_id: str) -> int:
        return len(self.channels.get(provider_id, []))


def make_provider(
    name: str = "Provider",
    protocol: ProviderProtocol = ProviderProtocol.API,
    categories: list[tuple[str, CategoryType]] | None = None,
    **fields: Any,
) -> Provider:
    """构造 Provider，categories 为 (上游分类 ID, 类型) 列表。"""
    if protocol == ProviderProtocol.API:
        fields.setdefault("xtream_host", "http://xtream.test")
        fields.setdefault("xtream_username", "user")
        fields.setdefault("xtream_password", "pass")
    else:
        fields.setdefault("playlist_url", "http://playlist.test/list.m3u")

    provider = Provider(name=name, protocol=protocol, **fields)
    provider.categories = [
        Category(
            provider_id=provider.id,
            provider_category_id=category_id,
            name=f"Category {category_id}",
            category_type=category_type,
        )
        for category_id, category_type in categories or []
    ]
    return provider


def make_channels(provider_id: str, count: int) -> list[ChannelRecord]:
    return [
        ChannelRecord(
            provider_id=provider_id,
            name=f"Channel {i}",
            url=f"http://stream.test/{provider_id}/{i}.ts",
        )
        for i in range(count)
    ]
