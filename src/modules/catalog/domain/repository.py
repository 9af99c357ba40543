"""Catalog repository interfaces."""

from abc import ABC, abstractmethod
from datetime import datetime

from src.modules.catalog.domain.entities import (
    Category,
    CategorySpec,
    ChannelRecord,
    Provider,
)


class ProviderRepository(ABC):
    """Provider repository interface."""

    @abstractmethod
    async def get_by_id(self, provider_id: str) -> Provider | None:
        """Get provider by id."""

    @abstractmethod
    async def list_enabled(self) -> list[Provider]:
        """按固定顺序（名称、ID）列出启用的 Provider。"""

    @abstractmethod
    async def record_sync_success(
        self,
        provider_id: str,
        channel_count: int,
        synced_at: datetime,
    ) -> None:
        """写入成功同步状态（清空 last_sync_error）。"""

    @abstractmethod
    async def record_sync_error(self, provider_id: str, error: str) -> None:
        """写入同步错误。"""


class CategoryRepository(ABC):
    """Category repository interface."""

    @abstractmethod
    async def list_by_provider(
        self,
        provider_id: str,
        enabled_only: bool = True,
    ) -> list[Category]:
        """List categories of a provider."""

    @abstractmethod
    async def upsert(self, provider_id: str, spec: CategorySpec) -> Category:
        """按 (provider, provider_category_id, type) 插入或更新名称。"""

    @abstractmethod
    async def delete_missing(
        self,
        provider_id: str,
        keep: set[tuple[str, str]],
    ) -> int:
        """删除不在 keep（provider_category_id, type）中的分类，返回删除数。"""


class ChannelRepository(ABC):
    """Channel repository interface."""

    @abstractmethod
    async def replace_for_provider(
        self,
        provider_id: str,
        channels: list[ChannelRecord],
    ) -> int:
        """在单个事务内替换某 Provider 的全部频道，返回插入批次数。

        任何失败都必须回滚，旧数据保持完整。
        """

    @abstractmethod
    async def count_by_provider(self, provider_id: str) -> int:
        """Count channels of a provider."""
