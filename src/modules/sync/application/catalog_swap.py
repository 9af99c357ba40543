"""Catalog swap.

整体替换一个 Provider 的频道集合。空集合一律拒绝，已有数据保持不变。
"""

from loguru import logger

from src.modules.catalog.domain.entities import ChannelRecord
from src.modules.catalog.domain.repository import ChannelRepository
from src.modules.sync.domain.exceptions import EmptyCatalogError


class CatalogSwap:
    """频道替换服务。"""

    def __init__(self, channel_repository: ChannelRepository):
        self.channel_repository = channel_repository

    async def swap(self, provider_id: str, channels: list[ChannelRecord]) -> int:
        """替换频道，返回写入的频道数。

        Raises:
            EmptyCatalogError: channels 为空（在任何删除之前抛出）
        """
        if not channels:
            logger.warning(
                f"Refusing to swap empty catalog for provider {provider_id}"
            )
            raise EmptyCatalogError()

        mismatched = [c for c in channels if c.provider_id != provider_id]
        if mismatched:
            raise ValueError(
                f"{len(mismatched)} channel records do not belong to {provider_id}"
            )

        await self.channel_repository.replace_for_provider(provider_id, channels)
        return len(channels)
