"""M3U 播放列表协议的目录抓取器。"""

from collections.abc import Awaitable, Callable

from loguru import logger

from src.modules.catalog.domain.entities import (
    CategorySpec,
    CategoryType,
    ChannelRecord,
    Provider,
)
from src.modules.sync.domain.exceptions import EmptyCatalogError, ProviderConfigError
from src.modules.sync.domain.provider import CatalogProvider, FetchContext
from src.modules.sync.infrastructure.providers.m3u_parser import (
    M3UParseResult,
    extract_groups,
    fetch_and_parse_m3u,
)


class FileProvider(CatalogProvider):
    """下载整个播放列表，分组标签即分类（类型固定为 live）。

    播放列表中出现的新分组会自动创建分类，全部条目都会写入，不按分类启用状态过滤。
    """

    def __init__(
        self,
        fetcher: Callable[[str], Awaitable[M3UParseResult]] = fetch_and_parse_m3u,
    ):
        self.fetcher = fetcher

    async def _fetch(self, provider: Provider) -> M3UParseResult:
        if not provider.playlist_url:
            raise ProviderConfigError("Missing M3U URL")
        return await self.fetcher(provider.playlist_url)

    def total_categories(self, provider: Provider) -> int:
        return len([c for c in provider.categories if c.enabled])

    async def fetch_catalog(self, ctx: FetchContext) -> list[ChannelRecord]:
        provider = ctx.provider
        result = await self._fetch(provider)
        if not result.entries:
            raise EmptyCatalogError("Zero entries parsed from playlist, aborting")

        if result.errors:
            logger.warning(
                f"Playlist for {provider.name} has {len(result.errors)} "
                f"malformed lines, first: {result.errors[0]}"
            )
            await ctx.report_error(
                f"{provider.name}: {len(result.errors)} playlist lines failed to parse"
            )

        await ctx.check_cancelled()

        category_ids = {
            c.provider_category_id: c.id
            for c in ctx.categories_of(CategoryType.LIVE)
        }
        groups = extract_groups(result.entries)
        new_groups = [g for g in groups if g not in category_ids]
        if new_groups:
            category_ids.update(await ctx.ensure_categories(new_groups))
            logger.info(
                f"Resolved {len(new_groups)} new playlist groups for {provider.name}"
            )

        channels = [
            ChannelRecord(
                provider_id=provider.id,
                category_id=category_ids.get(entry.group_title),
                name=entry.name,
                url=entry.url,
                group_title=entry.group_title,
                tvg_id=entry.tvg_id,
                tvg_name=entry.tvg_name,
                tvg_logo=entry.tvg_logo,
                duration_sec=entry.duration,
            )
            for entry in result.entries
        ]
        await ctx.on_category_done(len(groups), len(channels))
        return channels

    async def discover_categories(self, provider: Provider) -> list[CategorySpec]:
        result = await self._fetch(provider)
        return [
            CategorySpec(
                provider_category_id=group,
                name=group,
                category_type=CategoryType.LIVE,
            )
            for group in extract_groups(result.entries)
        ]
