"""Xtream API 协议的目录抓取器。"""

import asyncio
from collections.abc import Awaitable, Callable

from loguru import logger

from src.core.config import settings
from src.modules.catalog.domain.entities import (
    Category,
    CategorySpec,
    CategoryType,
    ChannelRecord,
    Provider,
)
from src.modules.sync.application.executor import parallel_map
from src.modules.sync.domain.exceptions import ProviderConfigError, SyncCancelledError
from src.modules.sync.domain.provider import CatalogProvider, FetchContext
from src.modules.sync.infrastructure.providers.xtream_client import XtreamClient
from src.modules.sync.infrastructure.providers.xtream_models import (
    XtreamCategory,
    XtreamSeries,
)

ClientFactory = Callable[[str, str, str], XtreamClient]

CategoryFetcher = Callable[
    [XtreamClient, Provider, Category, FetchContext],
    Awaitable[list[ChannelRecord]],
]


class ApiProvider(CatalogProvider):
    """按分类类型依次抓取直播、点播、剧集，每类内部按分类并发。

    单个分类失败只记录为非致命错误，分类仍计为已完成。
    """

    def __init__(
        self,
        client_factory: ClientFactory = XtreamClient,
        category_concurrency: int | None = None,
        series_concurrency: int | None = None,
    ):
        self.client_factory = client_factory
        self.category_concurrency = (
            category_concurrency or settings.SYNC_CATEGORY_CONCURRENCY
        )
        self.series_concurrency = series_concurrency or settings.SYNC_SERIES_CONCURRENCY

    def _client(self, provider: Provider) -> XtreamClient:
        if not (
            provider.xtream_host
            and provider.xtream_username
            and provider.xtream_password
        ):
            raise ProviderConfigError("Missing Xtream credentials")
        return self.client_factory(
            provider.xtream_host,
            provider.xtream_username,
            provider.xtream_password,
        )

    def total_categories(self, provider: Provider) -> int:
        return len([c for c in provider.categories if c.enabled])

    async def fetch_catalog(self, ctx: FetchContext) -> list[ChannelRecord]:
        provider = ctx.provider
        channels: list[ChannelRecord] = []
        done = 0

        async with self._client(provider) as client:
            await client.authenticate()

            fetchers: list[tuple[CategoryType, CategoryFetcher]] = [
                (CategoryType.LIVE, self._fetch_live),
                (CategoryType.MOVIE, self._fetch_vod),
                (CategoryType.SERIES, self._fetch_series),
            ]
            for position, (category_type, fetch) in enumerate(fetchers):
                if position > 0:
                    await ctx.check_cancelled()
                categories = ctx.categories_of(category_type)
                if not categories:
                    continue

                async def run(
                    category: Category,
                    _index: int,
                    category_type: CategoryType = category_type,
                    fetch: CategoryFetcher = fetch,
                ) -> None:
                    nonlocal done
                    await ctx.check_cancelled()
                    try:
                        channels.extend(await fetch(client, provider, category, ctx))
                    except SyncCancelledError:
                        raise
                    except Exception as e:
                        logger.warning(
                            f"Category {category.provider_category_id} "
                            f"({category_type}) failed for {provider.name}: {e}"
                        )
                        await ctx.report_error(
                            f"Category {category.provider_category_id} "
                            f"({category_type}): {e}"
                        )
                    done += 1
                    await ctx.on_category_done(done, len(channels))

                await parallel_map(categories, self.category_concurrency, run)

        logger.info(f"Fetched {len(channels)} channels from {provider.name}")
        return channels

    async def _fetch_live(
        self,
        client: XtreamClient,
        provider: Provider,
        category: Category,
        ctx: FetchContext,
    ) -> list[ChannelRecord]:
        streams = await client.get_live_streams(category.provider_category_id)
        return [
            ChannelRecord(
                provider_id=provider.id,
                category_id=category.id,
                name=stream.name,
                url=client.build_live_stream_url(
                    stream.stream_id, stream.container_extension or "ts"
                ),
                group_title=stream.category_name or "",
                tvg_id=stream.epg_channel_id or "",
                tvg_name=stream.name,
                tvg_logo=stream.stream_icon or "",
            )
            for stream in streams
        ]

    async def _fetch_vod(
        self,
        client: XtreamClient,
        provider: Provider,
        category: Category,
        ctx: FetchContext,
    ) -> list[ChannelRecord]:
        streams = await client.get_vod_streams(category.provider_category_id)
        return [
            ChannelRecord(
                provider_id=provider.id,
                category_id=category.id,
                name=stream.name,
                url=client.build_vod_stream_url(
                    stream.stream_id, stream.container_extension or "mp4"
                ),
                group_title=stream.category_name or "",
                tvg_name=stream.name,
                tvg_logo=stream.stream_icon or "",
            )
            for stream in streams
        ]

    async def _fetch_series(
        self,
        client: XtreamClient,
        provider: Provider,
        category: Category,
        ctx: FetchContext,
    ) -> list[ChannelRecord]:
        series_list = await client.get_series(category.provider_category_id)
        failed = 0

        async def episodes(series: XtreamSeries, _index: int) -> list[ChannelRecord]:
            nonlocal failed
            try:
                info = await client.get_series_info(series.series_id)
            except Exception as e:
                failed += 1
                logger.warning(
                    f"Series detail lookup failed for {series.series_id} "
                    f"({series.name}): {e}"
                )
                return []

            records: list[ChannelRecord] = []
            for season_episodes in info.episodes.values():
                for ep in season_episodes:
                    records.append(
                        ChannelRecord(
                            provider_id=provider.id,
                            category_id=category.id,
                            name=(
                                f"{series.name} - S{ep.season}E{ep.episode_num}"
                                f" - {ep.title}"
                            ),
                            url=client.build_series_stream_url(
                                ep.id, ep.container_extension or "mp4"
                            ),
                            group_title=series.category_name or "",
                            tvg_name=series.name,
                            tvg_logo=series.cover or "",
                            series_name=series.name,
                            season_num=ep.season,
                            episode_num=ep.episode_num,
                            duration_sec=ep.info.duration_secs if ep.info else None,
                        )
                    )
            return records

        per_series = await parallel_map(series_list, self.series_concurrency, episodes)
        if failed:
            await ctx.report_error(
                f"Category {category.provider_category_id} (series): "
                f"{failed} series detail lookups failed"
            )
        return [record for records in per_series for record in records]

    async def discover_categories(self, provider: Provider) -> list[CategorySpec]:
        async with self._client(provider) as client:
            await client.authenticate()
            live, vod, series = await asyncio.gather(
                client.get_live_categories(),
                client.get_vod_categories(),
                client.get_series_categories(),
            )

        def specs(
            categories: list[XtreamCategory], category_type: CategoryType
        ) -> list[CategorySpec]:
            return [
                CategorySpec(
                    provider_category_id=c.category_id,
                    name=c.category_name,
                    category_type=category_type,
                )
                for c in categories
            ]

        return (
            specs(live, CategoryType.LIVE)
            + specs(vod, CategoryType.MOVIE)
            + specs(series, CategoryType.SERIES)
        )
