"""Tests for the sync orchestrator."""

from collections.abc import Awaitable, Callable

import pytest

from src.core.infrastructure.health import HealthStatus
from src.modules.catalog.domain.entities import (
    CategorySpec,
    CategoryType,
    ChannelRecord,
    Provider,
    ProviderProtocol,
)
from src.modules.sync.application.catalog_swap import CatalogSwap
from src.modules.sync.application.lock import SyncLock
from src.modules.sync.application.orchestrator import (
    ALREADY_RUNNING,
    CANCELLED,
    NO_PROVIDERS,
    STALE_RUN,
    SyncOrchestrator,
)
from src.modules.sync.application.progress_tracker import ProgressTracker
from src.modules.sync.domain.exceptions import UpstreamAuthError
from src.modules.sync.domain.progress import ProviderSyncState, SyncStatus
from src.modules.sync.domain.provider import CatalogProvider, FetchContext
from tests.fakes import (
    InMemoryCategoryRepository,
    InMemoryChannelRepository,
    InMemoryKV,
    InMemoryProviderRepository,
    make_channels,
    make_provider,
)

pytestmark = pytest.mark.anyio

FetchBehavior = Callable[[FetchContext], Awaitable[list[ChannelRecord]]]


class ScriptedProvider(CatalogProvider):
    """按 Provider ID 执行预设抓取行为。"""

    def __init__(self, behaviors: dict[str, FetchBehavior]) -> None:
        self.behaviors = behaviors
        self.fetched: list[str] = []

    def total_categories(self, provider: Provider) -> int:
        return len(provider.categories)

    async def fetch_catalog(self, ctx: FetchContext) -> list[ChannelRecord]:
        self.fetched.append(ctx.provider.id)
        return await self.behaviors[ctx.provider.id](ctx)

    async def discover_categories(self, provider: Provider) -> list[CategorySpec]:
        return []


class ScriptedResolver:
    def __init__(self, fetcher: CatalogProvider) -> None:
        self.fetcher = fetcher

    def create(self, protocol: ProviderProtocol) -> CatalogProvider:
        return self.fetcher


def returns(count: int) -> FetchBehavior:
    async def behavior(ctx: FetchContext) -> list[ChannelRecord]:
        for done, _category in enumerate(ctx.categories, start=1):
            await ctx.check_cancelled()
            await ctx.on_category_done(done, count)
        return make_channels(ctx.provider.id, count)

    return behavior


def raises(exc: Exception) -> FetchBehavior:
    async def behavior(ctx: FetchContext) -> list[ChannelRecord]:
        raise exc

    return behavior


class Harness:
    def __init__(self, kv: InMemoryKV, providers: list[Provider]) -> None:
        self.kv = kv
        self.providers = InMemoryProviderRepository(providers)
        self.categories = InMemoryCategoryRepository()
        self.channels = InMemoryChannelRepository()
        self.lock = SyncLock(kv, ttl_sec=60)
        self.progress = ProgressTracker(kv, flush_interval_sec=0.01)

    def orchestrator(self, behaviors: dict[str, FetchBehavior]) -> SyncOrchestrator:
        self.fetcher = ScriptedProvider(behaviors)
        return SyncOrchestrator(
            provider_repository=self.providers,
            category_repository=self.categories,
            catalog_swap=CatalogSwap(self.channels),
            lock=self.lock,
            progress=self.progress,
            provider_factory=ScriptedResolver(self.fetcher),
            heartbeat_sec=0,
        )


async def test_full_sync_with_one_failing_provider(kv: InMemoryKV) -> None:
    alpha = make_provider("Alpha", categories=[("1", CategoryType.LIVE)])
    beta = make_provider("Beta", categories=[("1", CategoryType.LIVE)])
    harness = Harness(kv, [beta, alpha])
    orchestrator = harness.orchestrator(
        {alpha.id: returns(50), beta.id: raises(UpstreamAuthError())}
    )

    result = await orchestrator.run_full_sync()

    assert result.model_dump() == {
        "success": False,
        "providers_processed": 1,
        "total_channels": 50,
        "errors": ["Error syncing Beta: Xtream authentication failed"],
    }
    # 按名称顺序处理
    assert harness.fetcher.fetched == [alpha.id, beta.id]

    progress = await orchestrator.get_progress(force=True)
    assert progress.status == SyncStatus.COMPLETED_WITH_ERRORS
    assert progress.is_running is False
    assert progress.processed_providers == 2
    assert progress.total_channels == 50
    assert progress.errors == ["Error syncing Beta: Xtream authentication failed"]
    assert progress.provider(alpha.id).status == ProviderSyncState.COMPLETED
    assert progress.provider(alpha.id).channels_fetched == 50
    beta_status = progress.provider(beta.id)
    assert beta_status.status == ProviderSyncState.ERROR
    assert beta_status.error == "Xtream authentication failed"

    assert await harness.channels.count_by_provider(alpha.id) == 50
    assert harness.providers.providers[alpha.id].last_sync_channel_count == 50
    assert harness.providers.providers[beta.id].last_sync_error == (
        "Xtream authentication failed"
    )
    assert await harness.lock.is_locked() is False


async def test_failed_provider_keeps_previous_channels(kv: InMemoryKV) -> None:
    provider = make_provider("Alpha")
    harness = Harness(kv, [provider])
    await harness.channels.replace_for_provider(
        provider.id, make_channels(provider.id, 7)
    )
    orchestrator = harness.orchestrator({provider.id: returns(0)})

    result = await orchestrator.run_full_sync()

    assert result.success is False
    assert result.errors == [
        "Error syncing Alpha: Zero channels fetched, aborting to prevent data loss"
    ]
    assert await harness.channels.count_by_provider(provider.id) == 7
    assert harness.providers.providers[provider.id].last_sync_channel_count == 0


async def test_full_sync_all_success(kv: InMemoryKV) -> None:
    alpha = make_provider("Alpha")
    beta = make_provider("Beta")
    harness = Harness(kv, [alpha, beta])
    orchestrator = harness.orchestrator({alpha.id: returns(3), beta.id: returns(4)})

    result = await orchestrator.run_full_sync()

    assert result.success is True
    assert result.providers_processed == 2
    assert result.total_channels == 7
    progress = await orchestrator.get_progress(force=True)
    assert progress.status == SyncStatus.COMPLETED
    assert progress.current_step == "Done. 2 providers, 7 channels"


async def test_no_enabled_providers(kv: InMemoryKV) -> None:
    disabled = make_provider("Off", enabled=False)
    harness = Harness(kv, [disabled])
    orchestrator = harness.orchestrator({})

    result = await orchestrator.run_full_sync()

    assert result.success is True
    assert result.errors == [NO_PROVIDERS]
    progress = await orchestrator.get_progress(force=True)
    assert progress.status == SyncStatus.COMPLETED
    assert progress.is_running is False
    assert progress.errors == [NO_PROVIDERS]


async def test_lock_held_returns_already_running(kv: InMemoryKV) -> None:
    provider = make_provider("Alpha")
    harness = Harness(kv, [provider])
    orchestrator = harness.orchestrator({provider.id: returns(1)})
    await harness.lock.acquire("someone-else")
    before = dict(kv.data)

    result = await orchestrator.run_full_sync()

    assert result.success is False
    assert result.errors == [ALREADY_RUNNING]
    assert harness.fetcher.fetched == []
    # 进度保持不变
    assert kv.data == before


async def test_cancel_from_another_instance(kv: InMemoryKV) -> None:
    alpha = make_provider(
        "Alpha",
        categories=[("1", CategoryType.LIVE), ("2", CategoryType.LIVE)],
    )
    beta = make_provider("Beta")
    harness = Harness(kv, [alpha, beta])
    poller = ProgressTracker(kv)

    async def cancel_midway(ctx: FetchContext) -> list[ChannelRecord]:
        await poller.request_cancel()
        await ctx.check_cancelled()
        return make_channels(ctx.provider.id, 1)

    orchestrator = harness.orchestrator(
        {alpha.id: cancel_midway, beta.id: returns(1)}
    )

    result = await orchestrator.run_full_sync()

    assert result.success is True
    assert result.providers_processed == 0
    assert harness.fetcher.fetched == [alpha.id]
    assert await harness.channels.count_by_provider(alpha.id) == 0

    progress = await orchestrator.get_progress(force=True)
    assert progress.status == SyncStatus.CANCELLED
    assert progress.is_running is False
    assert progress.cancel_requested is False
    assert progress.current_step == "Sync cancelled by user"
    assert await harness.lock.is_locked() is False


async def test_stale_run_is_recovered_on_forced_read(kv: InMemoryKV) -> None:
    harness = Harness(kv, [])
    orchestrator = harness.orchestrator({})
    await harness.progress.start([], is_running=True, status=SyncStatus.RUNNING)
    await harness.progress.flush()

    progress = await orchestrator.get_progress(force=True)

    assert progress.is_running is False
    assert progress.status == SyncStatus.COMPLETED_WITH_ERRORS
    assert progress.errors == [STALE_RUN]
    durable = await ProgressTracker(kv).get(force=True)
    assert durable.status == SyncStatus.COMPLETED_WITH_ERRORS


async def test_running_sync_with_live_lock_is_not_stale(kv: InMemoryKV) -> None:
    harness = Harness(kv, [])
    orchestrator = harness.orchestrator({})
    await harness.lock.acquire("worker")
    await harness.progress.start([], is_running=True, status=SyncStatus.RUNNING)

    progress = await orchestrator.get_progress(force=True)

    assert progress.is_running is True
    assert progress.status == SyncStatus.RUNNING
    await harness.progress.aclose()


async def test_repeated_cancel_forces_reset(kv: InMemoryKV) -> None:
    harness = Harness(kv, [])
    orchestrator = harness.orchestrator({})
    await harness.lock.acquire("stuck-worker")
    await harness.progress.start([], is_running=True, status=SyncStatus.RUNNING)

    first = await orchestrator.request_cancel()
    second = await orchestrator.request_cancel()

    assert (first.cancelled, first.force_reset) == (True, False)
    assert (second.cancelled, second.force_reset) == (True, True)
    assert await harness.lock.is_locked() is False
    progress = await orchestrator.get_progress(force=True)
    assert progress.status == SyncStatus.IDLE
    assert progress.cancel_requested is False
    await harness.progress.aclose()


async def test_provider_sync_success(kv: InMemoryKV) -> None:
    provider = make_provider("Alpha")
    harness = Harness(kv, [provider])
    orchestrator = harness.orchestrator({provider.id: returns(12)})

    result = await orchestrator.run_provider_sync(provider.id)

    assert result.model_dump() == {"success": True, "channel_count": 12, "error": None}
    assert harness.providers.success_calls == [(provider.id, 12)]
    assert await harness.lock.is_locked() is False
    # 单 Provider 同步不初始化全局进度
    assert (await orchestrator.get_progress(force=True)).status == SyncStatus.IDLE


async def test_provider_sync_failure(kv: InMemoryKV) -> None:
    provider = make_provider("Alpha")
    harness = Harness(kv, [provider])
    orchestrator = harness.orchestrator({provider.id: raises(UpstreamAuthError())})

    result = await orchestrator.run_provider_sync(provider.id)

    assert result.success is False
    assert result.error == "Xtream authentication failed"
    assert harness.providers.error_calls == [
        (provider.id, "Xtream authentication failed")
    ]
    assert await harness.lock.is_locked() is False


async def test_provider_sync_not_found(kv: InMemoryKV) -> None:
    harness = Harness(kv, [])
    orchestrator = harness.orchestrator({})

    result = await orchestrator.run_provider_sync("missing")

    assert result.success is False
    assert result.error == "Provider not found"
    assert await harness.lock.is_locked() is False


async def test_provider_sync_respects_lock(kv: InMemoryKV) -> None:
    provider = make_provider("Alpha")
    harness = Harness(kv, [provider])
    orchestrator = harness.orchestrator({provider.id: returns(1)})
    await harness.lock.acquire("full-sync")

    result = await orchestrator.run_provider_sync(provider.id)

    assert result.error == ALREADY_RUNNING
    assert harness.fetcher.fetched == []


async def test_provider_sync_honours_cancel(kv: InMemoryKV) -> None:
    provider = make_provider(
        "Alpha",
        categories=[("1", CategoryType.LIVE), ("2", CategoryType.LIVE)],
    )
    harness = Harness(kv, [provider])
    poller = ProgressTracker(kv)

    async def cancel_midway(ctx: FetchContext) -> list[ChannelRecord]:
        await poller.request_cancel()
        await ctx.check_cancelled()
        return make_channels(ctx.provider.id, 1)

    orchestrator = harness.orchestrator({provider.id: cancel_midway})

    result = await orchestrator.run_provider_sync(provider.id)

    assert result.model_dump() == {
        "success": False,
        "channel_count": 0,
        "error": CANCELLED,
    }
    assert await harness.channels.count_by_provider(provider.id) == 0
    # 取消不是上游失败，不写入 Provider 错误
    assert harness.providers.error_calls == []
    assert await poller.is_cancel_requested() is False
    assert await harness.lock.is_locked() is False


async def test_stale_cancel_does_not_abort_provider_sync(kv: InMemoryKV) -> None:
    provider = make_provider("Alpha")
    harness = Harness(kv, [provider])
    await ProgressTracker(kv).request_cancel()
    orchestrator = harness.orchestrator({provider.id: returns(4)})

    result = await orchestrator.run_provider_sync(provider.id)

    assert result.success is True
    assert result.channel_count == 4


class TerminalWriteFailsKV(InMemoryKV):
    """进度终态写入（带 completed_at）全部失败，其他写入正常。"""

    @staticmethod
    def _is_terminal(value: object) -> bool:
        return isinstance(value, dict) and value.get("completed_at") is not None

    async def set_json(self, key, value, ex=None) -> bool:
        if self._is_terminal(value):
            raise ConnectionError("redis down")
        return await super().set_json(key, value, ex)

    async def compare_and_set_json(self, key, expected, value) -> bool:
        if self._is_terminal(value):
            raise ConnectionError("redis down")
        return await super().compare_and_set_json(key, expected, value)


async def test_lock_released_when_terminal_progress_write_fails() -> None:
    kv = TerminalWriteFailsKV()
    provider = make_provider("Alpha")
    harness = Harness(kv, [provider])
    orchestrator = harness.orchestrator({provider.id: returns(3)})

    result = await orchestrator.run_full_sync()

    assert result.success is False
    assert result.errors == ["Sync failed: redis down"]
    assert await harness.lock.is_locked() is False
    # 下一次运行可以立即拿到锁
    assert await harness.lock.acquire("next-run") is True


async def test_lock_released_when_listing_providers_fails(
    kv: InMemoryKV, monkeypatch: pytest.MonkeyPatch
) -> None:
    harness = Harness(kv, [])
    orchestrator = harness.orchestrator({})

    async def broken() -> list[Provider]:
        raise RuntimeError("database unavailable")

    monkeypatch.setattr(harness.providers, "list_enabled", broken)

    result = await orchestrator.run_full_sync()

    assert result.success is False
    assert result.errors == ["Sync failed: database unavailable"]
    progress = await orchestrator.get_progress(force=True)
    assert progress.status == SyncStatus.ERROR
    assert progress.is_running is False
    assert await harness.lock.is_locked() is False


async def test_playlist_groups_are_upserted_as_live_categories(
    kv: InMemoryKV,
) -> None:
    provider = make_provider("Playlist", protocol=ProviderProtocol.FILE)
    harness = Harness(kv, [provider])

    async def with_groups(ctx: FetchContext) -> list[ChannelRecord]:
        ids = await ctx.ensure_categories(["News", "Sports"])
        return [
            ChannelRecord(
                provider_id=ctx.provider.id,
                category_id=ids[group],
                name=group,
                url=f"http://s/{group}",
                group_title=group,
            )
            for group in ("News", "Sports")
        ]

    orchestrator = harness.orchestrator({provider.id: with_groups})
    result = await orchestrator.run_provider_sync(provider.id)

    assert result.success is True
    categories = await harness.categories.list_by_provider(provider.id)
    assert sorted(c.name for c in categories) == ["News", "Sports"]
    assert {c.category_type for c in categories} == {CategoryType.LIVE}
    stored = harness.channels.channels[provider.id]
    assert {c.category_id for c in stored} == {c.id for c in categories}


async def test_health_check_idle_then_warning_after_errors(kv: InMemoryKV) -> None:
    alpha = make_provider("Alpha", categories=[("1", CategoryType.LIVE)])
    beta = make_provider("Beta", categories=[("1", CategoryType.LIVE)])
    harness = Harness(kv, [alpha, beta])
    orchestrator = harness.orchestrator(
        {alpha.id: returns(5), beta.id: raises(UpstreamAuthError())}
    )

    idle = await orchestrator.health_check()
    assert idle.status == HealthStatus.OK
    assert idle.sync_status == "idle"

    await orchestrator.run_full_sync()

    health = await orchestrator.health_check()
    assert health.status == HealthStatus.WARNING
    assert health.sync_status == "completed_with_errors"
    assert health.error_count == 1
    assert health.is_locked is False


async def test_health_check_reports_storage_failure(
    kv: InMemoryKV, monkeypatch: pytest.MonkeyPatch
) -> None:
    harness = Harness(kv, [])
    orchestrator = harness.orchestrator({})

    async def broken(_key: str) -> None:
        raise ConnectionError("kv down")

    monkeypatch.setattr(kv, "get_json", broken)

    health = await orchestrator.health_check()
    assert health.status == HealthStatus.ERROR
    assert health.error == "kv down"
