"""Sync orchestrator.

状态流转：idle → locking → running → {completed | completed_with_errors | error | cancelled}

- 获取锁失败直接返回 "already running"，不修改进度
- 按固定顺序逐个处理启用的 Provider，单个 Provider 失败不影响其他 Provider
- 取消只在检查点生效：每个 Provider 开始前，以及抓取器内部的分类循环
- 无论以何种状态结束，finally 中都会同步写入进度并释放锁（写入失败也会释放）
- 单 Provider 同步同样响应取消，取消后清除标记且不替换频道
"""

import time
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from uuid import uuid4

from loguru import logger

from src.core.config import settings
from src.core.infrastructure.health import HealthStatus, SyncHealthResult
from src.core.infrastructure.logging import BusinessEvents
from src.modules.catalog.domain.entities import (
    CategorySpec,
    CategoryType,
    ChannelRecord,
    Provider,
)
from src.modules.catalog.domain.repository import (
    CategoryRepository,
    ProviderRepository,
)
from src.modules.sync.application.catalog_swap import CatalogSwap
from src.modules.sync.application.executor import parallel_map
from src.modules.sync.application.lock import SyncLock
from src.modules.sync.application.models import (
    CancelResult,
    FullSyncResult,
    ProviderSyncResult,
    SyncStatusData,
)
from src.modules.sync.application.progress_tracker import ProgressTracker
from src.modules.sync.domain.exceptions import SyncCancelledError
from src.modules.sync.domain.progress import (
    ProviderSyncState,
    ProviderSyncStatus,
    SyncProgress,
    SyncStatus,
)
from src.modules.sync.domain.provider import CatalogProviderResolver, FetchContext

ALREADY_RUNNING = "Another sync is already running"
NO_PROVIDERS = "No enabled providers found"
STALE_RUN = "Sync process terminated unexpectedly"
CANCELLED = "Sync cancelled by user"


def _utc_now() -> datetime:
    return datetime.now(UTC)


class SyncOrchestrator:
    """驱动锁、进度、抓取器与频道替换完成全量或单 Provider 同步。"""

    def __init__(
        self,
        provider_repository: ProviderRepository,
        category_repository: CategoryRepository,
        catalog_swap: CatalogSwap,
        lock: SyncLock,
        progress: ProgressTracker,
        provider_factory: CatalogProviderResolver,
        heartbeat_sec: float | None = None,
        monotonic: Callable[[], float] = time.monotonic,
    ):
        self.provider_repository = provider_repository
        self.category_repository = category_repository
        self.catalog_swap = catalog_swap
        self.lock = lock
        self.progress = progress
        self.provider_factory = provider_factory
        self.heartbeat_sec = (
            heartbeat_sec
            if heartbeat_sec is not None
            else settings.SYNC_LOCK_HEARTBEAT_SEC
        )
        self.monotonic = monotonic
        self._owner_id: str | None = None
        self._last_heartbeat = 0.0

    # ============ 检查点 ============

    async def _heartbeat(self) -> None:
        if self._owner_id is None:
            return
        now = self.monotonic()
        if now - self._last_heartbeat < self.heartbeat_sec:
            return
        if await self.lock.extend(self._owner_id):
            self._last_heartbeat = now
        else:
            logger.warning(f"Failed to extend sync lock for {self._owner_id}")

    async def _checkpoint(self) -> None:
        """检查点：续期锁并检查取消请求。"""
        await self._heartbeat()
        if await self.progress.is_cancel_requested():
            raise SyncCancelledError()

    def _begin(self, owner_id: str) -> None:
        self._owner_id = owner_id
        self._last_heartbeat = self.monotonic()

    def _end(self) -> None:
        self._owner_id = None

    # ============ 全量同步 ============

    async def run_full_sync(self) -> FullSyncResult:
        """同步全部启用的 Provider。"""
        owner_id = str(uuid4())
        if not await self.lock.acquire(owner_id):
            logger.info("Full sync skipped, lock is held by another run")
            return FullSyncResult(success=False, errors=[ALREADY_RUNNING])

        self._begin(owner_id)
        errors: list[str] = []
        providers_processed = 0
        total_channels = 0

        try:
            providers = await self.provider_repository.list_enabled()
            statuses = [
                ProviderSyncStatus(
                    provider_id=p.id,
                    provider_name=p.name,
                    categories_total=self.provider_factory.create(
                        p.protocol
                    ).total_categories(p),
                )
                for p in providers
            ]
            await self.progress.start(
                statuses,
                is_running=True,
                status=SyncStatus.RUNNING,
                current_step=f"Starting sync of {len(providers)} provider(s)",
                total_categories=sum(s.categories_total for s in statuses),
                started_at=_utc_now(),
            )
            BusinessEvents.sync_started(
                owner_id=owner_id, provider_count=len(providers)
            )

            if not providers:
                errors.append(NO_PROVIDERS)
                await self.progress.update(
                    immediate=True,
                    is_running=False,
                    status=SyncStatus.COMPLETED,
                    current_step=NO_PROVIDERS,
                    errors=[NO_PROVIDERS],
                    completed_at=_utc_now(),
                )
                return FullSyncResult(success=True, errors=errors)

            for index, provider in enumerate(providers):
                await self._checkpoint()
                try:
                    count = await self._sync_one(provider, index)
                except SyncCancelledError:
                    raise
                except Exception as e:
                    message = str(e) or e.__class__.__name__
                    errors.append(f"Error syncing {provider.name}: {message}")
                    await self._record_failure(provider, index, message)
                    continue

                providers_processed += 1
                total_channels += count
                await self.progress.update(total_channels=total_channels)

            status = (
                SyncStatus.COMPLETED_WITH_ERRORS if errors else SyncStatus.COMPLETED
            )
            await self.progress.update(
                immediate=True,
                is_running=False,
                status=status,
                current_step=(
                    f"Done. {providers_processed} providers, "
                    f"{total_channels} channels"
                ),
                total_channels=total_channels,
                processed_channels=total_channels,
                processed_providers=len(providers),
                completed_at=_utc_now(),
            )
            BusinessEvents.sync_completed(
                owner_id=owner_id,
                status=status,
                providers_processed=providers_processed,
                total_channels=total_channels,
                error_count=len(errors),
            )
        except SyncCancelledError:
            logger.info(f"Full sync {owner_id} cancelled")
            await self.progress.update(
                immediate=True,
                is_running=False,
                status=SyncStatus.CANCELLED,
                current_step=CANCELLED,
                cancel_requested=False,
                completed_at=_utc_now(),
            )
            BusinessEvents.sync_cancelled(owner_id=owner_id)
        except Exception as e:
            logger.exception(f"Full sync {owner_id} failed: {e}")
            message = f"Sync failed: {e}"
            errors.append(message)
            await self._mark_failed(message)
            BusinessEvents.sync_completed(
                owner_id=owner_id,
                status=SyncStatus.ERROR,
                providers_processed=providers_processed,
                total_channels=total_channels,
                error_count=len(errors),
            )
        finally:
            self._end()
            await self._release(owner_id)

        return FullSyncResult(
            success=not errors,
            providers_processed=providers_processed,
            total_channels=total_channels,
            errors=errors,
        )

    async def _mark_failed(self, message: str) -> None:
        """把进度写为 error 终态，写入失败只记日志。"""
        try:
            await self.progress.add_error(message)
            await self.progress.update(
                immediate=True,
                is_running=False,
                status=SyncStatus.ERROR,
                current_step=message,
                cancel_requested=False,
                completed_at=_utc_now(),
            )
        except Exception as e:
            logger.error(f"Failed to record sync failure in progress: {e}")

    async def _release(self, owner_id: str) -> None:
        """刷新进度并释放锁。刷新失败不影响释放。"""
        try:
            await self.progress.flush()
        except Exception as e:
            logger.error(f"Failed to flush sync progress for {owner_id}: {e}")
        finally:
            await self.lock.release(owner_id)

    async def _sync_one(self, provider: Provider, index: int) -> int:
        """同步单个 Provider 并更新进度，返回频道数。"""
        started = time.monotonic()
        await self.progress.update_provider(
            provider.id,
            status=ProviderSyncState.SYNCING,
            started_at=_utc_now(),
        )
        await self.progress.update(
            current_step=f"Syncing {provider.name}",
            processed_providers=index,
        )

        async def on_category_done(done: int, channels_so_far: int) -> None:
            def apply(progress: SyncProgress) -> None:
                entry = progress.provider(provider.id)
                if entry is not None:
                    entry.categories_processed = max(entry.categories_processed, done)
                    entry.channels_fetched = max(
                        entry.channels_fetched, channels_so_far
                    )
                progress.processed_categories = sum(
                    p.categories_processed for p in progress.providers
                )

            await self.progress.mutate(apply)

        ctx = FetchContext(
            provider=provider,
            check_cancelled=self._checkpoint,
            on_category_done=on_category_done,
            report_error=self.progress.add_error,
            ensure_categories=self._category_resolver(provider),
        )
        count = await self._fetch_and_swap(provider, ctx)

        def complete(progress: SyncProgress) -> None:
            entry = progress.provider(provider.id)
            if entry is not None:
                entry.status = ProviderSyncState.COMPLETED
                entry.channels_fetched = count
                entry.categories_processed = max(
                    entry.categories_processed, entry.categories_total
                )
                entry.completed_at = _utc_now()
            progress.processed_providers = index + 1
            progress.processed_categories = sum(
                p.categories_processed for p in progress.providers
            )
            progress.current_step = f"Completed {provider.name} ({count} channels)"

        await self.progress.mutate(complete)
        BusinessEvents.provider_sync_completed(
            provider_id=provider.id,
            channel_count=count,
            duration_ms=int((time.monotonic() - started) * 1000),
        )
        return count

    async def _fetch_and_swap(self, provider: Provider, ctx: FetchContext) -> int:
        fetcher = self.provider_factory.create(provider.protocol)
        channels: list[ChannelRecord] = await fetcher.fetch_catalog(ctx)
        count = await self.catalog_swap.swap(provider.id, channels)
        await self.provider_repository.record_sync_success(
            provider.id, count, _utc_now()
        )
        return count

    async def _record_failure(
        self, provider: Provider, index: int, message: str
    ) -> None:
        logger.warning(f"Provider {provider.name} sync failed: {message}")
        BusinessEvents.provider_sync_failed(provider_id=provider.id, error=message)
        await self.progress.add_error(f"Error syncing {provider.name}: {message}")

        def fail(progress: SyncProgress) -> None:
            entry = progress.provider(provider.id)
            if entry is not None:
                entry.status = ProviderSyncState.ERROR
                entry.error = message
                entry.categories_processed = entry.categories_total
                entry.completed_at = _utc_now()
            progress.processed_providers = index + 1
            progress.processed_categories = sum(
                p.categories_processed for p in progress.providers
            )

        await self.progress.mutate(fail)
        try:
            await self.provider_repository.record_sync_error(provider.id, message)
        except Exception as e:
            logger.error(f"Failed to record sync error for {provider.name}: {e}")

    def _category_resolver(
        self, provider: Provider
    ) -> Callable[[list[str]], Awaitable[dict[str, str]]]:
        async def ensure(groups: list[str]) -> dict[str, str]:
            async def upsert(group: str, _index: int) -> tuple[str, str]:
                category = await self.category_repository.upsert(
                    provider.id,
                    CategorySpec(
                        provider_category_id=group,
                        name=group,
                        category_type=CategoryType.LIVE,
                    ),
                )
                return group, category.id

            pairs = await parallel_map(
                groups, settings.SYNC_CATEGORY_UPSERT_CONCURRENCY, upsert
            )
            return dict(pairs)

        return ensure

    # ============ 单 Provider 同步 ============

    async def run_provider_sync(self, provider_id: str) -> ProviderSyncResult:
        """同步单个 Provider。

        不初始化全局进度；检查点续期锁并响应取消请求，取消时不替换频道。
        """
        owner_id = str(uuid4())
        if not await self.lock.acquire(owner_id):
            return ProviderSyncResult(success=False, error=ALREADY_RUNNING)

        self._begin(owner_id)
        try:
            # 与全量同步开始一致，清除上一次运行残留的取消标记
            await self.progress.clear_cancel()
            provider = await self.provider_repository.get_by_id(provider_id)
            if provider is None:
                return ProviderSyncResult(success=False, error="Provider not found")

            started = time.monotonic()
            ctx = FetchContext(
                provider=provider,
                check_cancelled=self._checkpoint,
                ensure_categories=self._category_resolver(provider),
            )
            try:
                count = await self._fetch_and_swap(provider, ctx)
            except SyncCancelledError:
                logger.info(f"Provider sync {provider.name} cancelled")
                await self.progress.clear_cancel()
                BusinessEvents.sync_cancelled(owner_id=owner_id)
                return ProviderSyncResult(success=False, error=CANCELLED)
            except Exception as e:
                message = str(e) or e.__class__.__name__
                logger.warning(f"Provider {provider.name} sync failed: {message}")
                BusinessEvents.provider_sync_failed(
                    provider_id=provider.id, error=message
                )
                await self.provider_repository.record_sync_error(provider.id, message)
                return ProviderSyncResult(success=False, error=message)

            BusinessEvents.provider_sync_completed(
                provider_id=provider.id,
                channel_count=count,
                duration_ms=int((time.monotonic() - started) * 1000),
            )
            return ProviderSyncResult(success=True, channel_count=count)
        finally:
            self._end()
            await self._release(owner_id)

    # ============ 查询与取消 ============

    async def get_progress(self, force: bool = False) -> SyncProgress:
        """读取进度。force 读取时检测僵死同步并强制收尾。"""
        progress = await self.progress.get(force=force)
        if not force or not progress.is_running:
            return progress
        if await self.lock.is_locked():
            return progress

        logger.warning("Sync marked running but lock expired, recovering")
        await self.lock.force_release()
        progress.is_running = False
        progress.status = SyncStatus.COMPLETED_WITH_ERRORS
        progress.current_step = STALE_RUN
        progress.errors.append(STALE_RUN)
        progress.cancel_requested = False
        progress.completed_at = _utc_now()
        await self.progress.write_durable(progress)
        BusinessEvents.sync_stale_run_recovered(started_at=str(progress.started_at))
        return progress

    async def request_cancel(self) -> CancelResult:
        """请求取消。若上一次取消请求未被响应，则强制重置进度并释放锁。"""
        if await self.progress.is_cancel_requested():
            logger.warning("Repeated cancel request, force resetting sync state")
            await self.progress.reset()
            await self.lock.force_release()
            return CancelResult(cancelled=True, force_reset=True)

        await self.progress.request_cancel()
        logger.info("Sync cancellation requested")
        return CancelResult(cancelled=True)

    async def get_status(self) -> SyncStatusData:
        progress = await self.get_progress(force=True)
        return SyncStatusData(progress=progress, is_locked=await self.lock.is_locked())

    async def health_check(self) -> SyncHealthResult:
        """同步引擎健康检查（读取进度与锁状态）。"""
        try:
            status = await self.get_status()
        except Exception as e:
            logger.warning(f"Sync health check failed: {e}")
            return SyncHealthResult(status=HealthStatus.ERROR, error=str(e))

        progress = status.progress
        health = HealthStatus.OK
        if progress.status in (SyncStatus.ERROR, SyncStatus.COMPLETED_WITH_ERRORS):
            health = HealthStatus.WARNING
        return SyncHealthResult(
            status=health,
            sync_status=progress.status.value,
            is_locked=status.is_locked,
            error_count=len(progress.errors),
        )
