"""Sync progress tracker.

运行中的同步以进程内缓存为准，写入共享存储做合并节流：
- 普通更新：标记 dirty，由后台任务在一个 flush 间隔内最多写一次
- 立即写入：同步开始与结束，保证轮询方立刻可见
- 每次写入以比较写入（CAS）合并存储中已有的取消标记（取消请求可能来自其他进程），
  除非本进程刚刚显式清除了该标记（同步开始语义）
"""

import asyncio
import contextlib
import time
from collections.abc import Callable
from typing import Any

from loguru import logger

from src.core.config import settings
from src.core.domain.ports.kv import KVClient
from src.core.infrastructure.redis.keys import RedisKeys
from src.modules.sync.domain.exceptions import ProgressConflictError
from src.modules.sync.domain.progress import ProviderSyncStatus, SyncProgress

CAS_ATTEMPTS = 5


class ProgressTracker:
    """同步进度服务对象，每个进程构造一个，持有后台 flush 任务。"""

    def __init__(
        self,
        kv: KVClient,
        flush_interval_sec: float | None = None,
        key: str | None = None,
    ):
        self.kv = kv
        self.flush_interval_sec = (
            flush_interval_sec
            if flush_interval_sec is not None
            else settings.SYNC_PROGRESS_FLUSH_INTERVAL_SEC
        )
        self.key = key or RedisKeys.sync_progress()
        self._cache: SyncProgress | None = None
        self._dirty = False
        self._clear_cancel = False
        self._flush_task: asyncio.Task[None] | None = None
        self._last_flush = 0.0
        self._write_lock = asyncio.Lock()

    # ============ 读取 ============

    async def _load(self) -> SyncProgress:
        data = await self.kv.get_json(self.key)
        if not data:
            return SyncProgress()
        return SyncProgress.model_validate(data)

    async def get(self, force: bool = False) -> SyncProgress:
        """读取进度快照。

        Args:
            force: 绕过进程内缓存，直接读取共享存储
        """
        if force:
            return await self._load()
        if self._cache is None:
            self._cache = await self._load()
        return self._cache.model_copy(deep=True)

    async def is_cancel_requested(self) -> bool:
        """读取共享存储中的取消标记，并同步到进程内缓存。"""
        data = await self.kv.get_json(self.key)
        requested = bool(data and data.get("cancel_requested"))
        if requested and self._cache is not None and not self._clear_cancel:
            self._cache.cancel_requested = True
        return requested

    # ============ 写入 ============

    async def _mutate(
        self,
        fn: Callable[[SyncProgress], None],
        immediate: bool = False,
    ) -> None:
        if self._cache is None:
            self._cache = await self._load()
        fn(self._cache)
        self._dirty = True
        if immediate:
            await self._write()
        else:
            self._schedule_flush()

    async def update(self, immediate: bool = False, **changes: Any) -> None:
        """更新顶层字段。显式传入 cancel_requested=False 表示清除取消标记。"""
        if changes.get("cancel_requested") is False:
            self._clear_cancel = True

        def apply(progress: SyncProgress) -> None:
            for name, value in changes.items():
                setattr(progress, name, value)

        await self._mutate(apply, immediate=immediate)

    async def update_provider(
        self,
        provider_id: str,
        immediate: bool = False,
        **changes: Any,
    ) -> None:
        """更新某个 Provider 的进度条目。"""

        def apply(progress: SyncProgress) -> None:
            entry = progress.provider(provider_id)
            if entry is None:
                logger.warning(f"Progress entry for provider {provider_id} not found")
                return
            for name, value in changes.items():
                setattr(entry, name, value)

        await self._mutate(apply, immediate=immediate)

    async def mutate(
        self,
        fn: Callable[[SyncProgress], None],
        immediate: bool = False,
    ) -> None:
        """对缓存执行任意修改（用于计数器累加等复合更新）。"""
        await self._mutate(fn, immediate=immediate)

    async def add_error(self, message: str, immediate: bool = False) -> None:
        await self._mutate(lambda p: p.errors.append(message), immediate=immediate)

    async def start(self, providers: list[ProviderSyncStatus], **fields: Any) -> None:
        """初始化一次新的同步运行并立即写入（清除残留的取消标记）。"""
        self._clear_cancel = True
        progress = SyncProgress(
            providers=providers,
            total_providers=len(providers),
            cancel_requested=False,
            **fields,
        )

        def apply(current: SyncProgress) -> None:
            for name in SyncProgress.model_fields:
                setattr(current, name, getattr(progress, name))

        await self._mutate(apply, immediate=True)

    async def reset(self) -> None:
        """重置为空闲状态并立即写入。"""
        await self._cancel_pending_flush()
        self._cache = SyncProgress()
        self._clear_cancel = True
        self._dirty = True
        await self._write()

    async def request_cancel(self) -> bool:
        """在共享存储中设置取消标记，只修改标记本身。

        Returns:
            设置之前取消标记是否已经存在
        """

        def set_flag(durable: dict[str, Any] | None) -> dict[str, Any]:
            base = durable or SyncProgress().model_dump(mode="json")
            return {**base, "cancel_requested": True}

        durable = await self._compare_and_set(set_flag)
        if self._cache is not None and not self._clear_cancel:
            self._cache.cancel_requested = True
        return bool(durable and durable.get("cancel_requested"))

    async def clear_cancel(self) -> None:
        """清除共享存储中的取消标记，其余字段保持不变。"""

        def clear_flag(durable: dict[str, Any] | None) -> dict[str, Any] | None:
            if not durable or not durable.get("cancel_requested"):
                return None
            return {**durable, "cancel_requested": False}

        await self._compare_and_set(clear_flag)
        if self._cache is not None:
            self._cache.cancel_requested = False

    async def write_durable(self, progress: SyncProgress) -> None:
        """直接覆盖共享存储（用于非持有者的恢复写入）。"""
        await self.kv.set_json(self.key, progress.model_dump(mode="json"))

    # ============ flush ============

    async def _compare_and_set(
        self,
        build: Callable[[dict[str, Any] | None], dict[str, Any] | None],
    ) -> dict[str, Any] | None:
        """读取当前值，用 build 生成新值并比较写入，被并发修改时重试。

        build 返回 None 表示无需写入。返回写入前读到的值。

        Raises:
            ProgressConflictError: 重试次数用尽
        """
        for _ in range(CAS_ATTEMPTS):
            durable = await self.kv.get_json(self.key)
            value = build(durable)
            if value is None:
                return durable
            if await self.kv.compare_and_set_json(self.key, durable, value):
                return durable
        raise ProgressConflictError()

    def _schedule_flush(self) -> None:
        if self._flush_task is None or self._flush_task.done():
            self._flush_task = asyncio.create_task(self._delayed_flush())

    async def _delayed_flush(self) -> None:
        elapsed = time.monotonic() - self._last_flush
        await asyncio.sleep(max(0.0, self.flush_interval_sec - elapsed))
        try:
            await self._write()
        except Exception as e:
            # dirty 保持为 True，下一次 flush 重试
            logger.warning(f"Background progress flush failed: {e}")

    async def _write(self) -> None:
        async with self._write_lock:
            cache = self._cache
            if cache is None or not self._dirty:
                return
            if self._clear_cancel:
                await self.kv.set_json(self.key, cache.model_dump(mode="json"))
            else:

                def merge_cancel(durable: dict[str, Any] | None) -> dict[str, Any]:
                    if durable and durable.get("cancel_requested"):
                        cache.cancel_requested = True
                    return cache.model_dump(mode="json")

                await self._compare_and_set(merge_cancel)
            self._dirty = False
            self._clear_cancel = False
            self._last_flush = time.monotonic()

    async def _cancel_pending_flush(self) -> None:
        task, self._flush_task = self._flush_task, None
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

    async def flush(self) -> None:
        """同步写入所有未持久化的修改，并丢弃进程内缓存。"""
        await self._cancel_pending_flush()
        await self._write()
        self._cache = None
        self._dirty = False

    async def aclose(self) -> None:
        """关闭时写入剩余修改。"""
        await self.flush()
