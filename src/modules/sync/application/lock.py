"""Distributed sync lock.

锁记录存放在共享 KV 中：{"owner_id": ..., "expires_at": <epoch ms>}。
过期判断只依赖存储的绝对过期时间，存储本身无需支持 TTL。
所有写操作都是基于读到的旧值的 compare-and-set，避免并发获取时双方都成功。
"""

import time
from collections.abc import Callable
from typing import Any

from loguru import logger

from src.core.config import settings
from src.core.domain.ports.kv import KVClient
from src.core.infrastructure.redis.keys import RedisKeys


def _now_ms() -> int:
    return int(time.time() * 1000)


class SyncLock:
    """同步互斥锁（全部署单例）。"""

    def __init__(
        self,
        kv: KVClient,
        ttl_sec: int | None = None,
        clock: Callable[[], int] = _now_ms,
        key: str | None = None,
    ):
        self.kv = kv
        self.ttl_ms = (ttl_sec or settings.SYNC_LOCK_TTL_SEC) * 1000
        self.clock = clock
        self.key = key or RedisKeys.sync_lock()

    def _is_live(self, record: Any) -> bool:
        return (
            isinstance(record, dict)
            and int(record.get("expires_at", 0)) > self.clock()
        )

    async def acquire(self, owner_id: str) -> bool:
        """获取锁。锁不存在或已过期时成功，否则返回 False。"""
        current = await self.kv.get_json(self.key)
        if self._is_live(current):
            return False

        record = {"owner_id": owner_id, "expires_at": self.clock() + self.ttl_ms}
        acquired = await self.kv.compare_and_set_json(self.key, current, record)
        if acquired:
            if current is not None:
                logger.info(
                    f"Acquired expired sync lock previously held by "
                    f"{current.get('owner_id')}"
                )
            logger.debug(f"Sync lock acquired by {owner_id}")
        return acquired

    async def release(self, owner_id: str) -> bool:
        """释放锁。只有当前持有者且锁未过期时才会删除。"""
        current = await self.kv.get_json(self.key)
        if not self._is_live(current) or current.get("owner_id") != owner_id:
            logger.warning(f"Sync lock release skipped, {owner_id} is not the holder")
            return False

        released = await self.kv.compare_and_set_json(self.key, current, None)
        if released:
            logger.debug(f"Sync lock released by {owner_id}")
        return released

    async def extend(self, owner_id: str) -> bool:
        """续期锁（心跳）。只有当前持有者可以续期。"""
        current = await self.kv.get_json(self.key)
        if not self._is_live(current) or current.get("owner_id") != owner_id:
            return False

        record = {"owner_id": owner_id, "expires_at": self.clock() + self.ttl_ms}
        return await self.kv.compare_and_set_json(self.key, current, record)

    async def is_locked(self) -> bool:
        """非持有式探测：是否存在未过期的锁。"""
        return self._is_live(await self.kv.get_json(self.key))

    async def force_release(self) -> None:
        """无条件删除锁，仅用于僵死同步的恢复。"""
        await self.kv.delete(self.key)
        logger.warning("Sync lock force-released")
