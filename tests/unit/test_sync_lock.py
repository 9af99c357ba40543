"""Tests for the distributed sync lock."""

import pytest

from src.modules.sync.application.lock import SyncLock
from tests.fakes import InMemoryKV

pytestmark = pytest.mark.anyio


class FakeClock:
    def __init__(self, now_ms: int = 1_000_000) -> None:
        self.now_ms = now_ms

    def __call__(self) -> int:
        return self.now_ms

    def advance(self, seconds: float) -> None:
        self.now_ms += int(seconds * 1000)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def lock(kv: InMemoryKV, clock: FakeClock) -> SyncLock:
    return SyncLock(kv, ttl_sec=60, clock=clock)


async def test_acquire_and_release(lock: SyncLock) -> None:
    assert await lock.acquire("a") is True
    assert await lock.is_locked() is True
    assert await lock.acquire("b") is False

    assert await lock.release("a") is True
    assert await lock.is_locked() is False
    assert await lock.acquire("b") is True


async def test_release_by_non_owner_is_noop(lock: SyncLock) -> None:
    await lock.acquire("a")

    assert await lock.release("b") is False
    assert await lock.is_locked() is True


async def test_expired_lock_can_be_taken_over(
    lock: SyncLock, clock: FakeClock
) -> None:
    await lock.acquire("a")
    clock.advance(61)

    assert await lock.is_locked() is False
    assert await lock.acquire("b") is True
    # 原持有者的锁已过期，不能再释放新持有者的锁
    assert await lock.release("a") is False
    assert await lock.is_locked() is True


async def test_extend_pushes_expiry(lock: SyncLock, clock: FakeClock) -> None:
    await lock.acquire("a")
    clock.advance(50)
    assert await lock.extend("a") is True

    clock.advance(50)
    assert await lock.is_locked() is True
    assert await lock.extend("b") is False


async def test_extend_after_expiry_fails(lock: SyncLock, clock: FakeClock) -> None:
    await lock.acquire("a")
    clock.advance(61)

    assert await lock.extend("a") is False


async def test_force_release(lock: SyncLock) -> None:
    await lock.acquire("a")
    await lock.force_release()

    assert await lock.is_locked() is False


async def test_concurrent_acquire_only_one_wins(
    kv: InMemoryKV, clock: FakeClock
) -> None:
    first = SyncLock(kv, ttl_sec=60, clock=clock)
    second = SyncLock(kv, ttl_sec=60, clock=clock)

    # 两个实例读到同一个旧值后竞争写入
    original = kv.compare_and_set_json
    snapshots: list[object] = []

    async def racing_cas(key, expected, value):
        snapshots.append(expected)
        if len(snapshots) == 1:
            await second.acquire("b")
        return await original(key, expected, value)

    kv.compare_and_set_json = racing_cas  # type: ignore[method-assign]

    assert await first.acquire("a") is False
    assert (await kv.get_json(first.key))["owner_id"] == "b"


async def test_record_shape(lock: SyncLock, kv: InMemoryKV, clock: FakeClock) -> None:
    await lock.acquire("a")

    assert await kv.get_json(lock.key) == {
        "owner_id": "a",
        "expires_at": clock.now_ms + 60_000,
    }
