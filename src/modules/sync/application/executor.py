"""Bounded parallel executor.

固定数量的 worker 反复领取下一个未处理的下标，保证同时在途的任务数不超过上限，
结果顺序与输入顺序一致。
"""

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from typing import TypeVar

T = TypeVar("T")
R = TypeVar("R")


async def parallel_map(
    items: Sequence[T],
    concurrency: int,
    fn: Callable[[T, int], Awaitable[R]],
) -> list[R]:
    """以并发上限 concurrency 对 items 执行 fn(item, index)。

    fn 应自行捕获单项错误；若 fn 抛出异常，剩余 worker 不再领取新任务，
    等在途任务结束后重新抛出第一个异常。

    Raises:
        ValueError: concurrency < 1
    """
    if concurrency < 1:
        raise ValueError("concurrency must be >= 1")
    if not items:
        return []

    results: list[R | None] = [None] * len(items)
    next_index = 0
    failure: BaseException | None = None

    async def worker() -> None:
        nonlocal next_index, failure
        while failure is None and next_index < len(items):
            # 领取与自增之间没有 await，单线程事件循环下无需加锁
            index = next_index
            next_index += 1
            try:
                results[index] = await fn(items[index], index)
            except BaseException as exc:
                if failure is None:
                    failure = exc
                return

    workers = min(concurrency, len(items))
    await asyncio.gather(*(worker() for _ in range(workers)))

    if failure is not None:
        raise failure
    return results  # type: ignore[return-value]
