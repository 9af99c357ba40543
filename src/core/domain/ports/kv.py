"""Key-value store port.

同步锁与同步进度都存放在所有进程实例共享的 KV 存储中（生产环境为 Redis）。
"""

from datetime import timedelta
from typing import Any, Protocol


class KVClient(Protocol):
    """共享 KV 存储接口。"""

    async def ping(self) -> bool: ...

    async def get_json(self, key: str) -> Any | None: ...

    async def set_json(
        self,
        key: str,
        value: Any,
        ex: int | timedelta | None = None,
    ) -> bool: ...

    async def delete(self, *keys: str) -> int: ...

    async def compare_and_set_json(
        self,
        key: str,
        expected: Any | None,
        value: Any | None,
    ) -> bool:
        """仅当当前值等于 expected 时写入 value（value 为 None 表示删除）。

        expected 为 None 表示期望键不存在。并发写入冲突时返回 False。
        """
        ...
