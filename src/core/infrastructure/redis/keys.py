"""Redis Key 命名规范。

Redis 用于：
- Sync Lock: 全局同步互斥锁（带绝对过期时间）
- Sync Progress: 同步进度（供轮询方读取）
"""


class RedisKeys:
    """Redis Key 命名空间管理。"""

    # 同步
    # sync:{name}
    SYNC_PREFIX = "sync"

    @classmethod
    def sync_lock(cls) -> str:
        """全局同步锁 key（单例）。"""
        return f"{cls.SYNC_PREFIX}:lock"

    @classmethod
    def sync_progress(cls) -> str:
        """全局同步进度 key（单例）。"""
        return f"{cls.SYNC_PREFIX}:progress"
