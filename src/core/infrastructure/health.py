"""统一的健康检查类型定义。

/health 接口与 scripts/health_check.py 共用这些类型。
"""

from enum import Enum

from pydantic import BaseModel, Field


class HealthStatus(str, Enum):
    """健康检查状态枚举。"""

    OK = "ok"
    WARNING = "warning"
    ERROR = "error"


class ComponentHealthResult(BaseModel):
    """组件健康检查结果基类。"""

    status: HealthStatus = Field(..., description="健康状态")
    error: str | None = Field(None, description="错误信息")

    @property
    def ok(self) -> bool:
        return self.status == HealthStatus.OK

    def to_dict(self) -> dict[str, object]:
        """转换为字典（用于 API 响应）。"""
        return self.model_dump(mode="json", exclude_none=False)


class DatabaseHealthResult(ComponentHealthResult):
    """数据库健康检查结果。"""

    connected: bool = Field(..., description="是否已连接")
    version: str | None = Field(None, description="PostgreSQL 版本")


class RedisHealthResult(ComponentHealthResult):
    """Redis 健康检查结果（同步锁与进度所在存储）。"""

    connected: bool = Field(..., description="是否已连接")
    version: str | None = Field(None, description="Redis 版本")


class SyncHealthResult(ComponentHealthResult):
    """同步引擎健康检查结果。

    上一次同步以 error / completed_with_errors 结束时记为 WARNING。
    """

    sync_status: str | None = Field(None, description="当前或上一次同步状态")
    is_locked: bool = Field(default=False, description="同步锁是否被持有")
    error_count: int = Field(default=0, description="上一次同步累计错误数")
