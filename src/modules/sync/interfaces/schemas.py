"""Sync API schemas."""

from pydantic import BaseModel, Field

from src.modules.sync.domain.progress import SyncProgress


class SyncTaskResponse(BaseModel):
    """Queued sync task."""

    task_id: str = Field(..., description="Celery 任务 ID")
    provider_id: str | None = Field(default=None, description="单 Provider 同步时的 ID")


class CategoryDiscoveryResponse(BaseModel):
    """Category discovery response."""

    success: bool = Field(..., description="是否成功")
    count: int = Field(default=0, description="写入的分类数")
    removed: int = Field(default=0, description="删除的分类数")
    error: str | None = Field(default=None, description="错误信息")


class SyncStatusResponse(BaseModel):
    """Sync status response."""

    progress: SyncProgress = Field(..., description="同步进度")
    is_locked: bool = Field(..., description="同步锁是否被持有")


class CancelResponse(BaseModel):
    """Cancel response."""

    cancelled: bool = Field(..., description="是否已请求取消")
    force_reset: bool = Field(default=False, description="是否触发了强制重置")
