"""Sync application data models."""

from pydantic import BaseModel, Field

from src.modules.sync.domain.progress import SyncProgress


class FullSyncResult(BaseModel):
    """Full sync result."""

    success: bool
    providers_processed: int = 0
    total_channels: int = 0
    errors: list[str] = Field(default_factory=list)


class ProviderSyncResult(BaseModel):
    """Single-provider sync result."""

    success: bool
    channel_count: int = 0
    error: str | None = None


class CancelResult(BaseModel):
    """Cancel request result.

    force_reset 为 True 表示重复取消触发了强制重置（进度归零、锁被强制释放）。
    """

    cancelled: bool
    force_reset: bool = False


class SyncStatusData(BaseModel):
    """Sync status query result."""

    progress: SyncProgress
    is_locked: bool
