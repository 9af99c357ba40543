"""Sync progress models.

进度快照由 ProgressTracker 持有并周期性写入 Redis，任何进程都可以读取。
"""

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, Field


class SyncStatus(StrEnum):
    """整次同步运行状态。"""

    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    COMPLETED_WITH_ERRORS = "completed_with_errors"
    ERROR = "error"
    CANCELLED = "cancelled"


class ProviderSyncState(StrEnum):
    """单个 Provider 在本次运行中的状态。"""

    PENDING = "pending"
    SYNCING = "syncing"
    COMPLETED = "completed"
    ERROR = "error"


class ProviderSyncStatus(BaseModel):
    """单个 Provider 的同步进度。"""

    provider_id: str
    provider_name: str
    status: ProviderSyncState = ProviderSyncState.PENDING
    categories_total: int = 0
    categories_processed: int = 0
    channels_fetched: int = 0
    error: str | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None


class SyncProgress(BaseModel):
    """整次同步的进度快照。"""

    is_running: bool = False
    status: SyncStatus = SyncStatus.IDLE
    current_step: str = ""
    total_providers: int = 0
    processed_providers: int = 0
    total_categories: int = 0
    processed_categories: int = 0
    total_channels: int = 0
    processed_channels: int = 0
    providers: list[ProviderSyncStatus] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
    cancel_requested: bool = False
    started_at: datetime | None = None
    completed_at: datetime | None = None

    def provider(self, provider_id: str) -> ProviderSyncStatus | None:
        for entry in self.providers:
            if entry.provider_id == provider_id:
                return entry
        return None
