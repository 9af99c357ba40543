"""Sync domain exceptions."""

from fastapi import status

from src.core.domain.exceptions import DomainException, ResourceBusyError


class SyncError(DomainException):
    """Base class for sync failures."""

    http_status_code = status.HTTP_502_BAD_GATEWAY
    error_code = "SYNC_ERROR"


class SyncCancelledError(SyncError):
    """Raised at a checkpoint when a cancel request is observed."""

    error_code = "SYNC_CANCELLED"

    def __init__(self, message: str = "Sync cancelled by user"):
        super().__init__(message)


class SyncAlreadyRunningError(ResourceBusyError):
    """Raised when the sync lock is held by another run."""

    error_code = "SYNC_ALREADY_RUNNING"

    def __init__(self, message: str = "Another sync is already running"):
        super().__init__(message)


class UpstreamError(SyncError):
    """上游（API 或播放列表）请求失败：超时、非 2xx、响应无法解析。"""

    error_code = "UPSTREAM_ERROR"


class UpstreamAuthError(UpstreamError):
    """上游凭据被拒绝。"""

    error_code = "UPSTREAM_AUTH_ERROR"

    def __init__(self, message: str = "Xtream authentication failed"):
        super().__init__(message)


class EmptyCatalogError(SyncError):
    """抓取结果为空，拒绝替换以免清空已有数据。"""

    error_code = "EMPTY_CATALOG"

    def __init__(
        self, message: str = "Zero channels fetched, aborting to prevent data loss"
    ):
        super().__init__(message)


class ProviderConfigError(SyncError):
    """Provider 配置不完整，无法构建对应的抓取器。"""

    http_status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    error_code = "PROVIDER_CONFIG_ERROR"


class ProgressConflictError(ResourceBusyError):
    """进度记录在多次比较写入重试后仍被并发修改。"""

    error_code = "SYNC_PROGRESS_CONFLICT"

    def __init__(self, message: str = "Sync progress is being modified concurrently"):
        super().__init__(message)
