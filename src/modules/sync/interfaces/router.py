"""Sync API routes."""

import hmac

from fastapi import APIRouter, Depends, Header, status

from src.core.config import settings
from src.core.interfaces.http.exceptions import BizException
from src.core.interfaces.http.response import ApiResponse
from src.modules.catalog.application.category_discovery_service import (
    CategoryDiscoveryService,
)
from src.modules.catalog.domain.exceptions import ProviderNotFoundError
from src.modules.sync.application.orchestrator import SyncOrchestrator
from src.modules.sync.domain.exceptions import SyncAlreadyRunningError
from src.modules.sync.domain.progress import SyncProgress
from src.modules.sync.infrastructure.dependencies import (
    get_category_discovery_service,
    get_sync_orchestrator,
)
from src.modules.sync.infrastructure.dispatcher import (
    CelerySyncDispatcher,
    get_sync_dispatcher,
)
from src.modules.sync.interfaces.schemas import (
    CancelResponse,
    CategoryDiscoveryResponse,
    SyncStatusResponse,
    SyncTaskResponse,
)


async def verify_sync_token(
    x_sync_token: str | None = Header(default=None, alias="X-Sync-Token"),
) -> None:
    """SYNC_API_TOKEN 配置后，请求必须携带相同的 X-Sync-Token。"""
    expected = settings.SYNC_API_TOKEN
    if not expected:
        return
    if not x_sync_token or not hmac.compare_digest(x_sync_token, expected):
        raise BizException(
            message="Invalid sync token",
            code=status.HTTP_401_UNAUTHORIZED,
            error_code="UNAUTHORIZED",
        )


router = APIRouter(
    prefix="/sync",
    tags=["sync"],
    dependencies=[Depends(verify_sync_token)],
)


@router.post(
    "/start",
    response_model=ApiResponse[SyncTaskResponse],
    status_code=status.HTTP_202_ACCEPTED,
    summary="启动全量同步",
    description="投递全量同步任务；已有同步运行时返回 409",
)
async def start_full_sync(
    orchestrator: SyncOrchestrator = Depends(get_sync_orchestrator),
    dispatcher: CelerySyncDispatcher = Depends(get_sync_dispatcher),
) -> ApiResponse[SyncTaskResponse]:
    """Queue a full sync."""
    if await orchestrator.lock.is_locked():
        raise SyncAlreadyRunningError()
    task_id = dispatcher.start_full_sync()
    return ApiResponse.accepted(
        data=SyncTaskResponse(task_id=task_id), message="Sync started"
    )


@router.post(
    "/providers/{provider_id}",
    response_model=ApiResponse[SyncTaskResponse],
    status_code=status.HTTP_202_ACCEPTED,
    summary="启动单个 Provider 同步",
    description="Provider 不存在时返回 404；已有同步运行时返回 409",
)
async def start_provider_sync(
    provider_id: str,
    orchestrator: SyncOrchestrator = Depends(get_sync_orchestrator),
    dispatcher: CelerySyncDispatcher = Depends(get_sync_dispatcher),
) -> ApiResponse[SyncTaskResponse]:
    """Queue a single-provider sync."""
    if await orchestrator.lock.is_locked():
        raise SyncAlreadyRunningError()
    if await orchestrator.provider_repository.get_by_id(provider_id) is None:
        raise ProviderNotFoundError(provider_id)
    task_id = dispatcher.start_provider_sync(provider_id)
    return ApiResponse.accepted(
        data=SyncTaskResponse(task_id=task_id, provider_id=provider_id),
        message="Provider sync started",
    )


@router.post(
    "/providers/{provider_id}/categories",
    response_model=ApiResponse[CategoryDiscoveryResponse],
    summary="拉取上游分类",
    description="从上游拉取分类列表并写入，删除上游已不存在的分类",
)
async def discover_categories(
    provider_id: str,
    service: CategoryDiscoveryService = Depends(get_category_discovery_service),
) -> ApiResponse[CategoryDiscoveryResponse]:
    """Discover provider categories."""
    result = await service.discover(provider_id)
    return ApiResponse.success(
        data=CategoryDiscoveryResponse(**result.model_dump()),
        message="Categories discovered" if result.success else "Discovery failed",
    )


@router.get(
    "/progress",
    response_model=ApiResponse[SyncProgress],
    summary="获取同步进度",
    description="绕过缓存读取共享进度；检测到僵死同步时强制收尾",
)
async def get_progress(
    orchestrator: SyncOrchestrator = Depends(get_sync_orchestrator),
) -> ApiResponse[SyncProgress]:
    """Get current sync progress."""
    return ApiResponse.success(data=await orchestrator.get_progress(force=True))


@router.get(
    "/status",
    response_model=ApiResponse[SyncStatusResponse],
    summary="获取同步状态",
)
async def get_status(
    orchestrator: SyncOrchestrator = Depends(get_sync_orchestrator),
) -> ApiResponse[SyncStatusResponse]:
    """Get sync progress and lock state."""
    result = await orchestrator.get_status()
    return ApiResponse.success(
        data=SyncStatusResponse(progress=result.progress, is_locked=result.is_locked)
    )


@router.post(
    "/cancel",
    response_model=ApiResponse[CancelResponse],
    summary="取消同步",
    description="请求取消当前同步；重复取消会强制重置进度并释放锁",
)
async def cancel_sync(
    orchestrator: SyncOrchestrator = Depends(get_sync_orchestrator),
) -> ApiResponse[CancelResponse]:
    """Request cancellation of the running sync."""
    result = await orchestrator.request_cancel()
    return ApiResponse.success(
        data=CancelResponse(**result.model_dump()),
        message="Sync force reset" if result.force_reset else "Cancel requested",
    )
