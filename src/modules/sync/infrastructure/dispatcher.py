"""同步任务投递（Celery）。"""

from collections.abc import Callable
from typing import Any

from kombu.exceptions import OperationalError
from loguru import logger

from src.core.interfaces.http.exceptions import BizException


class CelerySyncDispatcher:
    """把同步请求投递到 q_sync 队列，返回任务 ID。"""

    def start_full_sync(self) -> str:
        from src.modules.sync.tasks import run_full_sync

        return self._send(lambda: run_full_sync.delay())

    def start_provider_sync(self, provider_id: str) -> str:
        from src.modules.sync.tasks import run_provider_sync

        return self._send(lambda: run_provider_sync.delay(provider_id=provider_id))

    @staticmethod
    def _send(enqueue: Callable[[], Any]) -> str:
        try:
            result = enqueue()
        except OperationalError as e:
            logger.exception(f"Failed to enqueue sync task: {e}")
            raise BizException(
                message="Task queue unavailable",
                code=503,
                error_code="QUEUE_UNAVAILABLE",
            ) from e
        return str(result.id)


def get_sync_dispatcher() -> CelerySyncDispatcher:
    return CelerySyncDispatcher()
