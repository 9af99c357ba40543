"""Celery task retry helpers.

只对基础设施故障（Redis、Broker）自动重试；上游抓取失败由下一次定时同步兜底。
"""

from kombu.exceptions import OperationalError as KombuOperationalError
from redis.exceptions import RedisError

from src.core.infrastructure.redis.client import RedisUnavailableError

INFRA_RETRYABLE_EXCEPTIONS: tuple[type[BaseException], ...] = (
    RedisUnavailableError,
    RedisError,
    KombuOperationalError,
)
