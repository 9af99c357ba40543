"""Celery 应用配置。

- 使用 JSON 序列化
- 同步任务独占 q_sync 队列
- 配置定时任务（Beat）
"""

from celery import Celery
from kombu import Exchange, Queue

from src.core.config import settings
from src.core.infrastructure.celery.queues import TASK_ROUTES, Queues

# 创建 Celery 应用
celery_app = Celery("catalogsync")

# 基础配置
celery_app.conf.update(
    # Broker & Backend
    broker_url=settings.celery_broker_url,
    result_backend=settings.celery_result_backend,
    # 序列化配置
    task_serializer=settings.CELERY_TASK_SERIALIZER,
    result_serializer=settings.CELERY_RESULT_SERIALIZER,
    accept_content=settings.CELERY_ACCEPT_CONTENT,
    # 时区配置
    timezone=settings.TIMEZONE,
    enable_utc=True,
    # 任务配置：硬超时必须小于同步锁 TTL
    task_track_started=True,
    task_time_limit=settings.SYNC_TASK_TIME_LIMIT_SEC,
    task_soft_time_limit=settings.SYNC_TASK_TIME_LIMIT_SEC - 60,
    task_acks_late=True,  # 任务完成后才确认
    task_reject_on_worker_lost=False,  # 中断的同步由锁过期检测收尾，不重新投递
    # 结果配置
    result_expires=3600,  # 结果保留 1 小时
    # Worker 配置
    worker_prefetch_multiplier=1,  # 一次只取一个任务
    worker_concurrency=1,  # 默认并发数，实际由启动参数控制
)

# 队列配置
default_exchange = Exchange("default", type="direct")
celery_app.conf.task_queues = (
    Queue(Queues.SYNC, default_exchange, routing_key=Queues.SYNC),
)

# 任务路由
celery_app.conf.task_routes = TASK_ROUTES

# 默认队列
celery_app.conf.task_default_queue = Queues.SYNC

# 定时任务配置（Celery Beat）
celery_app.conf.beat_schedule = {
    # 定时全量同步
    "run-scheduled-sync": {
        "task": "src.modules.sync.tasks.run_full_sync",
        "schedule": float(settings.SYNC_SCHEDULE_INTERVAL_SEC),
        "options": {"queue": Queues.SYNC},
    },
}

# 自动发现任务
celery_app.autodiscover_tasks(["src.modules.sync"], related_name="tasks")
