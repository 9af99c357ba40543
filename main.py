"""CatalogSync Backend - IPTV 目录同步引擎入口。"""

import sentry_sdk
from fastapi import FastAPI
from fastapi.concurrency import asynccontextmanager
from fastapi.routing import APIRoute
from loguru import logger

from src.core.config import settings
from src.core.domain.exceptions import DomainException
from src.core.infrastructure.database.session import check_db_health, init_db
from src.core.infrastructure.logging import setup_logging
from src.core.infrastructure.redis import redis_client
from src.core.interfaces.http.exceptions import (
    BizException,
    biz_exception_handler,
    domain_exception_handler,
    global_exception_handler,
)
from src.core.interfaces.http.routers import api_router
from src.modules.sync.infrastructure.dependencies import build_sync_orchestrator


def custom_generate_unique_id(route: APIRoute) -> str:
    """Generate unique operation IDs for OpenAPI."""
    if route.tags:
        return f"{route.tags[0]}-{route.name}"
    return route.name


# Initialize Sentry if configured
if settings.SENTRY_DSN and settings.ENVIRONMENT != "local":
    sentry_sdk.init(
        dsn=str(settings.SENTRY_DSN),
        enable_tracing=True,
        environment=settings.ENVIRONMENT,
    )


@asynccontextmanager
async def lifespan(_: FastAPI):
    """Application lifespan manager."""
    setup_logging()
    logger.info("Starting CatalogSync backend...")
    logger.info(f"Environment: {settings.ENVIRONMENT}")

    logger.info("Initializing database connection...")
    await init_db()

    yield

    await redis_client.close()
    logger.info("Shutting down CatalogSync backend...")


app = FastAPI(
    title=settings.PROJECT_NAME,
    description=(
        "IPTV 目录同步引擎 - 从 Xtream API 与 M3U 播放列表拉取频道目录\n\n"
        "## 认证方式\n\n"
        "配置 SYNC_API_TOKEN 后，同步接口需要在 X-Sync-Token 请求头中传递令牌"
    ),
    version="0.1.0",
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    docs_url=f"{settings.API_V1_STR}/docs",
    redoc_url=f"{settings.API_V1_STR}/redoc",
    root_path=settings.ROOTPATH,
    generate_unique_id_function=custom_generate_unique_id,
    lifespan=lifespan,
)

# Exception handlers
app.add_exception_handler(BizException, biz_exception_handler)
app.add_exception_handler(DomainException, domain_exception_handler)
app.add_exception_handler(Exception, global_exception_handler)

# Include API router
app.include_router(api_router, prefix=settings.API_V1_STR)


@app.get("/health", tags=["health"])
async def health_check():
    """Health check endpoint.

    检查 PostgreSQL、Redis 与同步引擎状态。Redis 异常时同步无法加锁，但目录仍可读取，
    因此记为 degraded。
    """
    db_health_result = await check_db_health()
    redis_health_result = await redis_client.health_check()
    sync_health_result = await build_sync_orchestrator(redis_client).health_check()

    db_ok = db_health_result.ok
    redis_ok = redis_health_result.ok

    if db_ok and redis_ok:
        overall_status = "healthy"
    elif db_ok:
        overall_status = "degraded"
    else:
        overall_status = "unhealthy"

    return {
        "status": overall_status,
        "environment": settings.ENVIRONMENT,
        "version": "0.1.0",
        "components": {
            "database": db_health_result.to_dict(),
            "redis": redis_health_result.to_dict(),
            "sync": sync_health_result.to_dict(),
        },
    }


@app.get("/", tags=["root"])
async def root():
    """Root endpoint."""
    return {
        "message": "Welcome to CatalogSync API",
        "docs": f"{settings.API_V1_STR}/docs",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=settings.SERVER_PORT,
        reload=settings.ENVIRONMENT == "local",
    )
