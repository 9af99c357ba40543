"""
pytest 配置和共享 fixtures。

测试分层：
- unit/: 单元测试（不依赖外部服务，KV 与仓储使用内存实现）
- integration/: 集成测试（需要 PostgreSQL）

使用方法：
    # 运行所有测试
    uv run pytest

    # 只运行单元测试
    uv run pytest tests/unit/

    # 只运行集成测试（需要 Docker）
    uv run pytest tests/integration/ -m integration
"""

import pytest

from src.core.config import Settings
from tests.fakes import (
    InMemoryCategoryRepository,
    InMemoryChannelRepository,
    InMemoryKV,
    InMemoryProviderRepository,
)

# ============================================
# 配置 Fixtures
# ============================================


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def test_settings() -> Settings:
    """测试环境配置。"""
    return Settings(
        ENVIRONMENT="local",
        POSTGRES_SERVER="localhost",
        POSTGRES_PORT=5432,
        POSTGRES_USER="postgres",
        POSTGRES_PASSWORD="postgres",
        POSTGRES_DB="catalogsync_test",
        REDIS_URL="redis://localhost:6379/1",  # 使用 DB 1 隔离测试
    )


# ============================================
# KV Fixtures
# ============================================


@pytest.fixture
def kv() -> InMemoryKV:
    return InMemoryKV()


# ============================================
# 仓储 Fixtures
# ============================================


@pytest.fixture
def provider_repository() -> InMemoryProviderRepository:
    return InMemoryProviderRepository()


@pytest.fixture
def category_repository() -> InMemoryCategoryRepository:
    return InMemoryCategoryRepository()


@pytest.fixture
def channel_repository() -> InMemoryChannelRepository:
    return InMemoryChannelRepository()
