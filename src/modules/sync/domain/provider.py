"""Catalog provider interfaces.

Orchestrator 只通过 CatalogProvider 与上游交互，协议差异（API / 播放列表）
全部封装在具体实现中。
"""

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Protocol

from src.modules.catalog.domain.entities import (
    Category,
    CategorySpec,
    CategoryType,
    ChannelRecord,
    Provider,
    ProviderProtocol,
)


async def _noop_checkpoint() -> None:
    return None


async def _noop_category_done(done: int, channels_so_far: int) -> None:
    return None


async def _noop_report_error(message: str) -> None:
    return None


async def _no_category_resolution(groups: list[str]) -> dict[str, str]:
    return {}


@dataclass
class FetchContext:
    """一次抓取的运行上下文。

    Attributes:
        provider: 被抓取的 Provider（含已启用分类）
        check_cancelled: 取消检查点，取消时抛出 SyncCancelledError
        on_category_done: 分类完成回调 (已完成分类数, 累计频道数)
        report_error: 记录非致命错误到进度
        ensure_categories: 把分组标签解析为本地分类 ID（不存在时创建）
    """

    provider: Provider
    check_cancelled: Callable[[], Awaitable[None]] = _noop_checkpoint
    on_category_done: Callable[[int, int], Awaitable[None]] = _noop_category_done
    report_error: Callable[[str], Awaitable[None]] = _noop_report_error
    ensure_categories: Callable[[list[str]], Awaitable[dict[str, str]]] = (
        _no_category_resolution
    )

    @property
    def categories(self) -> list[Category]:
        return [c for c in self.provider.categories if c.enabled]

    def categories_of(self, category_type: CategoryType) -> list[Category]:
        return [c for c in self.categories if c.category_type == category_type]


class CatalogProvider(ABC):
    """上游目录抓取器基类。"""

    @abstractmethod
    def total_categories(self, provider: Provider) -> int:
        """本次抓取计划处理的分类数（用于进度初始化）。"""

    @abstractmethod
    async def fetch_catalog(self, ctx: FetchContext) -> list[ChannelRecord]:
        """抓取完整目录。

        Raises:
            UpstreamError: 上游请求失败（含认证失败）
            EmptyCatalogError: 播放列表解析结果为空
            SyncCancelledError: 检查点观察到取消请求
        """

    @abstractmethod
    async def discover_categories(self, provider: Provider) -> list[CategorySpec]:
        """列出上游当前存在的全部分类。"""


class CatalogProviderResolver(Protocol):
    """按协议选择抓取器。"""

    def create(self, protocol: ProviderProtocol) -> CatalogProvider: ...
