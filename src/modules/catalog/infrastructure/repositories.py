"""Catalog repository implementations."""

from datetime import datetime

from loguru import logger
from sqlalchemy import delete, func, insert, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import col, select

from src.core.config import settings
from src.core.infrastructure.database.base_model import utc_now
from src.core.infrastructure.database.session import SessionFactory, get_async_session
from src.core.infrastructure.logging import BusinessEvents
from src.modules.catalog.domain.entities import (
    Category,
    CategorySpec,
    ChannelRecord,
    Provider,
)
from src.modules.catalog.domain.repository import (
    CategoryRepository,
    ChannelRepository,
    ProviderRepository,
)
from src.modules.catalog.infrastructure.mappers import (
    CategoryMapper,
    ProviderMapper,
    channel_to_row,
)
from src.modules.catalog.infrastructure.models import (
    CategoryModel,
    ChannelModel,
    ProviderModel,
)

# PostgreSQL 单条语句绑定参数上限
PG_MAX_BIND_PARAMS = 65535


def swap_batch_size(column_count: int, configured: int | None = None) -> int:
    """计算批量 INSERT 每批行数，保证 行数 × 列数 不超过绑定参数上限。"""
    configured = configured or settings.CATALOG_SWAP_BATCH_SIZE
    return max(1, min(configured, PG_MAX_BIND_PARAMS // column_count))


class PostgreSQLProviderRepository(ProviderRepository):
    """PostgreSQL provider repository implementation."""

    def __init__(
        self,
        mapper: ProviderMapper | None = None,
        category_mapper: CategoryMapper | None = None,
        session_factory: SessionFactory = get_async_session,
    ):
        self.mapper = mapper or ProviderMapper()
        self.category_mapper = category_mapper or CategoryMapper()
        self.session_factory = session_factory

    async def _load_enabled_categories(
        self, session: AsyncSession, provider_ids: list[str]
    ) -> dict[str, list[Category]]:
        if not provider_ids:
            return {}
        statement = (
            select(CategoryModel)
            .where(
                col(CategoryModel.provider_id).in_(provider_ids),
                col(CategoryModel.enabled).is_(True),
            )
            .order_by(CategoryModel.category_type, CategoryModel.name)
        )
        result = await session.execute(statement)
        grouped: dict[str, list[Category]] = {pid: [] for pid in provider_ids}
        for model in result.scalars().all():
            grouped[model.provider_id].append(self.category_mapper.to_domain(model))
        return grouped

    async def get_by_id(self, provider_id: str) -> Provider | None:
        async with self.session_factory() as session:
            result = await session.execute(
                select(ProviderModel).where(ProviderModel.id == provider_id)
            )
            model = result.scalar_one_or_none()
            if model is None:
                return None
            categories = await self._load_enabled_categories(session, [model.id])
            return self.mapper.to_domain(model, categories[model.id])

    async def list_enabled(self) -> list[Provider]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(ProviderModel)
                .where(col(ProviderModel.enabled).is_(True))
                .order_by(ProviderModel.name, ProviderModel.id)
            )
            models = list(result.scalars().all())
            categories = await self._load_enabled_categories(
                session, [m.id for m in models]
            )
            return [self.mapper.to_domain(m, categories[m.id]) for m in models]

    async def record_sync_success(
        self,
        provider_id: str,
        channel_count: int,
        synced_at: datetime,
    ) -> None:
        async with self.session_factory() as session:
            async with session.begin():
                await session.execute(
                    update(ProviderModel)
                    .where(col(ProviderModel.id) == provider_id)
                    .values(
                        last_synced_at=synced_at,
                        last_sync_channel_count=channel_count,
                        last_sync_error=None,
                        updated_at=utc_now(),
                    )
                )

    async def record_sync_error(self, provider_id: str, error: str) -> None:
        async with self.session_factory() as session:
            async with session.begin():
                await session.execute(
                    update(ProviderModel)
                    .where(col(ProviderModel.id) == provider_id)
                    .values(last_sync_error=error, updated_at=utc_now())
                )


class PostgreSQLCategoryRepository(CategoryRepository):
    """PostgreSQL category repository implementation."""

    def __init__(
        self,
        mapper: CategoryMapper | None = None,
        session_factory: SessionFactory = get_async_session,
    ):
        self.mapper = mapper or CategoryMapper()
        self.session_factory = session_factory

    async def list_by_provider(
        self,
        provider_id: str,
        enabled_only: bool = True,
    ) -> list[Category]:
        statement = select(CategoryModel).where(
            CategoryModel.provider_id == provider_id
        )
        if enabled_only:
            statement = statement.where(col(CategoryModel.enabled).is_(True))
        statement = statement.order_by(CategoryModel.category_type, CategoryModel.name)

        async with self.session_factory() as session:
            result = await session.execute(statement)
            return self.mapper.to_domain_list(list(result.scalars().all()))

    async def upsert(self, provider_id: str, spec: CategorySpec) -> Category:
        now = utc_now()
        statement = (
            pg_insert(CategoryModel)
            .values(
                **CategoryModel.new_row_values(now),
                provider_id=provider_id,
                provider_category_id=spec.provider_category_id,
                name=spec.name,
                category_type=spec.category_type,
                enabled=True,
            )
            .on_conflict_do_update(
                constraint="uq_categories_provider_upstream_type",
                # 已存在的分类保留 enabled 选择，仅刷新名称
                set_={"name": spec.name, "updated_at": now},
            )
            .returning(*CategoryModel.__table__.columns)
        )

        async with self.session_factory() as session:
            async with session.begin():
                result = await session.execute(statement)
                row = result.mappings().one()
                return Category.model_validate(dict(row))

    async def delete_missing(
        self,
        provider_id: str,
        keep: set[tuple[str, str]],
    ) -> int:
        async with self.session_factory() as session:
            async with session.begin():
                result = await session.execute(
                    select(CategoryModel).where(
                        CategoryModel.provider_id == provider_id
                    )
                )
                stale_ids = [
                    m.id
                    for m in result.scalars().all()
                    if (m.provider_category_id, str(m.category_type)) not in keep
                ]
                if stale_ids:
                    await session.execute(
                        delete(CategoryModel).where(
                            col(CategoryModel.id).in_(stale_ids)
                        )
                    )
        return len(stale_ids)


class PostgreSQLChannelRepository(ChannelRepository):
    """PostgreSQL channel repository implementation.

    频道替换在一个事务中完成：先删除该 Provider 的全部频道，再分批插入。
    任一步失败整个事务回滚，读者始终只能看到旧集合或新集合之一。
    """

    def __init__(
        self,
        session_factory: SessionFactory = get_async_session,
        batch_size: int | None = None,
    ):
        self.session_factory = session_factory
        self.batch_size = swap_batch_size(
            len(ChannelModel.__table__.columns), batch_size
        )

    async def replace_for_provider(
        self,
        provider_id: str,
        channels: list[ChannelRecord],
    ) -> int:
        now = utc_now()
        rows = [channel_to_row(channel, now) for channel in channels]
        batches = 0

        async with self.session_factory() as session:
            async with session.begin():
                await session.execute(
                    delete(ChannelModel).where(
                        col(ChannelModel.provider_id) == provider_id
                    )
                )
                for start in range(0, len(rows), self.batch_size):
                    batch = rows[start : start + self.batch_size]
                    await session.execute(insert(ChannelModel.__table__).values(batch))
                    batches += 1

        logger.debug(
            f"Replaced channels for provider {provider_id}: "
            f"{len(rows)} rows in {batches} batches"
        )
        BusinessEvents.catalog_swapped(
            provider_id=provider_id,
            channel_count=len(rows),
            batches=batches,
        )
        return batches

    async def count_by_provider(self, provider_id: str) -> int:
        async with self.session_factory() as session:
            result = await session.execute(
                select(func.count())
                .select_from(ChannelModel)
                .where(ChannelModel.provider_id == provider_id)
            )
            return int(result.scalar_one())
