"""Catalog database models."""

from datetime import datetime

from sqlalchemy import DateTime, Enum, Text, UniqueConstraint
from sqlmodel import Field

from src.core.config import settings
from src.core.infrastructure.database.base_model import BaseModel
from src.modules.catalog.domain.entities import CategoryType, ProviderProtocol


class ProviderModel(BaseModel, table=True):
    """Provider database model."""

    __tablename__ = "providers"

    name: str = Field(nullable=False, index=True)
    protocol: ProviderProtocol = Field(
        sa_type=Enum(
            ProviderProtocol,
            name="providerprotocol",
            values_callable=lambda e: [i.value for i in e],
            create_constraint=False,
        ),
        nullable=False,
    )
    xtream_host: str | None = Field(default=None, nullable=True)
    xtream_username: str | None = Field(default=None, nullable=True)
    xtream_password: str | None = Field(default=None, nullable=True)
    playlist_url: str | None = Field(default=None, sa_type=Text, nullable=True)
    enabled: bool = Field(default=True, nullable=False, index=True)
    refresh_interval_min: int = Field(
        default=settings.DEFAULT_REFRESH_INTERVAL_MIN, nullable=False
    )
    last_synced_at: datetime | None = Field(
        default=None,
        sa_type=DateTime(timezone=True),
        nullable=True,
    )
    last_sync_error: str | None = Field(default=None, sa_type=Text, nullable=True)
    last_sync_channel_count: int = Field(default=0, nullable=False)


class CategoryModel(BaseModel, table=True):
    """Category database model."""

    __tablename__ = "categories"
    __table_args__ = (
        UniqueConstraint(
            "provider_id",
            "provider_category_id",
            "category_type",
            name="uq_categories_provider_upstream_type",
        ),
    )

    provider_id: str = Field(
        foreign_key="providers.id",
        ondelete="CASCADE",
        nullable=False,
        index=True,
    )
    provider_category_id: str = Field(nullable=False)
    name: str = Field(nullable=False)
    category_type: CategoryType = Field(
        sa_type=Enum(
            CategoryType,
            name="categorytype",
            values_callable=lambda e: [i.value for i in e],
            create_constraint=False,
        ),
        nullable=False,
    )
    enabled: bool = Field(default=True, nullable=False, index=True)


class ChannelModel(BaseModel, table=True):
    """Channel database model.

    每次同步整体替换，行不跨同步保留。
    """

    __tablename__ = "channels"

    provider_id: str = Field(
        foreign_key="providers.id",
        ondelete="CASCADE",
        nullable=False,
        index=True,
    )
    category_id: str | None = Field(
        default=None,
        foreign_key="categories.id",
        ondelete="SET NULL",
        nullable=True,
        index=True,
    )
    name: str = Field(sa_type=Text, nullable=False)
    url: str = Field(sa_type=Text, nullable=False)
    group_title: str = Field(default="", nullable=False)
    tvg_id: str = Field(default="", nullable=False)
    tvg_name: str = Field(default="", nullable=False)
    tvg_logo: str = Field(default="", sa_type=Text, nullable=False)
    series_name: str | None = Field(default=None, nullable=True)
    season_num: int | None = Field(default=None, nullable=True)
    episode_num: int | None = Field(default=None, nullable=True)
    duration_sec: int | None = Field(default=None, nullable=True)
