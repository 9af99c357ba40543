"""Catalog entity-model mappers."""

from datetime import datetime
from typing import Any

from src.core.infrastructure.database.mapper import BaseMapper
from src.modules.catalog.domain.entities import Category, ChannelRecord, Provider
from src.modules.catalog.infrastructure.models import (
    CategoryModel,
    ChannelModel,
    ProviderModel,
)


class ProviderMapper(BaseMapper[Provider, ProviderModel]):
    """Provider entity-model mapper."""

    def to_domain(
        self,
        model: ProviderModel,
        categories: list[Category] | None = None,
    ) -> Provider:
        return Provider(
            id=model.id,
            name=model.name,
            protocol=model.protocol,
            xtream_host=model.xtream_host,
            xtream_username=model.xtream_username,
            xtream_password=model.xtream_password,
            playlist_url=model.playlist_url,
            enabled=model.enabled,
            refresh_interval_min=model.refresh_interval_min,
            last_synced_at=model.last_synced_at,
            last_sync_error=model.last_sync_error,
            last_sync_channel_count=model.last_sync_channel_count,
            categories=categories or [],
            created_at=model.created_at,
            updated_at=model.updated_at,
        )

    def to_model(self, entity: Provider) -> ProviderModel:
        return ProviderModel(
            id=entity.id,
            name=entity.name,
            protocol=entity.protocol,
            xtream_host=entity.xtream_host,
            xtream_username=entity.xtream_username,
            xtream_password=entity.xtream_password,
            playlist_url=entity.playlist_url,
            enabled=entity.enabled,
            refresh_interval_min=entity.refresh_interval_min,
            last_synced_at=entity.last_synced_at,
            last_sync_error=entity.last_sync_error,
            last_sync_channel_count=entity.last_sync_channel_count,
            created_at=entity.created_at,
            updated_at=entity.updated_at,
        )


class CategoryMapper(BaseMapper[Category, CategoryModel]):
    """Category entity-model mapper."""

    def to_domain(self, model: CategoryModel) -> Category:
        return Category(
            id=model.id,
            provider_id=model.provider_id,
            provider_category_id=model.provider_category_id,
            name=model.name,
            category_type=model.category_type,
            enabled=model.enabled,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )

    def to_model(self, entity: Category) -> CategoryModel:
        return CategoryModel(
            id=entity.id,
            provider_id=entity.provider_id,
            provider_category_id=entity.provider_category_id,
            name=entity.name,
            category_type=entity.category_type,
            enabled=entity.enabled,
            created_at=entity.created_at,
            updated_at=entity.updated_at,
        )


def channel_to_row(record: ChannelRecord, now: datetime) -> dict[str, Any]:
    """ChannelRecord -> 批量 INSERT 的行字典（包含全部列）。"""
    return {**record.model_dump(), **ChannelModel.new_row_values(now)}
