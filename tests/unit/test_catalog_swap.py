"""Tests for catalog swap."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from src.modules.catalog.domain.entities import ChannelRecord
from src.modules.catalog.domain.repository import ChannelRepository
from src.modules.catalog.infrastructure.repositories import (
    PG_MAX_BIND_PARAMS,
    swap_batch_size,
)
from src.modules.sync.application.catalog_swap import CatalogSwap
from src.modules.sync.domain.exceptions import EmptyCatalogError
from tests.fakes import InMemoryChannelRepository, make_channels

pytestmark = pytest.mark.anyio


async def test_swap_replaces_channels(
    channel_repository: InMemoryChannelRepository,
) -> None:
    swap = CatalogSwap(channel_repository)
    await swap.swap("p1", make_channels("p1", 3))

    count = await swap.swap("p1", make_channels("p1", 2))

    assert count == 2
    assert await channel_repository.count_by_provider("p1") == 2


async def test_empty_swap_is_rejected_before_delete() -> None:
    repository = MagicMock(spec=ChannelRepository)
    repository.replace_for_provider = AsyncMock()
    swap = CatalogSwap(repository)

    with pytest.raises(EmptyCatalogError, match="Zero channels fetched"):
        await swap.swap("p1", [])

    repository.replace_for_provider.assert_not_called()


async def test_swap_rejects_foreign_channels(
    channel_repository: InMemoryChannelRepository,
) -> None:
    channels = make_channels("p1", 2) + [
        ChannelRecord(provider_id="p2", name="Other", url="http://s/other")
    ]

    with pytest.raises(ValueError, match="do not belong to p1"):
        await CatalogSwap(channel_repository).swap("p1", channels)

    assert await channel_repository.count_by_provider("p1") == 0


def test_swap_batch_size_respects_bind_limit() -> None:
    assert swap_batch_size(17, 5000) == 3855
    assert swap_batch_size(17, 1000) == 1000
    assert swap_batch_size(17, 100_000) * 17 <= PG_MAX_BIND_PARAMS
    assert swap_batch_size(PG_MAX_BIND_PARAMS * 2, 10) == 1
