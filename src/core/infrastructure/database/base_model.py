"""Base SQLModel for all database models."""

import uuid
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel


def utc_now() -> datetime:
    """Return current UTC datetime with timezone info."""
    return datetime.now(UTC)


class BaseModel(SQLModel):
    """Base model with common fields.

    所有时间戳字段使用 UTC 时区，与 domain/base_entity.py 保持一致。
    Core 层批量语句（insert().values / ON CONFLICT）绕过 ORM 默认值，
    需要通过 new_row_values() 显式补齐主键与时间戳。
    """

    model_config = {"arbitrary_types_allowed": True}

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)

    created_at: datetime = Field(
        default_factory=utc_now,
        sa_type=DateTime(timezone=True),
        nullable=False,
    )

    updated_at: datetime = Field(
        default_factory=utc_now,
        sa_type=DateTime(timezone=True),
        nullable=False,
    )

    @staticmethod
    def new_row_values(now: datetime | None = None) -> dict[str, Any]:
        """新行的 id / created_at / updated_at。同一批次传入同一个 now。"""
        now = now or utc_now()
        return {"id": str(uuid.uuid4()), "created_at": now, "updated_at": now}
