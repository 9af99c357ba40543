"""Standard API response models."""

from typing import Generic, TypeVar

from fastapi import status
from pydantic import BaseModel, ConfigDict

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """Standard API response model."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    code: int = status.HTTP_200_OK
    message: str = "Operation successful"
    data: T | None = None
    meta: dict | None = None

    @classmethod
    def success(
        cls,
        data: T = None,
        message: str = "Operation successful",
        code: int = status.HTTP_200_OK,
        meta: dict | None = None,
    ) -> "ApiResponse[T]":
        return cls(code=code, message=message, data=data, meta=meta)

    @classmethod
    def accepted(cls, data: T, message: str = "Task queued") -> "ApiResponse[T]":
        """异步任务已投递（202），data 通常包含任务 ID。"""
        return cls(code=status.HTTP_202_ACCEPTED, message=message, data=data)
