"""Catalog application data models."""

from pydantic import BaseModel


class CategoryDiscoveryResult(BaseModel):
    """Category discovery result."""

    success: bool
    count: int = 0
    removed: int = 0
    error: str | None = None
