"""Catalog domain exceptions."""

from src.core.domain.exceptions import EntityNotFoundError


class ProviderNotFoundError(EntityNotFoundError):
    """Raised when provider is not found."""

    def __init__(self, provider_id: str | None = None):
        super().__init__("Provider", provider_id)
