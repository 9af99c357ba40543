"""Base mapper for entity-model conversion."""

from abc import ABC, abstractmethod
from typing import Generic, TypeVar

E = TypeVar("E")  # Entity type
M = TypeVar("M")  # Model type


class BaseMapper(ABC, Generic[E, M]):
    """在领域实体与数据库模型之间转换。

    批量写入（如频道整体替换）不经过 to_model，直接构造行字典。
    """

    @abstractmethod
    def to_domain(self, model: M) -> E:
        """Convert database model to domain entity."""

    @abstractmethod
    def to_model(self, entity: E) -> M:
        """Convert domain entity to database model."""

    def to_domain_list(self, models: list[M]) -> list[E]:
        return [self.to_domain(model) for model in models]
