"""目录数据源实现。"""

from src.modules.sync.infrastructure.providers.api_provider import ApiProvider
from src.modules.sync.infrastructure.providers.factory import CatalogProviderFactory
from src.modules.sync.infrastructure.providers.file_provider import FileProvider
from src.modules.sync.infrastructure.providers.xtream_client import XtreamClient

__all__ = [
    "ApiProvider",
    "FileProvider",
    "XtreamClient",
    "CatalogProviderFactory",
]
