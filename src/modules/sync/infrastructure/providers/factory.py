"""目录抓取器工厂。

根据 Provider 协议创建对应的抓取器实例。
"""

from src.modules.catalog.domain.entities import ProviderProtocol
from src.modules.sync.domain.provider import CatalogProvider
from src.modules.sync.infrastructure.providers.api_provider import ApiProvider
from src.modules.sync.infrastructure.providers.file_provider import FileProvider


class CatalogProviderFactory:
    """抓取器工厂类。"""

    def __init__(
        self,
        providers: dict[ProviderProtocol, CatalogProvider] | None = None,
    ):
        self._providers = providers or {
            ProviderProtocol.API: ApiProvider(),
            ProviderProtocol.FILE: FileProvider(),
        }

    def create(self, protocol: ProviderProtocol) -> CatalogProvider:
        """根据协议返回抓取器。

        Raises:
            ValueError: 不支持的协议
        """
        provider = self._providers.get(protocol)
        if provider is None:
            raise ValueError(f"Unsupported provider protocol: {protocol}")
        return provider
