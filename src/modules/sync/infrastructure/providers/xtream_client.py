"""Xtream API client.

所有请求走 /player_api.php，凭据以查询参数传递。任何非 2xx、超时或无法解析的响应
都抛出 UpstreamError；auth == 0 抛出 UpstreamAuthError。
"""

from typing import Any, TypeVar

import httpx
from loguru import logger
from pydantic import BaseModel, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from src.core.config import settings
from src.modules.sync.domain.exceptions import UpstreamAuthError, UpstreamError
from src.modules.sync.infrastructure.providers.xtream_models import (
    XtreamAuthResponse,
    XtreamCategory,
    XtreamLiveStream,
    XtreamSeries,
    XtreamSeriesInfo,
    XtreamVodStream,
)

API_PATH = "/player_api.php"

M = TypeVar("M", bound=BaseModel)


class XtreamClient:
    """Xtream 风格 JSON API 客户端。"""

    def __init__(
        self,
        host: str,
        username: str,
        password: str,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = host.rstrip("/")
        self.username = username
        self.password = password
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout or settings.XTREAM_TIMEOUT_SEC,
            follow_redirects=True,
            headers={"User-Agent": settings.UPSTREAM_USER_AGENT},
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "XtreamClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def _get(self, action: str | None = None, **params: Any) -> Any:
        query: dict[str, Any] = {"username": self.username, "password": self.password}
        if action:
            query["action"] = action
        query.update({k: v for k, v in params.items() if v is not None})

        try:
            response = await self._client.get(API_PATH, params=query)
        except httpx.TimeoutException as e:
            logger.warning(f"Xtream request timeout ({action or 'auth'}): {e}")
            raise UpstreamError(f"Xtream API timeout: {action or 'auth'}") from e
        except httpx.HTTPError as e:
            logger.warning(f"Xtream request failed ({action or 'auth'}): {e}")
            raise UpstreamError(f"Xtream API request failed: {e}") from e

        if not response.is_success:
            raise UpstreamError(
                f"Xtream API error: {response.status_code} {response.reason_phrase}"
            )

        try:
            return response.json()
        except ValueError as e:
            raise UpstreamError(f"Xtream API returned invalid JSON: {e}") from e

    @staticmethod
    def _parse(model: type[M], data: Any) -> M:
        try:
            return model.model_validate(data if isinstance(data, dict) else {})
        except PydanticValidationError as e:
            raise UpstreamError(f"Unexpected Xtream response: {e}") from e

    @staticmethod
    def _parse_list(model: type[M], data: Any) -> list[M]:
        # 上游在空结果时可能返回 null、{} 或错误对象
        if not isinstance(data, list):
            return []
        try:
            return TypeAdapter(list[model]).validate_python(data)
        except PydanticValidationError as e:
            raise UpstreamError(f"Unexpected Xtream response: {e}") from e

    # ============ API 操作 ============

    async def authenticate(self) -> XtreamAuthResponse:
        """校验凭据，auth == 0 时抛出 UpstreamAuthError。"""
        auth = self._parse(XtreamAuthResponse, await self._get())
        if auth.user_info.auth == 0:
            raise UpstreamAuthError()
        return auth

    async def get_live_categories(self) -> list[XtreamCategory]:
        return self._parse_list(XtreamCategory, await self._get("get_live_categories"))

    async def get_vod_categories(self) -> list[XtreamCategory]:
        return self._parse_list(XtreamCategory, await self._get("get_vod_categories"))

    async def get_series_categories(self) -> list[XtreamCategory]:
        return self._parse_list(
            XtreamCategory, await self._get("get_series_categories")
        )

    async def get_live_streams(
        self, category_id: str | None = None
    ) -> list[XtreamLiveStream]:
        data = await self._get("get_live_streams", category_id=category_id)
        return self._parse_list(XtreamLiveStream, data)

    async def get_vod_streams(
        self, category_id: str | None = None
    ) -> list[XtreamVodStream]:
        data = await self._get("get_vod_streams", category_id=category_id)
        return self._parse_list(XtreamVodStream, data)

    async def get_series(self, category_id: str | None = None) -> list[XtreamSeries]:
        data = await self._get("get_series", category_id=category_id)
        return self._parse_list(XtreamSeries, data)

    async def get_series_info(self, series_id: int) -> XtreamSeriesInfo:
        data = await self._get("get_series_info", series_id=series_id)
        return self._parse(XtreamSeriesInfo, data)

    # ============ 播放地址 ============

    def build_live_stream_url(self, stream_id: int | str, extension: str = "ts") -> str:
        return (
            f"{self.base_url}/live/{self.username}/{self.password}/"
            f"{stream_id}.{extension}"
        )

    def build_vod_stream_url(self, stream_id: int | str, extension: str = "mp4") -> str:
        return (
            f"{self.base_url}/movie/{self.username}/{self.password}/"
            f"{stream_id}.{extension}"
        )

    def build_series_stream_url(
        self, stream_id: int | str, extension: str = "mp4"
    ) -> str:
        return (
            f"{self.base_url}/series/{self.username}/{self.password}/"
            f"{stream_id}.{extension}"
        )
