"""Tests for the Xtream API client."""

import json

import httpx
import pytest

from src.modules.sync.domain.exceptions import UpstreamAuthError, UpstreamError
from src.modules.sync.infrastructure.providers.xtream_client import XtreamClient
from src.modules.sync.infrastructure.providers.xtream_models import XtreamSeriesInfo

pytestmark = pytest.mark.anyio


def _client(handler) -> XtreamClient:
    return XtreamClient(
        "http://xtream.test/",
        "user",
        "pass",
        transport=httpx.MockTransport(handler),
    )


async def test_authenticate_sends_credentials() -> None:
    seen: list[httpx.URL] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.url)
        return httpx.Response(200, json={"user_info": {"auth": 1, "status": "Active"}})

    async with _client(handler) as client:
        auth = await client.authenticate()

    assert auth.user_info.auth == 1
    assert seen[0].path == "/player_api.php"
    assert seen[0].params["username"] == "user"
    assert seen[0].params["password"] == "pass"
    assert "action" not in seen[0].params


async def test_authenticate_rejected() -> None:
    def handler(_request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"user_info": {"auth": 0}})

    async with _client(handler) as client:
        with pytest.raises(UpstreamAuthError, match="Xtream authentication failed"):
            await client.authenticate()


async def test_non_2xx_raises_upstream_error() -> None:
    def handler(_request: httpx.Request) -> httpx.Response:
        return httpx.Response(503)

    async with _client(handler) as client:
        with pytest.raises(UpstreamError, match="Xtream API error: 503"):
            await client.get_live_categories()


async def test_invalid_json_raises_upstream_error() -> None:
    def handler(_request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>oops</html>")

    async with _client(handler) as client:
        with pytest.raises(UpstreamError, match="invalid JSON"):
            await client.get_live_categories()


async def test_get_live_streams_with_category_and_mixed_types() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.params["action"] == "get_live_streams"
        assert request.url.params["category_id"] == "7"
        return httpx.Response(
            200,
            content=json.dumps(
                [
                    {"stream_id": "101", "name": "CNN", "category_id": 7},
                    {"stream_id": 102, "name": "BBC", "unknown_field": True},
                ]
            ),
        )

    async with _client(handler) as client:
        streams = await client.get_live_streams("7")

    assert [s.stream_id for s in streams] == [101, 102]
    assert streams[0].category_id == "7"


async def test_non_list_payload_is_empty() -> None:
    def handler(_request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"error": "no streams"})

    async with _client(handler) as client:
        assert await client.get_vod_streams("1") == []


async def test_stream_urls() -> None:
    client = XtreamClient("http://xtream.test/", "user", "pass")

    assert client.build_live_stream_url(5) == "http://xtream.test/live/user/pass/5.ts"
    assert (
        client.build_vod_stream_url(6, "mkv")
        == "http://xtream.test/movie/user/pass/6.mkv"
    )
    assert (
        client.build_series_stream_url("7")
        == "http://xtream.test/series/user/pass/7.mp4"
    )
    await client.aclose()


def test_series_info_episode_shapes() -> None:
    mapping = XtreamSeriesInfo.model_validate(
        {"episodes": {"1": [{"id": 1, "episode_num": 1, "season": 1, "info": []}]}}
    )
    nested = XtreamSeriesInfo.model_validate(
        {"episodes": [[{"id": 1, "episode_num": 1}], [{"id": 2, "episode_num": 1}]]}
    )
    flat = XtreamSeriesInfo.model_validate(
        {
            "episodes": [
                {"id": 1, "episode_num": 1, "season": 1},
                {"id": 2, "episode_num": 1, "season": 2},
            ]
        }
    )

    assert mapping.episodes["1"][0].info is None
    assert mapping.episodes["1"][0].id == "1"
    assert sorted(nested.episodes) == ["1", "2"]
    assert sorted(flat.episodes) == ["1", "2"]
    assert XtreamSeriesInfo.model_validate({"episodes": None}).episodes == {}
