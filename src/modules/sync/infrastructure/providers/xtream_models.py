"""Xtream API response models.

上游字段类型不稳定（数字与字符串混用、缺字段），模型一律宽松解析并忽略未知字段。
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class XtreamModel(BaseModel):
    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)


class XtreamUserInfo(XtreamModel):
    auth: int = 0
    username: str | None = None
    status: str | None = None


class XtreamAuthResponse(XtreamModel):
    user_info: XtreamUserInfo = Field(default_factory=XtreamUserInfo)
    server_info: dict[str, Any] = Field(default_factory=dict)


class XtreamCategory(XtreamModel):
    category_id: str
    category_name: str = ""
    parent_id: int | None = None


class XtreamLiveStream(XtreamModel):
    stream_id: int
    name: str = ""
    stream_icon: str | None = None
    epg_channel_id: str | None = None
    category_id: str | None = None
    category_name: str | None = None
    container_extension: str | None = None


class XtreamVodStream(XtreamModel):
    stream_id: int
    name: str = ""
    stream_icon: str | None = None
    category_id: str | None = None
    category_name: str | None = None
    container_extension: str | None = None


class XtreamSeries(XtreamModel):
    series_id: int
    name: str = ""
    cover: str | None = None
    category_id: str | None = None
    category_name: str | None = None


class XtreamEpisodeInfo(XtreamModel):
    duration_secs: int | None = None


class XtreamEpisode(XtreamModel):
    id: str
    episode_num: int = 0
    title: str = ""
    season: int = 0
    container_extension: str | None = None
    info: XtreamEpisodeInfo | None = None

    @field_validator("info", mode="before")
    @classmethod
    def _empty_info(cls, value: Any) -> Any:
        # 部分上游在没有详情时返回空列表
        return value if isinstance(value, dict) else None


class XtreamSeriesInfo(XtreamModel):
    episodes: dict[str, list[XtreamEpisode]] = Field(default_factory=dict)

    @field_validator("episodes", mode="before")
    @classmethod
    def _normalize_episodes(cls, value: Any) -> Any:
        if not value:
            return {}
        # 部分上游按季返回列表而不是 {season: [...]} 映射
        if isinstance(value, list):
            if all(isinstance(season, list) for season in value):
                return {str(i + 1): season for i, season in enumerate(value)}
            grouped: dict[str, list[Any]] = {}
            for episode in value:
                season = "0"
                if isinstance(episode, dict):
                    season = str(episode.get("season", 0))
                grouped.setdefault(season, []).append(episode)
            return grouped
        return value
