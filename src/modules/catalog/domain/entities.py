"""Catalog domain entities."""

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field

from src.core.domain.base_entity import BaseEntity


class ProviderProtocol(StrEnum):
    """上游协议。"""

    API = "api"  # Xtream 风格 JSON API
    FILE = "file"  # M3U 播放列表文件


class CategoryType(StrEnum):
    """分类内容类型。"""

    LIVE = "live"
    MOVIE = "movie"
    SERIES = "series"


class Category(BaseEntity):
    """Category - 隶属于单个 Provider 的内容分组。

    唯一标识为 (provider_id, provider_category_id, category_type)。
    """

    provider_id: str = Field(..., description="所属 Provider")
    provider_category_id: str = Field(..., description="上游分配的分类标识")
    name: str = Field(..., description="分类名称")
    category_type: CategoryType = Field(..., description="内容类型")
    enabled: bool = Field(default=True, description="是否启用")

    @property
    def identity(self) -> tuple[str, str, CategoryType]:
        return (self.provider_id, self.provider_category_id, self.category_type)


class Provider(BaseEntity):
    """Provider - 上游 IPTV 来源。

    由外部管理界面创建和编辑，同步引擎只写入 last_sync_* 状态字段。
    """

    name: str = Field(..., description="显示名称")
    protocol: ProviderProtocol = Field(..., description="上游协议")
    xtream_host: str | None = Field(default=None, description="API 协议主机地址")
    xtream_username: str | None = Field(default=None, description="API 协议用户名")
    xtream_password: str | None = Field(default=None, description="API 协议密码")
    playlist_url: str | None = Field(default=None, description="播放列表地址")
    enabled: bool = Field(default=True, description="是否启用")
    refresh_interval_min: int = Field(default=360, description="刷新间隔（分钟）")
    last_synced_at: datetime | None = Field(default=None, description="最后同步时间")
    last_sync_error: str | None = Field(default=None, description="最后同步错误")
    last_sync_channel_count: int = Field(default=0, description="最后同步频道数")
    categories: list[Category] = Field(
        default_factory=list, description="启用的分类（按需加载）"
    )


class CategorySpec(BaseModel):
    """分类发现得到的上游分类描述（尚未入库）。"""

    model_config = ConfigDict(frozen=True)

    provider_category_id: str
    name: str
    category_type: CategoryType


class ChannelRecord(BaseModel):
    """一次同步中抓取到的频道记录。

    频道没有跨同步保持的身份，每次同步整体删除后重新插入。
    """

    model_config = ConfigDict(frozen=True)

    provider_id: str = Field(..., description="所属 Provider")
    category_id: str | None = Field(default=None, description="所属分类（本地 ID）")
    name: str = Field(..., description="频道名称")
    url: str = Field(..., description="播放地址")
    group_title: str = Field(default="", description="分组标签")
    tvg_id: str = Field(default="", description="EPG ID")
    tvg_name: str = Field(default="", description="EPG 名称")
    tvg_logo: str = Field(default="", description="台标")
    series_name: str | None = Field(default=None, description="剧集名称")
    season_num: int | None = Field(default=None, description="季")
    episode_num: int | None = Field(default=None, description="集")
    duration_sec: int | None = Field(default=None, description="时长（秒）")
