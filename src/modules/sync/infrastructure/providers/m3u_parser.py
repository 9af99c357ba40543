"""M3U 播放列表解析器。

每个 #EXTINF 元数据行与紧随其后的一个 URL 行组成一个条目。
单行解析失败只降级该条目为默认值，不会中断整个解析。
"""

import re
from dataclasses import dataclass, field

import httpx
from loguru import logger

from src.core.config import settings
from src.modules.sync.domain.exceptions import UpstreamError

DEFAULT_NAME = "Unknown"
DEFAULT_GROUP = "Uncategorized"

EXTINF_PREFIX = "#EXTINF:"
_LINE_SPLIT = re.compile(r"\r?\n")
_DURATION = re.compile(r"^\s*(-?\d+(?:\.\d+)?)")


class ExtInfParseError(ValueError):
    """#EXTINF 行格式错误。"""


@dataclass
class M3UEntry:
    """播放列表中的一个条目。"""

    url: str
    name: str = DEFAULT_NAME
    group_title: str = DEFAULT_GROUP
    tvg_id: str = ""
    tvg_name: str = ""
    tvg_logo: str = ""
    duration: int | None = None


@dataclass
class M3UParseResult:
    entries: list[M3UEntry] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


@dataclass
class _ExtInf:
    name: str = DEFAULT_NAME
    group_title: str = DEFAULT_GROUP
    tvg_id: str = ""
    tvg_name: str = ""
    tvg_logo: str = ""
    duration: int | None = None


def extract_display_name(content: str) -> str:
    """返回最后一个不在引号内的逗号之后的文本。"""
    in_quotes = False
    last_comma = -1
    for i, ch in enumerate(content):
        if ch == '"':
            in_quotes = not in_quotes
        elif ch == "," and not in_quotes:
            last_comma = i
    if last_comma == -1:
        return ""
    return content[last_comma + 1 :].strip()


def extract_attribute(content: str, attribute: str) -> str:
    """提取属性值，带引号的 key="value" 优先于不带引号的 key=value。"""
    name = re.escape(attribute)
    quoted = re.search(rf'{name}="([^"]*)"', content, re.IGNORECASE)
    if quoted:
        return quoted.group(1)
    unquoted = re.search(rf"{name}=([^\s,]+)", content, re.IGNORECASE)
    if unquoted:
        return unquoted.group(1)
    return ""


def _parse_duration(content: str) -> int | None:
    match = _DURATION.match(content)
    if not match:
        return None
    value = int(float(match.group(1)))
    return value if value > 0 else None


def parse_extinf(line: str) -> _ExtInf:
    """解析单个 #EXTINF 行。

    名称中的单个引号（如 12" Pizza）不视为错误。

    Raises:
        ExtInfParseError: 缺少时长字段
    """
    content = line[len(EXTINF_PREFIX) :]
    if not _DURATION.match(content):
        raise ExtInfParseError("missing duration")

    display_name = extract_display_name(content)
    tvg_name = extract_attribute(content, "tvg-name")
    return _ExtInf(
        name=display_name or tvg_name or DEFAULT_NAME,
        group_title=extract_attribute(content, "group-title") or DEFAULT_GROUP,
        tvg_id=extract_attribute(content, "tvg-id"),
        tvg_name=tvg_name,
        tvg_logo=extract_attribute(content, "tvg-logo"),
        duration=_parse_duration(content),
    )


def parse_m3u(content: str) -> M3UParseResult:
    """解析播放列表文本。

    - 空行与 #EXTM3U 头跳过，其他未知指令行忽略
    - 两个 #EXTINF 之间没有 URL 时丢弃前一个并记录错误
    - 没有前置 #EXTINF 的 URL 行使用默认元数据
    """
    result = M3UParseResult()
    pending: _ExtInf | None = None
    pending_line = 0

    for line_number, raw in enumerate(_LINE_SPLIT.split(content), start=1):
        line = raw.strip()
        if not line or line.startswith("#EXTM3U"):
            continue

        if line.startswith(EXTINF_PREFIX):
            if pending is not None:
                result.errors.append(
                    f"Line {pending_line}: #EXTINF without URL, entry dropped"
                )
            try:
                pending = parse_extinf(line)
            except ExtInfParseError as e:
                result.errors.append(
                    f"Line {line_number}: Failed to parse #EXTINF - {e}"
                )
                pending = _ExtInf()
            pending_line = line_number
            continue

        if line.startswith("#"):
            continue

        meta = pending or _ExtInf()
        result.entries.append(
            M3UEntry(
                url=line,
                name=meta.name,
                group_title=meta.group_title,
                tvg_id=meta.tvg_id,
                tvg_name=meta.tvg_name,
                tvg_logo=meta.tvg_logo,
                duration=meta.duration,
            )
        )
        pending = None

    if pending is not None:
        result.errors.append(f"Line {pending_line}: #EXTINF without URL, entry dropped")

    return result


def extract_groups(entries: list[M3UEntry]) -> list[str]:
    """按字母序返回去重后的分组标签。"""
    return sorted({entry.group_title for entry in entries if entry.group_title})


async def fetch_and_parse_m3u(
    url: str,
    timeout: float | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> M3UParseResult:
    """下载并解析播放列表。

    Raises:
        UpstreamError: 超时、连接失败或非 2xx 响应
    """
    try:
        async with httpx.AsyncClient(
            timeout=timeout or settings.M3U_FETCH_TIMEOUT_SEC,
            follow_redirects=True,
            headers={"User-Agent": settings.UPSTREAM_USER_AGENT},
            transport=transport,
        ) as client:
            response = await client.get(url)
    except httpx.TimeoutException as e:
        logger.warning(f"M3U fetch timeout for {url}: {e}")
        raise UpstreamError("Failed to fetch M3U playlist: timeout") from e
    except httpx.HTTPError as e:
        logger.warning(f"M3U fetch error for {url}: {e}")
        raise UpstreamError(f"Failed to fetch M3U playlist: {e}") from e

    if not response.is_success:
        raise UpstreamError(
            f"Failed to fetch M3U playlist: "
            f"{response.status_code} {response.reason_phrase}"
        )

    result = parse_m3u(response.text)
    logger.info(
        f"Parsed M3U playlist: {len(result.entries)} entries, "
        f"{len(result.errors)} errors"
    )
    return result
