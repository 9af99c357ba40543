#!/usr/bin/env python
"""在当前进程中直接运行目录同步（绕过 Celery）。

用法:
    uv run python scripts/run_sync.py                      # 全量同步
    uv run python scripts/run_sync.py --provider-id <id>   # 单个 Provider
    uv run python scripts/run_sync.py --discover <id>      # 仅拉取分类
    uv run python scripts/run_sync.py --progress           # 查看进度
    uv run python scripts/run_sync.py --cancel             # 请求取消
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path


def _ensure_project_root_on_path() -> None:
    """确保项目根目录在 Python 路径中，便于直接运行脚本。"""
    project_root = Path(__file__).parent.parent
    project_root_str = str(project_root)
    if project_root_str not in sys.path:
        sys.path.insert(0, project_root_str)


_ensure_project_root_on_path()


async def run(args: argparse.Namespace) -> dict:
    from src.core.config import settings
    from src.core.infrastructure.database.session import async_engine
    from src.core.infrastructure.logging import setup_logging
    from src.core.infrastructure.redis import get_async_redis_client
    from src.modules.sync.application.progress_tracker import ProgressTracker
    from src.modules.sync.infrastructure.dependencies import (
        build_category_discovery_service,
        build_sync_orchestrator,
    )

    setup_logging()

    try:
        async with get_async_redis_client(
            timeout=settings.REDIS_CLIENT_TIMEOUT_SEC
        ) as redis:
            progress = ProgressTracker(redis)
            orchestrator = build_sync_orchestrator(redis, progress=progress)
            try:
                if args.progress:
                    result = await orchestrator.get_status()
                elif args.cancel:
                    result = await orchestrator.request_cancel()
                elif args.discover:
                    service = build_category_discovery_service()
                    result = await service.discover(args.discover)
                elif args.provider_id:
                    result = await orchestrator.run_provider_sync(args.provider_id)
                else:
                    result = await orchestrator.run_full_sync()
            finally:
                await progress.aclose()
    finally:
        await async_engine.dispose()

    return result.model_dump(mode="json")


def main():
    parser = argparse.ArgumentParser(description="运行 IPTV 目录同步")
    group = parser.add_mutually_exclusive_group()
    group.add_argument(
        "--provider-id",
        type=str,
        default=None,
        help="只同步指定 Provider（不指定则全量同步）",
    )
    group.add_argument(
        "--discover",
        metavar="PROVIDER_ID",
        type=str,
        default=None,
        help="只拉取指定 Provider 的分类",
    )
    group.add_argument("--progress", action="store_true", help="输出当前同步进度")
    group.add_argument("--cancel", action="store_true", help="请求取消当前同步")

    args = parser.parse_args()

    result = asyncio.run(run(args))
    print(json.dumps(result, indent=2, ensure_ascii=False))

    if result.get("success") is False:
        sys.exit(1)


if __name__ == "__main__":
    main()
