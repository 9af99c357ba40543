#!/usr/bin/env python3
"""健康检查脚本。

用于检查系统各组件的健康状态。
可作为运维脚本或监控探针使用。

使用方式：
    # 完整健康检查
    python scripts/health_check.py

    # 只检查特定组件
    python scripts/health_check.py --component database
    python scripts/health_check.py --component sync

    # JSON 输出
    python scripts/health_check.py --json

    # 退出码检查（用于 CI/CD）
    python scripts/health_check.py --strict
"""

import argparse
import asyncio
import json
import sys
from datetime import UTC, datetime
from pathlib import Path

# 添加项目根目录到 Python 路径
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))


async def check_database() -> dict:
    """检查数据库连接与 Provider 数量。"""
    try:
        from src.modules.catalog.infrastructure.repositories import (
            PostgreSQLProviderRepository,
        )

        providers = await PostgreSQLProviderRepository().list_enabled()
        return {
            "status": "healthy",
            "message": "Database connection OK",
            "enabled_providers": len(providers),
        }

    except Exception as e:
        return {"status": "unhealthy", "error": str(e)}


async def check_redis() -> dict:
    """检查 Redis 连接。"""
    try:
        from src.core.infrastructure.redis.client import RedisClient

        redis_client = RedisClient()
        try:
            is_ok = await redis_client.ping()
        finally:
            await redis_client.close()

        if is_ok:
            return {"status": "healthy", "message": "Redis connection OK"}
        else:
            return {"status": "unhealthy", "error": "Redis ping failed"}

    except Exception as e:
        return {"status": "unhealthy", "error": str(e)}


async def check_queues() -> dict:
    """检查 Celery 队列积压。"""
    try:
        from src.core.infrastructure.celery.queues import Queues
        from src.core.infrastructure.redis.client import RedisClient

        redis_client = RedisClient()
        try:
            length = await redis_client.client.llen(Queues.SYNC)
        finally:
            await redis_client.close()

        # 同一时刻最多一个同步在跑，积压说明 worker 未消费
        status = "healthy"
        if length > 2:
            status = "warning"
        if length > 10:
            status = "unhealthy"

        return {"status": status, "queues": {Queues.SYNC: {"length": length}}}

    except Exception as e:
        return {"status": "unhealthy", "error": str(e)}


async def check_sync() -> dict:
    """检查同步锁与进度。"""
    try:
        from src.core.infrastructure.health import HealthStatus
        from src.core.infrastructure.redis.client import RedisClient
        from src.modules.sync.infrastructure.dependencies import (
            build_sync_orchestrator,
        )

        redis_client = RedisClient()
        try:
            result = await build_sync_orchestrator(redis_client).health_check()
        finally:
            await redis_client.close()

        status = {
            HealthStatus.OK: "healthy",
            HealthStatus.WARNING: "warning",
        }.get(result.status, "unhealthy")
        return {**result.to_dict(), "status": status}

    except Exception as e:
        return {"status": "unhealthy", "error": str(e)}


CHECKERS = {
    "database": check_database,
    "redis": check_redis,
    "queues": check_queues,
    "sync": check_sync,
}


async def run_full_check() -> dict:
    """运行完整健康检查。"""
    results = {
        "timestamp": datetime.now(UTC).isoformat(),
        "overall_status": "healthy",
        "components": {},
    }

    # 并行执行所有检查
    outcomes = await asyncio.gather(
        *(checker() for checker in CHECKERS.values()),
        return_exceptions=True,
    )
    for name, outcome in zip(CHECKERS, outcomes, strict=True):
        if isinstance(outcome, Exception):
            outcome = {"status": "error", "error": str(outcome)}
        results["components"][name] = outcome

    # 确定整体状态
    statuses = [c.get("status", "unknown") for c in results["components"].values()]

    if any(s in ("unhealthy", "error") for s in statuses):
        results["overall_status"] = "unhealthy"
    elif any(s == "warning" for s in statuses):
        results["overall_status"] = "degraded"

    return results


async def run_component_check(component: str) -> dict:
    """运行单个组件检查。"""
    if component not in CHECKERS:
        return {"error": f"Unknown component: {component}"}

    result = await CHECKERS[component]()
    return {
        "timestamp": datetime.now(UTC).isoformat(),
        "component": component,
        "result": result,
    }


def _emoji(status: str) -> str:
    if status == "healthy":
        return "✅"
    if status in ("warning", "degraded"):
        return "⚠️"
    return "❌"


def print_result(result: dict, json_output: bool = False):
    """打印检查结果。"""
    if json_output:
        print(json.dumps(result, indent=2))
        return

    print(f"\n{'=' * 60}")
    print(f"Health Check Report - {result.get('timestamp', 'N/A')}")
    print(f"{'=' * 60}")

    if "overall_status" in result:
        overall = result["overall_status"]
        print(f"\nOverall Status: {_emoji(overall)} {overall.upper()}")

        print(f"\n{'-' * 40}")
        for component, info in result.get("components", {}).items():
            comp_status = info.get("status", "unknown")
            print(f"{_emoji(comp_status)} {component}: {comp_status}")

            if comp_status != "healthy":
                for key, value in info.items():
                    if key != "status":
                        print(f"    {key}: {value}")

    elif "result" in result:
        info = result["result"]
        comp_status = info.get("status", "unknown")
        print(f"\n{result.get('component', 'Component')}: {_emoji(comp_status)} {comp_status}")

        for key, value in info.items():
            if key != "status":
                print(f"  {key}: {value}")

    print(f"\n{'=' * 60}\n")


def main():
    """主函数。"""
    parser = argparse.ArgumentParser(description="系统健康检查脚本")
    parser.add_argument(
        "--component",
        "-c",
        type=str,
        choices=list(CHECKERS),
        help="只检查特定组件",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="输出 JSON 格式",
    )
    parser.add_argument(
        "--strict",
        action="store_true",
        help="严格模式：任何非 healthy 状态都返回非零退出码",
    )

    args = parser.parse_args()

    if args.component:
        result = asyncio.run(run_component_check(args.component))
    else:
        result = asyncio.run(run_full_check())

    print_result(result, args.json)

    if args.strict:
        overall = result.get("overall_status", result.get("result", {}).get("status", "unknown"))
        if overall != "healthy":
            sys.exit(1)

    sys.exit(0)


if __name__ == "__main__":
    main()
