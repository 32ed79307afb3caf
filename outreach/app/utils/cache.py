"""
Optional Redis cache for per-user dashboard summaries.
Without REDIS_URL (or when Redis is unreachable) every operation is a no-op.
"""
import json
from typing import Any

from redis import asyncio as aioredis

from outreach.app.core.config import settings
from outreach.app.core.logging_config import get_logger

logger = get_logger("utils.cache")
_client = None


def dashboard_key(user_id: int) -> str:
    return f"dashboard:{user_id}"


async def connect() -> None:
    global _client
    if not settings.redis_url:
        logger.info("REDIS_URL not set, caching disabled")
        return
    try:
        _client = aioredis.Redis.from_url(settings.redis_url, encoding="utf-8", decode_responses=True)
        await _client.ping()
        logger.info("Redis connected, caching enabled")
    except Exception as e:
        _client = None
        logger.warning("Redis connect failed error=%s, caching disabled", e)


async def close() -> None:
    global _client
    if _client is not None:
        await _client.aclose()
        _client = None


async def get(key: str) -> Any:
    if not _client:
        return None
    try:
        val = await _client.get(key)
    except Exception as e:
        logger.warning("Cache get failed key=%s error=%s", key, e)
        return None
    return json.loads(val) if val else None


async def set(key: str, value: Any, ttl: int | None = None) -> None:
    if not _client:
        return
    try:
        await _client.set(
            key,
            json.dumps(value, default=str),
            ex=ttl if ttl is not None else settings.dashboard_summary_cache_ttl,
        )
    except Exception as e:
        logger.warning("Cache set failed key=%s error=%s", key, e)


async def delete(key: str) -> None:
    if not _client:
        return
    try:
        await _client.delete(key)
    except Exception as e:
        logger.warning("Cache delete failed key=%s error=%s", key, e)


async def invalidate_dashboard(user_id: int) -> None:
    await delete(dashboard_key(user_id))
