from __future__ import annotations

import json
import logging
from typing import Any

from redis.asyncio import Redis
from redis.asyncio import from_url as redis_from_url

from .config import settings

logger = logging.getLogger(__name__)

_redis: Redis | None = None


def is_redis_configured() -> bool:
    return bool(settings.redis_url)


def _room_snapshot_key(room_id: str) -> str:
    return f"wr:room:{room_id.upper()}"


async def init_redis() -> bool:
    global _redis
    if _redis is not None:
        return True

    if not settings.redis_url:
        logger.info("Redis URL is not configured, cache disabled")
        return False

    client = redis_from_url(
        settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
    )
    try:
        await client.ping()
    except Exception:
        logger.exception("Failed to connect to Redis %s", settings.redis_url)
        try:
            await client.aclose()
        except Exception:
            logger.debug("Redis client close failed after ping error", exc_info=True)
        return False

    _redis = client
    logger.info("Redis cache connected")
    return True


async def close_redis() -> None:
    global _redis
    if _redis is None:
        return
    try:
        await _redis.aclose()
    finally:
        _redis = None


async def ping_redis() -> bool:
    if _redis is None:
        return False
    try:
        await _redis.ping()
        return True
    except Exception:
        logger.exception("Redis ping failed")
        return False


async def get_json(key: str) -> Any:
    if _redis is None:
        return None
    try:
        raw = await _redis.get(key)
    except Exception:
        logger.exception("Redis get failed for key %s", key)
        return None
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except (TypeError, ValueError):
        return None


async def set_json(key: str, value: Any, ttl_seconds: int) -> None:
    if _redis is None:
        return
    try:
        await _redis.set(
            key,
            json.dumps(value, ensure_ascii=False, separators=(",", ":")),
            ex=max(1, int(ttl_seconds)),
        )
    except Exception:
        logger.exception("Redis set failed for key %s", key)


async def delete_key(key: str) -> None:
    if _redis is None:
        return
    try:
        await _redis.delete(key)
    except Exception:
        logger.exception("Redis delete failed for key %s", key)


async def get_room_snapshot(room_id: str) -> dict[str, Any] | None:
    payload = await get_json(_room_snapshot_key(room_id))
    if not isinstance(payload, dict):
        return None
    return payload


async def set_room_snapshot(room_id: str, state_json: dict[str, Any]) -> None:
    await set_json(_room_snapshot_key(room_id), state_json, settings.room_cache_ttl_seconds)


async def delete_room_snapshot(room_id: str) -> None:
    await delete_key(_room_snapshot_key(room_id))


class RedisCacheBackend:
    """Cache tier used by the validation cache; a no-op while Redis is down."""

    async def get_json(self, key: str) -> Any:
        return await get_json(key)

    async def set_json(self, key: str, value: Any, ttl_seconds: int) -> None:
        await set_json(key, value, ttl_seconds)
