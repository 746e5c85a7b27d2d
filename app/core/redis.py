"""
Optional Redis cache for read-mostly data (availability rules).

Without REDIS_URL, or when Redis is down, every call is a miss and callers
fall back to the database. Slot state and conflicts are never cached.
"""
import json
import redis
from redis.exceptions import RedisError

from app.core.config import REDIS_URL
from app.core.logging_config import get_logger

logger = get_logger()

KEY_PREFIX = "studio-booking"

_redis_client = None


def cache_key(*parts) -> str:
    return ":".join([KEY_PREFIX, *(str(p) for p in parts)])


def get_redis_client():
    global _redis_client

    if _redis_client is not None or not REDIS_URL:
        return _redis_client

    try:
        client = redis.Redis.from_url(
            REDIS_URL,
            decode_responses=True,
            socket_connect_timeout=2,
            socket_timeout=2,
        )
        client.ping()
    except RedisError as e:
        logger.warning(f"Redis unavailable, caching disabled for this call: {e}")
        return None

    logger.info("Redis connected")
    _redis_client = client
    return _redis_client


def get_cache(key: str):
    client = get_redis_client()
    if client is None:
        return None
    try:
        raw = client.get(key)
    except RedisError as e:
        logger.warning(f"Redis read failed for {key}: {e}")
        return None
    return json.loads(raw) if raw else None


def set_cache(key: str, value, ttl: int = 60):
    client = get_redis_client()
    if client is None:
        return
    try:
        client.setex(key, ttl, json.dumps(value))
    except RedisError as e:
        logger.warning(f"Redis write failed for {key}: {e}")


def delete_cache(key: str):
    client = get_redis_client()
    if client is None:
        return
    try:
        client.delete(key)
    except RedisError as e:
        logger.warning(f"Redis delete failed for {key}: {e}")
