"""
Redis client used for admin role caching, with async support
"""
import logging
import time
from typing import Optional

import redis.asyncio as aioredis
from redis.asyncio import Redis

from cinebook.core.config import REDIS_URL, REDIS_KEY_PREFIX

logger = logging.getLogger(__name__)

# Global Redis client instance
_redis_client: Optional[Redis] = None


def redis_key(*parts) -> str:
    """Build a namespaced key, e.g. ``cinebook:admin_role:user_123``."""
    prefix = REDIS_KEY_PREFIX.rstrip(":")
    joined = ":".join(str(p) for p in parts)
    return f"{prefix}:{joined}" if prefix else joined


async def get_redis() -> Redis:
    """
    Return the singleton async Redis connection.
    Reconnects once if the cached connection has gone stale.
    """
    global _redis_client

    if _redis_client is None:
        try:
            _redis_client = aioredis.from_url(
                REDIS_URL,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=2,
                socket_keepalive=True,
                retry_on_timeout=True,
                health_check_interval=30,
                max_connections=50,
            )
            await _redis_client.ping()
            logger.info("Redis connected: %s", _safe_url())
        except Exception as e:
            logger.error("Redis connection failed: %s", e)
            _redis_client = None
            raise
        return _redis_client

    try:
        await _redis_client.ping()
    except Exception as e:
        logger.warning("Redis connection stale, reconnecting: %s", e)
        await close_redis()
        return await get_redis()

    return _redis_client


async def get_optional_redis() -> Optional[Redis]:
    """Dependency variant that degrades to ``None`` when Redis is down."""
    try:
        return await get_redis()
    except Exception:
        return None


async def close_redis():
    """Close Redis connection on shutdown"""
    global _redis_client
    if _redis_client is not None:
        try:
            await _redis_client.aclose()
        except Exception as e:
            logger.debug("Error while closing Redis: %s", e)
        _redis_client = None
        logger.info("Redis connection closed")


def _safe_url() -> str:
    return REDIS_URL.split("@")[-1] if "@" in REDIS_URL else REDIS_URL


async def health_check_redis() -> dict:
    """
    Returns connection status and latency
    """
    try:
        redis = await get_redis()
        start = time.time()
        await redis.ping()
        latency_ms = (time.time() - start) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(latency_ms, 2),
            "url": _safe_url(),
        }
    except Exception as e:
        return {
            "status": "unhealthy",
            "error": str(e),
        }
