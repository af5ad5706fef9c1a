"""
Hybrid in-memory + Redis rate limiting for the public booking endpoints.

Counts live in process memory and are synced to Redis every few seconds, so a
request costs no Redis round trip in the common case.
"""

import logging
import os
import time
from threading import Lock
from typing import Optional

import redis
from fastapi import HTTPException, Request, status

from . import config

logger = logging.getLogger(__name__)

redis_client: Optional[redis.Redis] = None

# Format: {key: {'count': int, 'reset_time': int, 'last_redis_sync': int}}
memory_cache: dict[str, dict] = {}
cache_lock = Lock()

MEMORY_CACHE_SYNC_INTERVAL = 10  # seconds between Redis syncs per key
MEMORY_CACHE_CLEANUP_INTERVAL = 60
last_cleanup_time = 0


def get_redis_client() -> redis.Redis:
    """Get or create the Redis client (REDIS_URL, or REDIS_HOST/REDIS_PORT/...)"""
    global redis_client

    if redis_client is None:
        redis_url = os.getenv("REDIS_URL")
        common = {
            "decode_responses": True,
            "socket_connect_timeout": 5,
            "socket_timeout": 5,
            "retry_on_timeout": True,
            "health_check_interval": 30,
            "max_connections": 20,
        }

        try:
            if redis_url:
                redis_client = redis.from_url(redis_url, **common)
                logger.info("📡 Using Redis URL connection for rate limiting")
            else:
                redis_host = os.getenv("REDIS_HOST", "localhost")
                redis_port = int(os.getenv("REDIS_PORT", "6379"))
                redis_client = redis.Redis(
                    host=redis_host,
                    port=redis_port,
                    password=os.getenv("REDIS_PASSWORD"),
                    db=int(os.getenv("REDIS_DB", "0")),
                    ssl=os.getenv("REDIS_SSL", "false").lower() == "true",
                    **common,
                )
                logger.info(f"📡 Using Redis at {redis_host}:{redis_port} for rate limiting")
            redis_client.ping()
        except Exception as e:
            redis_client = None
            logger.error(f"❌ Failed to connect to Redis: {str(e)}")
            raise

    return redis_client


def cleanup_expired_cache():
    """Remove expired entries from memory cache"""
    global last_cleanup_time
    current_time = int(time.time())

    if current_time - last_cleanup_time < MEMORY_CACHE_CLEANUP_INTERVAL:
        return

    with cache_lock:
        expired_keys = [k for k, v in memory_cache.items() if current_time >= v.get("reset_time", 0)]
        for k in expired_keys:
            del memory_cache[k]

    last_cleanup_time = current_time


def check_rate_limit(
    key: str, limit: int, window_seconds: int, client: redis.Redis
) -> tuple[bool, int, int]:
    """Fixed-window counter, memory first, synced to Redis periodically

    Returns:
        Tuple of (is_allowed, current_count, ttl_seconds)
    """
    current_time = int(time.time())
    cleanup_expired_cache()

    with cache_lock:
        if key not in memory_cache:
            try:
                redis_count = client.get(key)
                redis_ttl = client.ttl(key)
            except redis.RedisError as e:
                logger.warning(f"⚠️ Failed to load {key} from Redis, using memory only: {e}")
                redis_count, redis_ttl = None, 0

            if redis_count and redis_ttl > 0:
                memory_cache[key] = {
                    "count": int(redis_count),
                    "reset_time": current_time + redis_ttl,
                    "last_redis_sync": current_time,
                }
            else:
                memory_cache[key] = {
                    "count": 0,
                    "reset_time": current_time + window_seconds,
                    "last_redis_sync": current_time,
                }

        entry = memory_cache[key]

        if current_time >= entry["reset_time"]:
            entry["count"] = 0
            entry["reset_time"] = current_time + window_seconds
            entry["last_redis_sync"] = 0

        is_allowed = entry["count"] < limit
        if is_allowed:
            entry["count"] += 1

        if current_time - entry.get("last_redis_sync", 0) >= MEMORY_CACHE_SYNC_INTERVAL:
            try:
                client.set(key, entry["count"], ex=window_seconds)
                entry["last_redis_sync"] = current_time
            except redis.RedisError as e:
                logger.warning(f"⚠️ Failed to sync {key} to Redis: {e}")

        ttl = entry["reset_time"] - current_time
        return is_allowed, entry["count"], max(0, ttl)


async def rate_limit_dependency(
    request: Request, limit: int, window_seconds: int, key_prefix: str = "rate_limit"
):
    """Per-client-IP rate limit; 429 with Retry-After once exceeded"""
    if not config.RATE_LIMIT_ENABLED:
        return

    client_ip = request.client.host if request.client else "unknown"
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        client_ip = forwarded.split(",")[0].strip()
    key = f"{key_prefix}:{client_ip}"

    try:
        client = get_redis_client()
        is_allowed, current_count, ttl = check_rate_limit(key, limit, window_seconds, client)
    except Exception as e:
        logger.error(f"❌ Rate limiting error: {str(e)}")
        logger.warning("🔒 Denying request due to rate limiting error (fail-closed mode)")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Rate limiting service temporarily unavailable",
        ) from e

    if not is_allowed:
        logger.warning(f"🚫 Rate limit EXCEEDED for {key} - {current_count}/{limit} requests used")
        raise HTTPException(
            status_code=429,
            detail={
                "message": f"Rate limit exceeded. Maximum {limit} requests per {window_seconds} seconds.",
                "retry_after": ttl,
                "limit": limit,
                "window_seconds": window_seconds,
            },
            headers={"Retry-After": str(ttl)},
        )

    request.state.rate_limit_remaining = limit - current_count


def create_rate_limiter(limit: int, window_seconds: int, key_prefix: str = "rate_limit"):
    """
    Create a rate limiter dependency with specific parameters

    Example usage:
        booking_rate_limit = create_rate_limiter(limit=10, window_seconds=60, key_prefix="booking")

        @router.post("/bookings")
        async def create_booking(data: BookingCreate, _: None = Depends(booking_rate_limit)):
            ...
    """

    async def rate_limiter(request: Request):
        return await rate_limit_dependency(request, limit, window_seconds, key_prefix)

    return rate_limiter


booking_rate_limit = create_rate_limiter(
    config.BOOKING_RATE_LIMIT, config.BOOKING_RATE_WINDOW, key_prefix="booking"
)
availability_rate_limit = create_rate_limiter(
    config.BOOKING_RATE_LIMIT * 6, config.BOOKING_RATE_WINDOW, key_prefix="availability"
)
