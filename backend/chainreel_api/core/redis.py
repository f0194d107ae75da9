"""
Redis Connection Management

Three clients share one REDIS_URL:
- a pooled sync client with decoded responses, for progress snapshots and flags
- a raw sync client for RQ, which stores pickled job payloads
- an asyncio client for streaming progress events to HTTP clients
"""

import time
from dataclasses import dataclass
from typing import Optional

import redis.asyncio as aioredis
from redis import Redis, ConnectionPool
from redis.exceptions import ConnectionError, TimeoutError

from .config import get_settings


# Module-level connection singletons
_connection_pool: Optional[ConnectionPool] = None
_queue_connection: Optional[Redis] = None
_async_client: Optional[aioredis.Redis] = None


def get_redis_url() -> str:
    """Redis URL from settings (REDIS_URL, default redis://localhost:6379/0)."""
    return get_settings().redis_url


def get_connection_pool() -> ConnectionPool:
    """Get or create the decoded Redis connection pool singleton."""
    global _connection_pool

    if _connection_pool is None:
        _connection_pool = ConnectionPool.from_url(
            get_redis_url(),
            max_connections=10,
            decode_responses=True,  # Return strings instead of bytes
        )

    return _connection_pool


def get_redis_connection() -> Redis:
    """
    Get a Redis connection from the connection pool.

    Example:
        >>> redis = get_redis_connection()
        >>> redis.hgetall("chainreel:progress:<session>")
        {'status': 'running', 'percent': '41', ...}
    """
    return Redis(connection_pool=get_connection_pool())


def get_queue_connection() -> Redis:
    """Redis connection for RQ. Job payloads are binary, so responses stay undecoded."""
    global _queue_connection

    if _queue_connection is None:
        _queue_connection = Redis.from_url(get_redis_url(), decode_responses=False)

    return _queue_connection


def get_async_redis() -> aioredis.Redis:
    """Asyncio Redis client used by streaming endpoints."""
    global _async_client

    if _async_client is None:
        _async_client = aioredis.from_url(get_redis_url(), decode_responses=True)

    return _async_client


@dataclass
class RedisHealthStatus:
    """Health status for Redis connection."""
    healthy: bool
    latency_ms: Optional[float] = None
    error: Optional[str] = None


def check_redis_health(timeout: float = 5.0) -> RedisHealthStatus:
    """
    Check the health of the Redis connection.

    Performs a PING command and measures latency.

    Example:
        >>> status = check_redis_health()
        >>> if not status.healthy:
        ...     print(f"Redis unhealthy: {status.error}")
    """
    try:
        client = Redis.from_url(
            get_redis_url(),
            socket_timeout=timeout,
            socket_connect_timeout=timeout,
            decode_responses=True,
        )

        start = time.perf_counter()
        pong = client.ping()
        latency_ms = (time.perf_counter() - start) * 1000

        if not pong:
            return RedisHealthStatus(healthy=False, error="PING returned False")

        return RedisHealthStatus(healthy=True, latency_ms=round(latency_ms, 2))

    except ConnectionError as e:
        return RedisHealthStatus(healthy=False, error=f"Connection failed: {e}")
    except TimeoutError as e:
        return RedisHealthStatus(healthy=False, error=f"Connection timeout: {e}")


async def close_connections() -> None:
    """Close and reset all Redis clients. Called on application shutdown."""
    global _connection_pool, _queue_connection, _async_client

    if _async_client is not None:
        await _async_client.aclose()
        _async_client = None
    if _queue_connection is not None:
        _queue_connection.close()
        _queue_connection = None
    if _connection_pool is not None:
        _connection_pool.disconnect()
        _connection_pool = None
