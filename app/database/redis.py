"""
Redis 연결 관리

broadcast_backend 가 redis 일 때 이벤트 pub/sub 용도로만 사용합니다.
"""

from typing import Optional
import redis.asyncio as redis
from redis.exceptions import RedisError

from app.core.config import settings
from app.core.logging import get_logger

logger = get_logger(__name__)

_pool: Optional[redis.ConnectionPool] = None
_client: Optional[redis.Redis] = None


async def init_redis() -> redis.Redis:
    """연결 풀을 만들고 PING 으로 연결을 확인"""
    global _pool, _client

    if _client is not None:
        return _client

    _pool = redis.ConnectionPool.from_url(
        settings.redis_url,
        max_connections=settings.redis_max_connections,
        decode_responses=True
    )
    client = redis.Redis(connection_pool=_pool)
    try:
        await client.ping()
    except RedisError as e:
        logger.error(f"Redis connection failed ({settings.redis_url}): {e}")
        await _pool.aclose()
        _pool = None
        raise

    _client = client
    logger.info(f"Redis connected (pool size {settings.redis_max_connections})")
    return _client


async def close_redis():
    global _pool, _client

    client, pool = _client, _pool
    _client, _pool = None, None
    try:
        if client is not None:
            await client.aclose()
        if pool is not None:
            await pool.aclose()
        logger.info("Redis connection closed")
    except RedisError as e:
        logger.error(f"Error closing Redis connection: {e}")


async def get_redis() -> redis.Redis:
    """Redis 클라이언트 (처음 호출 시 연결)"""
    return _client if _client is not None else await init_redis()


async def check_redis_connection() -> bool:
    try:
        client = await get_redis()
        return bool(await client.ping())
    except (RedisError, OSError) as e:
        logger.error(f"Redis health check failed: {e}")
        return False
