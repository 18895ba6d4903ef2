import logging
from app.core.config import settings
from .mysql import init_mysql_db, close_mysql_db, check_mysql_connection, get_async_session
from .redis import init_redis, close_redis, check_redis_connection

logger = logging.getLogger(__name__)


async def init_databases():
    """Initialize the relational database and, when enabled, Redis"""
    try:
        await init_mysql_db()
        logger.info("Database initialization completed")

        if settings.redis_enabled:
            await init_redis()
            logger.info("Redis initialization completed")

        logger.info("All databases initialized successfully")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        raise


async def close_databases():
    """Close all database connections"""
    try:
        await close_mysql_db()
        if settings.redis_enabled:
            await close_redis()
        logger.info("All database connections closed")
    except Exception as e:
        logger.error(f"Error closing database connections: {e}")


async def check_database_health():
    """Check health of all database connections"""
    mysql_status = await check_mysql_connection()
    redis_status = await check_redis_connection() if settings.redis_enabled else None

    return {
        "mysql": mysql_status,
        "redis": redis_status,
        "overall": mysql_status and redis_status is not False
    }

__all__ = [
    "init_databases",
    "close_databases",
    "check_database_health",
    "get_async_session",
]
