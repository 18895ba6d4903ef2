from typing import AsyncGenerator
import logging
from sqlalchemy import DateTime, event, text
from sqlalchemy.dialects import mysql
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from app.core.config import settings

# Base class for SQLAlchemy models
Base = declarative_base()

# 정렬 기준 시각 컬럼 (MySQL 에서는 마이크로초 정밀도)
PreciseDateTime = DateTime().with_variant(mysql.DATETIME(fsp=6), "mysql")

logger = logging.getLogger(__name__)


def _engine_options() -> dict:
    if settings.is_sqlite:
        return {"echo": settings.debug}
    return {
        "echo": settings.debug,  # Log SQL queries in debug mode
        "pool_size": 10,
        "max_overflow": 20,
        "pool_recycle": 3600,  # Recycle connections after 1 hour
        "pool_pre_ping": True,  # Validate connections before use
    }


engine = create_async_engine(settings.database_url, **_engine_options())

if settings.is_sqlite:
    @event.listens_for(engine.sync_engine, "connect")
    def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

# Async session factory
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False
)


async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """Dependency to get database session"""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception as e:
            await session.rollback()
            logger.error(f"Database session error: {e}")
            raise


def get_session_factory() -> async_sessionmaker:
    """짧게 열고 닫는 세션용 팩토리 (장시간 유지되는 WebSocket 연결에서 사용)"""
    return AsyncSessionLocal


async def init_mysql_db():
    """Initialize relational database"""
    try:
        async with engine.begin() as conn:
            # Create all tables
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")
        raise


async def check_mysql_connection() -> bool:
    """Check database connection"""
    try:
        async with engine.connect() as conn:
            result = await conn.execute(text("SELECT 1"))
            return result.fetchone() is not None
    except Exception as e:
        logger.error(f"Database connection check failed: {e}")
        return False


async def close_mysql_db():
    """Close database connections"""
    await engine.dispose()
    logger.info("Database connections closed")
