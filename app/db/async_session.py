"""
Async engine and session handling.

One ``ChatDatabase`` per process owns the engine and the session factory.
Request handlers get a session through ``get_async_db``; the session is
rolled back if the handler raises and closed afterwards either way.
"""

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Any, AsyncGenerator, Dict, Optional

from sqlalchemy import event, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from app.core.config import settings

logger = logging.getLogger(__name__)


def configure_sqlite_engine(engine: AsyncEngine) -> None:
    """
    Make SQLite honour SAVEPOINT inside explicit transactions.

    The sqlite3 driver delays BEGIN until the first DML statement, which
    breaks nested transactions. Disabling the driver's own transaction
    handling and emitting BEGIN ourselves restores the expected behaviour.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def on_begin(conn):
        conn.exec_driver_sql("BEGIN")


def _create_engine(database_url: str) -> AsyncEngine:
    if database_url.startswith("sqlite"):
        engine = create_async_engine(
            database_url,
            echo=settings.ASYNC_DB_ECHO,
            connect_args={"check_same_thread": False},
        )
        configure_sqlite_engine(engine)
        return engine

    pool_size = settings.ASYNC_DB_POOL_SIZE
    max_overflow = settings.ASYNC_DB_MAX_OVERFLOW
    if settings.ENVIRONMENT == "development":
        pool_size = min(pool_size, 5)
        max_overflow = min(max_overflow, 5)

    logger.info(f"Postgres pool: size={pool_size} overflow={max_overflow} "
                f"timeout={settings.ASYNC_DB_POOL_TIMEOUT}s recycle={settings.ASYNC_DB_POOL_RECYCLE}s")

    return create_async_engine(
        database_url,
        echo=settings.ASYNC_DB_ECHO,
        pool_pre_ping=settings.ASYNC_DB_POOL_PRE_PING,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_recycle=settings.ASYNC_DB_POOL_RECYCLE,
        pool_timeout=settings.ASYNC_DB_POOL_TIMEOUT,
        connect_args={
            "server_settings": {"application_name": "church_chat_api"},
            "command_timeout": settings.ASYNC_DB_COMMAND_TIMEOUT,
        },
    )


class ChatDatabase:
    """Engine plus session factory for the chat store."""

    def __init__(self, database_url: Optional[str] = None):
        database_url = database_url or settings.async_database_url
        if not database_url:
            raise ValueError("Database URL is not configured")

        logger.info(f"Connecting to chat database ({settings.ENVIRONMENT})")
        self.engine: Optional[AsyncEngine] = _create_engine(database_url)
        self.session_factory = async_sessionmaker(
            bind=self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

        @event.listens_for(self.engine.sync_engine, "invalidate")
        def on_invalidate(dbapi_connection, connection_record, exception):
            logger.warning(f"Database connection invalidated: {exception}")

    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        if self.engine is None:
            raise RuntimeError("Chat database has been closed")

        async with self.session_factory() as session:
            try:
                yield session
            except SQLAlchemyError as e:
                await session.rollback()
                logger.error(f"Database error in session: {e}")
                raise
            except Exception:
                await session.rollback()
                raise

    async def ping(self) -> bool:
        try:
            async with self.session_factory() as session:
                await session.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.error(f"Database ping failed: {e}")
            return False

    def pool_info(self) -> Dict[str, Any]:
        pool = self.engine.pool
        try:
            return {
                "pool_size": pool.size(),
                "checked_in": pool.checkedin(),
                "checked_out": pool.checkedout(),
                "overflow": pool.overflow(),
            }
        except AttributeError:
            # SQLite pools do not expose sizing
            return {"pool_type": type(pool).__name__}

    async def close(self) -> None:
        if self.engine is not None:
            await self.engine.dispose()
            self.engine = None
            logger.info("Chat database engine disposed")


_database: Optional[ChatDatabase] = None
_database_lock = asyncio.Lock()


async def get_database() -> ChatDatabase:
    """Process-wide ChatDatabase, created on first use."""
    global _database

    if _database is None:
        async with _database_lock:
            if _database is None:
                _database = ChatDatabase()
    return _database


async def get_async_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency yielding a request-scoped session."""
    database = await get_database()
    async for session in database.session():
        yield session


async def startup_async_database():
    """Open the pool and fail fast if the database is unreachable."""
    database = await get_database()
    if not await database.ping():
        raise RuntimeError("Failed to establish database connection during startup")
    logger.info(f"Chat database ready: {database.pool_info()}")


async def shutdown_async_database():
    global _database

    if _database is not None:
        try:
            await _database.close()
        except SQLAlchemyError as e:
            logger.error(f"Error during database shutdown: {e}")
        finally:
            _database = None


async def check_async_database_health() -> Dict[str, Any]:
    """
    Probe the database for the health endpoint.

    Returns:
        dict: e.g. {"status": "healthy", "pool_info": {...},
              "response_time_ms": 3.1, "timestamp": "...", "error": None}
    """
    start_time = time.time()
    health_status: Dict[str, Any] = {
        "status": "unhealthy",
        "pool_info": {},
        "response_time_ms": 0,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "error": None,
    }

    try:
        database = await get_database()
        if await database.ping():
            health_status["status"] = "healthy"
            health_status["pool_info"] = database.pool_info()
    except (SQLAlchemyError, OSError, ValueError) as e:
        logger.error(f"Database health check failed: {e}")
        health_status["error"] = str(e)
    finally:
        health_status["response_time_ms"] = round((time.time() - start_time) * 1000, 2)

    return health_status
