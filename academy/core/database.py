import asyncio
import logging
import time
from contextlib import asynccontextmanager
from functools import wraps
from typing import Callable, TypeVar, Any, AsyncGenerator
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import NullPool
from sqlalchemy.sql import text
from sqlalchemy.exc import (
    SQLAlchemyError,
    OperationalError,
    DisconnectionError,
    TimeoutError,
)
from asyncpg.exceptions import (
    ConnectionFailureError,
    ConnectionDoesNotExistError,
)

from .config import (
    DATABASE_URL,
    DB_RETRY_ATTEMPTS,
    DB_RETRY_DELAY,
    DB_RETRY_BACKOFF_FACTOR,
)
from .exceptions import DatabaseConnectionError, DatabaseTimeoutError

logger = logging.getLogger(__name__)

TRANSIENT_ERRORS = (
    OperationalError,
    DisconnectionError,
    ConnectionFailureError,
    ConnectionDoesNotExistError,
    TimeoutError,
)

# CRUD calls slower than this are logged as warnings (seconds)
SLOW_OPERATION_THRESHOLD = 0.5

IS_SQLITE = DATABASE_URL.startswith("sqlite")

if IS_SQLITE:
    # aiosqlite connections belong to the event loop that opened them
    engine = create_async_engine(DATABASE_URL, echo=False, poolclass=NullPool)

    @event.listens_for(engine.sync_engine, "connect")
    def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
        # Cascades and SET NULL rules are ignored by SQLite without this
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

else:
    engine = create_async_engine(
        DATABASE_URL,
        echo=False,
        pool_size=20,
        max_overflow=10,
        pool_timeout=30,
        pool_recycle=3600,
        pool_pre_ping=True,
    )

async_session = sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)

Base = declarative_base()

F = TypeVar("F", bound=Callable[..., Any])


def db_retry(attempts: int = None, delay: float = None) -> Callable[[F], F]:
    """
    Retry engine-level coroutines (startup checks, DDL) while the database is
    still coming up. Request handlers are never retried.
    """
    attempts = attempts or DB_RETRY_ATTEMPTS
    delay = DB_RETRY_DELAY if delay is None else delay

    def decorator(func: F) -> F:
        @wraps(func)
        async def wrapper(*args, **kwargs):
            wait = delay
            for attempt in range(1, attempts + 1):
                try:
                    return await func(*args, **kwargs)
                except TRANSIENT_ERRORS as e:
                    if attempt == attempts:
                        logger.error(
                            f"{func.__name__} gave up after {attempts} attempts: {e}",
                            extra={"function": func.__name__, "attempts": attempts},
                        )
                        if isinstance(e, TimeoutError):
                            raise DatabaseTimeoutError(func.__name__, 30)
                        raise DatabaseConnectionError(
                            f"Database unreachable after {attempts} attempts"
                        )

                    logger.warning(
                        f"{func.__name__} failed (attempt {attempt}/{attempts}), "
                        f"retrying in {wait:.1f}s",
                        extra={
                            "function": func.__name__,
                            "attempt": attempt,
                            "exception_type": type(e).__name__,
                        },
                    )
                    await asyncio.sleep(wait)
                    wait *= DB_RETRY_BACKOFF_FACTOR

        return wrapper

    return decorator


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Request-scoped session; anything left uncommitted is rolled back"""
    async with async_session() as session:
        try:
            yield session
        except Exception as e:
            await session.rollback()
            logger.error(f"Session rolled back: {type(e).__name__}: {e}")
            raise


class DatabaseManager:
    """Engine-level operations used at startup, shutdown and reset"""

    @staticmethod
    @db_retry()
    async def check_connection() -> bool:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        logger.info("Database connection check successful")
        return True

    @staticmethod
    @db_retry()
    async def create_tables():
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info(f"Database schema ready ({len(Base.metadata.tables)} tables)")

    @staticmethod
    async def drop_tables():
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
        logger.warning("All academy tables dropped")

    @staticmethod
    async def close_connections():
        try:
            await engine.dispose()
            logger.info("Database connections closed")
        except SQLAlchemyError as e:
            logger.error(f"Error closing database connections: {e}")


db_manager = DatabaseManager()


@asynccontextmanager
async def transaction(session: AsyncSession):
    """Commit on a clean exit, roll back if the block raises"""
    try:
        yield session
        await session.commit()
    except Exception as e:
        await session.rollback()
        logger.error(f"Transaction rolled back: {type(e).__name__}: {e}")
        raise


async def with_db_transaction(
    session: AsyncSession, operation: Callable, *args, **kwargs
):
    """
    Run a multi-row write (renewal, booking a session with its attendance,
    deleting a charge and unlinking its payments) as one unit
    """
    async with transaction(session):
        return await operation(session, *args, **kwargs)


def db_operation(func: F) -> F:
    """Time a CRUD coroutine and log database failures with its name"""

    @wraps(func)
    async def wrapper(*args, **kwargs):
        started = time.perf_counter()
        try:
            return await func(*args, **kwargs)
        except SQLAlchemyError as e:
            logger.error(
                f"Database error in {func.__name__}: {e}",
                extra={"operation": func.__name__, "exception_type": type(e).__name__},
            )
            raise
        finally:
            elapsed = time.perf_counter() - started
            if elapsed > SLOW_OPERATION_THRESHOLD:
                logger.warning(
                    f"Slow database operation: {func.__name__}",
                    extra={
                        "operation": func.__name__,
                        "duration_ms": round(elapsed * 1000, 2),
                    },
                )
            else:
                logger.debug(
                    f"{func.__name__} finished in {elapsed * 1000:.1f}ms",
                    extra={"operation": func.__name__},
                )

    return wrapper
