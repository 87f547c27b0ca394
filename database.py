import asyncio
import logging
from contextlib import asynccontextmanager, contextmanager

from sqlmodel import SQLModel
from sqlalchemy import event, text
from sqlalchemy.exc import (
    DBAPIError,
    IntegrityError,
    OperationalError,
    SQLAlchemyError,
    TimeoutError as PoolTimeoutError,
)
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

import config
from errors import BookingError, ConflictError, InternalError, TransientError

logger = logging.getLogger(__name__)

IS_SQLITE = config.DATABASE_URL.startswith("sqlite")

# PostgreSQL SQLSTATEs worth retrying: lock_not_available, deadlock_detected,
# serialization_failure, query_canceled (statement timeout)
TRANSIENT_SQLSTATES = {"55P03", "40P01", "40001", "57014"}


def _engine_options() -> dict:
    if IS_SQLITE:
        # sqlite3 busy timeout, in seconds
        return {"connect_args": {"timeout": config.DB_LOCK_TIMEOUT_MS / 1000}}
    return {
        "pool_pre_ping": True,
        "pool_size": config.DB_POOL_SIZE,
        "max_overflow": config.DB_MAX_OVERFLOW,
        "pool_timeout": config.DB_POOL_TIMEOUT,
        "pool_recycle": config.DB_POOL_RECYCLE,
    }


# 1. Create the Async Engine (process-wide connection pool)
engine = create_async_engine(config.DATABASE_URL, echo=config.DB_ECHO, future=True, **_engine_options())

async_session = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


if IS_SQLITE:
    # SQLite has no FOR UPDATE. Taking the write lock at BEGIN makes
    # concurrent transactions queue up behind each other instead.

    @event.listens_for(engine.sync_engine, "connect")
    def _sqlite_connect(dbapi_connection, _connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _sqlite_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


async def init_db():
    async with engine.begin() as conn:
        # This creates the tables if they don't exist
        await conn.run_sync(SQLModel.metadata.create_all)


async def close_db():
    await engine.dispose()
    logger.info("Database connection pool disposed")


async def server_version() -> str:
    query = "SELECT sqlite_version()" if IS_SQLITE else "SELECT version()"
    async with engine.connect() as conn:
        result = await conn.execute(text(query))
        return str(result.scalar_one())


async def get_session() -> AsyncSession:
    async with async_session() as session:
        yield session


def _is_transient(exc: DBAPIError) -> bool:
    if exc.connection_invalidated:
        return True
    orig = getattr(exc, "orig", None)
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    return sqlstate in TRANSIENT_SQLSTATES


@contextmanager
def store_errors():
    """Translate failures into booking error kinds. Cancellation passes through."""
    try:
        yield
    except BookingError:
        raise
    except IntegrityError as exc:
        logger.warning(f"Constraint violation: {exc.orig}")
        raise ConflictError("Schedule or reservation was taken by another request") from exc
    except (OperationalError, PoolTimeoutError, asyncio.TimeoutError) as exc:
        logger.warning(f"Transient database failure: {exc}")
        raise TransientError("Database is busy, please retry") from exc
    except DBAPIError as exc:
        if _is_transient(exc):
            logger.warning(f"Transient database failure: {exc}")
            raise TransientError("Database is busy, please retry") from exc
        logger.exception("Database error")
        raise InternalError("Unexpected database error") from exc
    except SQLAlchemyError as exc:
        logger.exception("Database error")
        raise InternalError("Unexpected database error") from exc
    except Exception as exc:
        logger.exception("Unexpected error, transaction rolled back")
        raise InternalError("Unexpected error") from exc


@asynccontextmanager
async def atomic(session: AsyncSession):
    """
    Run a block as one transaction on ``session``.

    Commits when the block finishes and rolls back on any exception, task
    cancellation included. Row locks taken inside the block wait at most
    DB_LOCK_TIMEOUT_MS.
    """
    with store_errors():
        async with session.begin():
            if not IS_SQLITE:
                await session.execute(text(f"SET LOCAL lock_timeout = {int(config.DB_LOCK_TIMEOUT_MS)}"))
            yield session
