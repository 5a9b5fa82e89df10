"""SQLAlchemy database connection and session management."""

import logging
import os
import ssl
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy import event
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from config import HearsayConfig
from models.base import Base
from utils.exceptions import (
    QueryError,
    ConstraintViolationError,
    TransactionError,
)

logger = logging.getLogger(__name__)

SessionMaker = async_sessionmaker[AsyncSession]


def create_ssl_context(cert_dir: str) -> ssl.SSLContext:
    """Create SSL context for database connection."""
    context = ssl.create_default_context()
    context.check_hostname = False
    context.load_verify_locations(os.path.join(cert_dir, "server-ca.pem"))
    context.load_cert_chain(
        os.path.join(cert_dir, "client-cert.pem"),
        os.path.join(cert_dir, "client-key.pem"),
    )
    return context


def create_engine(config: HearsayConfig) -> AsyncEngine:
    """Create the async engine described by the configuration."""
    url = config.sqlalchemy_url
    if url.startswith("sqlite"):
        engine = create_async_engine(url, echo=False)
        enable_sqlite_foreign_keys(engine)
        return engine

    connect_args = {}
    if config.ssl_cert_dir:
        connect_args["ssl"] = create_ssl_context(config.ssl_cert_dir)

    return create_async_engine(
        url,
        connect_args=connect_args,
        echo=False,  # Set to True for SQL query logging
        pool_size=20,  # Maximum number of connections
        max_overflow=0,  # Maximum number of connections that can be created beyond pool_size
        pool_timeout=30,  # Seconds to wait before giving up on getting a connection from the pool
        pool_recycle=300,  # Recycle connections after 5 minutes
        pool_pre_ping=True,  # Check connection validity before using it
    )


def enable_sqlite_foreign_keys(engine: AsyncEngine) -> None:
    """Turn on foreign key enforcement for every SQLite connection."""

    @event.listens_for(engine.sync_engine, "connect")
    def _set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def create_session_maker(engine: AsyncEngine) -> SessionMaker:
    """Session factory bound to the engine."""
    return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


async def init_models(engine: AsyncEngine) -> None:
    """Create any missing tables."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


@asynccontextmanager
async def read_scope(session_maker: SessionMaker, operation: str) -> AsyncIterator[AsyncSession]:
    """Session for read-only work; store failures surface as QueryError."""
    try:
        async with session_maker() as session:
            yield session
    except SQLAlchemyError as e:
        logger.error(f"Database error during {operation}: {e}")
        raise QueryError(query=operation, message=f"Failed to {operation}") from e


@asynccontextmanager
async def transaction_scope(
    session_maker: SessionMaker, operation: str
) -> AsyncIterator[AsyncSession]:
    """Session wrapped in a single transaction.

    Everything done inside the block commits together; any exception rolls
    the whole transaction back. Constraint violations become
    ConstraintViolationError, other store failures TransactionError.
    """
    try:
        async with session_maker() as session:
            async with session.begin():
                yield session
    except IntegrityError as e:
        logger.warning(f"Integrity error during {operation}: {e.orig}")
        raise ConstraintViolationError(operation=operation) from e
    except SQLAlchemyError as e:
        logger.error(f"Transaction failed during {operation}: {e}")
        raise TransactionError(message=f"Failed to {operation}") from e
