"""Database engine, session factory and PostgreSQL error classification."""

import logging

from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
)
from sqlalchemy.ext.asyncio import (
    create_async_engine as sqlalchemy_create_async_engine,
)

from teller_risk.core.config import DatabaseConfig, StoreConfig

logger = logging.getLogger(__name__)

# Every table of this service lives in one schema
SCHEMA = "teller_risk"

# SQLSTATE codes the service reacts to
UNIQUE_VIOLATION = "23505"
FOREIGN_KEY_VIOLATION = "23503"
SERIALIZATION_FAILURE = "40001"
DEADLOCK_DETECTED = "40P01"
LOCK_NOT_AVAILABLE = "55P03"

RETRYABLE_SQLSTATES = frozenset({SERIALIZATION_FAILURE, DEADLOCK_DETECTED, LOCK_NOT_AVAILABLE})

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def sqlstate(error: DBAPIError) -> str | None:
    """SQLSTATE of the driver error wrapped by ``error``, if it carries one.

    The asyncpg adapter exposes the code as ``sqlstate``; psycopg as ``pgcode``.
    """
    orig = error.orig
    return getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)


def is_retryable_sqlstate(error: DBAPIError) -> bool:
    """Deadlocks, serialization failures and lock timeouts abort only this attempt."""
    return sqlstate(error) in RETRYABLE_SQLSTATES


def server_settings(store: StoreConfig) -> dict[str, str]:
    """Per-connection settings: UTC timestamps and bounded lock waits."""
    return {
        "timezone": "UTC",
        "search_path": SCHEMA,
        "lock_timeout": str(store.lock_timeout_ms),
        "statement_timeout": str(store.statement_timeout_ms),
    }


def create_async_engine(config: DatabaseConfig, store: StoreConfig | None = None) -> AsyncEngine:
    """Create the asyncpg engine for the ledger database."""
    store = store or StoreConfig()
    engine = sqlalchemy_create_async_engine(
        config.async_url,
        echo=config.echo,
        pool_size=config.pool_size,
        max_overflow=config.max_overflow,
        pool_timeout=config.pool_timeout,
        pool_recycle=config.pool_recycle,
        pool_pre_ping=True,
        connect_args={
            "server_settings": server_settings(store),
            "timeout": 30,
        },
    )
    logger.info(
        "Database engine created",
        extra={
            "host": config.host,
            "port": config.port,
            "database": config.name,
            "lock_timeout_ms": store.lock_timeout_ms,
        },
    )
    return engine


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Sessions for units of work; each attempt opens its own."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


def get_engine() -> AsyncEngine:
    """Get or create the global database engine."""
    global _engine
    if _engine is None:
        from teller_risk.core.config import get_settings

        settings = get_settings()
        _engine = create_async_engine(settings.database, settings.store)
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    global _session_factory
    if _session_factory is None:
        _session_factory = create_session_factory(get_engine())
    return _session_factory


async def reset_engine() -> None:
    """Dispose of the pooled connections; the next call builds a new engine."""
    global _engine, _session_factory

    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_factory = None
