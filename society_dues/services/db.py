"""Database engine and session factories.

The remote document store and identity provider share one async engine; the local
fallback store uses its own synchronous engine. SQLite URLs use StaticPool so an
in-memory database survives across sessions in dev/test.
"""

from sqlalchemy import Engine, create_engine
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from society_dues.models import Base


def create_async_db(
    database_url: str, echo: bool = False
) -> tuple[AsyncEngine, async_sessionmaker[AsyncSession]]:
    """Create the async engine and session factory for documents and identities.

    Args:
        database_url: Async SQLAlchemy URL (e.g. "sqlite+aiosqlite:///./society_dues.db")
        echo: Log SQL statements

    Returns:
        Tuple of (engine, session factory)
    """
    if database_url.startswith("sqlite"):
        engine = create_async_engine(
            database_url,
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        engine = create_async_engine(database_url, echo=echo, pool_pre_ping=True)

    session_factory = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    return engine, session_factory


def create_sync_db(database_url: str, echo: bool = False) -> tuple[Engine, sessionmaker[Session]]:
    """Create the sync engine and session factory for the local fallback store.

    Args:
        database_url: SQLAlchemy URL (e.g. "sqlite:///./society_local.db")
        echo: Log SQL statements

    Returns:
        Tuple of (engine, session factory)
    """
    if database_url.startswith("sqlite"):
        engine = create_engine(
            database_url,
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        engine = create_engine(database_url, echo=echo, pool_pre_ping=True)

    session_factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    return engine, session_factory


async def create_tables(engine: AsyncEngine) -> None:
    """Create all tables on an async engine (no-op for existing tables)."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


def create_tables_sync(engine: Engine) -> None:
    """Create all tables on a sync engine (no-op for existing tables)."""
    Base.metadata.create_all(bind=engine)


__all__ = [
    "create_async_db",
    "create_sync_db",
    "create_tables",
    "create_tables_sync",
]
