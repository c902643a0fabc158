"""Database connection helpers."""

import os

from typing import TYPE_CHECKING

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from dotenv import load_dotenv


if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine


# Load environment variables from .env file
load_dotenv()

Base = declarative_base()

_engine: "AsyncEngine | None" = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def get_database_url() -> str:
    """Get the database URL from environment variables.

    Returns:
        str: PostgreSQL database URL

    Raises:
        ValueError: If required environment variables are not set
    """
    postgre_host = os.getenv("POSTGRE_HOST")
    if not postgre_host:
        msg = "POSTGRE_HOST is not set"
        raise ValueError(msg)

    postgre_port = os.getenv("POSTGRE_PORT", "5432")

    postgre_user = os.getenv("POSTGRE_USER")
    if not postgre_user:
        msg = "POSTGRE_USER is not set"
        raise ValueError(msg)

    postgre_password = os.getenv("POSTGRE_PASSWORD")
    if not postgre_password:
        msg = "POSTGRE_PASSWORD is not set"
        raise ValueError(msg)

    postgre_db = os.getenv("POSTGRE_DB")
    if not postgre_db:
        msg = "POSTGRE_DB is not set"
        raise ValueError(msg)

    # Use psycopg (version 3) as the async PostgreSQL driver
    return (
        "postgresql+psycopg://"
        f"{postgre_user}:{postgre_password}"
        f"@{postgre_host}:{postgre_port}"
        f"/{postgre_db}"
    )


def get_engine(database_url: str | None = None) -> "AsyncEngine":
    """Return the shared async engine, creating it on first use.

    The engine owns the connection pool shared by every chain worker.

    Args:
        database_url: Optional URL override (defaults to get_database_url())

    Returns:
        AsyncEngine: Process-wide engine
    """
    global _engine, _session_factory  # noqa: PLW0603
    if _engine is None:
        _engine = create_async_engine(database_url or get_database_url(), echo=False)
        _session_factory = async_sessionmaker(
            _engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )
    return _engine


def get_session_factory(
    database_url: str | None = None,
) -> async_sessionmaker[AsyncSession]:
    """Return the session factory bound to the shared engine."""
    get_engine(database_url)
    assert _session_factory is not None  # Set together with _engine
    return _session_factory


async def create_tables(engine: "AsyncEngine | None" = None) -> None:
    """Create all tables registered on Base if they do not exist yet."""
    engine = engine or get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def dispose_engine() -> None:
    """Close every pooled connection and forget the shared engine."""
    global _engine, _session_factory  # noqa: PLW0603
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_factory = None


__all__ = [
    "Base",
    "create_tables",
    "dispose_engine",
    "get_database_url",
    "get_engine",
    "get_session_factory",
]
