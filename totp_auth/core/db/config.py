from sqlalchemy.ext.asyncio import (
    create_async_engine,
    AsyncEngine,
    async_sessionmaker,
    AsyncAttrs,
)
from sqlalchemy.orm import DeclarativeBase

from totp_auth.core.config import settings

ASYNC_SQLALCHEMY_DATABASE_URL = settings.DATABASE_URL


def engine_options(url: str) -> dict:
    """Connection pool options for `url`. SQLite gets the driver defaults."""
    if url.startswith("sqlite"):
        return {}
    return {
        "pool_size": 20,  # Increase pool size for concurrent connections
        "max_overflow": 30,  # Allow overflow connections
        "pool_pre_ping": True,  # Validate connections before use
        "pool_recycle": 3600,  # Recycle connections every hour
    }


async_engine: AsyncEngine = create_async_engine(
    ASYNC_SQLALCHEMY_DATABASE_URL,
    echo=settings.DEBUG,
    **engine_options(ASYNC_SQLALCHEMY_DATABASE_URL),
)

AsyncSessionLocal = async_sessionmaker(
    bind=async_engine,
    autoflush=False,
    expire_on_commit=False,
    autobegin=True,  # Automatically begin transactions
)


# Base class for declarative_base
class Base(AsyncAttrs, DeclarativeBase):
    pass


async def init_db(engine: AsyncEngine | None = None) -> None:
    """
    Creates every table registered on the metadata.

    Args:
        engine (AsyncEngine | None): Engine to use. Defaults to the application engine.

    Returns:
        None
    """
    # Register the models on the metadata
    from totp_auth.core.db import models  # noqa: F401

    async with (engine or async_engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def dispose_db(engine: AsyncEngine | None = None) -> None:
    """
    Dispose the database connection pool.

    Args:
        engine (AsyncEngine | None): Engine to dispose. Defaults to the application engine.

    Returns:
        None
    """
    await (engine or async_engine).dispose()
