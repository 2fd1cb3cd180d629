"""
AsyncEngine factory.

NullPool because PgBouncer owns connection pooling in deployed
environments; SA should not maintain its own pool on top.
"""

from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from services.amenities.config import Settings, settings as default_settings


def asyncpg_url(database_url: str) -> str:
    """Rewrite a plain postgres URL to use the asyncpg driver."""
    for prefix in ("postgresql://", "postgres://"):
        if database_url.startswith(prefix):
            return "postgresql+asyncpg://" + database_url[len(prefix):]
    return database_url


def create_engine(settings: Settings = default_settings) -> AsyncEngine:
    return create_async_engine(
        asyncpg_url(settings.database_url),
        poolclass=NullPool,
        echo=settings.debug and settings.environment == "development",
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    # expire_on_commit=False: rows are read after commit when mapping to domain models
    return async_sessionmaker(engine, expire_on_commit=False)
