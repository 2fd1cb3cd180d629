"""
Persistence backends. create_store() picks one at startup.
"""

import logging

from sqlalchemy.exc import SQLAlchemyError

from services.amenities.config import Settings
from services.amenities.store.base import Store
from services.amenities.store.memory import MemoryStore
from services.amenities.store.sql import SqlStore

logger = logging.getLogger(__name__)

__all__ = ["Store", "MemoryStore", "SqlStore", "create_store"]


async def create_store(settings: Settings) -> Store:
    """
    SqlStore when DATABASE_URL is set and the database answers,
    otherwise MemoryStore. Called once from the app lifespan.
    """
    if not settings.database_url:
        logger.warning("DATABASE_URL not set -- using in-memory store (data is not persisted)")
        return MemoryStore()

    from services.amenities.db.engine import create_engine, create_session_factory

    engine = create_engine(settings)
    store = SqlStore(create_session_factory(engine), engine=engine)
    try:
        await store.create_schema()
    except (SQLAlchemyError, OSError) as e:
        logger.warning(f"Database unavailable, falling back to in-memory store: {e}")
        await engine.dispose()
        return MemoryStore()
    return store
