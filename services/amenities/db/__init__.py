"""
SQLAlchemy async database module for the persistent store.
"""

from services.amenities.db.engine import asyncpg_url, create_engine, create_session_factory
from services.amenities.db.models import (
    AdminActionRow,
    AmenityRow,
    Base,
    MessageRow,
    ReviewRow,
)

__all__ = [
    "asyncpg_url",
    "create_engine",
    "create_session_factory",
    "Base",
    "AmenityRow",
    "ReviewRow",
    "AdminActionRow",
    "MessageRow",
]
