"""
SQLAlchemy DeclarativeBase models for the amenity service tables.

Column names use camelCase to match the wire format and the existing
PostgreSQL columns. SA does NOT convert snake_case, so attribute names
are the column names.

The service owns this schema: SqlStore.create_schema() runs create_all on
startup, which is a no-op for tables that already exist.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, Float, Index, Integer, JSON, String, Text, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class AmenityRow(Base):
    __tablename__ = "amenities"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    externalId: Mapped[str] = mapped_column(String, unique=True)
    category: Mapped[str] = mapped_column(String, index=True)
    name: Mapped[str] = mapped_column(String)
    latitude: Mapped[float] = mapped_column(Float)
    longitude: Mapped[float] = mapped_column(Float)
    attributes: Mapped[dict] = mapped_column(JSON, default=dict)
    details: Mapped[dict] = mapped_column(JSON, default=dict)
    rawTags: Mapped[dict] = mapped_column(JSON, default=dict)
    lastUpdated: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index("ix_amenities_lat_lng", "latitude", "longitude"),
    )


class ReviewRow(Base):
    __tablename__ = "reviews"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    # No FK: deleting an amenity must not cascade to its reviews
    amenityId: Mapped[int] = mapped_column(Integer, index=True)
    authorId: Mapped[Optional[str]] = mapped_column(String, nullable=True, index=True)
    nickname: Mapped[str] = mapped_column(String(50))
    cleanlinessRating: Mapped[int] = mapped_column(Integer)
    hasToiletPaper: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)
    hasMirror: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)
    hasHotWaterSoap: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)
    hasSoap: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)
    hasSanitaryDisposal: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)
    handDryerType: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    photoRef: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    comments: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    contactInfo: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    contactType: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    status: Mapped[str] = mapped_column(String, default="pending", index=True)
    flagCount: Mapped[int] = mapped_column(Integer, default=0)
    helpfulCount: Mapped[int] = mapped_column(Integer, default=0)
    moderatorId: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    moderatedAt: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    moderationNote: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    isVerified: Mapped[bool] = mapped_column(Boolean, default=False)
    createdAt: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updatedAt: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class AdminActionRow(Base):
    """Append-only audit log. NEVER update or delete rows from this table."""

    __tablename__ = "admin_actions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    moderatorId: Mapped[str] = mapped_column(String)
    action: Mapped[str] = mapped_column(String)
    targetType: Mapped[str] = mapped_column(String)
    targetId: Mapped[int] = mapped_column(Integer)
    reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    createdAt: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class MessageRow(Base):
    __tablename__ = "message_queue"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    reviewId: Mapped[int] = mapped_column(Integer, index=True)
    contactInfo: Mapped[str] = mapped_column(String(200))
    contactType: Mapped[str] = mapped_column(String)
    body: Mapped[str] = mapped_column(Text)
    status: Mapped[str] = mapped_column(String, default="pending", index=True)
    attempts: Mapped[int] = mapped_column(Integer, default=0)
    claimedAt: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    sentAt: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    errorMessage: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    createdAt: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
