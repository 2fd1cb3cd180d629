"""
PostgreSQL Store over SQLAlchemy asyncio sessions.

Every read-modify-write is a single statement so concurrent requests
cannot lose updates:
  - upsert:  INSERT ... ON CONFLICT ("externalId") DO UPDATE ... RETURNING
  - flag:    UPDATE ... SET "flagCount" = "flagCount" + 1,
                 status = CASE WHEN "flagCount" + 1 >= :threshold ... RETURNING
  - claim:   UPDATE ... WHERE id IN (SELECT ... FOR UPDATE SKIP LOCKED) RETURNING

SET expressions in PostgreSQL see the pre-update row, so the CASE compares
the incremented count, not the stored one.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Optional

from sqlalchemy import case, delete, func, insert, or_, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from services.amenities.db.models import AdminActionRow, AmenityRow, Base, MessageRow, ReviewRow
from services.amenities.domain import (
    AdminAction,
    Amenity,
    Category,
    ContactType,
    MessageStatus,
    QueuedMessage,
    Review,
    ReviewStatus,
)
from services.amenities.geodata.query import BoundingBox
from services.amenities.store.base import Store

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], AsyncSession]


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _plain(fields: dict[str, Any]) -> dict[str, Any]:
    """Enum members -> their string values, for column assignment."""
    return {k: v.value if isinstance(v, Enum) else v for k, v in fields.items()}


def _amenity(row: AmenityRow) -> Amenity:
    return Amenity.model_validate(row, from_attributes=True)


def _review(row: Optional[ReviewRow]) -> Optional[Review]:
    return Review.model_validate(row, from_attributes=True) if row is not None else None


def _message(row: MessageRow) -> QueuedMessage:
    return QueuedMessage.model_validate(row, from_attributes=True)


class SqlStore(Store):

    def __init__(self, session_factory: SessionFactory, engine: Optional[AsyncEngine] = None) -> None:
        self._session_factory = session_factory
        self._engine = engine

    async def create_schema(self) -> None:
        """create_all against the engine; existing tables are left untouched."""
        if self._engine is None:
            raise RuntimeError("SqlStore was created without an engine")
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database schema ensured (%d tables)", len(Base.metadata.tables))

    async def close(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()

    async def _fetch_one(self, stmt) -> Any:
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            row = result.scalars().first()
            await session.commit()
            return row

    async def _fetch_all(self, stmt) -> list[Any]:
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def _rowcount(self, stmt) -> int:
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            await session.commit()
            return result.rowcount

    async def _scalar(self, stmt) -> Any:
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return result.scalar()

    # -- Amenities ----------------------------------------------------------

    async def upsert(self, amenity: Amenity) -> Amenity:
        values = amenity.model_dump(mode="json", exclude={"id", "lastUpdated"})
        values["lastUpdated"] = _now()
        stmt = pg_insert(AmenityRow).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=[AmenityRow.externalId],
            set_={key: stmt.excluded[key] for key in values if key != "externalId"},
        ).returning(AmenityRow)
        row = await self._fetch_one(stmt)
        return _amenity(row)

    async def get_amenity(self, amenity_id: int) -> Optional[Amenity]:
        async with self._session_factory() as session:
            row = await session.get(AmenityRow, amenity_id)
            return _amenity(row) if row is not None else None

    async def by_category(self, category: Category) -> list[Amenity]:
        rows = await self._fetch_all(
            select(AmenityRow)
            .where(AmenityRow.category == category.value)
            .order_by(AmenityRow.id)
        )
        return [_amenity(r) for r in rows]

    async def amenities_in_bounds(
        self, bbox: BoundingBox, category: Optional[Category] = None
    ) -> list[Amenity]:
        stmt = select(AmenityRow).where(
            AmenityRow.latitude.between(bbox.south, bbox.north),
            AmenityRow.longitude.between(bbox.west, bbox.east),
        )
        if category is not None:
            stmt = stmt.where(AmenityRow.category == category.value)
        rows = await self._fetch_all(stmt.order_by(AmenityRow.id))
        return [_amenity(r) for r in rows]

    async def delete_amenity(self, amenity_id: int) -> bool:
        return await self._rowcount(delete(AmenityRow).where(AmenityRow.id == amenity_id)) > 0

    # -- Reviews ------------------------------------------------------------

    async def create_review(self, fields: dict[str, Any]) -> Review:
        now = _now()
        stmt = insert(ReviewRow).values(
            **_plain(fields),
            status=ReviewStatus.pending.value,
            flagCount=0,
            helpfulCount=0,
            isVerified=False,
            createdAt=now,
            updatedAt=now,
        ).returning(ReviewRow)
        return _review(await self._fetch_one(stmt))

    async def get_review(self, review_id: int) -> Optional[Review]:
        async with self._session_factory() as session:
            return _review(await session.get(ReviewRow, review_id))

    def _newest_first(self, stmt):
        return stmt.order_by(ReviewRow.createdAt.desc(), ReviewRow.id.desc())

    async def reviews_for_amenity(
        self, amenity_id: int, status: Optional[ReviewStatus] = None
    ) -> list[Review]:
        stmt = select(ReviewRow).where(ReviewRow.amenityId == amenity_id)
        if status is not None:
            stmt = stmt.where(ReviewRow.status == status.value)
        return [_review(r) for r in await self._fetch_all(self._newest_first(stmt))]

    async def reviews_by_author(self, author_id: str) -> list[Review]:
        stmt = select(ReviewRow).where(ReviewRow.authorId == author_id)
        return [_review(r) for r in await self._fetch_all(self._newest_first(stmt))]

    async def reviews_by_status(self, status: ReviewStatus) -> list[Review]:
        stmt = select(ReviewRow).where(ReviewRow.status == status.value)
        return [_review(r) for r in await self._fetch_all(self._newest_first(stmt))]

    async def count_reviews(self) -> int:
        return await self._scalar(select(func.count()).select_from(ReviewRow)) or 0

    async def update_review_by_author(
        self, review_id: int, author_id: str, fields: dict[str, Any]
    ) -> Optional[Review]:
        stmt = (
            update(ReviewRow)
            .where(ReviewRow.id == review_id, ReviewRow.authorId == author_id)
            .values(**_plain(fields), updatedAt=_now())
            .returning(ReviewRow)
            .execution_options(synchronize_session=False)
        )
        return _review(await self._fetch_one(stmt))

    async def delete_review_by_author(self, review_id: int, author_id: str) -> bool:
        stmt = delete(ReviewRow).where(ReviewRow.id == review_id, ReviewRow.authorId == author_id)
        return await self._rowcount(stmt) > 0

    async def increment_flag(self, review_id: int, threshold: int) -> Optional[Review]:
        new_count = ReviewRow.flagCount + 1
        stmt = (
            update(ReviewRow)
            .where(ReviewRow.id == review_id)
            .values(
                flagCount=new_count,
                status=case(
                    (new_count >= threshold, ReviewStatus.flagged.value),
                    else_=ReviewRow.status,
                ),
                updatedAt=_now(),
            )
            .returning(ReviewRow)
            .execution_options(synchronize_session=False)
        )
        return _review(await self._fetch_one(stmt))

    async def increment_helpful(self, review_id: int) -> Optional[Review]:
        stmt = (
            update(ReviewRow)
            .where(ReviewRow.id == review_id)
            .values(helpfulCount=ReviewRow.helpfulCount + 1, updatedAt=_now())
            .returning(ReviewRow)
            .execution_options(synchronize_session=False)
        )
        return _review(await self._fetch_one(stmt))

    async def set_moderation(
        self,
        review_id: int,
        *,
        status: ReviewStatus,
        moderator_id: str,
        note: Optional[str],
        verified: bool,
        moderated_at: datetime,
    ) -> Optional[Review]:
        stmt = (
            update(ReviewRow)
            .where(ReviewRow.id == review_id)
            .values(
                status=status.value,
                moderatorId=moderator_id,
                moderatedAt=moderated_at,
                moderationNote=note,
                isVerified=verified,
                updatedAt=moderated_at,
            )
            .returning(ReviewRow)
            .execution_options(synchronize_session=False)
        )
        return _review(await self._fetch_one(stmt))

    async def average_rating(self, amenity_id: int) -> Optional[float]:
        value = await self._scalar(
            select(func.avg(ReviewRow.cleanlinessRating)).where(
                ReviewRow.amenityId == amenity_id,
                ReviewRow.status == ReviewStatus.approved.value,
            )
        )
        # AVG over integers comes back as Decimal
        return float(value) if value is not None else None

    # -- Moderation ledger --------------------------------------------------

    async def append_admin_action(
        self,
        moderator_id: str,
        action: str,
        target_type: str,
        target_id: int,
        reason: Optional[str],
    ) -> AdminAction:
        stmt = insert(AdminActionRow).values(
            moderatorId=moderator_id,
            action=action,
            targetType=target_type,
            targetId=target_id,
            reason=reason,
            createdAt=_now(),
        ).returning(AdminActionRow)
        row = await self._fetch_one(stmt)
        return AdminAction.model_validate(row, from_attributes=True)

    async def recent_admin_actions(self, limit: int) -> list[AdminAction]:
        if limit <= 0:
            return []
        rows = await self._fetch_all(
            select(AdminActionRow).order_by(AdminActionRow.id.desc()).limit(limit)
        )
        return [AdminAction.model_validate(r, from_attributes=True) for r in rows]

    # -- Message queue ------------------------------------------------------

    async def enqueue_message(
        self, review_id: int, contact_info: str, contact_type: ContactType, body: str
    ) -> QueuedMessage:
        stmt = insert(MessageRow).values(
            reviewId=review_id,
            contactInfo=contact_info,
            contactType=contact_type.value,
            body=body,
            status=MessageStatus.pending.value,
            attempts=0,
            createdAt=_now(),
        ).returning(MessageRow)
        return _message(await self._fetch_one(stmt))

    async def pending_messages(self) -> list[QueuedMessage]:
        rows = await self._fetch_all(
            select(MessageRow)
            .where(MessageRow.status == MessageStatus.pending.value)
            .order_by(MessageRow.id)
        )
        return [_message(r) for r in rows]

    async def claim_messages(
        self, limit: int, claimed_at: datetime, stale_before: datetime
    ) -> list[QueuedMessage]:
        if limit <= 0:
            return []
        candidates = (
            select(MessageRow.id)
            .where(
                MessageRow.status == MessageStatus.pending.value,
                or_(MessageRow.claimedAt.is_(None), MessageRow.claimedAt <= stale_before),
            )
            .order_by(MessageRow.id)
            .limit(limit)
            .with_for_update(skip_locked=True)
        )
        stmt = (
            update(MessageRow)
            .where(MessageRow.id.in_(candidates))
            .values(claimedAt=claimed_at, attempts=MessageRow.attempts + 1)
            .returning(MessageRow)
            .execution_options(synchronize_session=False)
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            rows = list(result.scalars().all())
            await session.commit()
        # RETURNING order is not guaranteed
        return sorted((_message(r) for r in rows), key=lambda m: m.id)

    async def mark_message_sent(self, message_id: int, sent_at: datetime) -> bool:
        stmt = (
            update(MessageRow)
            .where(
                MessageRow.id == message_id,
                MessageRow.status.in_([MessageStatus.pending.value, MessageStatus.failed.value]),
            )
            .values(status=MessageStatus.sent.value, sentAt=sent_at, errorMessage=None)
        )
        return await self._rowcount(stmt) > 0

    async def mark_message_failed(self, message_id: int, error_message: str) -> bool:
        stmt = (
            update(MessageRow)
            .where(
                MessageRow.id == message_id,
                MessageRow.status.in_([MessageStatus.pending.value, MessageStatus.failed.value]),
            )
            .values(status=MessageStatus.failed.value, errorMessage=error_message)
        )
        return await self._rowcount(stmt) > 0

    async def requeue_message(self, message_id: int) -> bool:
        stmt = (
            update(MessageRow)
            .where(MessageRow.id == message_id, MessageRow.status == MessageStatus.failed.value)
            .values(status=MessageStatus.pending.value, claimedAt=None)
        )
        return await self._rowcount(stmt) > 0

    async def count_messages(self, status: MessageStatus) -> int:
        return await self._scalar(
            select(func.count()).select_from(MessageRow).where(MessageRow.status == MessageStatus(status).value)
        ) or 0
