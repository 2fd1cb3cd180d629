"""
In-memory Store -- used when no database is configured (local dev, tests).

One asyncio.Lock guards every mutation, so read-modify-write sequences
(flag counter + threshold, upsert lookup + replace, message claims) are
atomic with respect to other coroutines on the same event loop.
Records are copied on the way in and out; callers never hold live state.
"""

from __future__ import annotations

import asyncio
import itertools
from datetime import datetime, timezone
from typing import Any, Optional

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


def _now() -> datetime:
    return datetime.now(timezone.utc)


class MemoryStore(Store):

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._amenities: dict[int, Amenity] = {}
        self._amenity_ids_by_external: dict[str, int] = {}
        self._reviews: dict[int, Review] = {}
        self._actions: list[AdminAction] = []
        self._messages: dict[int, QueuedMessage] = {}
        self._amenity_seq = itertools.count(1)
        self._review_seq = itertools.count(1)
        self._action_seq = itertools.count(1)
        self._message_seq = itertools.count(1)

    # -- Amenities ----------------------------------------------------------

    async def upsert(self, amenity: Amenity) -> Amenity:
        async with self._lock:
            amenity_id = self._amenity_ids_by_external.get(amenity.externalId)
            if amenity_id is None:
                amenity_id = next(self._amenity_seq)
                self._amenity_ids_by_external[amenity.externalId] = amenity_id
            stored = amenity.model_copy(deep=True, update={"id": amenity_id, "lastUpdated": _now()})
            self._amenities[amenity_id] = stored
            return stored.model_copy(deep=True)

    async def get_amenity(self, amenity_id: int) -> Optional[Amenity]:
        amenity = self._amenities.get(amenity_id)
        return amenity.model_copy(deep=True) if amenity else None

    async def by_category(self, category: Category) -> list[Amenity]:
        return [a.model_copy(deep=True) for a in self._amenities.values() if a.category == category]

    async def amenities_in_bounds(
        self, bbox: BoundingBox, category: Optional[Category] = None
    ) -> list[Amenity]:
        return [
            a.model_copy(deep=True)
            for a in self._amenities.values()
            if bbox.contains(a.latitude, a.longitude)
            and (category is None or a.category == category)
        ]

    async def delete_amenity(self, amenity_id: int) -> bool:
        async with self._lock:
            amenity = self._amenities.pop(amenity_id, None)
            if amenity is None:
                return False
            self._amenity_ids_by_external.pop(amenity.externalId, None)
            return True

    # -- Reviews ------------------------------------------------------------

    async def create_review(self, fields: dict[str, Any]) -> Review:
        async with self._lock:
            now = _now()
            review = Review(
                **fields,
                id=next(self._review_seq),
                status=ReviewStatus.pending,
                flagCount=0,
                helpfulCount=0,
                isVerified=False,
                createdAt=now,
                updatedAt=now,
            )
            self._reviews[review.id] = review
            return review.model_copy(deep=True)

    async def get_review(self, review_id: int) -> Optional[Review]:
        review = self._reviews.get(review_id)
        return review.model_copy(deep=True) if review else None

    def _newest_first(self, reviews) -> list[Review]:
        ordered = sorted(reviews, key=lambda r: (r.createdAt, r.id), reverse=True)
        return [r.model_copy(deep=True) for r in ordered]

    async def reviews_for_amenity(
        self, amenity_id: int, status: Optional[ReviewStatus] = None
    ) -> list[Review]:
        return self._newest_first(
            r for r in self._reviews.values()
            if r.amenityId == amenity_id and (status is None or r.status == status)
        )

    async def reviews_by_author(self, author_id: str) -> list[Review]:
        return self._newest_first(r for r in self._reviews.values() if r.authorId == author_id)

    async def reviews_by_status(self, status: ReviewStatus) -> list[Review]:
        return self._newest_first(r for r in self._reviews.values() if r.status == status)

    async def count_reviews(self) -> int:
        return len(self._reviews)

    def _owned(self, review_id: int, author_id: str) -> Optional[Review]:
        review = self._reviews.get(review_id)
        if review is None or review.authorId is None or review.authorId != author_id:
            return None
        return review

    async def update_review_by_author(
        self, review_id: int, author_id: str, fields: dict[str, Any]
    ) -> Optional[Review]:
        async with self._lock:
            review = self._owned(review_id, author_id)
            if review is None:
                return None
            updated = review.model_copy(update={**fields, "updatedAt": _now()})
            self._reviews[review_id] = updated
            return updated.model_copy(deep=True)

    async def delete_review_by_author(self, review_id: int, author_id: str) -> bool:
        async with self._lock:
            if self._owned(review_id, author_id) is None:
                return False
            del self._reviews[review_id]
            return True

    async def increment_flag(self, review_id: int, threshold: int) -> Optional[Review]:
        async with self._lock:
            review = self._reviews.get(review_id)
            if review is None:
                return None
            flag_count = review.flagCount + 1
            update: dict[str, Any] = {"flagCount": flag_count, "updatedAt": _now()}
            if flag_count >= threshold:
                update["status"] = ReviewStatus.flagged
            updated = review.model_copy(update=update)
            self._reviews[review_id] = updated
            return updated.model_copy(deep=True)

    async def increment_helpful(self, review_id: int) -> Optional[Review]:
        async with self._lock:
            review = self._reviews.get(review_id)
            if review is None:
                return None
            updated = review.model_copy(
                update={"helpfulCount": review.helpfulCount + 1, "updatedAt": _now()}
            )
            self._reviews[review_id] = updated
            return updated.model_copy(deep=True)

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
        async with self._lock:
            review = self._reviews.get(review_id)
            if review is None:
                return None
            updated = review.model_copy(update={
                "status": status,
                "moderatorId": moderator_id,
                "moderatedAt": moderated_at,
                "moderationNote": note,
                "isVerified": verified,
                "updatedAt": moderated_at,
            })
            self._reviews[review_id] = updated
            return updated.model_copy(deep=True)

    async def average_rating(self, amenity_id: int) -> Optional[float]:
        ratings = [
            r.cleanlinessRating for r in self._reviews.values()
            if r.amenityId == amenity_id and r.status == ReviewStatus.approved
        ]
        if not ratings:
            return None
        return sum(ratings) / len(ratings)

    # -- Moderation ledger --------------------------------------------------

    async def append_admin_action(
        self,
        moderator_id: str,
        action: str,
        target_type: str,
        target_id: int,
        reason: Optional[str],
    ) -> AdminAction:
        async with self._lock:
            entry = AdminAction(
                id=next(self._action_seq),
                moderatorId=moderator_id,
                action=action,
                targetType=target_type,
                targetId=target_id,
                reason=reason,
                createdAt=_now(),
            )
            self._actions.append(entry)
            return entry.model_copy()

    async def recent_admin_actions(self, limit: int) -> list[AdminAction]:
        # insertion order is the only ordering key
        return [a.model_copy() for a in reversed(self._actions[-limit:])] if limit > 0 else []

    # -- Message queue ------------------------------------------------------

    async def enqueue_message(
        self, review_id: int, contact_info: str, contact_type: ContactType, body: str
    ) -> QueuedMessage:
        async with self._lock:
            message = QueuedMessage(
                id=next(self._message_seq),
                reviewId=review_id,
                contactInfo=contact_info,
                contactType=contact_type,
                body=body,
                createdAt=_now(),
            )
            self._messages[message.id] = message
            return message.model_copy()

    async def pending_messages(self) -> list[QueuedMessage]:
        return [m.model_copy() for m in self._messages.values() if m.status == MessageStatus.pending]

    async def claim_messages(
        self, limit: int, claimed_at: datetime, stale_before: datetime
    ) -> list[QueuedMessage]:
        async with self._lock:
            claimed = []
            for message in self._messages.values():
                if len(claimed) >= limit:
                    break
                if message.status == MessageStatus.pending and (
                    message.claimedAt is None or message.claimedAt <= stale_before
                ):
                    updated = message.model_copy(
                        update={"claimedAt": claimed_at, "attempts": message.attempts + 1}
                    )
                    self._messages[message.id] = updated
                    claimed.append(updated.model_copy())
            return claimed

    async def _transition(self, message_id: int, allowed: set[MessageStatus], update: dict) -> bool:
        async with self._lock:
            message = self._messages.get(message_id)
            if message is None or message.status not in allowed:
                return False
            self._messages[message_id] = message.model_copy(update=update)
            return True

    async def mark_message_sent(self, message_id: int, sent_at: datetime) -> bool:
        return await self._transition(
            message_id,
            {MessageStatus.pending, MessageStatus.failed},
            {"status": MessageStatus.sent, "sentAt": sent_at, "errorMessage": None},
        )

    async def mark_message_failed(self, message_id: int, error_message: str) -> bool:
        return await self._transition(
            message_id,
            {MessageStatus.pending, MessageStatus.failed},
            {"status": MessageStatus.failed, "errorMessage": error_message},
        )

    async def requeue_message(self, message_id: int) -> bool:
        return await self._transition(
            message_id,
            {MessageStatus.failed},
            {"status": MessageStatus.pending, "claimedAt": None},
        )

    async def count_messages(self, status: MessageStatus) -> int:
        return sum(1 for m in self._messages.values() if m.status == status)
