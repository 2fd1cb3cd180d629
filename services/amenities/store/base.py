"""
Store interface shared by the persistent (SQL) and in-memory backends.

Four logical record types live here: Amenity, Review, AdminAction,
QueuedMessage. Implementations must make per-record read-modify-write
atomic (upsert, flag, helpful, moderation, message status changes).

The backend is chosen once at process start (see create_store) and passed
explicitly to the services that need it.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Optional

from services.amenities.domain import (
    AdminAction,
    Amenity,
    Category,
    ContactType,
    Coordinate,
    MessageStatus,
    QueuedMessage,
    Review,
    ReviewStatus,
)
from services.amenities.geodata.query import BoundingBox


class Store(ABC):

    # -- Amenities ----------------------------------------------------------

    @abstractmethod
    async def upsert(self, amenity: Amenity) -> Amenity:
        """Insert by externalId, or fully replace the existing record (id kept)."""

    @abstractmethod
    async def get_amenity(self, amenity_id: int) -> Optional[Amenity]: ...

    @abstractmethod
    async def by_category(self, category: Category) -> list[Amenity]: ...

    @abstractmethod
    async def amenities_in_bounds(
        self, bbox: BoundingBox, category: Optional[Category] = None
    ) -> list[Amenity]: ...

    @abstractmethod
    async def delete_amenity(self, amenity_id: int) -> bool:
        """Remove an amenity. Its reviews are left in place."""

    async def by_bounds(
        self, sw: Coordinate, ne: Coordinate, category: Optional[Category] = None
    ) -> list[Amenity]:
        """Amenities inside the closed rectangle sw..ne. Raises InvalidBoundsError."""
        bbox = BoundingBox.from_corners(sw.lat, sw.lng, ne.lat, ne.lng)
        return await self.amenities_in_bounds(bbox, category)

    # -- Reviews ------------------------------------------------------------

    @abstractmethod
    async def create_review(self, fields: dict[str, Any]) -> Review:
        """Persist a validated review; status/counters take their initial values."""

    @abstractmethod
    async def get_review(self, review_id: int) -> Optional[Review]: ...

    @abstractmethod
    async def reviews_for_amenity(
        self, amenity_id: int, status: Optional[ReviewStatus] = None
    ) -> list[Review]:
        """Newest first."""

    @abstractmethod
    async def reviews_by_author(self, author_id: str) -> list[Review]: ...

    @abstractmethod
    async def reviews_by_status(self, status: ReviewStatus) -> list[Review]: ...

    @abstractmethod
    async def count_reviews(self) -> int: ...

    @abstractmethod
    async def update_review_by_author(
        self, review_id: int, author_id: str, fields: dict[str, Any]
    ) -> Optional[Review]:
        """None when the review is missing or not owned by author_id."""

    @abstractmethod
    async def delete_review_by_author(self, review_id: int, author_id: str) -> bool: ...

    @abstractmethod
    async def increment_flag(self, review_id: int, threshold: int) -> Optional[Review]:
        """+1 flagCount; status becomes flagged once the new count >= threshold."""

    @abstractmethod
    async def increment_helpful(self, review_id: int) -> Optional[Review]: ...

    @abstractmethod
    async def set_moderation(
        self,
        review_id: int,
        *,
        status: ReviewStatus,
        moderator_id: str,
        note: Optional[str],
        verified: bool,
        moderated_at: datetime,
    ) -> Optional[Review]: ...

    @abstractmethod
    async def average_rating(self, amenity_id: int) -> Optional[float]:
        """Mean cleanlinessRating over approved reviews; None when there are none."""

    # -- Moderation ledger --------------------------------------------------

    @abstractmethod
    async def append_admin_action(
        self,
        moderator_id: str,
        action: str,
        target_type: str,
        target_id: int,
        reason: Optional[str],
    ) -> AdminAction: ...

    @abstractmethod
    async def recent_admin_actions(self, limit: int) -> list[AdminAction]:
        """Newest first."""

    # -- Message queue ------------------------------------------------------

    @abstractmethod
    async def enqueue_message(
        self, review_id: int, contact_info: str, contact_type: ContactType, body: str
    ) -> QueuedMessage: ...

    @abstractmethod
    async def pending_messages(self) -> list[QueuedMessage]: ...

    @abstractmethod
    async def claim_messages(
        self, limit: int, claimed_at: datetime, stale_before: datetime
    ) -> list[QueuedMessage]:
        """
        Atomically stamp claimedAt on up to `limit` pending messages that are
        unclaimed or whose claim is older than `stale_before`.
        """

    @abstractmethod
    async def mark_message_sent(self, message_id: int, sent_at: datetime) -> bool:
        """pending|failed -> sent. False if missing or already sent (terminal)."""

    @abstractmethod
    async def mark_message_failed(self, message_id: int, error_message: str) -> bool:
        """pending|failed -> failed. False if missing or already sent."""

    @abstractmethod
    async def requeue_message(self, message_id: int) -> bool:
        """failed -> pending (claim cleared). False for any other state."""

    @abstractmethod
    async def count_messages(self, status: MessageStatus) -> int: ...

    # -- Lifecycle ----------------------------------------------------------

    async def close(self) -> None:
        """Release backend resources. No-op by default."""
