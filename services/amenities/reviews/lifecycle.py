"""
Review lifecycle: submission, community signals, author edits, moderation.

States: pending, approved, rejected, flagged. Initial state is pending.
No state is terminal -- a moderator may move a review between any two
states, including re-approving a rejected one.

Community flags auto-transition a review to `flagged` once its flag count
reaches FLAG_THRESHOLD (settings.flag_threshold), whatever its current
status. The store does the increment and threshold check atomically.

Author edits and deletes are scoped by authorId; a mismatch is reported
exactly like a missing review.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Optional

from services.amenities.config import settings
from services.amenities.domain import (
    REVIEW_FACILITY_CHECKS,
    ContactType,
    MessageStatus,
    ModerationDecision,
    Review,
    ReviewInput,
    ReviewStatus,
    ReviewUpdate,
)
from services.amenities.errors import AmenityNotFoundError, ReviewValidationError
from services.amenities.moderation.ledger import ModerationLedger
from services.amenities.notifications.queue import NotificationQueue
from services.amenities.store.base import Store

logger = logging.getLogger(__name__)

FLAG_THRESHOLD = settings.flag_threshold

RATING_MIN = 1
RATING_MAX = 5
NICKNAME_MAX_LENGTH = 50
CONTACT_INFO_MAX_LENGTH = 200
DEFAULT_NICKNAME = "Anonymous"
REVIEW_TARGET_TYPE = "review"

# Fields an author may change after submission
_EDITABLE_FIELDS = ("cleanlinessRating", *REVIEW_FACILITY_CHECKS, "handDryerType", "comments")


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

def _validate_rating(rating: Any) -> int:
    if isinstance(rating, bool) or not isinstance(rating, int):
        raise ReviewValidationError("cleanlinessRating must be an integer")
    if not RATING_MIN <= rating <= RATING_MAX:
        raise ReviewValidationError(
            f"cleanlinessRating must be between {RATING_MIN} and {RATING_MAX}"
        )
    return rating


def _validate_nickname(nickname: Optional[str]) -> str:
    if nickname is None:
        return DEFAULT_NICKNAME
    cleaned = nickname.strip()
    if not cleaned:
        raise ReviewValidationError("nickname must not be empty")
    if len(cleaned) > NICKNAME_MAX_LENGTH:
        raise ReviewValidationError(f"nickname must be at most {NICKNAME_MAX_LENGTH} characters")
    return cleaned


def _validate_contact(
    contact_info: Optional[str], contact_type: Optional[str]
) -> tuple[Optional[str], Optional[ContactType]]:
    """Both present -> (info, type); otherwise (None, None). "none" means opted out."""
    if contact_type is None or contact_type.strip().lower() in ("", "none"):
        return None, None
    try:
        resolved = ContactType(contact_type.strip().lower())
    except ValueError:
        raise ReviewValidationError(
            f"contactType must be one of: {', '.join(t.value for t in ContactType)}, none"
        ) from None

    info = (contact_info or "").strip()
    if not info:
        return None, None
    if len(info) > CONTACT_INFO_MAX_LENGTH:
        raise ReviewValidationError(f"contactInfo must be at most {CONTACT_INFO_MAX_LENGTH} characters")
    return info, resolved


def _optional_text(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------

class ReviewLifecycle:

    def __init__(
        self,
        store: Store,
        ledger: Optional[ModerationLedger] = None,
        queue: Optional[NotificationQueue] = None,
        flag_threshold: int = FLAG_THRESHOLD,
        thank_you_message: Optional[str] = None,
    ) -> None:
        if flag_threshold < 1:
            raise ValueError("flag_threshold must be >= 1")
        self.store = store
        self.ledger = ledger or ModerationLedger(store)
        self.queue = queue or NotificationQueue(store)
        self.flag_threshold = flag_threshold
        self.thank_you_message = thank_you_message or settings.thank_you_message

    # -- Submission ---------------------------------------------------------

    async def submit(self, review_input: ReviewInput) -> Review:
        """
        Validate and store a new review in `pending`.

        Raises ReviewValidationError or AmenityNotFoundError before anything
        is persisted. When contact details are supplied, exactly one
        thank-you message is queued.
        """
        rating = _validate_rating(review_input.cleanlinessRating)
        nickname = _validate_nickname(review_input.nickname)
        contact_info, contact_type = _validate_contact(
            review_input.contactInfo, review_input.contactType
        )

        if await self.store.get_amenity(review_input.amenityId) is None:
            raise AmenityNotFoundError(f"Amenity {review_input.amenityId} not found")

        fields: dict[str, Any] = {
            "amenityId": review_input.amenityId,
            "authorId": review_input.authorId,
            "nickname": nickname,
            "cleanlinessRating": rating,
            "handDryerType": review_input.handDryerType,
            "photoRef": _optional_text(review_input.photoRef),
            "comments": _optional_text(review_input.comments),
            "contactInfo": contact_info,
            "contactType": contact_type,
        }
        for check in REVIEW_FACILITY_CHECKS:
            fields[check] = getattr(review_input, check)

        review = await self.store.create_review(fields)
        logger.info("Review %d submitted for amenity %d", review.id, review.amenityId)

        if contact_info and contact_type:
            await self.queue.enqueue(review.id, contact_info, contact_type, self.thank_you_message)

        return review

    # -- Community signals --------------------------------------------------

    async def flag(self, review_id: int, flagger_id: Optional[str] = None) -> Optional[Review]:
        """
        Count one flag. Repeat flags from the same identity are counted too.
        Returns None for an unknown review.
        """
        review = await self.store.increment_flag(review_id, self.flag_threshold)
        if review is None:
            return None
        if review.status == ReviewStatus.flagged and review.flagCount >= self.flag_threshold:
            logger.info(
                "Review %d auto-flagged after %d flags (last by %s)",
                review_id, review.flagCount, flagger_id or "anonymous",
            )
        return review

    async def mark_helpful(self, review_id: int) -> Optional[Review]:
        return await self.store.increment_helpful(review_id)

    # -- Moderation ---------------------------------------------------------

    async def moderate(
        self, review_id: int, moderator_id: str, decision: ModerationDecision
    ) -> Optional[Review]:
        """
        Move a review to decision.status and record the action in the ledger.
        Unknown reviews return None and leave the ledger untouched.
        """
        review = await self.store.set_moderation(
            review_id,
            status=decision.status,
            moderator_id=moderator_id,
            note=decision.moderationNote,
            verified=bool(decision.isVerified),
            moderated_at=datetime.now(timezone.utc),
        )
        if review is None:
            return None

        await self.ledger.record(
            moderator_id=moderator_id,
            action=f"moderate_review_{decision.status.value}",
            target_type=REVIEW_TARGET_TYPE,
            target_id=review_id,
            reason=decision.moderationNote,
        )
        return review

    # -- Author-scoped edits ------------------------------------------------

    async def update(
        self, review_id: int, author_id: str, changes: ReviewUpdate
    ) -> Optional[Review]:
        """Apply content edits. None when missing or not authored by author_id."""
        if not author_id:
            return None
        fields = changes.model_dump(exclude_unset=True, include=set(_EDITABLE_FIELDS))
        if "cleanlinessRating" in fields:
            fields["cleanlinessRating"] = _validate_rating(fields["cleanlinessRating"])
        if "comments" in fields:
            fields["comments"] = _optional_text(fields["comments"])
        if not fields:
            review = await self.store.get_review(review_id)
            if review is None or review.authorId != author_id:
                return None
            return review
        return await self.store.update_review_by_author(review_id, author_id, fields)

    async def delete(self, review_id: int, author_id: str) -> bool:
        if not author_id:
            return False
        return await self.store.delete_review_by_author(review_id, author_id)

    # -- Reads --------------------------------------------------------------

    async def get(self, review_id: int) -> Optional[Review]:
        return await self.store.get_review(review_id)

    async def reviews_for_amenity(
        self, amenity_id: int, status: Optional[ReviewStatus] = None
    ) -> list[Review]:
        """Reviews of a deleted amenity are orphaned and not listed."""
        if await self.store.get_amenity(amenity_id) is None:
            return []
        return await self.store.reviews_for_amenity(amenity_id, status)

    async def reviews_by_author(self, author_id: str) -> list[Review]:
        return await self.store.reviews_by_author(author_id)

    async def pending(self) -> list[Review]:
        return await self.store.reviews_by_status(ReviewStatus.pending)

    async def flagged(self) -> list[Review]:
        return await self.store.reviews_by_status(ReviewStatus.flagged)

    async def average_rating(self, amenity_id: int) -> Optional[float]:
        """Mean rating of approved reviews, or None when none are approved."""
        if await self.store.get_amenity(amenity_id) is None:
            return None
        return await self.store.average_rating(amenity_id)

    async def stats(self) -> dict[str, int]:
        return {
            "pendingReviews": len(await self.pending()),
            "flaggedReviews": len(await self.flagged()),
            "totalReviews": await self.store.count_reviews(),
            "pendingMessages": await self.store.count_messages(MessageStatus.pending),
        }
