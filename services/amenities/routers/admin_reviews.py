"""
Moderator endpoints: queue stats, pending/flagged review lists, the
moderate action, the ledger, manual requeue of failed messages, and
amenity cleanup. Every route requires a valid HMAC-signed moderator
header; every mutating route writes one ledger entry.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import BaseModel, Field

from services.amenities.domain import ModerationDecision, ReviewStatus
from services.amenities.moderation.ledger import DEFAULT_RECENT_LIMIT
from services.amenities.reviews.lifecycle import ReviewLifecycle
from services.amenities.routers._deps import envelope, get_lifecycle, get_store, require_moderator
from services.amenities.store.base import Store

router = APIRouter(prefix="/api/admin", tags=["admin"])


# ---------------------------------------------------------------------------
# Pydantic models
# ---------------------------------------------------------------------------

class ModerateRequest(BaseModel):
    reviewId: int
    status: ReviewStatus
    moderationNote: Optional[str] = Field(default=None, max_length=1000)
    isVerified: Optional[bool] = None


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------

@router.get("/stats")
async def moderation_stats(
    request: Request,
    moderator_id: str = Depends(require_moderator),
    lifecycle: ReviewLifecycle = Depends(get_lifecycle),
):
    return envelope(request, await lifecycle.stats())


@router.get("/reviews/pending")
async def pending_reviews(
    request: Request,
    moderator_id: str = Depends(require_moderator),
    lifecycle: ReviewLifecycle = Depends(get_lifecycle),
):
    reviews = await lifecycle.pending()
    return envelope(request, {"reviews": [r.model_dump(mode="json") for r in reviews], "count": len(reviews)})


@router.get("/reviews/flagged")
async def flagged_reviews(
    request: Request,
    moderator_id: str = Depends(require_moderator),
    lifecycle: ReviewLifecycle = Depends(get_lifecycle),
):
    reviews = await lifecycle.flagged()
    return envelope(request, {"reviews": [r.model_dump(mode="json") for r in reviews], "count": len(reviews)})


@router.post("/reviews/moderate")
async def moderate_review(
    body: ModerateRequest,
    request: Request,
    moderator_id: str = Depends(require_moderator),
    lifecycle: ReviewLifecycle = Depends(get_lifecycle),
):
    decision = ModerationDecision(
        status=body.status,
        moderationNote=body.moderationNote,
        isVerified=body.isVerified,
    )
    review = await lifecycle.moderate(body.reviewId, moderator_id, decision)
    if review is None:
        raise HTTPException(status_code=404, detail="Review not found")
    return envelope(request, {"review": review.model_dump(mode="json")})


@router.get("/actions")
async def recent_actions(
    request: Request,
    limit: int = Query(DEFAULT_RECENT_LIMIT, ge=1, le=500),
    moderator_id: str = Depends(require_moderator),
    lifecycle: ReviewLifecycle = Depends(get_lifecycle),
):
    actions = await lifecycle.ledger.recent(limit)
    return envelope(request, {"actions": [a.model_dump(mode="json") for a in actions], "count": len(actions)})


@router.post("/messages/{message_id}/requeue")
async def requeue_message(
    message_id: int,
    request: Request,
    moderator_id: str = Depends(require_moderator),
    lifecycle: ReviewLifecycle = Depends(get_lifecycle),
):
    if not await lifecycle.queue.requeue(message_id):
        raise HTTPException(status_code=404, detail="No failed message with that id")
    await lifecycle.ledger.record(moderator_id, "requeue_message", "message", message_id)
    return envelope(request, {"requeued": True})


@router.delete("/amenities/{amenity_id}")
async def delete_amenity(
    amenity_id: int,
    request: Request,
    reason: Optional[str] = Query(None, max_length=1000),
    moderator_id: str = Depends(require_moderator),
    store: Store = Depends(get_store),
    lifecycle: ReviewLifecycle = Depends(get_lifecycle),
):
    """Remove an amenity. Its reviews stay in the store."""
    if not await store.delete_amenity(amenity_id):
        raise HTTPException(status_code=404, detail="Amenity not found")
    await lifecycle.ledger.record(moderator_id, "delete_amenity", "amenity", amenity_id, reason)
    return envelope(request, {"deleted": True})
