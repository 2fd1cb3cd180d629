"""
Public review endpoints.

The author is whoever the upstream auth proxy put in X-User-Id; it is
never read from the request body. Edits and deletes by anyone else are
reported as 404, same as a missing review.
"""

from fastapi import APIRouter, Depends, HTTPException, Request

from services.amenities.domain import Review, ReviewInput, ReviewStatus, ReviewUpdate
from services.amenities.errors import AmenityNotFoundError, ReviewValidationError
from services.amenities.reviews.lifecycle import ReviewLifecycle
from services.amenities.routers._deps import (
    current_user_id,
    envelope,
    get_lifecycle,
    require_user_id,
)

router = APIRouter(prefix="/api", tags=["reviews"])

REVIEW_NOT_FOUND = "Review not found"


def _public(review: Review) -> dict:
    return review.model_dump(mode="json")


@router.get("/amenities/{amenity_id}/reviews")
async def amenity_reviews(
    amenity_id: int,
    request: Request,
    lifecycle: ReviewLifecycle = Depends(get_lifecycle),
):
    """Approved reviews plus the average rating (one decimal, null when unrated)."""
    reviews = await lifecycle.reviews_for_amenity(amenity_id, ReviewStatus.approved)
    average = await lifecycle.average_rating(amenity_id)
    return envelope(request, {
        "reviews": [_public(r) for r in reviews],
        "averageRating": round(average, 1) if average is not None else None,
        "totalReviews": len(reviews),
    })


@router.post("/reviews", status_code=201)
async def submit_review(
    body: ReviewInput,
    request: Request,
    lifecycle: ReviewLifecycle = Depends(get_lifecycle),
):
    review_input = body.model_copy(update={"authorId": current_user_id(request)})
    try:
        review = await lifecycle.submit(review_input)
    except ReviewValidationError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except AmenityNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    return envelope(request, {
        "review": _public(review),
        "message": "Review submitted successfully and is pending moderation",
    })


@router.put("/reviews/{review_id}")
async def update_review(
    review_id: int,
    body: ReviewUpdate,
    request: Request,
    user_id: str = Depends(require_user_id),
    lifecycle: ReviewLifecycle = Depends(get_lifecycle),
):
    try:
        review = await lifecycle.update(review_id, user_id, body)
    except ReviewValidationError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    if review is None:
        raise HTTPException(status_code=404, detail=REVIEW_NOT_FOUND)
    return envelope(request, {"review": _public(review)})


@router.delete("/reviews/{review_id}")
async def delete_review(
    review_id: int,
    request: Request,
    user_id: str = Depends(require_user_id),
    lifecycle: ReviewLifecycle = Depends(get_lifecycle),
):
    if not await lifecycle.delete(review_id, user_id):
        raise HTTPException(status_code=404, detail=REVIEW_NOT_FOUND)
    return envelope(request, {"deleted": True})


@router.post("/reviews/{review_id}/flag")
async def flag_review(
    review_id: int,
    request: Request,
    lifecycle: ReviewLifecycle = Depends(get_lifecycle),
):
    review = await lifecycle.flag(review_id, current_user_id(request))
    if review is None:
        raise HTTPException(status_code=404, detail=REVIEW_NOT_FOUND)
    return envelope(request, {"flagCount": review.flagCount, "status": review.status.value})


@router.post("/reviews/{review_id}/helpful")
async def mark_helpful(
    review_id: int,
    request: Request,
    lifecycle: ReviewLifecycle = Depends(get_lifecycle),
):
    review = await lifecycle.mark_helpful(review_id)
    if review is None:
        raise HTTPException(status_code=404, detail=REVIEW_NOT_FOUND)
    return envelope(request, {"helpfulCount": review.helpfulCount})


@router.get("/my-reviews")
async def my_reviews(
    request: Request,
    user_id: str = Depends(require_user_id),
    lifecycle: ReviewLifecycle = Depends(get_lifecycle),
):
    reviews = await lifecycle.reviews_by_author(user_id)
    return envelope(request, {"reviews": [_public(r) for r in reviews], "count": len(reviews)})
