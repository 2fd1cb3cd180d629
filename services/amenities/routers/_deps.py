"""Shared dependencies and response helpers for the routers."""

import uuid
from typing import Any, Optional

from fastapi import HTTPException, Request

from services.amenities.middleware.admin_hmac import verify_moderator_signature
from services.amenities.reviews.lifecycle import ReviewLifecycle
from services.amenities.store.base import Store


def envelope(request: Request, data: Any) -> dict:
    return {
        "success": True,
        "data": data,
        "requestId": getattr(request.state, "request_id", str(uuid.uuid4())),
    }


def get_store(request: Request) -> Store:
    store = getattr(request.app.state, "store", None)
    if store is None:
        raise HTTPException(status_code=503, detail="Store unavailable")
    return store


def get_lifecycle(request: Request) -> ReviewLifecycle:
    lifecycle = getattr(request.app.state, "lifecycle", None)
    if lifecycle is None:
        raise HTTPException(status_code=503, detail="Review service unavailable")
    return lifecycle


def current_user_id(request: Request) -> Optional[str]:
    """User id set by the upstream auth proxy, or None for anonymous callers."""
    user_id = request.headers.get("X-User-Id", "").strip()
    return user_id or None


def require_user_id(request: Request) -> str:
    user_id = current_user_id(request)
    if user_id is None:
        raise HTTPException(status_code=401, detail="Authentication required")
    return user_id


async def require_moderator(request: Request) -> str:
    """
    Validates moderator auth via HMAC signature verification.
    Returns the verified moderator id from the signed X-Admin-User-Id header.
    """
    return await verify_moderator_signature(request)
