"""
Canonical domain records shared by the ingestion and review subsystems.

Tri-state values are Optional[bool]: True / False / None (unknown).
A None never means "no" -- callers must treat it as "not recorded".
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class Category(str, Enum):
    toilet = "toilet"
    dog_park = "dog_park"
    shower = "shower"
    fitness_station = "fitness_station"
    outdoor_gym = "outdoor_gym"
    swimming_pool = "swimming_pool"
    gym = "gym"
    playground = "playground"
    mosque = "mosque"
    church = "church"
    prayer_room = "prayer_room"
    waxing_salon = "waxing_salon"
    nail_salon = "nail_salon"
    skate_park = "skate_park"
    bmx_track = "bmx_track"


class ReviewStatus(str, Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"
    flagged = "flagged"


class MessageStatus(str, Enum):
    pending = "pending"
    sent = "sent"
    failed = "failed"


class HandDryerType(str, Enum):
    electric = "electric"
    paper = "paper"
    none = "none"


class ContactType(str, Enum):
    whatsapp = "whatsapp"
    telegram = "telegram"
    sms = "sms"


# Optional yes/no/unknown facility checks carried by a review
REVIEW_FACILITY_CHECKS: tuple[str, ...] = (
    "hasToiletPaper",
    "hasMirror",
    "hasHotWaterSoap",
    "hasSoap",
    "hasSanitaryDisposal",
)


# ---------------------------------------------------------------------------
# Amenity
# ---------------------------------------------------------------------------

class Coordinate(BaseModel):
    lat: float
    lng: float


class Amenity(BaseModel):
    id: Optional[int] = None
    externalId: str
    category: Category
    name: str
    latitude: float
    longitude: float
    attributes: dict[str, Optional[bool]] = Field(default_factory=dict)
    details: dict[str, Optional[str]] = Field(default_factory=dict)
    rawTags: dict[str, str] = Field(default_factory=dict)
    lastUpdated: Optional[datetime] = None


# ---------------------------------------------------------------------------
# Review
# ---------------------------------------------------------------------------

class ReviewInput(BaseModel):
    """Public submission payload. Range checks happen in ReviewLifecycle."""
    amenityId: int
    authorId: Optional[str] = None
    nickname: Optional[str] = None
    cleanlinessRating: int
    hasToiletPaper: Optional[bool] = None
    hasMirror: Optional[bool] = None
    hasHotWaterSoap: Optional[bool] = None
    hasSoap: Optional[bool] = None
    hasSanitaryDisposal: Optional[bool] = None
    handDryerType: Optional[HandDryerType] = None
    photoRef: Optional[str] = None
    comments: Optional[str] = None
    contactInfo: Optional[str] = Field(default=None, max_length=200)
    # "none" is what the form sends when the user opts out
    contactType: Optional[str] = None


class ReviewUpdate(BaseModel):
    """Author edit. Only content fields; moderation fields are not reachable."""
    cleanlinessRating: Optional[int] = None
    hasToiletPaper: Optional[bool] = None
    hasMirror: Optional[bool] = None
    hasHotWaterSoap: Optional[bool] = None
    hasSoap: Optional[bool] = None
    hasSanitaryDisposal: Optional[bool] = None
    handDryerType: Optional[HandDryerType] = None
    comments: Optional[str] = None


class ModerationDecision(BaseModel):
    status: ReviewStatus
    moderationNote: Optional[str] = None
    isVerified: Optional[bool] = None


class Review(BaseModel):
    id: int
    amenityId: int
    authorId: Optional[str] = None
    nickname: str
    cleanlinessRating: int
    hasToiletPaper: Optional[bool] = None
    hasMirror: Optional[bool] = None
    hasHotWaterSoap: Optional[bool] = None
    hasSoap: Optional[bool] = None
    hasSanitaryDisposal: Optional[bool] = None
    handDryerType: Optional[HandDryerType] = None
    photoRef: Optional[str] = None
    comments: Optional[str] = None
    # Used only to enqueue the thank-you message; never serialized
    contactInfo: Optional[str] = Field(default=None, exclude=True)
    contactType: Optional[ContactType] = Field(default=None, exclude=True)
    status: ReviewStatus = ReviewStatus.pending
    flagCount: int = 0
    helpfulCount: int = 0
    moderatorId: Optional[str] = None
    moderatedAt: Optional[datetime] = None
    moderationNote: Optional[str] = None
    isVerified: bool = False
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None


# ---------------------------------------------------------------------------
# Audit + notifications
# ---------------------------------------------------------------------------

class AdminAction(BaseModel):
    """Append-only. Never mutated or deleted."""
    id: int
    moderatorId: str
    action: str
    targetType: str
    targetId: int
    reason: Optional[str] = None
    createdAt: datetime


class QueuedMessage(BaseModel):
    id: int
    reviewId: int
    contactInfo: str
    contactType: ContactType
    body: str
    status: MessageStatus = MessageStatus.pending
    attempts: int = 0
    claimedAt: Optional[datetime] = None
    sentAt: Optional[datetime] = None
    errorMessage: Optional[str] = None
    createdAt: Optional[datetime] = None
