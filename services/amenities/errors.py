"""
Domain exceptions raised by the ingestion and review subsystems.

Routers translate these into HTTPException; nothing here knows about HTTP.
"""

from __future__ import annotations

from dataclasses import dataclass


class AmenityServiceError(Exception):
    """Base class for all domain errors."""


@dataclass(frozen=True)
class EndpointFailure:
    """One failed attempt against a geodata endpoint."""
    url: str
    reason: str


class GeodataUnavailableError(AmenityServiceError):
    """Every configured geodata endpoint failed for a single query."""

    def __init__(self, failures: list[EndpointFailure]):
        self.failures = list(failures)
        detail = "; ".join(f"{f.url}: {f.reason}" for f in self.failures)
        super().__init__(f"All geodata endpoints failed ({detail})")


class InvalidBoundsError(AmenityServiceError, ValueError):
    """Bounding box is malformed, crosses the antimeridian, or leaves [-90, 90]."""


class ReviewValidationError(AmenityServiceError, ValueError):
    """Review input rejected before persistence."""


class AmenityNotFoundError(AmenityServiceError, LookupError):
    """Referenced amenity does not exist."""


class LedgerEntryError(AmenityServiceError, ValueError):
    """Moderation ledger entry is missing a required field."""
