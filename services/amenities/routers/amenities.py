"""
Amenity listing endpoints.

  GET /api/amenities/{category}          stored amenities of a category
  GET /api/amenities/{category}/bounds   live ingestion for a bounding box

{category} accepts the URL slug ("dog-parks") or the enum value ("dog_park").
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from services.amenities.config import settings
from services.amenities.domain import Amenity, Category
from services.amenities.errors import GeodataUnavailableError, InvalidBoundsError
from services.amenities.geodata.categories import resolve_category
from services.amenities.geodata.ingest import AmenityIngestor
from services.amenities.geodata.query import BoundingBox
from services.amenities.routers._deps import envelope, get_store
from services.amenities.store.base import Store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/amenities", tags=["amenities"])


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _category_or_404(name: str) -> Category:
    category = resolve_category(name)
    if category is None:
        raise HTTPException(status_code=404, detail=f"Unknown amenity category '{name}'")
    return category


def _ingestor(request: Request, store: Store) -> AmenityIngestor:
    client = getattr(request.app.state, "overpass", None)
    if client is None:
        raise HTTPException(status_code=503, detail="Geodata client unavailable")
    return AmenityIngestor(client, store)


async def _ingest_or_502(ingestor: AmenityIngestor, category: Category, bbox: BoundingBox) -> list[Amenity]:
    try:
        result = await ingestor.ingest(category, bbox)
    except GeodataUnavailableError as e:
        raise HTTPException(status_code=502, detail="Geodata service unavailable, try again later") from e
    return result.stored


def _serialize(amenities: list[Amenity]) -> dict:
    return {
        "amenities": [a.model_dump(mode="json") for a in amenities],
        "count": len(amenities),
    }


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------

@router.get("/{category}")
async def list_amenities(
    category: str,
    request: Request,
    refresh: bool = Query(False, description="Re-ingest the default area before listing"),
    store: Store = Depends(get_store),
):
    resolved = _category_or_404(category)
    if refresh:
        await _ingest_or_502(_ingestor(request, store), resolved, BoundingBox(*settings.default_bounds))
    return envelope(request, _serialize(await store.by_category(resolved)))


@router.get("/{category}/bounds")
async def amenities_in_bounds(
    category: str,
    request: Request,
    swLat: Optional[float] = Query(None),
    swLng: Optional[float] = Query(None),
    neLat: Optional[float] = Query(None),
    neLng: Optional[float] = Query(None),
    store: Store = Depends(get_store),
):
    """Fetch, normalize and store the category inside the box, then return it."""
    resolved = _category_or_404(category)
    if None in (swLat, swLng, neLat, neLng):
        raise HTTPException(status_code=400, detail="Missing bounds parameters")
    try:
        bbox = BoundingBox.from_corners(swLat, swLng, neLat, neLng)
    except InvalidBoundsError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    amenities = await _ingest_or_502(_ingestor(request, store), resolved, bbox)
    return envelope(request, _serialize(amenities))
