"""
Tag normalization: raw Overpass elements -> canonical Amenity records.

Pure functions, no I/O. Deterministic for identical input.

Coordinate resolution, strict priority:
  1. direct point (lat/lon on nodes)
  2. precomputed centroid (`out center`)
  3. first vertex of the attached geometry (`out geom`)
  4. mean of the bounding box (`bounds`)
Elements resolving to nothing are dropped -- sparse source data is normal.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Optional

from services.amenities.domain import Amenity, Category
from services.amenities.geodata.categories import get_spec

logger = logging.getLogger(__name__)


def _as_float(value: Any) -> Optional[float]:
    if isinstance(value, bool) or value is None:
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    if result != result or result in (float("inf"), float("-inf")):
        return None
    return result


def _point(container: Any) -> Optional[tuple[float, float]]:
    if not isinstance(container, dict):
        return None
    lat = _as_float(container.get("lat"))
    lon = _as_float(container.get("lon"))
    if lat is None or lon is None:
        return None
    return lat, lon


def resolve_coordinate(element: dict[str, Any]) -> Optional[tuple[float, float]]:
    """Return (lat, lon) for an element, or None if nothing resolves."""
    direct = _point(element)
    if direct is not None:
        return direct

    center = _point(element.get("center"))
    if center is not None:
        return center

    geometry = element.get("geometry")
    if isinstance(geometry, list) and geometry:
        first = _point(geometry[0])
        if first is not None:
            return first

    bounds = element.get("bounds")
    if isinstance(bounds, dict):
        corners = [_as_float(bounds.get(k)) for k in ("minlat", "maxlat", "minlon", "maxlon")]
        if all(c is not None for c in corners):
            minlat, maxlat, minlon, maxlon = corners
            return (minlat + maxlat) / 2, (minlon + maxlon) / 2

    return None


def external_id(element: dict[str, Any]) -> Optional[str]:
    """Stable source identifier, e.g. 'node_123' / 'way_456'."""
    element_type = element.get("type")
    element_id = element.get("id")
    if not element_type or element_id is None:
        return None
    return f"{element_type}_{element_id}"


def _clean_tags(raw: Any) -> dict[str, str]:
    if not isinstance(raw, dict):
        return {}
    return {str(k): str(v) for k, v in raw.items() if v is not None}


def normalize_element(element: dict[str, Any], category: Category) -> Optional[Amenity]:
    """Normalize one element; None if it has no identity or no coordinate."""
    ext_id = external_id(element)
    if ext_id is None:
        logger.debug("Dropping element without type/id: %r", element)
        return None

    coordinate = resolve_coordinate(element)
    if coordinate is None:
        logger.debug("Dropping %s: no resolvable coordinate", ext_id)
        return None

    spec = get_spec(category)
    tags = _clean_tags(element.get("tags"))
    name = tags.get("name", "").strip() or spec.default_name

    return Amenity(
        externalId=ext_id,
        category=category,
        name=name,
        latitude=coordinate[0],
        longitude=coordinate[1],
        attributes={attr: rule.resolve(tags) for attr, rule in spec.tristate.items()},
        details={key: rule.resolve(tags) for key, rule in spec.details.items()},
        rawTags=tags,
    )


def normalize(elements: Iterable[dict[str, Any]], category: Category) -> list[Amenity]:
    """Normalize a batch. Duplicate externalIds collapse, last one wins."""
    by_external_id: dict[str, Amenity] = {}
    dropped = 0

    for element in elements:
        if not isinstance(element, dict):
            dropped += 1
            continue
        amenity = normalize_element(element, category)
        if amenity is None:
            dropped += 1
            continue
        # pop first so a re-seen id moves to the end (last-wins, including position)
        by_external_id.pop(amenity.externalId, None)
        by_external_id[amenity.externalId] = amenity

    if dropped:
        logger.debug("Normalized %d %s amenities, dropped %d", len(by_external_id), category.value, dropped)
    return list(by_external_id.values())
