"""
Structured geodata queries and their Overpass QL rendering.

A StructuredQuery is (category, bounding box). Rendering expands the
category's selectors over each element type inside one union block:

    [out:json][timeout:25];
    (
      node["amenity"="toilets"](37.7,-122.5,37.8,-122.3);
      way["amenity"="toilets"](37.7,-122.5,37.8,-122.3);
    );
    out geom;

Bounding boxes that cross the antimeridian (west > east) or leave the
valid latitude range are rejected rather than silently mis-queried.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from services.amenities.domain import Category
from services.amenities.errors import InvalidBoundsError
from services.amenities.geodata.categories import get_spec

QUERY_TIMEOUT_S = 25


@dataclass(frozen=True)
class BoundingBox:
    """Closed lat/lng rectangle: [south, north] x [west, east]."""
    south: float
    west: float
    north: float
    east: float

    def __post_init__(self) -> None:
        for name in ("south", "west", "north", "east"):
            value = getattr(self, name)
            if not isinstance(value, (int, float)) or not math.isfinite(value):
                raise InvalidBoundsError(f"{name} must be a finite number, got {value!r}")
        if not (-90.0 <= self.south <= 90.0 and -90.0 <= self.north <= 90.0):
            raise InvalidBoundsError("Latitude must be within [-90, 90]")
        if not (-180.0 <= self.west <= 180.0 and -180.0 <= self.east <= 180.0):
            raise InvalidBoundsError("Longitude must be within [-180, 180]")
        if self.south > self.north:
            raise InvalidBoundsError("South latitude is greater than north latitude")
        if self.west > self.east:
            raise InvalidBoundsError(
                "Bounding boxes crossing the antimeridian are not supported; "
                "split the query at 180 degrees"
            )

    @classmethod
    def from_corners(cls, sw_lat: float, sw_lng: float, ne_lat: float, ne_lng: float) -> "BoundingBox":
        return cls(south=sw_lat, west=sw_lng, north=ne_lat, east=ne_lng)

    def contains(self, lat: float, lng: float) -> bool:
        """Check if a point falls within this bounding box (edges included)."""
        return self.south <= lat <= self.north and self.west <= lng <= self.east

    def as_overpass(self) -> str:
        return f"{self.south},{self.west},{self.north},{self.east}"


@dataclass(frozen=True)
class StructuredQuery:
    category: Category
    bbox: BoundingBox

    def to_overpass_ql(self) -> str:
        return render_overpass_ql(self)


def render_overpass_ql(query: StructuredQuery) -> str:
    spec = get_spec(query.category)
    area = query.bbox.as_overpass()
    clauses = []
    for selector in spec.selectors:
        filters = "".join(selector.filters)
        for element_type in selector.element_types:
            clauses.append(f"  {element_type}{filters}({area});")
    body = "\n".join(clauses)
    return f"[out:json][timeout:{QUERY_TIMEOUT_S}];\n(\n{body}\n);\nout {spec.output};"
