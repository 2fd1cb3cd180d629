"""
Factory functions for Overpass elements, amenities and review payloads,
plus canned Overpass transports.
"""

import json
from typing import Any

import httpx

from services.amenities.domain import Amenity, Category

ADMIN_SECRET = "b7e1c2d3a4f5b7e1c2d3a4f5b7e1c2d3a4f5b7e1c2d3a4f5b7e1c2d3a4f5b7e1"
PRIMARY_URL = "https://overpass.test/api/interpreter"
FALLBACK_URL = "https://overpass-mirror.test/api/interpreter"


def make_node(osm_id: int = 1, lat: float = 37.77, lon: float = -122.42, **tags: str) -> dict:
    return {"type": "node", "id": osm_id, "lat": lat, "lon": lon, "tags": dict(tags)}


def make_way(osm_id: int = 1, **extra: Any) -> dict:
    element = {"type": "way", "id": osm_id, "tags": extra.pop("tags", {})}
    element.update(extra)
    return element


def make_amenity(external_id: str = "node_1", **overrides: Any) -> Amenity:
    base = {
        "externalId": external_id,
        "category": Category.toilet,
        "name": "Public Bathroom",
        "latitude": 37.77,
        "longitude": -122.42,
        "attributes": {"hasFee": None, "wheelchairAccessible": True},
        "details": {"openingHours": "24/7"},
        "rawTags": {"amenity": "toilets"},
    }
    base.update(overrides)
    return Amenity(**base)


def make_review_payload(amenity_id: int, **overrides: Any) -> dict:
    base = {
        "amenityId": amenity_id,
        "nickname": "Sam",
        "cleanlinessRating": 4,
        "hasToiletPaper": True,
        "hasSoap": None,
        "handDryerType": "paper",
        "comments": "Clean enough",
    }
    base.update(overrides)
    return base


def elements_response(elements: list[dict]) -> httpx.Response:
    return httpx.Response(200, content=json.dumps({"elements": elements}).encode())


def overpass_transport(*responses: httpx.Response | Exception) -> tuple[httpx.MockTransport, list[str]]:
    """MockTransport answering each POST with the next canned response; records URLs hit."""
    queue = list(responses)
    calls: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(str(request.url))
        item = queue.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    return httpx.MockTransport(handler), calls
