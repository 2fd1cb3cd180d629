"""
Ingestion pipeline: geodata client -> tag normalizer -> amenity store.

Idempotent: re-running for the same box upserts by externalId, so the
store ends up with one record per source element.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from services.amenities.domain import Amenity, Category
from services.amenities.geodata.client import OverpassClient
from services.amenities.geodata.normalizer import normalize
from services.amenities.geodata.query import BoundingBox, StructuredQuery
from services.amenities.store.base import Store

logger = logging.getLogger(__name__)


@dataclass
class IngestResult:
    category: Category
    fetched: int = 0
    stored: list[Amenity] = field(default_factory=list)

    @property
    def dropped(self) -> int:
        return self.fetched - len(self.stored)


class AmenityIngestor:

    def __init__(self, client: OverpassClient, store: Store) -> None:
        self.client = client
        self.store = store

    async def ingest(self, category: Category, bbox: BoundingBox) -> IngestResult:
        """
        Fetch, normalize and upsert every amenity of `category` inside `bbox`.

        Raises GeodataUnavailableError when every endpoint fails; nothing is
        written in that case.
        """
        elements = await self.client.fetch(StructuredQuery(category=category, bbox=bbox))
        result = IngestResult(category=category, fetched=len(elements))

        for amenity in normalize(elements, category):
            result.stored.append(await self.store.upsert(amenity))

        logger.info(
            "Ingested %d %s amenities in %s (%d elements fetched, %d dropped)",
            len(result.stored), category.value, bbox.as_overpass(),
            result.fetched, result.dropped,
        )
        return result
