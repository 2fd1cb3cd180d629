"""
Overpass API client with ordered endpoint failover.

Each query is tried against the configured endpoints in order. Any
transport error, non-2xx response, or malformed payload moves on to the
next endpoint immediately -- these are one-shot interactive requests, so
there is no backoff. Only when every endpoint has failed does the caller
see an error, and that error lists every attempt.

No caching here; callers that want a time-boxed cache wrap fetch().
"""

from __future__ import annotations

import logging
from typing import Any, Optional, Sequence

import httpx

from services.amenities.config import settings
from services.amenities.errors import EndpointFailure, GeodataUnavailableError
from services.amenities.geodata.query import StructuredQuery

logger = logging.getLogger(__name__)

_USER_AGENT = "amenity-finder/0.1"


class OverpassClient:
    """
    Usage:
        async with OverpassClient() as client:
            elements = await client.fetch(StructuredQuery(Category.toilet, bbox))
    """

    def __init__(
        self,
        endpoints: Optional[Sequence[str]] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout_s: Optional[float] = None,
    ) -> None:
        self.endpoints = list(endpoints if endpoints is not None else settings.overpass_urls)
        if len(self.endpoints) < 2:
            raise ValueError("OverpassClient needs at least two endpoints for failover")
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            timeout=timeout_s if timeout_s is not None else settings.overpass_timeout_s,
            headers={"User-Agent": _USER_AGENT},
        )

    async def __aenter__(self) -> "OverpassClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def fetch(self, query: StructuredQuery) -> list[dict[str, Any]]:
        """Return raw Overpass elements for the query, failing over between endpoints."""
        return await self.fetch_ql(query.to_overpass_ql())

    async def fetch_ql(self, ql: str) -> list[dict[str, Any]]:
        failures: list[EndpointFailure] = []

        for url in self.endpoints:
            try:
                elements = await self._post(url, ql)
            except httpx.HTTPError as e:
                reason = f"{type(e).__name__}: {e}"
            except ValueError as e:
                reason = f"Invalid response: {e}"
            else:
                if failures:
                    logger.info(
                        "Overpass query served by fallback %s after %d failure(s)",
                        url, len(failures),
                    )
                return elements

            logger.warning("Overpass endpoint %s failed: %s", url, reason)
            failures.append(EndpointFailure(url=url, reason=reason))

        logger.error("All %d Overpass endpoints failed", len(failures))
        raise GeodataUnavailableError(failures)

    async def _post(self, url: str, ql: str) -> list[dict[str, Any]]:
        # httpx form-encodes `data`, matching Overpass's data=<ql> contract
        response = await self._client.post(url, data={"data": ql})
        if not response.is_success:
            raise httpx.HTTPStatusError(
                f"HTTP {response.status_code}", request=response.request, response=response,
            )

        payload = response.json()
        if not isinstance(payload, dict) or not isinstance(payload.get("elements"), list):
            raise ValueError("payload has no 'elements' list")
        return payload["elements"]
