"""Best-effort IP geolocation used to enrich audit entries.

A lookup never gates anything: callers use `locate`, which degrades to
"Unknown" on any failure. `lookup` exposes the failure for callers that care.
"""

from __future__ import annotations

import asyncio
import ipaddress
import logging
from typing import Any

import httpx

from camrelay.core.settings import settings

logger = logging.getLogger(__name__)

UNKNOWN_LOCATION = "Unknown"


class EnrichmentError(RuntimeError):
    """Raised when a location lookup fails."""


class EnrichmentTimeout(EnrichmentError):
    """Raised when a location lookup exceeds its time budget."""


def is_public_address(origin: str) -> bool:
    """Return True if `origin` is a globally routable IP address."""
    try:
        address = ipaddress.ip_address(origin)
    except ValueError:
        return False
    return address.is_global


def format_location(payload: Any) -> str:
    """Render an ipapi-style response as "city, region, country"."""
    if not isinstance(payload, dict) or not payload.get("city"):
        return UNKNOWN_LOCATION
    return f"{payload['city']}, {payload.get('region')}, {payload.get('country_name')}"


class GeoLocator:
    """Resolves an origin address to a human-readable location."""

    def __init__(
        self,
        url_template: str | None = None,
        timeout_seconds: float | None = None,
        enabled: bool | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.url_template = url_template or settings.geo_lookup_url
        self.timeout_seconds = (
            settings.geo_lookup_timeout_seconds if timeout_seconds is None else timeout_seconds
        )
        self.enabled = settings.geo_lookup_enabled if enabled is None else enabled
        self._client = client
        self._owns_client = client is None
        self._client_lock = asyncio.Lock()

    async def _ensure_client(self) -> httpx.AsyncClient:
        async with self._client_lock:
            if self._client is None:
                self._client = httpx.AsyncClient(timeout=httpx.Timeout(self.timeout_seconds))
        return self._client

    async def lookup(self, origin: str) -> str:
        """Query the geolocation service for `origin`.

        Raises:
            EnrichmentTimeout: The service did not answer in time.
            EnrichmentError: Any other transport or decoding failure.
        """
        client = await self._ensure_client()
        try:
            url = self.url_template.format(ip=origin)
            response = await asyncio.wait_for(client.get(url), timeout=self.timeout_seconds)
            response.raise_for_status()
            payload = response.json()
        except (TimeoutError, httpx.TimeoutException) as exc:
            raise EnrichmentTimeout(f"Geolocation lookup for {origin} timed out") from exc
        except (httpx.HTTPError, ValueError) as exc:
            raise EnrichmentError(f"Geolocation lookup for {origin} failed: {exc}") from exc
        except Exception as exc:
            # Bad URL templates and invalid URLs surface here.
            raise EnrichmentError(
                f"Geolocation lookup for {origin} failed: {type(exc).__name__}: {exc}"
            ) from exc
        return format_location(payload)

    async def locate(self, origin: str) -> str:
        """Return a location for `origin`, or "Unknown" if it cannot be resolved."""
        if not self.enabled or not is_public_address(origin):
            return UNKNOWN_LOCATION
        try:
            return await self.lookup(origin)
        except EnrichmentError as exc:
            logger.debug("Location enrichment degraded: %s", exc)
            return UNKNOWN_LOCATION

    async def close(self) -> None:
        """Close the underlying HTTP client if this locator created it."""
        async with self._client_lock:
            if self._client is not None and self._owns_client:
                await self._client.aclose()
                self._client = None
