"""
Salla Admin API client.

Only the read calls needed to relay store data to the spreadsheet client are
implemented. Every failure degrades to an empty result so a slow or broken
upstream never hangs the caller.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

from salla_relay.core.config import SallaSettings

logger = logging.getLogger(__name__)


class SallaApiClient:
    """Fetch collections from the Salla Admin API with a bearer token."""

    def __init__(
        self,
        settings: SallaSettings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._base_url = settings.api_base_url
        self._timeout = settings.api_timeout_seconds
        self._page_size = settings.api_page_size
        self._transport = transport

    async def list_resource(self, resource: str, access_token: str) -> List[Dict[str, Any]]:
        """Return the ``data`` list of ``GET /{resource}`` or ``[]`` on any failure."""
        url = f"{self._base_url}/{resource}"
        headers = {
            "Authorization": f"Bearer {access_token}",
            "Accept": "application/json",
        }
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                response = await client.get(
                    url, params={"per_page": self._page_size}, headers=headers
                )
        except httpx.TimeoutException:
            logger.warning("Salla API request timed out for %s", resource)
            return []
        except httpx.HTTPError as exc:
            logger.warning("Salla API request failed for %s: %s", resource, exc.__class__.__name__)
            return []

        if response.status_code != httpx.codes.OK:
            logger.warning(
                "Salla API error for %s: status %s", resource, response.status_code
            )
            return []

        try:
            payload = response.json()
        except ValueError:
            logger.warning("Salla API returned invalid JSON for %s", resource)
            return []

        data = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(data, list):
            logger.warning("Salla API response for %s has no data list", resource)
            return []
        return [item for item in data if isinstance(item, dict)]


__all__ = ["SallaApiClient"]
