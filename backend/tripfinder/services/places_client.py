"""Google Places client — text search to place id, then place details."""

import logging
from typing import Any

import httpx

from tripfinder.config import settings
from tripfinder.exceptions import ProviderError, RateLimited

logger = logging.getLogger(__name__)

# Body-level statuses; Places answers HTTP 200 for most of these
_RATE_LIMIT_STATUSES = {"OVER_QUERY_LIMIT"}
_EMPTY_STATUSES = {"ZERO_RESULTS", "NOT_FOUND"}


class PlacesClient:
    """Adapter for the Google Places web service."""

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        self._api_key = api_key if api_key is not None else settings.google_places_api_key
        self._base_url = base_url or settings.google_places_base_url
        self._client = http_client

    @property
    def enabled(self) -> bool:
        return bool(self._api_key)

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                timeout=settings.http_timeout_seconds,
            )
        return self._client

    async def _get(self, path: str, params: dict[str, Any]) -> dict:
        client = await self._get_client()
        try:
            resp = await client.get(path, params={**params, "key": self._api_key})
        except httpx.RequestError as e:
            raise ProviderError(f"Places request to {path} failed: {e}") from e

        if resp.status_code == 429:
            raise RateLimited(f"Places rate limit exceeded on {path}")
        if resp.status_code >= 400:
            raise ProviderError(
                f"Places {path} failed: HTTP {resp.status_code}",
                status_code=resp.status_code,
            )

        try:
            data = resp.json()
        except ValueError as e:
            raise ProviderError(f"Invalid JSON returned from Places {path}") from e
        if not isinstance(data, dict):
            raise ProviderError(f"Unexpected Places {path} payload")

        status = data.get("status", "OK")
        if status in _RATE_LIMIT_STATUSES:
            raise RateLimited(f"Places quota exceeded on {path}")
        if status != "OK" and status not in _EMPTY_STATUSES:
            raise ProviderError(f"Places {path} returned status {status}")
        return data

    async def find_place_id(self, name: str) -> str | None:
        """Resolve a hotel name to a place id. First match wins."""
        data = await self._get(
            "/findplacefromtext/json",
            {"input": name, "inputtype": "textquery", "fields": "place_id"},
        )
        candidates = data.get("candidates")
        if not isinstance(candidates, list) or not candidates:
            return None
        first = candidates[0]
        place_id = first.get("place_id") if isinstance(first, dict) else None
        return place_id if isinstance(place_id, str) and place_id else None

    async def get_place_details(self, place_id: str) -> dict | None:
        """Return the ``result`` object holding rating and types, if any."""
        data = await self._get(
            "/details/json",
            {"place_id": place_id, "fields": "rating,types"},
        )
        result = data.get("result")
        return result if isinstance(result, dict) else None

    async def close(self):
        if self._client:
            await self._client.aclose()
            self._client = None


places_client = PlacesClient()
