"""Amadeus API client — transport for hotel discovery, hotel offers and flight offers."""

import logging
from collections.abc import Sequence
from typing import Any

import httpx

from tripfinder.config import settings
from tripfinder.exceptions import ProviderError, RateLimited
from tripfinder.services.token_manager import TokenManager, token_manager

logger = logging.getLogger(__name__)


class AmadeusClient:
    """Adapter for Amadeus Self-Service API.

    Maps transport failures onto the typed errors: 429 becomes RateLimited,
    any other non-success status or an unreadable body becomes ProviderError.
    The bearer token travels as a per-request header; the shared httpx client
    is never mutated. A 401 drops the cached token and the call is retried
    once with a fresh one.
    """

    def __init__(
        self,
        tokens: TokenManager | None = None,
        base_url: str | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        self._tokens = tokens or token_manager
        self._base_url = base_url or settings.amadeus_base_url
        self._client = http_client

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                timeout=settings.http_timeout_seconds,
            )
        return self._client

    async def get(self, path: str, params: dict[str, Any]) -> Any:
        """Authenticated GET returning the parsed JSON body."""
        resp = await self._send(path, params)
        if resp.status_code == 401:
            logger.warning(f"Amadeus rejected token on {path}, re-authenticating")
            self._tokens.invalidate()
            resp = await self._send(path, params)

        if resp.status_code == 429:
            raise RateLimited(f"Amadeus rate limit exceeded on {path}")
        if resp.status_code >= 400:
            raise ProviderError(
                f"Amadeus {path} failed: HTTP {resp.status_code}",
                status_code=resp.status_code,
            )

        try:
            return resp.json()
        except ValueError as e:
            raise ProviderError(f"Invalid JSON returned from Amadeus {path}") from e

    async def _send(self, path: str, params: dict[str, Any]) -> httpx.Response:
        credential = await self._tokens.get_token()
        client = await self._get_client()
        try:
            return await client.get(
                path,
                params=params,
                headers={"Authorization": credential.authorization},
            )
        except httpx.RequestError as e:
            raise ProviderError(f"Amadeus request to {path} failed: {e}") from e

    async def hotels_by_geocode(
        self, latitude: float, longitude: float, radius_km: float
    ) -> Any:
        return await self.get(
            "/v1/reference-data/locations/hotels/by-geocode",
            {
                "latitude": latitude,
                "longitude": longitude,
                "radius": radius_km,
                "radiusUnit": "KM",
            },
        )

    async def hotels_by_city(self, city_code: str) -> Any:
        return await self.get(
            "/v1/reference-data/locations/hotels/by-city",
            {"cityCode": city_code},
        )

    async def hotel_offers(
        self,
        hotel_ids: Sequence[str],
        check_in: str,
        check_out: str,
        rooms: int,
        adults: int,
    ) -> Any:
        return await self.get(
            "/v3/shopping/hotel-offers",
            {
                "hotelIds": ",".join(hotel_ids),
                "checkInDate": check_in,
                "checkOutDate": check_out,
                "roomQuantity": rooms,
                "adults": adults,
            },
        )

    async def flight_offers(self, params: dict[str, Any]) -> Any:
        return await self.get("/v2/shopping/flight-offers", params)

    async def close(self):
        if self._client:
            await self._client.aclose()
            self._client = None


amadeus_client = AmadeusClient()
