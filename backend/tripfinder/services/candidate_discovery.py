"""Candidate discovery — geographic query to the hotels Amadeus knows about there."""

import asyncio
import logging
import re
from dataclasses import dataclass
from typing import Any

from tripfinder.exceptions import NoCandidatesError, ParseError, ValidationError
from tripfinder.services.amadeus_client import AmadeusClient, amadeus_client
from tripfinder.services.json_path import UNKNOWN, extract_list, extract_str
from tripfinder.services.retry import Backoff

logger = logging.getLogger(__name__)

_CITY_CODE = re.compile(r"^[A-Z]{3}$")
MAX_RADIUS_KM = 300


@dataclass(frozen=True)
class Candidate:
    """A discovered hotel: provider id plus the region scope its offers are priced in."""
    id: str
    region_code: str = UNKNOWN
    display_name: str = UNKNOWN


@dataclass(frozen=True)
class GeoQuery:
    """Either (latitude, longitude, radius_km) or city_code, never both."""
    latitude: float | None = None
    longitude: float | None = None
    radius_km: float | None = None
    city_code: str | None = None

    @property
    def uses_geocode(self) -> bool:
        return self.city_code is None

    def validate(self) -> None:
        geo = (self.latitude, self.longitude, self.radius_km)
        if self.city_code is not None:
            if any(v is not None for v in geo):
                raise ValidationError("Provide either coordinates or a city code, not both")
            if not _CITY_CODE.match(self.city_code):
                raise ValidationError(f"Invalid city code '{self.city_code}', expected 3 letters (e.g. PAR)")
            return

        if any(v is None for v in geo):
            raise ValidationError("Provide latitude, longitude and radius, or a city code")
        if not -90 <= self.latitude <= 90:
            raise ValidationError(f"Latitude {self.latitude} out of range")
        if not -180 <= self.longitude <= 180:
            raise ValidationError(f"Longitude {self.longitude} out of range")
        if not 0 < self.radius_km <= MAX_RADIUS_KM:
            raise ValidationError(f"Radius must be between 0 and {MAX_RADIUS_KM} km")

    def cache_key(self) -> str:
        if self.uses_geocode:
            return f"geo:{self.latitude:.4f}:{self.longitude:.4f}:{self.radius_km:g}"
        return f"city:{self.city_code}"


def parse_candidates(payload: Any) -> list[Candidate]:
    """Extract candidates from a hotel-list payload.

    Entries without a string hotelId are skipped. Ids are unique in the
    result; a repeated id keeps its first occurrence.
    """
    candidates: dict[str, Candidate] = {}
    for entry in extract_list(payload, "data"):
        hotel_id = extract_str(entry, "hotelId", default="")
        if not hotel_id:
            logger.info("Skipping hotel entry without hotelId")
            continue
        if hotel_id in candidates:
            logger.warning(f"Duplicate hotelId {hotel_id} in discovery response, keeping first")
            continue
        candidates[hotel_id] = Candidate(
            id=hotel_id,
            region_code=extract_str(entry, "iataCode"),
            display_name=extract_str(entry, "name"),
        )
    return list(candidates.values())


class CandidateDiscovery:
    def __init__(self, client: AmadeusClient | None = None, backoff: Backoff | None = None):
        self._client = client or amadeus_client
        self._backoff = backoff or Backoff()

    async def discover(
        self, query: GeoQuery, cancel_event: asyncio.Event | None = None
    ) -> list[Candidate]:
        """Find candidate hotels for a query.

        Raises ValidationError before any network call on bad input,
        NoCandidatesError when the provider finds nothing, ParseError when
        the payload is not a JSON object, and ProviderError / RateLimited
        when the lookup itself fails.
        """
        query.validate()

        if query.uses_geocode:
            call = lambda: self._client.hotels_by_geocode(
                query.latitude, query.longitude, query.radius_km
            )
        else:
            call = lambda: self._client.hotels_by_city(query.city_code)

        payload = await self._backoff.run(call, label="hotel discovery", cancel_event=cancel_event)
        if not isinstance(payload, dict):
            raise ParseError(f"Unexpected hotel discovery payload: {type(payload).__name__}")

        candidates = parse_candidates(payload)
        if not candidates:
            raise NoCandidatesError(f"No hotels found for {query.cache_key()}")

        logger.info(f"Discovered {len(candidates)} hotels for {query.cache_key()}")
        return candidates
