"""Flight search service — Amadeus flight offers flattened to one row per itinerary."""

import asyncio
import logging
import math
import re
from dataclasses import asdict, dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any

from tripfinder.exceptions import ProviderError, RateLimited, ValidationError
from tripfinder.services.amadeus_client import AmadeusClient, amadeus_client
from tripfinder.services.cache_service import CacheService, cache_service
from tripfinder.services.json_path import (
    extract_decimal,
    extract_int,
    extract_list,
    extract_str,
    resolve,
)
from tripfinder.services.retry import Backoff

logger = logging.getLogger(__name__)

NOT_AVAILABLE = "N/A"
TRAVEL_CLASSES = {"ECONOMY", "PREMIUM_ECONOMY", "BUSINESS", "FIRST"}
MAX_ADULTS = 9

_IATA = re.compile(r"^[A-Z]{3}$")
_AIRLINE_CODES = re.compile(r"^[A-Z0-9]{2}(,[A-Z0-9]{2})*$")


@dataclass(frozen=True)
class FlightSearchRequest:
    origin: str
    destination: str
    departure_date: date
    return_date: date | None = None
    adults: int = 1
    travel_class: str | None = None
    non_stop: bool | None = None
    max_price: float | None = None
    included_airline_codes: str | None = None
    excluded_airline_codes: str | None = None

    def validate(self) -> None:
        for label, code in (("origin", self.origin), ("destination", self.destination)):
            if not _IATA.match(code or ""):
                raise ValidationError(f"Invalid {label} airport code '{code}', expected 3 letters (e.g. MEL)")
        if self.origin == self.destination:
            raise ValidationError("origin and destination must differ")
        if self.return_date is not None and self.return_date < self.departure_date:
            raise ValidationError("return_date must not be before departure_date")
        if not 1 <= self.adults <= MAX_ADULTS:
            raise ValidationError(f"adults must be between 1 and {MAX_ADULTS}")
        if self.travel_class is not None and self.travel_class not in TRAVEL_CLASSES:
            raise ValidationError(f"travel_class must be one of {', '.join(sorted(TRAVEL_CLASSES))}")
        if self.max_price is not None and self.max_price <= 0:
            raise ValidationError("max_price must be positive")
        if self.included_airline_codes and self.excluded_airline_codes:
            raise ValidationError("Use either included or excluded airline codes, not both")
        for codes in (self.included_airline_codes, self.excluded_airline_codes):
            if codes and not _AIRLINE_CODES.match(codes):
                raise ValidationError(f"Invalid airline code list '{codes}'")

    def to_params(self) -> dict[str, Any]:
        params: dict[str, Any] = {
            "originLocationCode": self.origin,
            "destinationLocationCode": self.destination,
            "departureDate": self.departure_date.isoformat(),
            "adults": self.adults,
        }
        if self.return_date:
            params["returnDate"] = self.return_date.isoformat()
        if self.travel_class:
            params["travelClass"] = self.travel_class
        if self.non_stop is not None:
            params["nonStop"] = "true" if self.non_stop else "false"
        if self.max_price is not None:
            params["maxPrice"] = math.ceil(self.max_price)
        if self.included_airline_codes:
            params["includedAirlineCodes"] = self.included_airline_codes
        if self.excluded_airline_codes:
            params["excludedAirlineCodes"] = self.excluded_airline_codes
        return params

    def cache_key(self) -> str:
        return ":".join(f"{k}={v}" for k, v in sorted(self.to_params().items()))


@dataclass
class FlightOffer:
    departure_iata_code: str
    departure_terminal: str
    departure_time: str
    arrival_iata_code: str
    arrival_terminal: str
    arrival_time: str
    price: Decimal
    currency: str
    duration: str
    number_of_stops: int
    connection_airports: list[str] = field(default_factory=list)
    checked_bags: str = NOT_AVAILABLE
    cabin_bags: str = NOT_AVAILABLE

    def to_dict(self) -> dict:
        data = asdict(self)
        data["price"] = str(self.price)
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "FlightOffer":
        return cls(**{**data, "price": Decimal(data["price"])})


def _bag_allowance(bags: Any) -> str:
    weight = extract_int(bags, "weight")
    unit = extract_str(bags, "weightUnit", default="")
    if weight >= 0 and unit:
        return f"{weight} {unit}"
    quantity = extract_int(bags, "quantity")
    if quantity >= 0:
        return f"{quantity} PC"
    return NOT_AVAILABLE


def parse_flight_offers(payload: Any) -> list[FlightOffer]:
    """One FlightOffer per itinerary; offers or itineraries missing required blocks are skipped."""
    flights = []
    for offer in extract_list(payload, "data"):
        if not isinstance(offer, dict) or not isinstance(offer.get("price"), dict):
            logger.info("Flight offer without price, skipping")
            continue

        price = extract_decimal(offer, "price.total")
        currency = extract_str(offer, "price.currency")

        # Bag allowances come from the first segment of the first traveler
        fare_segment = resolve(offer, "travelerPricings[0].fareDetailsBySegment[0]")
        checked_bags = _bag_allowance(resolve(fare_segment, "includedCheckedBags"))
        cabin_bags = _bag_allowance(resolve(fare_segment, "includedCabinBags"))

        for itinerary in extract_list(offer, "itineraries"):
            segments = [s for s in extract_list(itinerary, "segments") if isinstance(s, dict)]
            if not segments:
                continue
            first, last = segments[0], segments[-1]
            departure_code = extract_str(first, "departure.iataCode", default="")
            arrival_code = extract_str(last, "arrival.iataCode", default="")
            if not departure_code or not arrival_code:
                logger.info("Itinerary without airport codes, skipping")
                continue

            flights.append(FlightOffer(
                departure_iata_code=departure_code,
                departure_terminal=extract_str(first, "departure.terminal", default=NOT_AVAILABLE),
                departure_time=extract_str(first, "departure.at"),
                arrival_iata_code=arrival_code,
                arrival_terminal=extract_str(last, "arrival.terminal", default=NOT_AVAILABLE),
                arrival_time=extract_str(last, "arrival.at"),
                price=price,
                currency=currency,
                duration=extract_str(itinerary, "duration"),
                number_of_stops=len(segments) - 1,
                connection_airports=[extract_str(s, "arrival.iataCode") for s in segments[:-1]],
                checked_bags=checked_bags,
                cabin_bags=cabin_bags,
            ))
    return flights


class FlightSearchService:
    def __init__(
        self,
        client: AmadeusClient | None = None,
        backoff: Backoff | None = None,
        cache: CacheService | None = None,
    ):
        self._client = client or amadeus_client
        self._backoff = backoff or Backoff()
        self._cache = cache

    async def search_flights(
        self,
        request: FlightSearchRequest,
        cancel_event: asyncio.Event | None = None,
    ) -> list[FlightOffer]:
        """Search flight offers. Provider failures yield an empty list; bad input raises."""
        request.validate()

        if self._cache is not None:
            cached = await self._cache.get_flight_offers(request.cache_key())
            if cached is not None:
                return [FlightOffer.from_dict(f) for f in cached]

        route = f"{request.origin}->{request.destination}"
        try:
            payload = await self._backoff.run(
                lambda: self._client.flight_offers(request.to_params()),
                label=f"flight offers {route}",
                cancel_event=cancel_event,
            )
        except (ProviderError, RateLimited) as e:
            logger.error(f"Amadeus flight search failed for {route}: {e}")
            return []

        flights = parse_flight_offers(payload)
        logger.info(f"Flight search {route} on {request.departure_date}: {len(flights)} itineraries")

        if flights and self._cache is not None:
            await self._cache.set_flight_offers(request.cache_key(), [f.to_dict() for f in flights])
        return flights


flight_service = FlightSearchService(cache=cache_service)
