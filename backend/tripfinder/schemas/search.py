from datetime import date
from decimal import Decimal

from pydantic import BaseModel, field_validator

from tripfinder.config import settings
from tripfinder.services.batch_fetcher import StayRequest
from tripfinder.services.candidate_discovery import GeoQuery
from tripfinder.services.flight_service import FlightSearchRequest as FlightQuery


class HotelSearchRequest(BaseModel):
    latitude: float | None = None
    longitude: float | None = None
    radius_km: float | None = None
    city_code: str | None = None
    check_in: date
    check_out: date
    rooms: int = 1
    adults: int = 1

    @field_validator("city_code")
    @classmethod
    def _upper_city(cls, v: str | None) -> str | None:
        return v.strip().upper() if v else None

    def to_query(self) -> GeoQuery:
        radius = self.radius_km
        if radius is None and self.city_code is None:
            radius = settings.default_search_radius_km
        return GeoQuery(
            latitude=self.latitude,
            longitude=self.longitude,
            radius_km=radius,
            city_code=self.city_code,
        )

    def to_stay(self) -> StayRequest:
        return StayRequest(
            check_in=self.check_in,
            check_out=self.check_out,
            rooms=self.rooms,
            adults=self.adults,
        )


class OfferResponse(BaseModel):
    hotel_id: str
    name: str
    price: Decimal | None
    currency: str
    available: bool | None
    location: str
    rating: float
    amenities: list[str]

    model_config = {"from_attributes": True}


class HotelSearchResponse(BaseModel):
    data: list[OfferResponse]


class FlightSearchRequest(BaseModel):
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

    @field_validator("origin", "destination", "travel_class")
    @classmethod
    def _upper(cls, v: str | None) -> str | None:
        return v.strip().upper() if v else v

    @field_validator("included_airline_codes", "excluded_airline_codes")
    @classmethod
    def _airline_codes(cls, v: str | None) -> str | None:
        return v.upper().replace(" ", "") if v else None

    def to_query(self) -> FlightQuery:
        return FlightQuery(**self.model_dump())


class FlightOfferResponse(BaseModel):
    departure_iata_code: str
    departure_terminal: str
    departure_time: str
    arrival_iata_code: str
    arrival_terminal: str
    arrival_time: str
    price: Decimal | None
    currency: str
    duration: str
    number_of_stops: int
    connection_airports: list[str]
    checked_bags: str
    cabin_bags: str

    model_config = {"from_attributes": True}


class FlightSearchResponse(BaseModel):
    data: list[FlightOfferResponse]
