"""Aggregator — joins raw offer entries with enrichment records by hotel id."""

import logging
from collections.abc import Iterable, Mapping
from dataclasses import asdict, dataclass, field
from decimal import Decimal

from tripfinder.services.enrichment import EnrichmentRecord
from tripfinder.services.json_path import (
    DECIMAL_SENTINEL,
    UNKNOWN,
    extract_bool,
    extract_decimal,
    extract_str,
)

logger = logging.getLogger(__name__)


@dataclass
class Offer:
    hotel_id: str
    name: str
    price: Decimal  # DECIMAL_SENTINEL when the provider gave no usable price
    currency: str
    available: bool | None
    location: str
    rating: float = 0.0
    amenities: list[str] = field(default_factory=list)

    @property
    def has_price(self) -> bool:
        return self.price != DECIMAL_SENTINEL

    def to_dict(self) -> dict:
        data = asdict(self)
        data["price"] = str(self.price)
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Offer":
        return cls(**{**data, "price": Decimal(data["price"])})


def merge(
    raw_entries: Iterable[dict],
    enrichment: Mapping[str, EnrichmentRecord],
) -> list[Offer]:
    """Build one Offer per raw entry.

    Entries without a matching enrichment record get rating 0.0 and no
    amenities. Duplicate hotel ids are passed through unchanged.
    """
    offers = []
    for entry in raw_entries:
        hotel_id = extract_str(entry, "hotel.hotelId")
        record = enrichment.get(hotel_id) or EnrichmentRecord()
        offers.append(Offer(
            hotel_id=hotel_id,
            name=extract_str(entry, "hotel.name"),
            price=extract_decimal(entry, "offers[0].price.total"),
            currency=extract_str(entry, "offers[0].price.currency"),
            available=extract_bool(entry, "available"),
            location=extract_str(entry, "hotel.cityCode"),
            rating=record.rating,
            amenities=list(record.amenities),
        ))

    enriched = sum(1 for o in offers if o.hotel_id != UNKNOWN and o.hotel_id in enrichment)
    logger.debug(f"Merged {len(offers)} offers, {enriched} with enrichment")
    return offers
