"""Hotel metadata repository — where discovered hotels wait for enrichment."""

import logging
from collections.abc import Mapping
from decimal import Decimal
from typing import Protocol

from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from tripfinder.models.hotel_details import HotelDetails
from tripfinder.services.enrichment import EnrichmentRecord

logger = logging.getLogger(__name__)


class HotelMetadataRepository(Protocol):
    async def get_entities_missing_enrichment(self) -> list[tuple[str, str]]: ...

    async def save_enrichment(self, records: Mapping[str, EnrichmentRecord]) -> None: ...

    async def save_hotels(self, hotels: Mapping[str, str]) -> None: ...


class SqlHotelMetadataRepository:
    """HotelMetadataRepository over the hotel_details table."""

    def __init__(self, db: AsyncSession):
        self._db = db

    async def get_entities_missing_enrichment(self) -> list[tuple[str, str]]:
        """(hotel_id, name) for every hotel without a rating or amenity list."""
        result = await self._db.execute(
            select(HotelDetails.hotel_id, HotelDetails.name).where(
                or_(HotelDetails.rating.is_(None), HotelDetails.amenities.is_(None))
            )
        )
        return [(row.hotel_id, row.name) for row in result.all()]

    async def save_enrichment(self, records: Mapping[str, EnrichmentRecord]) -> None:
        for hotel_id, record in records.items():
            await self._db.execute(
                update(HotelDetails)
                .where(HotelDetails.hotel_id == hotel_id)
                .values(
                    rating=Decimal(str(record.rating)),
                    amenities=list(record.amenities),
                )
            )
        await self._db.commit()
        logger.info(f"Saved enrichment for {len(records)} hotels")

    async def save_hotels(self, hotels: Mapping[str, str]) -> None:
        """Record newly discovered hotels; known ids are left as they are."""
        if not hotels:
            return
        try:
            existing = await self._db.execute(
                select(HotelDetails.hotel_id).where(HotelDetails.hotel_id.in_(list(hotels)))
            )
            known = set(existing.scalars().all())
            new = {hotel_id: name for hotel_id, name in hotels.items() if hotel_id not in known}
            for hotel_id, name in new.items():
                self._db.add(HotelDetails(hotel_id=hotel_id, name=name))
            await self._db.commit()
        except Exception:
            await self._db.rollback()
            raise
        if new:
            logger.info(f"Recorded {len(new)} new hotels for enrichment")
