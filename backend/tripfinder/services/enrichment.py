"""Enrichment — secondary-source rating and amenities per discovered hotel."""

import asyncio
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from tripfinder.config import settings
from tripfinder.exceptions import ProviderError, RateLimited
from tripfinder.services.candidate_discovery import Candidate
from tripfinder.services.json_path import DECIMAL_SENTINEL, UNKNOWN, extract_decimal, extract_list
from tripfinder.services.places_client import PlacesClient, places_client
from tripfinder.services.retry import Backoff, check_cancelled, gather_or_cancel

logger = logging.getLogger(__name__)


@dataclass
class EnrichmentRecord:
    rating: float = 0.0
    amenities: list[str] = field(default_factory=list)


def parse_place_details(result: dict) -> EnrichmentRecord:
    rating = extract_decimal(result, "rating")
    return EnrichmentRecord(
        rating=0.0 if rating == DECIMAL_SENTINEL else float(rating),
        amenities=[t for t in extract_list(result, "types") if isinstance(t, str)],
    )


class EnrichmentClient:
    """Resolves each hotel name to a place, then fetches that place's rating and types.

    Lookups are independent per hotel. All name lookups run concurrently,
    then all detail fetches, each bounded by a semaphore. A hotel that
    cannot be resolved or fetched is simply absent from the result.
    """

    def __init__(
        self,
        places: PlacesClient | None = None,
        backoff: Backoff | None = None,
        concurrency: int | None = None,
    ):
        self._places = places or places_client
        self._backoff = backoff or Backoff()
        self._concurrency = concurrency or settings.enrichment_concurrency

    async def enrich(
        self,
        candidates: Iterable[Candidate],
        cancel_event: asyncio.Event | None = None,
    ) -> dict[str, EnrichmentRecord]:
        if not self._places.enabled:
            logger.info("Places API key not configured, skipping enrichment")
            return {}

        lookups: dict[str, str] = {}
        for c in candidates:
            if c.display_name and c.display_name != UNKNOWN:
                lookups.setdefault(c.id, c.display_name)
        if not lookups:
            return {}

        semaphore = asyncio.Semaphore(self._concurrency)

        place_ids = await gather_or_cancel(*(
            self._resolve(hotel_id, name, semaphore, cancel_event)
            for hotel_id, name in lookups.items()
        ))
        resolved = {
            hotel_id: place_id
            for hotel_id, place_id in zip(lookups, place_ids)
            if place_id
        }

        records = await gather_or_cancel(*(
            self._details(hotel_id, place_id, semaphore, cancel_event)
            for hotel_id, place_id in resolved.items()
        ))
        enrichment = {
            hotel_id: record
            for hotel_id, record in zip(resolved, records)
            if record is not None
        }

        logger.info(
            f"Enrichment: {len(lookups)} hotels looked up, {len(resolved)} matched, "
            f"{len(enrichment)} enriched"
        )
        return enrichment

    async def _resolve(
        self,
        hotel_id: str,
        name: str,
        semaphore: asyncio.Semaphore,
        cancel_event: asyncio.Event | None,
    ) -> str | None:
        check_cancelled(cancel_event, "enrichment")
        async with semaphore:
            try:
                place_id = await self._places.find_place_id(name)
            except (ProviderError, RateLimited) as e:
                logger.warning(f"Place lookup failed for {hotel_id} ({name}): {e}")
                return None
        if place_id is None:
            logger.info(f"No place match for {hotel_id} ({name})")
        return place_id

    async def _details(
        self,
        hotel_id: str,
        place_id: str,
        semaphore: asyncio.Semaphore,
        cancel_event: asyncio.Event | None,
    ) -> EnrichmentRecord | None:
        async def fetch():
            async with semaphore:
                return await self._places.get_place_details(place_id)

        try:
            result = await self._backoff.run(
                fetch, label=f"place details {hotel_id}", cancel_event=cancel_event
            )
        except RateLimited:
            logger.warning(f"Place details for {hotel_id} still rate limited, skipping")
            return None
        except ProviderError as e:
            logger.warning(f"Place details failed for {hotel_id}: {e}")
            return None

        if result is None:
            return None
        return parse_place_details(result)
