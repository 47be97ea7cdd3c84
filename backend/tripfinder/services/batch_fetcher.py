"""Batched hotel-offer fetching with rate-limit backoff and per-id degradation."""

import asyncio
import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date
from typing import Any

from tripfinder.config import settings
from tripfinder.exceptions import ProviderError, RateLimited, ValidationError
from tripfinder.services.amadeus_client import AmadeusClient, amadeus_client
from tripfinder.services.candidate_discovery import Candidate
from tripfinder.services.json_path import extract_list
from tripfinder.services.retry import Backoff, check_cancelled

logger = logging.getLogger(__name__)

# Amadeus rejects more hotelIds than this in one offers request
MAX_IDS_PER_REQUEST = 20
MAX_OCCUPANCY = 9


@dataclass(frozen=True)
class StayRequest:
    check_in: date
    check_out: date
    rooms: int = 1
    adults: int = 1

    def validate(self) -> None:
        if self.check_in >= self.check_out:
            raise ValidationError("check_in must be before check_out")
        if not 1 <= self.rooms <= MAX_OCCUPANCY:
            raise ValidationError(f"rooms must be between 1 and {MAX_OCCUPANCY}")
        if not 1 <= self.adults <= MAX_OCCUPANCY:
            raise ValidationError(f"adults must be between 1 and {MAX_OCCUPANCY}")

    def cache_key(self) -> str:
        return f"{self.check_in.isoformat()}:{self.check_out.isoformat()}:{self.rooms}:{self.adults}"


def group_by_region(candidates: Iterable[Candidate]) -> dict[str, list[str]]:
    """Hotel ids per region code, in first-seen order, without repeats."""
    groups: dict[str, dict[str, None]] = {}
    for c in candidates:
        groups.setdefault(c.region_code, {})[c.id] = None
    return {region: list(ids) for region, ids in groups.items()}


def chunked(items: Sequence[str], size: int) -> list[list[str]]:
    return [list(items[i:i + size]) for i in range(0, len(items), size)]


def parse_offer_entries(payload: Any) -> list[dict]:
    """Keep the entries that carry a usable ``hotel`` object."""
    entries = []
    for entry in extract_list(payload, "data"):
        if not isinstance(entry, dict) or not isinstance(entry.get("hotel"), dict):
            logger.info("Hotel entry is missing, skipping")
            continue
        entries.append(entry)
    return entries


class BatchOfferFetcher:
    """Fetches raw offer entries for candidates, one region group at a time.

    Chunks are sent strictly one after another since the provider rate
    limit is shared by the whole run. A rate-limited chunk is retried with
    backoff and then dropped. A chunk failing any other way is re-sent as
    one request per hotel id, and each of those is tried once.
    """

    def __init__(
        self,
        client: AmadeusClient | None = None,
        backoff: Backoff | None = None,
        chunk_size: int | None = None,
    ):
        self._client = client or amadeus_client
        self._backoff = backoff or Backoff()
        self.chunk_size = chunk_size or settings.offer_chunk_size
        if not 1 <= self.chunk_size <= MAX_IDS_PER_REQUEST:
            raise ValueError(f"chunk_size must be between 1 and {MAX_IDS_PER_REQUEST}")

    async def fetch_offers(
        self,
        candidates: Iterable[Candidate],
        stay: StayRequest,
        cancel_event: asyncio.Event | None = None,
    ) -> list[dict]:
        entries: list[dict] = []
        for region_code, hotel_ids in group_by_region(candidates).items():
            chunks = chunked(hotel_ids, self.chunk_size)
            logger.info(f"Fetching offers for {len(hotel_ids)} hotels in {region_code} ({len(chunks)} chunks)")
            for chunk in chunks:
                entries.extend(await self._fetch_chunk(region_code, chunk, stay, cancel_event))
        return entries

    async def _request(self, hotel_ids: Sequence[str], stay: StayRequest) -> Any:
        return await self._client.hotel_offers(
            hotel_ids,
            check_in=stay.check_in.isoformat(),
            check_out=stay.check_out.isoformat(),
            rooms=stay.rooms,
            adults=stay.adults,
        )

    async def _fetch_chunk(
        self,
        region_code: str,
        chunk: list[str],
        stay: StayRequest,
        cancel_event: asyncio.Event | None,
    ) -> list[dict]:
        try:
            payload = await self._backoff.run(
                lambda: self._request(chunk, stay),
                label=f"hotel offers {region_code}",
                cancel_event=cancel_event,
            )
        except RateLimited:
            logger.warning(f"Dropping chunk of {len(chunk)} hotels in {region_code} after repeated rate limits")
            return []
        except ProviderError as e:
            logger.warning(f"Batch of {len(chunk)} hotels in {region_code} failed ({e}), retrying one by one")
            return await self._fetch_individually(chunk, stay, cancel_event)

        return parse_offer_entries(payload)

    async def _fetch_individually(
        self,
        hotel_ids: list[str],
        stay: StayRequest,
        cancel_event: asyncio.Event | None,
    ) -> list[dict]:
        entries: list[dict] = []
        for hotel_id in hotel_ids:
            check_cancelled(cancel_event, "hotel offers")
            try:
                payload = await self._request([hotel_id], stay)
            except (ProviderError, RateLimited) as e:
                logger.info(f"Skipping hotel {hotel_id}: {e}")
                continue
            entries.extend(parse_offer_entries(payload))
        return entries
