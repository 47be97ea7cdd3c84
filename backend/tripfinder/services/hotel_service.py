"""Hotel search service — discovery, enrichment and batched offers merged into one result."""

import asyncio
import logging

from tripfinder.config import settings
from tripfinder.exceptions import Cancelled, NoCandidatesError, ParseError, ProviderError, RateLimited
from tripfinder.services.aggregator import Offer, merge
from tripfinder.services.batch_fetcher import BatchOfferFetcher, StayRequest
from tripfinder.services.cache_service import CacheService, cache_service
from tripfinder.services.candidate_discovery import Candidate, CandidateDiscovery, GeoQuery
from tripfinder.services.enrichment import EnrichmentClient
from tripfinder.services.metadata_repository import HotelMetadataRepository
from tripfinder.services.retry import gather_or_cancel

logger = logging.getLogger(__name__)


class HotelSearchService:
    """Runs the hotel aggregation pipeline.

    A call returns a possibly empty list of offers or raises one of
    ValidationError, AuthError or Cancelled. Provider failures, rate limits
    and malformed payloads shrink the result instead of failing it.
    """

    def __init__(
        self,
        discovery: CandidateDiscovery | None = None,
        enrichment: EnrichmentClient | None = None,
        fetcher: BatchOfferFetcher | None = None,
        cache: CacheService | None = None,
        timeout: float | None = None,
    ):
        self._discovery = discovery or CandidateDiscovery()
        self._enrichment = enrichment or EnrichmentClient()
        self._fetcher = fetcher or BatchOfferFetcher()
        self._cache = cache
        self._timeout = timeout if timeout is not None else settings.search_timeout_seconds

    async def search_hotels(
        self,
        query: GeoQuery,
        stay: StayRequest,
        cancel_event: asyncio.Event | None = None,
        repository: HotelMetadataRepository | None = None,
    ) -> list[Offer]:
        query.validate()
        stay.validate()

        if self._cache is not None:
            cached = await self._cache.get_hotel_offers(query.cache_key(), stay.cache_key())
            if cached is not None:
                logger.info(f"Hotel search cache hit for {query.cache_key()}")
                return [Offer.from_dict(o) for o in cached]

        try:
            offers = await asyncio.wait_for(
                self._run(query, stay, cancel_event, repository),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError as e:
            raise Cancelled(f"Hotel search exceeded {self._timeout:g}s") from e

        if offers and self._cache is not None:
            await self._cache.set_hotel_offers(
                query.cache_key(), stay.cache_key(), [o.to_dict() for o in offers]
            )
        return offers

    async def _run(
        self,
        query: GeoQuery,
        stay: StayRequest,
        cancel_event: asyncio.Event | None,
        repository: HotelMetadataRepository | None,
    ) -> list[Offer]:
        try:
            candidates = await self._discovery.discover(query, cancel_event)
        except NoCandidatesError:
            logger.info(f"No hotels found for {query.cache_key()}")
            return []
        except (ProviderError, ParseError, RateLimited) as e:
            logger.error(f"Hotel discovery failed for {query.cache_key()}: {e}")
            return []

        if repository is not None:
            await self._record_candidates(repository, candidates)

        # Enrichment hits a different provider, so it overlaps the offer batches.
        # A fatal error from either side cancels the other.
        enrichment, raw_entries = await gather_or_cancel(
            self._enrichment.enrich(candidates, cancel_event),
            self._fetcher.fetch_offers(candidates, stay, cancel_event),
        )

        offers = merge(raw_entries, enrichment)
        logger.info(
            f"Hotel search {query.cache_key()}: {len(candidates)} candidates, "
            f"{len(offers)} offers, {len(enrichment)} enriched"
        )
        return offers

    async def _record_candidates(
        self, repository: HotelMetadataRepository, candidates: list[Candidate]
    ) -> None:
        try:
            await repository.save_hotels({c.id: c.display_name for c in candidates})
        except Exception as e:
            logger.warning(f"Could not record discovered hotels: {e}")

    async def backfill_enrichment(self, repository: HotelMetadataRepository) -> int:
        """Enrich stored hotels that have no rating or amenities yet.

        Returns the number of hotels saved.
        """
        hotels = await repository.get_entities_missing_enrichment()
        if not hotels:
            return 0

        candidates = [Candidate(id=hotel_id, display_name=name) for hotel_id, name in hotels]
        records = await self._enrichment.enrich(candidates)
        if records:
            await repository.save_enrichment(records)
        logger.info(f"Enrichment backfill: {len(records)}/{len(hotels)} hotels enriched")
        return len(records)


hotel_service = HotelSearchService(cache=cache_service)
