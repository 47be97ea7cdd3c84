import asyncio

import pytest

from tripfinder.exceptions import Cancelled, ProviderError, RateLimited
from tripfinder.services.candidate_discovery import Candidate
from tripfinder.services.enrichment import EnrichmentClient, EnrichmentRecord, parse_place_details


class FakePlaces:
    """Name -> place id, place id -> list of detail outcomes (consumed per call)."""

    def __init__(self, places=None, details=None, enabled=True):
        self.places = places or {}
        self.details = {k: list(v) for k, v in (details or {}).items()}
        self.enabled = enabled
        self.lookups = []
        self.detail_calls = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def find_place_id(self, name):
        self.lookups.append(name)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        await asyncio.sleep(0)
        self.in_flight -= 1
        outcome = self.places.get(name)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    async def get_place_details(self, place_id):
        self.detail_calls.append(place_id)
        outcome = self.details[place_id].pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def candidates(*pairs):
    return [Candidate(id=i, region_code="SIN", display_name=n) for i, n in pairs]


@pytest.mark.unit
def test_parse_place_details():
    record = parse_place_details({"rating": 4.5, "types": ["lodging", 7, "spa"]})
    assert record == EnrichmentRecord(rating=4.5, amenities=["lodging", "spa"])
    assert parse_place_details({}) == EnrichmentRecord(rating=0.0, amenities=[])


@pytest.mark.asyncio
async def test_enrich_maps_records_by_hotel_id(backoff):
    places = FakePlaces(
        places={"Harbour Inn": "P1", "Bay Hotel": "P2"},
        details={
            "P1": [{"rating": 4.5, "types": ["pool"]}],
            "P2": [{"rating": 3.9, "types": ["lodging", "gym"]}],
        },
    )
    client = EnrichmentClient(places=places, backoff=backoff)

    result = await client.enrich(candidates(("HA", "Harbour Inn"), ("HB", "Bay Hotel")))

    assert result == {
        "HA": EnrichmentRecord(rating=4.5, amenities=["pool"]),
        "HB": EnrichmentRecord(rating=3.9, amenities=["lodging", "gym"]),
    }


@pytest.mark.asyncio
async def test_unmatched_and_failed_lookups_are_skipped(backoff):
    places = FakePlaces(
        places={"Harbour Inn": "P1", "Ghost Hotel": None, "Broken Hotel": ProviderError("boom")},
        details={"P1": [{"rating": 4.5, "types": []}]},
    )
    client = EnrichmentClient(places=places, backoff=backoff)

    result = await client.enrich(candidates(
        ("HA", "Harbour Inn"), ("HG", "Ghost Hotel"), ("HX", "Broken Hotel"),
    ))

    assert set(result) == {"HA"}
    assert places.detail_calls == ["P1"]


@pytest.mark.asyncio
async def test_unknown_names_are_not_looked_up(backoff):
    places = FakePlaces()
    client = EnrichmentClient(places=places, backoff=backoff)

    assert await client.enrich(candidates(("HA", "Unknown"))) == {}
    assert places.lookups == []


@pytest.mark.asyncio
async def test_details_retry_on_rate_limit_with_backoff(backoff, sleep):
    places = FakePlaces(
        places={"Harbour Inn": "P1"},
        details={"P1": [RateLimited("quota"), RateLimited("quota"), {"rating": 4.1, "types": ["spa"]}]},
    )
    client = EnrichmentClient(places=places, backoff=backoff)

    result = await client.enrich(candidates(("HA", "Harbour Inn")))

    assert result == {"HA": EnrichmentRecord(rating=4.1, amenities=["spa"])}
    assert places.detail_calls == ["P1", "P1", "P1"]
    assert sleep.delays == [1.0, 2.0]


@pytest.mark.asyncio
async def test_details_give_up_after_three_rate_limits(backoff, sleep):
    places = FakePlaces(
        places={"Harbour Inn": "P1"},
        details={"P1": [RateLimited("quota")] * 3},
    )
    client = EnrichmentClient(places=places, backoff=backoff)

    assert await client.enrich(candidates(("HA", "Harbour Inn"))) == {}
    assert len(places.detail_calls) == 3
    assert sleep.delays == [1.0, 2.0]


@pytest.mark.asyncio
async def test_details_other_failure_is_not_retried(backoff, sleep):
    places = FakePlaces(
        places={"Harbour Inn": "P1"},
        details={"P1": [ProviderError("HTTP 500", status_code=500)]},
    )
    client = EnrichmentClient(places=places, backoff=backoff)

    assert await client.enrich(candidates(("HA", "Harbour Inn"))) == {}
    assert places.detail_calls == ["P1"]
    assert sleep.delays == []


@pytest.mark.asyncio
async def test_lookups_run_concurrently_under_cap(backoff):
    names = [(f"H{i}", f"Hotel {i}") for i in range(8)]
    places = FakePlaces(places={})
    client = EnrichmentClient(places=places, backoff=backoff, concurrency=3)

    await client.enrich(candidates(*names))

    assert len(places.lookups) == 8
    assert 1 < places.max_in_flight <= 3


@pytest.mark.asyncio
async def test_disabled_places_returns_empty(backoff):
    places = FakePlaces(enabled=False)
    client = EnrichmentClient(places=places, backoff=backoff)

    assert await client.enrich(candidates(("HA", "Harbour Inn"))) == {}
    assert places.lookups == []


@pytest.mark.asyncio
async def test_cancelled_enrichment_raises(backoff):
    places = FakePlaces(places={"Harbour Inn": "P1"})
    client = EnrichmentClient(places=places, backoff=backoff)
    cancel = asyncio.Event()
    cancel.set()

    with pytest.raises(Cancelled):
        await client.enrich(candidates(("HA", "Harbour Inn")), cancel_event=cancel)
    assert places.lookups == []
