import pytest

from tripfinder.exceptions import NoCandidatesError, ParseError, RateLimited, ValidationError
from tripfinder.services.candidate_discovery import (
    Candidate,
    CandidateDiscovery,
    GeoQuery,
    parse_candidates,
)


class FakeAmadeus:
    def __init__(self, payloads):
        self._payloads = list(payloads)
        self.calls = []

    async def _next(self, name, *args):
        self.calls.append((name, args))
        payload = self._payloads.pop(0)
        if isinstance(payload, Exception):
            raise payload
        return payload

    async def hotels_by_geocode(self, latitude, longitude, radius_km):
        return await self._next("geocode", latitude, longitude, radius_km)

    async def hotels_by_city(self, city_code):
        return await self._next("city", city_code)


@pytest.mark.unit
@pytest.mark.parametrize(
    "query",
    [
        GeoQuery(),
        GeoQuery(latitude=1.3, longitude=103.8),
        GeoQuery(latitude=1.3, radius_km=3),
        GeoQuery(latitude=91, longitude=103.8, radius_km=3),
        GeoQuery(latitude=1.3, longitude=181, radius_km=3),
        GeoQuery(latitude=1.3, longitude=103.8, radius_km=0),
        GeoQuery(latitude=1.3, longitude=103.8, radius_km=3, city_code="SIN"),
        GeoQuery(city_code="SINGAPORE"),
        GeoQuery(city_code="sin"),
    ],
)
def test_invalid_queries_rejected(query):
    with pytest.raises(ValidationError):
        query.validate()


@pytest.mark.asyncio
async def test_validation_happens_before_network(backoff):
    amadeus = FakeAmadeus([])
    discovery = CandidateDiscovery(client=amadeus, backoff=backoff)

    with pytest.raises(ValidationError):
        await discovery.discover(GeoQuery(latitude=1.3))
    assert amadeus.calls == []


@pytest.mark.unit
def test_parse_candidates_applies_defaults_and_skips_missing_ids():
    payload = {"data": [
        {"hotelId": "HA", "iataCode": "SIN", "name": "Harbour Inn"},
        {"hotelId": "HB"},
        {"name": "No Id Hotel", "iataCode": "SIN"},
        {"hotelId": 12345, "name": "Numeric Id"},
        "garbage",
    ]}

    assert parse_candidates(payload) == [
        Candidate(id="HA", region_code="SIN", display_name="Harbour Inn"),
        Candidate(id="HB", region_code="Unknown", display_name="Unknown"),
    ]


@pytest.mark.unit
def test_parse_candidates_ids_are_unique():
    payload = {"data": [
        {"hotelId": "HA", "iataCode": "SIN", "name": "Harbour Inn"},
        {"hotelId": "HA", "iataCode": "KUL", "name": "Harbour Inn KL"},
        {"hotelId": "HB", "iataCode": "SIN", "name": "Bay Hotel"},
    ]}

    candidates = parse_candidates(payload)

    assert [c.id for c in candidates] == ["HA", "HB"]
    assert candidates[0].region_code == "SIN"


@pytest.mark.unit
def test_parse_candidates_without_data_is_empty():
    assert parse_candidates({}) == []
    assert parse_candidates({"data": {"hotelId": "HA"}}) == []


@pytest.mark.asyncio
async def test_discover_by_geocode(backoff):
    amadeus = FakeAmadeus([{"data": [
        {"hotelId": "HA", "iataCode": "SIN", "name": "Harbour Inn"},
        {"hotelId": "HB", "iataCode": "SIN", "name": "Bay Hotel"},
    ]}])
    discovery = CandidateDiscovery(client=amadeus, backoff=backoff)

    candidates = await discovery.discover(GeoQuery(latitude=1.3, longitude=103.8, radius_km=3))

    assert [c.id for c in candidates] == ["HA", "HB"]
    assert amadeus.calls == [("geocode", (1.3, 103.8, 3))]


@pytest.mark.asyncio
async def test_discover_by_city(backoff):
    amadeus = FakeAmadeus([{"data": [{"hotelId": "PA1", "iataCode": "PAR", "name": "Le Petit"}]}])
    discovery = CandidateDiscovery(client=amadeus, backoff=backoff)

    candidates = await discovery.discover(GeoQuery(city_code="PAR"))

    assert candidates == [Candidate(id="PA1", region_code="PAR", display_name="Le Petit")]
    assert amadeus.calls == [("city", ("PAR",))]


@pytest.mark.asyncio
async def test_no_matches_raises_no_candidates(backoff):
    discovery = CandidateDiscovery(client=FakeAmadeus([{"data": []}]), backoff=backoff)

    with pytest.raises(NoCandidatesError):
        await discovery.discover(GeoQuery(city_code="PAR"))


@pytest.mark.asyncio
async def test_rate_limited_discovery_is_retried(backoff, sleep):
    amadeus = FakeAmadeus([
        RateLimited("slow down"),
        {"data": [{"hotelId": "HA", "iataCode": "SIN", "name": "Harbour Inn"}]},
    ])
    discovery = CandidateDiscovery(client=amadeus, backoff=backoff)

    candidates = await discovery.discover(GeoQuery(city_code="SIN"))

    assert [c.id for c in candidates] == ["HA"]
    assert sleep.delays == [1.0]


@pytest.mark.asyncio
async def test_non_object_payload_raises_parse_error(backoff):
    discovery = CandidateDiscovery(client=FakeAmadeus([["HA", "HB"]]), backoff=backoff)

    with pytest.raises(ParseError):
        await discovery.discover(GeoQuery(city_code="SIN"))
