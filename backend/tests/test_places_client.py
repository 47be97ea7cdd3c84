import httpx
import pytest

from tripfinder.exceptions import ProviderError, RateLimited
from tripfinder.services.places_client import PlacesClient


def make_client(handler, api_key="key"):
    http = httpx.AsyncClient(
        base_url="https://maps.googleapis.com/maps/api/place",
        transport=httpx.MockTransport(handler),
    )
    return PlacesClient(api_key=api_key, http_client=http)


@pytest.mark.asyncio
async def test_find_place_id_takes_first_candidate():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={
            "status": "OK",
            "candidates": [{"place_id": "P1"}, {"place_id": "P2"}],
        })

    client = make_client(handler)
    place_id = await client.find_place_id("Harbour Inn Singapore")

    assert place_id == "P1"
    assert seen[0].url.path == "/maps/api/place/findplacefromtext/json"
    assert seen[0].url.params["input"] == "Harbour Inn Singapore"
    assert seen[0].url.params["key"] == "key"


@pytest.mark.asyncio
async def test_zero_results_is_no_match():
    client = make_client(lambda r: httpx.Response(200, json={"status": "ZERO_RESULTS", "candidates": []}))

    assert await client.find_place_id("Nowhere Lodge") is None


@pytest.mark.asyncio
async def test_over_query_limit_is_rate_limited():
    client = make_client(lambda r: httpx.Response(200, json={"status": "OVER_QUERY_LIMIT"}))

    with pytest.raises(RateLimited):
        await client.get_place_details("P1")


@pytest.mark.asyncio
async def test_http_429_is_rate_limited():
    client = make_client(lambda r: httpx.Response(429))

    with pytest.raises(RateLimited):
        await client.get_place_details("P1")


@pytest.mark.asyncio
async def test_request_denied_is_provider_error():
    client = make_client(lambda r: httpx.Response(200, json={"status": "REQUEST_DENIED"}))

    with pytest.raises(ProviderError):
        await client.find_place_id("Harbour Inn")


@pytest.mark.asyncio
async def test_details_returns_result_object():
    body = {"status": "OK", "result": {"rating": 4.5, "types": ["lodging", "spa"]}}
    client = make_client(lambda r: httpx.Response(200, json=body))

    assert await client.get_place_details("P1") == {"rating": 4.5, "types": ["lodging", "spa"]}


@pytest.mark.unit
def test_enabled_requires_api_key():
    assert make_client(lambda r: httpx.Response(200), api_key="").enabled is False
