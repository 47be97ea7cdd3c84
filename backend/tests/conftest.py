from datetime import datetime, timedelta, timezone

import pytest

from tripfinder.services.retry import Backoff
from tripfinder.services.token_manager import Credential


class RecordingSleep:
    """Stands in for asyncio.sleep and remembers every requested delay."""

    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)


class StubTokenManager:
    def __init__(self, token="tok-1"):
        self.token = token
        self.calls = 0
        self.invalidated = 0

    async def get_token(self):
        self.calls += 1
        return Credential(
            token=self.token,
            expires_at=datetime.now(timezone.utc) + timedelta(minutes=30),
        )

    def invalidate(self):
        self.invalidated += 1


@pytest.fixture
def sleep():
    return RecordingSleep()


@pytest.fixture
def backoff(sleep):
    return Backoff(max_attempts=3, base_delay=1.0, sleep=sleep)


@pytest.fixture
def tokens():
    return StubTokenManager()


def hotel_entry(hotel_id, name="Hotel", city="SIN", total="120.00", currency="SGD", available=True):
    """A hotel-offers ``data`` entry shaped like the Amadeus v3 response."""
    return {
        "type": "hotel-offers",
        "available": available,
        "hotel": {"hotelId": hotel_id, "name": name, "cityCode": city},
        "offers": [{"id": f"OFF-{hotel_id}", "price": {"currency": currency, "total": total}}],
    }


@pytest.fixture
def make_entry():
    return hotel_entry
