"""Redis cache for hotel and flight search results."""

import json
import logging
from typing import Any

import redis.asyncio as redis

from tripfinder.config import settings

logger = logging.getLogger(__name__)

TTL_FLIGHT_OFFERS = 15 * 60  # 15 minutes


class CacheService:
    """Redis-backed JSON cache. Every failure reads as a miss."""

    def __init__(self, url: str | None = None):
        self._url = url or settings.redis_url
        self._redis: redis.Redis | None = None

    async def _get_redis(self) -> redis.Redis | None:
        if self._redis is None:
            try:
                self._redis = redis.from_url(
                    self._url,
                    encoding="utf-8",
                    decode_responses=True,
                )
                await self._redis.ping()
            except Exception as e:
                logger.warning(f"Redis unavailable, cache disabled: {e}")
                self._redis = None
                return None
        return self._redis

    async def get(self, key: str) -> Any | None:
        try:
            r = await self._get_redis()
            if r is None:
                return None
            raw = await r.get(key)
            if raw is None:
                return None
            return json.loads(raw)
        except Exception as e:
            logger.debug(f"Cache read failed for {key}: {e}")
            return None

    async def set(self, key: str, value: Any, ttl: int) -> bool:
        try:
            r = await self._get_redis()
            if r is None:
                return False
            await r.set(key, json.dumps(value, default=str), ex=ttl)
            return True
        except Exception as e:
            logger.debug(f"Cache write failed for {key}: {e}")
            return False

    def hotel_offers_key(self, query_key: str, stay_key: str) -> str:
        return f"hotel_offers:{query_key}:{stay_key}"

    def flight_offers_key(self, request_key: str) -> str:
        return f"flight_offers:{request_key}"

    async def get_hotel_offers(self, query_key: str, stay_key: str) -> list[dict] | None:
        return await self.get(self.hotel_offers_key(query_key, stay_key))

    async def set_hotel_offers(self, query_key: str, stay_key: str, data: list[dict]):
        await self.set(self.hotel_offers_key(query_key, stay_key), data, settings.hotel_search_cache_ttl)

    async def get_flight_offers(self, request_key: str) -> list[dict] | None:
        return await self.get(self.flight_offers_key(request_key))

    async def set_flight_offers(self, request_key: str, data: list[dict]):
        await self.set(self.flight_offers_key(request_key), data, TTL_FLIGHT_OFFERS)

    async def close(self):
        if self._redis:
            await self._redis.aclose()
            self._redis = None


cache_service = CacheService()
