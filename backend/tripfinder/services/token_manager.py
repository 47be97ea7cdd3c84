"""Amadeus OAuth2 client-credentials token cache."""

import asyncio
import logging
import math
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import httpx

from tripfinder.config import settings
from tripfinder.exceptions import AuthError

logger = logging.getLogger(__name__)

DEFAULT_EXPIRES_IN = 1799
MAX_EXPIRES_IN = 86400


@dataclass(frozen=True)
class Credential:
    token: str
    expires_at: datetime

    @property
    def authorization(self) -> str:
        return f"Bearer {self.token}"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenManager:
    """Owns the process-wide Amadeus credential.

    The check-and-refresh sequence runs under a lock, so concurrent callers
    that find the credential expired wait for the single in-flight exchange
    and then reuse its result. A failed exchange leaves the cache untouched.
    """

    TOKEN_PATH = "/v1/security/oauth2/token"

    def __init__(
        self,
        client_id: str | None = None,
        client_secret: str | None = None,
        base_url: str | None = None,
        margin_seconds: int | None = None,
        http_client: httpx.AsyncClient | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self._client_id = client_id if client_id is not None else settings.amadeus_client_id
        self._client_secret = client_secret if client_secret is not None else settings.amadeus_client_secret
        self._base_url = base_url or settings.amadeus_base_url
        self._margin = timedelta(
            seconds=margin_seconds if margin_seconds is not None else settings.token_expiry_margin_seconds
        )
        self._client = http_client
        self._clock = clock
        self._credential: Credential | None = None
        self._lock = asyncio.Lock()

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                timeout=settings.http_timeout_seconds,
            )
        return self._client

    def _is_fresh(self, credential: Credential | None) -> bool:
        return credential is not None and self._clock() < credential.expires_at

    async def get_token(self) -> Credential:
        """Return the cached credential, refreshing it if it has expired."""
        credential = self._credential
        if self._is_fresh(credential):
            return credential

        async with self._lock:
            # Another caller may have refreshed while we waited
            if self._is_fresh(self._credential):
                return self._credential
            self._credential = await self._exchange()
            return self._credential

    def invalidate(self) -> None:
        """Drop the cached credential so the next call re-authenticates."""
        self._credential = None

    async def _exchange(self) -> Credential:
        if not self._client_id or not self._client_secret:
            raise AuthError("Amadeus client credentials are not configured")

        client = await self._get_client()
        try:
            resp = await client.post(
                self.TOKEN_PATH,
                data={
                    "grant_type": "client_credentials",
                    "client_id": self._client_id,
                    "client_secret": self._client_secret,
                },
                headers={"Content-Type": "application/x-www-form-urlencoded"},
            )
        except httpx.RequestError as e:
            raise AuthError(f"Amadeus token request failed: {e}") from e

        if resp.status_code >= 400:
            logger.error(f"Amadeus token request rejected: {resp.status_code} {resp.text[:200]}")
            raise AuthError(f"Amadeus rejected the credentials (HTTP {resp.status_code})")

        try:
            data = resp.json()
        except ValueError as e:
            raise AuthError("Amadeus token response is not valid JSON") from e

        token = data.get("access_token") if isinstance(data, dict) else None
        if not isinstance(token, str) or not token:
            raise AuthError("Amadeus token response has no access_token")

        expires_in = data.get("expires_in", DEFAULT_EXPIRES_IN)
        if isinstance(expires_in, bool) or not isinstance(expires_in, (int, float)):
            expires_in = DEFAULT_EXPIRES_IN
        if not math.isfinite(expires_in) or not 0 < expires_in <= MAX_EXPIRES_IN:
            raise AuthError(f"Amadeus token response has an invalid expires_in: {expires_in!r}")

        credential = Credential(
            token=token,
            expires_at=self._clock() + timedelta(seconds=expires_in) - self._margin,
        )
        logger.info(f"Amadeus token refreshed (expires in {expires_in}s)")
        return credential

    async def close(self):
        if self._client:
            await self._client.aclose()
            self._client = None


token_manager = TokenManager()
