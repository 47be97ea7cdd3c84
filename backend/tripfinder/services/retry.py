"""Bounded exponential backoff for provider rate limits."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from tripfinder.config import settings
from tripfinder.exceptions import Cancelled, RateLimited

logger = logging.getLogger(__name__)

T = TypeVar("T")


def check_cancelled(cancel_event: asyncio.Event | None, label: str = "search") -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise Cancelled(f"{label} cancelled")


async def gather_or_cancel(*aws: Awaitable[T]) -> list[T]:
    """Like asyncio.gather, but the first failure cancels the siblings.

    The remaining tasks are cancelled and awaited before the error is
    re-raised, so nothing keeps calling a provider after the caller has
    already seen the failure.
    """
    tasks = [asyncio.ensure_future(aw) for aw in aws]
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        for task in tasks:
            if not task.done():
                task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


class Backoff:
    """Retries a call on RateLimited, sleeping base_delay, 2x, 4x... between attempts.

    Only RateLimited is retried. Anything else propagates on the first
    failure. After the last attempt the RateLimited is re-raised so the
    caller can decide how to degrade.
    """

    def __init__(
        self,
        max_attempts: int | None = None,
        base_delay: float | None = None,
        sleep: Callable[[float], Awaitable[None]] | None = None,
    ):
        self.max_attempts = max_attempts if max_attempts is not None else settings.rate_limit_max_attempts
        self.base_delay = base_delay if base_delay is not None else settings.rate_limit_base_delay
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._sleep = sleep or asyncio.sleep

    async def run(
        self,
        call: Callable[[], Awaitable[T]],
        label: str,
        cancel_event: asyncio.Event | None = None,
    ) -> T:
        delay = self.base_delay
        attempt = 1
        while True:
            check_cancelled(cancel_event, label)
            try:
                return await call()
            except RateLimited:
                if attempt == self.max_attempts:
                    logger.warning(f"{label}: rate limited, giving up after {attempt} attempts")
                    raise
                logger.info(
                    f"{label}: rate limited, retrying in {delay:g}s "
                    f"(attempt {attempt}/{self.max_attempts})"
                )
            check_cancelled(cancel_event, label)
            await self._sleep(delay)
            delay *= 2
            attempt += 1
