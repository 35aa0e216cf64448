"""HTTP helpers with retry/backoff for outbound integrations."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

import httpx

from pulseconnect.services.store import backoff_delay

logger = logging.getLogger(__name__)

DEFAULT_RETRY_STATUSES = {429, 500, 502, 503, 504}


async def request_with_retries(
    request_fn: Callable[[], Awaitable[httpx.Response]],
    *,
    max_attempts: int = 3,
    base_delay: float = 0.5,
    max_delay: float = 4.0,
    retry_statuses: set[int] | None = None,
) -> httpx.Response:
    """Run an HTTP call, retrying transport errors and retryable statuses."""
    statuses = retry_statuses or DEFAULT_RETRY_STATUSES

    for attempt in range(max_attempts):
        last_attempt = attempt >= max_attempts - 1
        try:
            response = await request_fn()
        except httpx.RequestError as exc:
            if last_attempt:
                raise
            logger.warning("HTTP request failed, retrying", exc_info=exc)
        else:
            if response.status_code not in statuses or last_attempt:
                return response
            logger.warning("HTTP request returned %s, retrying", response.status_code)

        delay = backoff_delay(attempt, base_delay, max_delay)
        if delay:
            await asyncio.sleep(delay)

    return response
