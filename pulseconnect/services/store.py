"""Bounded store access: per-transaction timeouts and retry with backoff."""

from __future__ import annotations

import logging
import random
import time
from contextlib import contextmanager
from typing import Callable, Iterator, TypeVar

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session

from pulseconnect.core.config import settings
from pulseconnect.services.errors import Unavailable

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _dialect_name(db: Session) -> str:
    return db.get_bind().dialect.name


@contextmanager
def guarded(db: Session, timeout: float | None = None) -> Iterator[Session]:
    """
    Run a unit of work with a bounded statement time.

    - PostgreSQL: SET LOCAL statement_timeout for the current transaction.
    - Store/connection failures roll back and surface as Unavailable.
    - Domain errors raised inside the block roll back and propagate unchanged.
    """
    seconds = settings.STORE_TIMEOUT_SECONDS if timeout is None else timeout
    try:
        if seconds and _dialect_name(db) == "postgresql":
            db.execute(text(f"SET LOCAL statement_timeout = {int(seconds * 1000)}"))
        yield db
    except (OperationalError, PoolTimeoutError) as exc:
        db.rollback()
        logger.warning("Store unavailable: %s", exc.__class__.__name__)
        raise Unavailable("Store unavailable, retry later") from exc
    except DBAPIError as exc:
        db.rollback()
        if exc.connection_invalidated:
            raise Unavailable("Store connection lost, retry later") from exc
        raise
    except Exception:
        db.rollback()
        raise


def backoff_delay(attempt: int, base_delay: float, max_delay: float = 2.0) -> float:
    """Exponential delay for a zero-based attempt, with up to 50% jitter."""
    delay = min(max_delay, base_delay * (2**attempt))
    if delay:
        delay = delay + random.uniform(0, delay / 2)
    return delay


def with_retries(
    fn: Callable[[], T],
    *,
    attempts: int | None = None,
    base_delay: float | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Call fn, retrying only Unavailable with bounded exponential backoff.

    Domain errors propagate on the first occurrence.
    """
    max_attempts = attempts or settings.STORE_RETRY_ATTEMPTS
    delay_base = settings.STORE_RETRY_BASE_DELAY if base_delay is None else base_delay

    for attempt in range(max_attempts):
        try:
            return fn()
        except Unavailable:
            if attempt >= max_attempts - 1:
                raise
            delay = backoff_delay(attempt, delay_base)
            logger.warning("Store call unavailable, retrying (attempt %s)", attempt + 1)
            if delay:
                sleep(delay)
    raise Unavailable("Store unavailable")
