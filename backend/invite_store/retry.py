"""Retry budgets for store operations.

Reads get one attempt so callers can apply their own retry policy; writes get
five because a half-applied multi-row write is costlier to reconcile from
outside. Every write the store issues is an idempotent upsert or delete, so
re-running a whole batch is safe.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

import aiosqlite

from invite_store.config import settings
from invite_store.errors import StoreUnavailableError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Failures worth another attempt: locked/busy database, I/O hiccups, timeouts.
TRANSIENT_ERRORS: tuple[type[BaseException], ...] = (
    aiosqlite.OperationalError,
    TimeoutError,
    ConnectionError,
)


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded attempts with capped exponential backoff."""

    attempts: int
    base_delay: float = 0.1
    max_delay: float = 2.0
    retry_on: tuple[type[BaseException], ...] = TRANSIENT_ERRORS

    def __post_init__(self) -> None:
        if self.attempts < 1:
            raise ValueError(f"RetryPolicy needs at least one attempt, got {self.attempts}")

    @classmethod
    def for_reads(cls) -> RetryPolicy:
        return cls(
            attempts=settings.read_attempts,
            base_delay=settings.retry_base_delay,
            max_delay=settings.retry_max_delay,
        )

    @classmethod
    def for_writes(cls) -> RetryPolicy:
        return cls(
            attempts=settings.write_attempts,
            base_delay=settings.retry_base_delay,
            max_delay=settings.retry_max_delay,
        )

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait after the given failed attempt (1-based)."""
        return min(self.base_delay * (2 ** (attempt - 1)), self.max_delay)

    async def run(self, operation: Callable[[], Awaitable[T]], description: str) -> T:
        """Await `operation()` until it succeeds or the budget runs out.

        Errors outside `retry_on` propagate on the first occurrence. When the
        last attempt fails, StoreUnavailableError is raised from that error.
        """
        for attempt in range(1, self.attempts + 1):
            try:
                return await operation()
            except self.retry_on as exc:
                if attempt == self.attempts:
                    logger.error(
                        "%s failed after %d attempt(s): %s", description, attempt, exc
                    )
                    raise StoreUnavailableError(description, attempt) from exc
                delay = self.delay_for(attempt)
                logger.warning(
                    "%s failed (attempt %d/%d), retrying in %.2fs: %s",
                    description, attempt, self.attempts, delay, exc,
                )
                await asyncio.sleep(delay)
