"""Per-category rate limiting for Coda API calls.

Each rate limit category owns an independent limiter combining:
- A reservoir of admissions, reset to a fixed amount on a fixed interval
- A cap on concurrently running operations
- A minimum spacing between admissions
- A FIFO queue of operations waiting for admission

The limiter never retries; retry belongs to the caller.
"""

from __future__ import annotations

import asyncio
import time
from collections import deque
from collections.abc import Awaitable, Callable
from enum import StrEnum
from typing import TypeVar

from coda_tree_export.coda.exceptions import QueueClearedError
from coda_tree_export.config import CategoryQuota, RateLimitConfig, get_settings
from coda_tree_export.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

MonotonicClock = Callable[[], float]


class RateLimitCategory(StrEnum):
    """Classes of Coda API operations sharing one quota."""

    READ = "read"
    WRITE = "write"
    WRITE_CONTENT = "writeContent"
    LIST_DOCS = "listDocs"
    ANALYTICS = "analytics"

    def quota(self, config: RateLimitConfig) -> CategoryQuota:
        """Select this category's quota from the configuration."""
        match self:
            case RateLimitCategory.READ:
                return config.read
            case RateLimitCategory.WRITE:
                return config.write
            case RateLimitCategory.WRITE_CONTENT:
                return config.write_content
            case RateLimitCategory.LIST_DOCS:
                return config.list_docs
            case RateLimitCategory.ANALYTICS:
                return config.analytics


class CategoryLimiter:
    """Admission control for a single rate limit category.

    Usage:
        limiter = CategoryLimiter(RateLimitCategory.READ, quota)
        page = await limiter.schedule(lambda: client.fetch_page(...))
    """

    def __init__(
        self,
        category: RateLimitCategory,
        quota: CategoryQuota,
        clock: MonotonicClock = time.monotonic,
    ) -> None:
        """Initialize the limiter.

        Args:
            category: Category this limiter guards
            quota: Admission parameters
            clock: Monotonic clock in seconds (injectable for tests)
        """
        self._category = category
        self._quota = quota
        self._clock = clock

        self._reservoir = quota.reservoir
        self._window_started = clock()
        self._last_admitted_at: float | None = None

        self._waiting: deque[asyncio.Future[None]] = deque()
        self._running = 0
        self._wakeup: asyncio.TimerHandle | None = None

        # Statistics
        self._total_admitted = 0
        self._total_dropped = 0

    @property
    def category(self) -> RateLimitCategory:
        """Category this limiter guards."""
        return self._category

    @property
    def quota(self) -> CategoryQuota:
        """Admission parameters."""
        return self._quota

    @property
    def queued_count(self) -> int:
        """Operations waiting for admission."""
        return sum(1 for ticket in self._waiting if not ticket.done())

    @property
    def running_count(self) -> int:
        """Operations admitted and not yet finished."""
        return self._running

    @property
    def reservoir(self) -> int:
        """Admissions left in the current window."""
        self._refresh_reservoir(self._clock())
        return self._reservoir

    # -------------------------------------------------------------------------
    # Scheduling
    # -------------------------------------------------------------------------
    async def schedule(self, operation: Callable[[], Awaitable[T]]) -> T:
        """Run ``operation`` once admitted, queuing until then.

        Args:
            operation: Factory producing the awaitable to run

        Returns:
            Result of the operation

        Raises:
            QueueClearedError: If the queue was cleared before admission
        """
        ticket: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self._waiting.append(ticket)
        self._dispatch()

        try:
            await ticket
        except asyncio.CancelledError:
            if ticket.done() and not ticket.cancelled() and ticket.exception() is None:
                # Admitted just before the caller was cancelled
                self._release()
            else:
                self._discard(ticket)
            raise

        try:
            return await operation()
        finally:
            self._release()

    def clear_queue(self) -> int:
        """Reject every operation still waiting for admission.

        Admitted operations run to completion.

        Returns:
            Number of operations rejected
        """
        dropped = 0
        while self._waiting:
            ticket = self._waiting.popleft()
            if not ticket.done():
                ticket.set_exception(QueueClearedError(self._category.value))
                dropped += 1
        self._cancel_wakeup()
        self._total_dropped += dropped
        if dropped:
            logger.info("Cleared {} queued {} operations", dropped, self._category.value)
        return dropped

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------
    def _dispatch(self) -> None:
        """Admit as many waiting operations as the quota allows."""
        self._cancel_wakeup()
        now = self._clock()
        self._refresh_reservoir(now)

        while self._waiting and self._running < self._quota.max_concurrent:
            if self._waiting[0].done():
                self._waiting.popleft()
                continue

            if self._reservoir <= 0:
                self._schedule_wakeup(self._window_started + self._quota.refresh_interval - now)
                return

            if self._quota.min_time > 0 and self._last_admitted_at is not None:
                spacing_left = self._last_admitted_at + self._quota.min_time - now
                if spacing_left > 0:
                    self._schedule_wakeup(spacing_left)
                    return

            ticket = self._waiting.popleft()
            self._reservoir -= 1
            self._running += 1
            self._last_admitted_at = now
            self._total_admitted += 1
            ticket.set_result(None)

        if self._waiting and self._running >= self._quota.max_concurrent:
            logger.trace(
                "{} limiter saturated (running={}, queued={})",
                self._category.value,
                self._running,
                self.queued_count,
            )

    def _refresh_reservoir(self, now: float) -> None:
        elapsed = now - self._window_started
        interval = self._quota.refresh_interval
        if elapsed >= interval:
            self._window_started += (elapsed // interval) * interval
            self._reservoir = self._quota.reservoir_refresh_amount

    def _release(self) -> None:
        self._running -= 1
        self._dispatch()

    def _discard(self, ticket: asyncio.Future[None]) -> None:
        try:
            self._waiting.remove(ticket)
        except ValueError:
            pass

    def _schedule_wakeup(self, delay: float) -> None:
        loop = asyncio.get_running_loop()
        self._wakeup = loop.call_later(max(delay, 0.0), self._dispatch)

    def _cancel_wakeup(self) -> None:
        if self._wakeup is not None:
            self._wakeup.cancel()
            self._wakeup = None

    def get_stats(self) -> dict[str, int | str]:
        """Get limiter statistics."""
        return {
            "category": self._category.value,
            "queued": self.queued_count,
            "running": self._running,
            "reservoir": self.reservoir,
            "total_admitted": self._total_admitted,
            "total_dropped": self._total_dropped,
        }


class RateLimiter:
    """Independent limiters for every rate limit category.

    Usage:
        limiter = RateLimiter()
        page = await limiter.schedule(
            RateLimitCategory.READ,
            lambda: http.get(url),
        )
    """

    def __init__(
        self,
        config: RateLimitConfig | None = None,
        clock: MonotonicClock = time.monotonic,
    ) -> None:
        """Initialize one limiter per category.

        Args:
            config: Per-category quotas (uses settings if not provided)
            clock: Monotonic clock in seconds (injectable for tests)
        """
        self._config = config or get_settings().rate_limit
        self._limiters = {
            category: CategoryLimiter(category, category.quota(self._config), clock)
            for category in RateLimitCategory
        }

    @property
    def config(self) -> RateLimitConfig:
        """Get the rate limit configuration."""
        return self._config

    def limiter(self, category: RateLimitCategory) -> CategoryLimiter:
        """Get the limiter for a category."""
        return self._limiters[category]

    async def schedule(
        self,
        category: RateLimitCategory,
        operation: Callable[[], Awaitable[T]],
    ) -> T:
        """Run ``operation`` under the quota of ``category``."""
        return await self._limiters[category].schedule(operation)

    def queued_count(self, category: RateLimitCategory) -> int:
        """Operations waiting for admission in ``category``."""
        return self._limiters[category].queued_count

    def running_count(self, category: RateLimitCategory) -> int:
        """Operations running in ``category``."""
        return self._limiters[category].running_count

    def clear_queue(self, category: RateLimitCategory) -> int:
        """Reject all operations waiting for admission in ``category``."""
        return self._limiters[category].clear_queue()

    def get_stats(self) -> dict[str, dict[str, int | str]]:
        """Get statistics for every category."""
        return {
            category.value: limiter.get_stats() for category, limiter in self._limiters.items()
        }
