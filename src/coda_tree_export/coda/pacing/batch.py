"""Concurrent fan-out with per-item error containment.

Every item is processed concurrently; throttling is left to the rate limiter
the processor calls into. A failing item never cancels its siblings.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import Generic, TypeVar

from coda_tree_export.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")
R = TypeVar("R")


@dataclass
class BatchResult(Generic[T, R]):
    """Result of a fan-out, in completion order."""

    succeeded: list[tuple[T, R]] = field(default_factory=list)
    failed: list[tuple[T, Exception]] = field(default_factory=list)

    @property
    def total_count(self) -> int:
        """Total number of items processed."""
        return len(self.succeeded) + len(self.failed)

    @property
    def success_count(self) -> int:
        """Number of successful items."""
        return len(self.succeeded)

    @property
    def failure_count(self) -> int:
        """Number of failed items."""
        return len(self.failed)

    @property
    def all_succeeded(self) -> bool:
        """Whether all items succeeded."""
        return len(self.failed) == 0


async def fan_out(
    items: Sequence[T],
    processor: Callable[[T], Awaitable[R]],
    *,
    on_success: Callable[[T, R], None] | None = None,
    on_failure: Callable[[T, Exception], None] | None = None,
) -> BatchResult[T, R]:
    """Process all items concurrently and wait for every one to settle.

    Args:
        items: Items to process
        processor: Async function to process each item
        on_success: Called as each item succeeds
        on_failure: Called as each item fails

    Returns:
        BatchResult with successes and failures in completion order
    """
    result: BatchResult[T, R] = BatchResult()

    async def run_one(item: T) -> None:
        try:
            value = await processor(item)
        except Exception as e:
            result.failed.append((item, e))
            if on_failure:
                on_failure(item, e)
        else:
            result.succeeded.append((item, value))
            if on_success:
                on_success(item, value)

    if items:
        await asyncio.gather(*(run_one(item) for item in items))
        logger.debug(
            "Fan-out settled: {} succeeded, {} failed",
            result.success_count,
            result.failure_count,
        )

    return result
