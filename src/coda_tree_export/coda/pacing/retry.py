"""Bounded exponential-backoff retry for individual remote calls.

Delay before retry ``n`` (0-based) is ``base_delay * 2**n``. The last
failure propagates unchanged once all retries are spent.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TypeVar

from coda_tree_export.config import ExportConfig
from coda_tree_export.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[None]]


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    max_retries: int = 3,
    base_delay: float = 1.0,
    *,
    retry_on: tuple[type[BaseException], ...] = (Exception,),
    sleep: Sleep = asyncio.sleep,
    description: str = "operation",
) -> T:
    """Run ``operation``, retrying failures with exponential backoff.

    Args:
        operation: Factory producing the awaitable to run
        max_retries: Additional attempts after the first one
        base_delay: Seconds to wait before the first retry
        retry_on: Exception types worth retrying; others propagate at once
        sleep: Sleep function (injectable for tests)
        description: Label used in log messages

    Returns:
        Result of the first successful attempt

    Raises:
        Exception: The last failure when every attempt failed
    """
    attempt = 0
    while True:
        try:
            return await operation()
        except retry_on as e:
            if attempt >= max_retries:
                logger.warning(
                    "{} failed after {} attempts: {}", description, attempt + 1, e
                )
                raise

            delay = base_delay * (2**attempt)
            logger.debug(
                "{} failed (attempt {}/{}), retrying in {:.1f}s: {}",
                description,
                attempt + 1,
                max_retries + 1,
                delay,
                e,
            )
            await sleep(delay)
            attempt += 1


@dataclass(frozen=True)
class RetryPolicy:
    """Reusable retry parameters.

    Usage:
        policy = RetryPolicy.from_config(settings.export, retry_on=(TransientRemoteError,))
        response = await policy.run(lambda: client.begin_page_export(doc, page))
    """

    max_retries: int = 3
    base_delay: float = 1.0
    retry_on: tuple[type[BaseException], ...] = (Exception,)
    sleep: Sleep = field(default=asyncio.sleep, compare=False)

    @classmethod
    def from_config(
        cls,
        config: ExportConfig,
        *,
        retry_on: tuple[type[BaseException], ...] = (Exception,),
        sleep: Sleep = asyncio.sleep,
    ) -> RetryPolicy:
        """Build a policy from export configuration."""
        return cls(
            max_retries=config.max_retries,
            base_delay=config.retry_base_delay,
            retry_on=retry_on,
            sleep=sleep,
        )

    async def run(
        self,
        operation: Callable[[], Awaitable[T]],
        *,
        description: str = "operation",
    ) -> T:
        """Run ``operation`` under this policy."""
        return await with_retry(
            operation,
            self.max_retries,
            self.base_delay,
            retry_on=self.retry_on,
            sleep=self.sleep,
            description=description,
        )
