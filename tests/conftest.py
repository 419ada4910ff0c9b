"""Pytest configuration and shared fixtures.

Usage Guide:
- For Coda API payload tests: use dict fixtures from tests.fixtures.coda_responses
- For export tests: build page trees and mock clients with tests.factories
- For cache tests: use the ``clock`` fixture and advance it explicitly
"""

from __future__ import annotations

from collections.abc import Iterator
from datetime import UTC, datetime, timedelta

import pytest

from coda_tree_export.config import get_settings

# -----------------------------------------------------------------------------
# Test Timeline Constants
# -----------------------------------------------------------------------------

MAY_1 = datetime(2024, 5, 1, 9, 0, 0, tzinfo=UTC)

MAY_1_ISO = "2024-05-01T09:00:00.000Z"
MAY_2_ISO = "2024-05-02T14:30:00.000Z"


class FakeClock:
    """Manually advanced wall clock for cache tests."""

    def __init__(self, start: datetime = MAY_1) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


class SleepRecorder:
    """Stand-in for asyncio.sleep that records requested delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture(autouse=True)
def _clear_settings_cache(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Isolate tests from the developer's environment and cached settings."""
    monkeypatch.delenv("CODA_API_TOKEN", raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def clock() -> FakeClock:
    """Wall clock starting at MAY_1."""
    return FakeClock()


@pytest.fixture
def sleep() -> SleepRecorder:
    """Instant sleep that records delays."""
    return SleepRecorder()
