"""In-memory caches for export jobs and exported content.

Both caches expire entries lazily at read time and take an injectable clock.
Nothing is persisted; the caches live as long as the orchestrator owning them.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from coda_tree_export.logging import get_logger
from coda_tree_export.schemas.hierarchy import PageIdentifier

logger = get_logger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Current time in UTC."""
    return datetime.now(UTC)


@dataclass(frozen=True)
class ExportJob:
    """A submitted remote export job."""

    export_id: str
    submitted_at: datetime


@dataclass(frozen=True)
class CachedContent:
    """Exported content of a page."""

    content: str
    fetched_at: datetime
    source_version: str | None = None
    """Page last-modified marker at the time of export, if known."""


class JobCache:
    """Maps pages to the id of an export job that has not been downloaded yet.

    An export interrupted between submission and download resumes the
    pending job instead of submitting another one. Entries are dropped once
    the job's content is downloaded or the job fails.
    """

    def __init__(self, ttl: timedelta = timedelta(minutes=10), clock: Clock = utc_now) -> None:
        self._ttl = ttl
        self._clock = clock
        self._entries: dict[PageIdentifier, ExportJob] = {}

    def get(self, page: PageIdentifier) -> ExportJob | None:
        """Get the cached job for a page, dropping it once expired."""
        job = self._entries.get(page)
        if job is None:
            return None
        if self._clock() - job.submitted_at >= self._ttl:
            del self._entries[page]
            logger.debug("Export job for {} expired", page)
            return None
        return job

    def set(self, page: PageIdentifier, export_id: str) -> ExportJob:
        """Record a freshly submitted job."""
        job = ExportJob(export_id=export_id, submitted_at=self._clock())
        self._entries[page] = job
        return job

    def invalidate(self, page: PageIdentifier) -> None:
        """Forget the job for a page."""
        self._entries.pop(page, None)

    def clear(self) -> None:
        """Forget every job."""
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


class ContentCache:
    """Maps pages to their most recently exported content.

    An entry is valid when its source version and the page's current
    version are both known and equal. When either is unknown the entry is
    valid while younger than the freshness window.
    """

    def __init__(
        self,
        freshness: timedelta = timedelta(minutes=5),
        clock: Clock = utc_now,
    ) -> None:
        self._freshness = freshness
        self._clock = clock
        self._entries: dict[PageIdentifier, CachedContent] = {}

    def get(self, page: PageIdentifier, current_version: str | None = None) -> str | None:
        """Get cached content for a page if still valid."""
        entry = self._entries.get(page)
        if entry is None:
            return None

        if entry.source_version is not None and current_version is not None:
            if entry.source_version == current_version:
                return entry.content
            del self._entries[page]
            logger.debug("Cached content for {} is stale (page changed)", page)
            return None

        if self._clock() - entry.fetched_at < self._freshness:
            return entry.content

        del self._entries[page]
        return None

    def set(
        self,
        page: PageIdentifier,
        content: str,
        source_version: str | None = None,
    ) -> CachedContent:
        """Store exported content for a page."""
        entry = CachedContent(
            content=content,
            fetched_at=self._clock(),
            source_version=source_version,
        )
        self._entries[page] = entry
        return entry

    def invalidate(self, page: PageIdentifier) -> None:
        """Forget the content for a page."""
        self._entries.pop(page, None)

    def clear(self) -> None:
        """Forget all content."""
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
