"""Progress reporting for tree exports.

Progress events are emitted at every phase transition and whenever a page
finishes exporting. Consumers (the CLI, tests) register callbacks.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum

from coda_tree_export.logging import get_logger

logger = get_logger(__name__)


class ExportPhase(StrEnum):
    """Phase of a tree export."""

    DISCOVERING = "discovering"
    EXPORTING = "exporting"
    COMBINING = "combining"
    COMPLETE = "complete"
    FAILED = "failed"


@dataclass
class ExportProgress:
    """A progress update event."""

    state: ExportPhase
    message: str
    pages_processed: int | None = None
    total_pages: int | None = None
    elapsed_seconds: float = 0.0

    @property
    def progress_percent(self) -> float | None:
        """Completion percentage (0-100), when counts are known."""
        if self.pages_processed is None or self.total_pages is None:
            return None
        if self.total_pages == 0:
            return 100.0
        return (self.pages_processed / self.total_pages) * 100

    @property
    def is_terminal(self) -> bool:
        """Whether this is the last event of an export."""
        return self.state in (ExportPhase.COMPLETE, ExportPhase.FAILED)

    def to_dict(self) -> dict[str, object]:
        """Convert to dictionary for JSON serialization."""
        data: dict[str, object] = {"state": self.state.value, "message": self.message}
        if self.pages_processed is not None:
            data["pages_processed"] = self.pages_processed
        if self.total_pages is not None:
            data["total_pages"] = self.total_pages
        return data


ProgressCallback = Callable[[ExportProgress], None]


class ProgressReporter:
    """Observable progress reporter for one export run.

    Usage:
        reporter = ProgressReporter()
        reporter.on_progress(lambda p: print(p.state, p.message))

        reporter.discovering("Discovering nested pages...")
        reporter.exporting("Exported 1 of 3 pages", processed=1, total=3)
        reporter.complete("Export complete!", processed=3, total=3)
    """

    def __init__(self, name: str = "export") -> None:
        """Initialize the reporter.

        Args:
            name: Name of the operation for logging
        """
        self._name = name
        self._callbacks: list[ProgressCallback] = []
        self._last: ExportProgress | None = None
        self._start_time: float | None = None

    @property
    def last(self) -> ExportProgress | None:
        """Most recent event, if any."""
        return self._last

    @property
    def elapsed_seconds(self) -> float:
        """Elapsed time since the first event in seconds."""
        if self._start_time is None:
            return 0.0
        return time.monotonic() - self._start_time

    def on_progress(self, callback: ProgressCallback) -> None:
        """Register a progress callback.

        Args:
            callback: Function to call on every progress event
        """
        self._callbacks.append(callback)

    def emit(
        self,
        state: ExportPhase,
        message: str,
        *,
        processed: int | None = None,
        total: int | None = None,
    ) -> ExportProgress:
        """Build an event and notify every callback."""
        if self._start_time is None:
            self._start_time = time.monotonic()

        update = ExportProgress(
            state=state,
            message=message,
            pages_processed=processed,
            total_pages=total,
            elapsed_seconds=self.elapsed_seconds,
        )
        self._last = update
        logger.debug("{} [{}] {}", self._name, state.value, message)

        for callback in self._callbacks:
            try:
                callback(update)
            except Exception as e:
                logger.warning("Progress callback error: {}", e)
        return update

    # -------------------------------------------------------------------------
    # Phase helpers
    # -------------------------------------------------------------------------
    def discovering(self, message: str, *, total: int | None = None) -> ExportProgress:
        """Report discovery progress."""
        return self.emit(ExportPhase.DISCOVERING, message, total=total)

    def exporting(self, message: str, *, processed: int, total: int) -> ExportProgress:
        """Report export progress."""
        return self.emit(ExportPhase.EXPORTING, message, processed=processed, total=total)

    def combining(self, message: str, *, processed: int, total: int) -> ExportProgress:
        """Report that content is being combined."""
        return self.emit(ExportPhase.COMBINING, message, processed=processed, total=total)

    def complete(self, message: str, *, processed: int, total: int) -> ExportProgress:
        """Report successful completion."""
        logger.info(
            "Completed {}: {}/{} pages in {:.1f}s",
            self._name,
            processed,
            total,
            self.elapsed_seconds,
        )
        return self.emit(ExportPhase.COMPLETE, message, processed=processed, total=total)

    def failed(self, message: str) -> ExportProgress:
        """Report that the export was aborted."""
        logger.error("Failed {}: {}", self._name, message)
        return self.emit(ExportPhase.FAILED, message)
