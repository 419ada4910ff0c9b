"""Result objects for export operations.

Structured results provide consistent interfaces for error reporting and
CLI output.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from coda_tree_export.schemas.hierarchy import HierarchyNode


@dataclass(frozen=True)
class FailedExport:
    """Terminal failure of one page export."""

    page_id: str
    page_name: str
    path: str
    error: str

    @classmethod
    def from_node(cls, node: HierarchyNode, error: BaseException | str) -> FailedExport:
        """Build a failure record for ``node``."""
        return cls(page_id=node.page_id, page_name=node.name, path=node.path, error=str(error))

    def to_dict(self) -> dict[str, str]:
        """Convert to dictionary for JSON serialization."""
        return {
            "page_id": self.page_id,
            "page_name": self.page_name,
            "path": self.path,
            "error": self.error,
        }


@dataclass
class TreeExportResult:
    """Result of exporting a page tree.

    A run with failed pages is still a usable outcome: ``combined_content``
    holds every page that did export, in tree order.
    """

    total_pages: int = 0
    """Nodes in the discovered tree, placeholders included."""

    successful_pages: int = 0
    """Pages whose content was exported or served from cache."""

    failed_pages: list[FailedExport] = field(default_factory=list)
    """One entry per page that could not be exported."""

    combined_content: str = ""
    """Banner-separated content of every successful page."""

    by_depth: dict[int, int] = field(default_factory=dict)
    """Discovered nodes per depth."""

    duration_seconds: float = 0.0

    @property
    def success(self) -> bool:
        """True iff no page failed."""
        return not self.failed_pages

    @property
    def error(self) -> str | None:
        """Summary of failures, if any."""
        if self.success:
            return None
        count = len(self.failed_pages)
        return f"{count} page{'s' if count != 1 else ''} failed to export"

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        data: dict[str, Any] = {
            "success": self.success,
            "total_pages": self.total_pages,
            "successful_pages": self.successful_pages,
            "failed_pages": [f.to_dict() for f in self.failed_pages],
            "by_depth": {str(depth): count for depth, count in sorted(self.by_depth.items())},
            "duration_seconds": round(self.duration_seconds, 2),
        }
        if self.error:
            data["error"] = self.error
        return data
