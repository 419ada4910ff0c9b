"""Enums for Pydantic schemas."""

from enum import Enum


class OutputFormat(str, Enum):
    """Content format produced by the page export endpoint."""

    MARKDOWN = "markdown"
    HTML = "html"


class ExportStatus(str, Enum):
    """Status of a remote page content export job."""

    IN_PROGRESS = "inProgress"
    COMPLETE = "complete"
    FAILED = "failed"


class ResourceType(str, Enum):
    """Resource types returned by browser link resolution."""

    DOC = "doc"
    PAGE = "page"
    TABLE = "table"
    VIEW = "view"
    COLUMN = "column"
    ROW = "row"
    FORMULA = "formula"
    CONTROL = "control"
    BUTTON = "button"
    AUTOMATION = "automation"
    PACK = "pack"


class DisplayFormat(str, Enum):
    """Output format for CLI commands."""

    TEXT = "text"
    """Human-readable text output."""

    JSON = "json"
    """Machine-readable JSON output."""
