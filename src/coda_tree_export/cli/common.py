"""Shared CLI options and helpers.

Options used by more than one command are declared once here as
``Annotated`` aliases, so every command spells its flags the same way.

It also provides:
- `run_async_command`: Unified async execution with error handling for CLI commands
- Page argument parsing (browser URL or ``doc:page``) and depth parsing
"""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine
from pathlib import Path
from typing import TYPE_CHECKING, Annotated, TypeVar

import typer
from rich.console import Console

from coda_tree_export.config import MAX_EXPORT_DEPTH, ExportDepth
from coda_tree_export.schemas.enums import DisplayFormat
from coda_tree_export.schemas.hierarchy import PageIdentifier

if TYPE_CHECKING:
    from coda_tree_export.coda.client import CodaClient

# Shared console instances for CLI output
console = Console()
err_console = Console(stderr=True)

T = TypeVar("T")


def run_async_command(
    coro: Coroutine[object, object, T],
    *,
    error_prefix: str = "Error",
) -> T:
    """Execute async code from synchronous CLI command with unified error handling.

    Uses asyncio.run() for clean event loop management. Catches exceptions,
    prints user-friendly error messages, and exits with code 1.

    Args:
        coro: Async coroutine to execute
        error_prefix: Prefix for error messages (default: "Error")

    Returns:
        Result from the coroutine

    Raises:
        typer.Exit: Re-raised from deliberate exits, or raised with code 1 on error
    """
    try:
        return asyncio.run(coro)
    except typer.Exit:
        raise
    except Exception as e:
        err_console.print(f"[red]{error_prefix}:[/red] {e}")
        raise typer.Exit(1) from None


DisplayFormatOption = Annotated[
    DisplayFormat,
    typer.Option(
        "--format",
        "-f",
        help="Output format",
    ),
]
"""Output format option type for CLI commands.

Usage:
    def command(output_format: DisplayFormatOption = DisplayFormat.TEXT):
"""

PageArgument = Annotated[
    str,
    typer.Argument(
        help="Coda page URL, or doc and page id as DOC_ID:PAGE_ID",
    ),
]
"""Required positional page argument."""

OutputPathOption = Annotated[
    Path | None,
    typer.Option(
        "--output",
        "-o",
        help="File or directory to write the export to (default: generated file name)",
    ),
]
"""Destination of exported content."""

StdoutOption = Annotated[
    bool,
    typer.Option(
        "--stdout",
        help="Print exported content instead of writing a file",
    ),
]

DepthOption = Annotated[
    str | None,
    typer.Option(
        "--depth",
        "-d",
        help="Levels of subpages to include: 0-10 or 'unlimited' (default: from settings)",
    ),
]
"""Raw ``--depth`` value; validate with ``parse_depth``."""


# -----------------------------------------------------------------------------
# Argument Parsing Helpers
# -----------------------------------------------------------------------------


def parse_page_identifier(value: str) -> PageIdentifier | None:
    """Parse ``DOC_ID:PAGE_ID``.

    Returns:
        The identifier, or None when ``value`` looks like a URL

    Raises:
        typer.BadParameter: If the value is neither a URL nor DOC_ID:PAGE_ID
    """
    if value.startswith(("http://", "https://")):
        return None
    doc_id, sep, page_id = value.partition(":")
    if not sep or not doc_id.strip() or not page_id.strip():
        raise typer.BadParameter(f"Expected a Coda URL or DOC_ID:PAGE_ID, got: {value}")
    return PageIdentifier(doc_id=doc_id.strip(), page_id=page_id.strip())


async def resolve_page(client: CodaClient, value: str) -> PageIdentifier:
    """Turn a page argument into an identifier, resolving URLs through the API."""
    page = parse_page_identifier(value)
    if page is not None:
        return page
    return await client.resolve_page_identifier(value)


def parse_depth(value: str) -> ExportDepth:
    """Parse a ``--depth`` value (0-10 or "unlimited").

    Raises:
        typer.BadParameter: If the value is out of range
    """
    if value.strip().lower() == "unlimited":
        return "unlimited"
    try:
        depth = int(value)
    except ValueError:
        raise typer.BadParameter(
            f"Depth must be 0-{MAX_EXPORT_DEPTH} or 'unlimited', got: {value}"
        ) from None
    if not 0 <= depth <= MAX_EXPORT_DEPTH:
        raise typer.BadParameter(f"Depth must be 0-{MAX_EXPORT_DEPTH} or 'unlimited', got: {value}")
    return depth
