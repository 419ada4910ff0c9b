"""File names for exported documents."""

from __future__ import annotations

import re
from datetime import date

from coda_tree_export.schemas.enums import OutputFormat
from coda_tree_export.schemas.hierarchy import PageIdentifier

_EXTENSIONS = {
    OutputFormat.MARKDOWN: "md",
    OutputFormat.HTML: "html",
}


def slugify_page_id(page_id: str) -> str:
    """Reduce a page id to a file-name-safe slug ("canvas-" prefix dropped)."""
    slug = re.sub(r"^canvas-", "", page_id)
    slug = re.sub(r"[^a-zA-Z0-9-]", "-", slug)
    slug = re.sub(r"-+", "-", slug)
    return slug.strip("-")


def generate_file_name(
    page: PageIdentifier,
    output_format: OutputFormat = OutputFormat.MARKDOWN,
    today: date | None = None,
) -> str:
    """File name for an exported page, e.g. ``page-abc123-2024-05-01.md``."""
    stamp = (today or date.today()).isoformat()
    return f"page-{slugify_page_id(page.page_id)}-{stamp}.{_EXTENSIONS[output_format]}"
