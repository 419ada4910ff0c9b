"""Page browsing commands."""

from __future__ import annotations

import json

import typer
from rich.markup import escape
from rich.table import Table

from coda_tree_export.cli.common import (
    DepthOption,
    DisplayFormatOption,
    PageArgument,
    console,
    parse_depth,
    resolve_page,
    run_async_command,
)
from coda_tree_export.coda import CodaClient, HierarchyDiscoverer
from coda_tree_export.coda.export import group_by_depth
from coda_tree_export.config import get_settings
from coda_tree_export.schemas import DisplayFormat, HierarchyNode, PageCountResult, PageReference

app = typer.Typer(help="Browse Coda pages")


@app.command("list")
def list_pages(
    doc_id: str = typer.Argument(..., help="Coda doc ID"),
    limit: int = typer.Option(100, "--limit", "-l", min=1, max=500, help="Page size per request"),
    output_format: DisplayFormatOption = DisplayFormat.TEXT,
) -> None:
    """List every page of a doc.

    Examples:
        codaexport pages list AbCdEf
        codaexport pages list AbCdEf --format json
    """

    async def _list() -> list[PageReference]:
        async with CodaClient() as client:
            client.require_token()
            return [page async for page in client.iter_pages(doc_id, limit=limit)]

    pages = run_async_command(_list(), error_prefix="Listing pages failed")

    if output_format == DisplayFormat.JSON:
        console.print_json(json.dumps([page.to_api() for page in pages]))
        return

    table = Table(title=f"Pages in {doc_id}")
    table.add_column("ID", style="cyan")
    table.add_column("Name")
    for page in pages:
        table.add_row(page.id, escape(page.name))
    console.print(table)
    console.print(f"{len(pages)} page(s)")


def _node_dict(node: HierarchyNode) -> dict[str, object]:
    return {
        "page_id": node.page_id,
        "name": node.name,
        "path": node.path,
        "circular_reference": node.is_circular_reference,
    }


@app.command("tree")
def show_tree(
    page: PageArgument,
    depth: DepthOption = None,
    output_format: DisplayFormatOption = DisplayFormat.TEXT,
) -> None:
    """Show the pages an export would include, level by level.

    Examples:
        codaexport pages tree AbCdEf:canvas-123 --depth 2
        codaexport pages tree "https://coda.io/d/_dAbCdEf/Page_su123" -f json
    """
    max_depth = parse_depth(depth) if depth is not None else get_settings().nested.depth

    async def _discover() -> PageCountResult:
        async with CodaClient() as client:
            client.require_token()
            root = await resolve_page(client, page)
            return await HierarchyDiscoverer(client).discover(root, max_depth)

    result = run_async_command(_discover(), error_prefix="Discovery failed")
    levels = group_by_depth(result.tree)

    if output_format == DisplayFormat.JSON:
        data = {
            "total_pages": result.total_pages,
            "max_depth_reached": result.max_depth_reached,
            "levels": {
                str(level): [_node_dict(node) for node in nodes]
                for level, nodes in sorted(levels.items())
            },
        }
        console.print_json(json.dumps(data))
        return

    for level, nodes in sorted(levels.items()):
        console.print(f"[bold]Depth {level}[/bold] ({len(nodes)})")
        for node in nodes:
            style = "dim" if node.is_circular_reference else "cyan"
            console.print(f"  [{style}]{node.path:<10}[/{style}] {escape(node.name)}")
    console.print(f"{result.total_pages} page(s), deepest level {result.max_depth_reached}")
