"""Export commands for Coda Tree Export."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Annotated, Any

import typer
from rich.table import Table

from coda_tree_export.cli.common import (
    DepthOption,
    DisplayFormatOption,
    OutputPathOption,
    PageArgument,
    StdoutOption,
    console,
    err_console,
    parse_depth,
    resolve_page,
    run_async_command,
)
from coda_tree_export.coda import BatchOrchestrator, CodaClient, ExportProgress, TreeExportResult
from coda_tree_export.coda.export import generate_file_name
from coda_tree_export.config import ExportConfig, NestedExportSettings, get_settings
from coda_tree_export.schemas import DisplayFormat, OutputFormat, PageIdentifier

app = typer.Typer(help="Export Coda pages")

ContentFormatOption = Annotated[
    OutputFormat | None,
    typer.Option(
        "--content-format",
        "-c",
        help="Format of the exported content (default: from settings)",
    ),
]


def _export_config(content_format: OutputFormat | None) -> ExportConfig:
    config = get_settings().export
    if content_format is None:
        return config
    return config.model_copy(update={"output_format": content_format})


def _show_progress(progress: ExportProgress) -> None:
    counts = ""
    if progress.pages_processed is not None and progress.total_pages is not None:
        counts = f" [dim]({progress.pages_processed}/{progress.total_pages})[/dim]"
    err_console.print(f"[cyan]{progress.state.value:<11}[/cyan] {progress.message}{counts}")


def _write_content(
    content: str,
    output: Path | None,
    page: PageIdentifier,
    content_format: OutputFormat,
) -> Path:
    """Write exported content, generating a file name where needed."""
    if output is None:
        path = Path(generate_file_name(page, content_format))
    elif output.is_dir():
        path = output / generate_file_name(page, content_format)
    else:
        path = output
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


def _print_failures(result: TreeExportResult) -> None:
    table = Table(title="Failed pages")
    table.add_column("Path", style="cyan")
    table.add_column("Page")
    table.add_column("Error", style="red", max_width=60)
    for failure in result.failed_pages:
        table.add_row(failure.path, failure.page_name, failure.error)
    console.print(table)


@app.command("tree")
def export_tree(
    page: PageArgument,
    depth: DepthOption = None,
    output: OutputPathOption = None,
    stdout: StdoutOption = False,
    content_format: ContentFormatOption = None,
    output_format: DisplayFormatOption = DisplayFormat.TEXT,
) -> None:
    """Export a page and its subpages as one combined document.

    Examples:
        codaexport export tree AbCdEf:canvas-123
        codaexport export tree "https://coda.io/d/_dAbCdEf/Page_su123" --depth 3
        codaexport export tree AbCdEf:canvas-123 --depth unlimited -o exports/
        codaexport export tree AbCdEf:canvas-123 --format json --stdout
    """
    config = _export_config(content_format)
    max_depth = parse_depth(depth) if depth is not None else get_settings().nested.depth
    nested = NestedExportSettings(include_nested=True, depth=max_depth)
    show_progress = output_format == DisplayFormat.TEXT

    async def _export() -> tuple[PageIdentifier, TreeExportResult]:
        async with CodaClient() as client:
            client.require_token()
            root = await resolve_page(client, page)
            orchestrator = BatchOrchestrator(client, config=config)
            result = await orchestrator.export_tree(
                root,
                nested,
                on_progress=_show_progress if show_progress else None,
            )
            return root, result

    root, result = run_async_command(_export(), error_prefix="Export failed")

    data: dict[str, Any] = {"page": str(root), **result.to_dict()}
    if stdout:
        data["content"] = result.combined_content
    elif result.successful_pages:
        path = _write_content(result.combined_content, output, root, config.output_format)
        data["file"] = str(path)

    if output_format == DisplayFormat.JSON:
        console.print_json(json.dumps(data))
    else:
        if stdout:
            typer.echo(result.combined_content)
        status = "[green]✓[/green]" if result.success else "[yellow]![/yellow]"
        err_console.print(
            f"{status} Exported {result.successful_pages} of {result.total_pages} pages "
            f"in {result.duration_seconds:.1f}s"
        )
        if "file" in data:
            err_console.print(f"  Written to [bold]{data['file']}[/bold]")
        if result.failed_pages:
            _print_failures(result)

    if not result.success:
        raise typer.Exit(1)


@app.command("page")
def export_page(
    page: PageArgument,
    output: OutputPathOption = None,
    stdout: StdoutOption = False,
    content_format: ContentFormatOption = None,
    output_format: DisplayFormatOption = DisplayFormat.TEXT,
) -> None:
    """Export a single page without its subpages.

    Examples:
        codaexport export page AbCdEf:canvas-123
        codaexport export page "https://coda.io/d/_dAbCdEf/Page_su123" --stdout
    """
    config = _export_config(content_format)

    async def _export() -> tuple[PageIdentifier, str]:
        async with CodaClient() as client:
            client.require_token()
            target = await resolve_page(client, page)
            orchestrator = BatchOrchestrator(client, config=config)
            return target, await orchestrator.export_page(target)

    target, content = run_async_command(_export(), error_prefix="Export failed")

    data: dict[str, Any] = {"page": str(target), "success": True}
    if stdout:
        data["content"] = content
    else:
        data["file"] = str(_write_content(content, output, target, config.output_format))

    if output_format == DisplayFormat.JSON:
        console.print_json(json.dumps(data))
    elif stdout:
        typer.echo(content)
    else:
        err_console.print(f"[green]✓[/green] Written to [bold]{data['file']}[/bold]")
