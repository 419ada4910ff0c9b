"""Main CLI application for Coda Tree Export."""

import json
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from coda_tree_export import __version__
from coda_tree_export.cli import export as export_cmd
from coda_tree_export.cli import pages as pages_cmd
from coda_tree_export.cli.common import DisplayFormatOption, run_async_command
from coda_tree_export.coda import CodaClient
from coda_tree_export.coda.client import page_identifier_from_href
from coda_tree_export.config import get_settings
from coda_tree_export.logging import setup_logging
from coda_tree_export.schemas import ApiLink, CodaUser, DisplayFormat

app = typer.Typer(
    name="codaexport",
    help="Export Coda pages and their subpages as Markdown.",
    add_completion=False,
)
console = Console()


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"codaexport version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            "-v",
            help="Enable debug logging.",
        ),
    ] = False,
    quiet: Annotated[
        bool,
        typer.Option(
            "--quiet",
            "-q",
            help="Suppress non-error output (WARNING level).",
        ),
    ] = False,
) -> None:
    """Coda Tree Export - Export page hierarchies from Coda docs."""
    settings = get_settings()
    log_config = settings.logging

    setup_logging(
        level=settings.log_level,
        verbose=verbose,
        quiet=quiet,
        log_file=Path(log_config.log_file) if log_config.log_file else None,
        rotation=log_config.rotation,
        retention=log_config.retention,
        serialize=log_config.serialize,
    )


@app.command()
def whoami(output_format: DisplayFormatOption = DisplayFormat.TEXT) -> None:
    """Check that the API token works and show who it belongs to."""

    async def _whoami() -> CodaUser:
        async with CodaClient() as client:
            client.require_token()
            return await client.whoami()

    user = run_async_command(_whoami(), error_prefix="Token check failed")

    if output_format == DisplayFormat.JSON:
        console.print_json(json.dumps(user.to_api()))
        return

    console.print(f"[green]✓[/green] Authenticated as [bold]{user.name}[/bold] ({user.login_id})")
    if user.workspace is not None:
        console.print(f"  Workspace: {user.workspace.name or user.workspace.id}")
    if user.scoped:
        console.print("  [yellow]Token is scoped; some docs may be inaccessible[/yellow]")


@app.command()
def resolve(
    url: str = typer.Argument(..., help="Coda browser URL"),
    output_format: DisplayFormatOption = DisplayFormat.TEXT,
) -> None:
    """Resolve a Coda browser URL to the doc and page it points to.

    Examples:
        codaexport resolve "https://coda.io/d/_dAbCdEf/Page_su123"
    """

    async def _resolve() -> ApiLink:
        async with CodaClient() as client:
            client.require_token()
            return await client.resolve_browser_link(url)

    link = run_async_command(_resolve(), error_prefix="Resolve failed")
    page = page_identifier_from_href(link.resource.href)

    if output_format == DisplayFormat.JSON:
        data = link.to_api()
        if page is not None:
            data["docId"] = page.doc_id
            data["pageId"] = page.page_id
        console.print_json(json.dumps(data))
        return

    console.print(f"Type: [cyan]{link.resource.type.value}[/cyan]")
    console.print(f"Name: {link.resource.name or '-'}")
    console.print(f"ID:   {link.resource.id}")
    if page is not None:
        console.print(f"Page: [bold]{page}[/bold]")


# Register subcommands
app.add_typer(export_cmd.app, name="export")
app.add_typer(pages_cmd.app, name="pages")


if __name__ == "__main__":
    app()
