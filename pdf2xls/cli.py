"""
Command-line interface for pdf2xls.

This module provides the ``pdf2xls`` entry point: processing invoice PDFs into
the configured Google Sheets worksheet, and a currency lookup helper.
"""

import asyncio
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from pdf2xls.config import Settings, configure, get_settings
from pdf2xls.normalization.currency import resolve as resolve_currency
from pdf2xls.utils.errors import ConfigurationError, Pdf2XlsException
from pdf2xls.utils.logging import get_logger, setup_logging

# Initialize Typer app and Rich console
app = typer.Typer(
    name="pdf2xls",
    help="Extract invoice data from PDFs into Google Sheets",
    add_completion=False,
)
console = Console()
logger = get_logger(__name__)


@app.command()
def process(
    documents: List[Path] = typer.Argument(..., help="Invoice PDF file(s) to process"),
):
    """Extract invoices and append them to the configured sheet."""
    from pdf2xls.pipeline import create_processor

    settings = get_settings()
    try:
        settings.validate()
    except ConfigurationError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        raise typer.Exit(1)

    async def _process() -> int:
        processor = create_processor(settings)
        failures = 0

        for document in documents:
            try:
                with Progress(
                    SpinnerColumn(),
                    TextColumn("[progress.description]{task.description}"),
                    console=console,
                ) as progress:
                    progress.add_task(f"Processing {document.name}...", total=None)
                    result = await processor.process(document)
            except Pdf2XlsException as e:
                failures += 1
                logger.error(f"Processing {document} failed: {e}")
                console.print(f"[red]✗[/red] {document.name}: {e.message}")
                continue

            if result.skipped:
                console.print(f"[yellow]![/yellow] {document.name}: no mapped fields, nothing written")
            else:
                console.print(
                    f"[green]✓[/green] {document.name}: {result.cells_written} cells written to row {result.row}"
                )

        return failures

    failures = asyncio.run(_process())
    if failures:
        raise typer.Exit(1)


@app.command()
def resolve(
    symbols: List[str] = typer.Argument(..., help="Currency symbols or codes"),
):
    """Show the ISO 4217 code each currency symbol resolves to."""
    table = Table(title="Currency resolution")
    table.add_column("Input", style="cyan")
    table.add_column("ISO code", style="green")

    for symbol in symbols:
        table.add_row(symbol, resolve_currency(symbol) or "-")

    console.print(table)


@app.callback()
def main(
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to the JSON settings file (defaults to ./appsettings.json)",
    ),
    debug: bool = typer.Option(False, "--debug", help="Enable debug logging"),
):
    """pdf2xls - Extract invoice data from PDFs into Google Sheets."""
    try:
        settings = configure(Settings.load(config))
    except ConfigurationError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        raise typer.Exit(1)

    setup_logging(log_level="DEBUG" if debug else settings.log_level)


if __name__ == "__main__":
    app()
