"""Main Typer application — imports and registers all CLI commands.

Entry point: ``freightline`` (configured via pyproject.toml scripts).

Commands: apply, discover, status, active-freight, warehouses.
"""

from __future__ import annotations

import logging
from pathlib import Path

import typer
from rich.logging import RichHandler

from freightline.cli.commands.apply import apply_cmd
from freightline.cli.commands.discover import discover_cmd
from freightline.cli.commands.freight import active_freight_cmd
from freightline.cli.commands.status import status_cmd
from freightline.config import ProdConfig

app = typer.Typer(
    name="freightline",
    help="Freightline: artifact discovery with active-Freight retention.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)

# Register subcommands
app.command(name="apply", help="Load Warehouses and Freight from a JSON file.")(apply_cmd)
app.command(name="discover", help="Run one discovery pass for a Warehouse.")(discover_cmd)
app.command(name="status", help="Show a Warehouse's persisted discovery status.")(status_cmd)
app.command(name="active-freight", help="List active Freight for a Warehouse.")(
    active_freight_cmd
)


@app.callback()
def configure(
    log_level: str = typer.Option(
        None, "--log-level", help="Log level (defaults to FREIGHTLINE_LOG_LEVEL)."
    ),
    debug: bool = typer.Option(
        False, "--debug", help="Debug logging and verbose tracebacks (or FREIGHTLINE_DEBUG)."
    ),
) -> None:
    """Configure logging for every command."""
    from freightline.config import config as _cfg

    debug = debug or _cfg.debug
    level = "DEBUG" if debug else (log_level or _cfg.log_level).upper()
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[
            RichHandler(
                rich_tracebacks=True,
                tracebacks_show_locals=debug,
                show_path=debug,
            )
        ],
        force=True,
    )


@app.command(name="warehouses", help="List stored Warehouses.")
def warehouses_cmd(
    namespace: str = typer.Option(None, help="Filter by namespace."),
    state_db: Path = typer.Option(
        None, "--state", "-s", help="Path to the state database."
    ),
) -> None:
    """List stored Warehouses and their discovery bookkeeping."""
    from rich.console import Console
    from rich.table import Table

    from freightline.core.warehouse_store import WarehouseStore

    console = Console()
    store = WarehouseStore(state_db or ProdConfig().state_db_path)
    warehouses = store.list_warehouses(namespace)

    if not warehouses:
        console.print("[dim]No Warehouses stored.[/dim]")
        return

    table = Table(title="Warehouses")
    table.add_column("Namespace")
    table.add_column("Name", style="cyan")
    table.add_column("Generation", justify="right")
    table.add_column("Observed", justify="right")
    table.add_column("Image repos", justify="right")

    for w in warehouses:
        observed = w.status.observed_generation
        style = "green" if observed == w.generation else "yellow"
        table.add_row(
            w.namespace,
            w.name,
            str(w.generation),
            f"[{style}]{observed}[/{style}]",
            str(len(w.image_subscriptions)),
        )

    console.print(table)


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
