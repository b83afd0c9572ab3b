"""``freightline active-freight NAMESPACE WAREHOUSE`` — list live Freight."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console

from freightline.config import ProdConfig
from freightline.core.errors import ActivityIndexQueryError
from freightline.core.freight_index import FreightIndex
from freightline.cli.render import render_freight_table

console = Console()


def active_freight_cmd(
    namespace: str = typer.Argument(..., help="Namespace of the Warehouse."),
    warehouse: str = typer.Argument(..., help="Name of the producing Warehouse."),
    state_db: Path = typer.Option(
        None, "--state", "-s", help="Path to the state database."
    ),
) -> None:
    """List Freight from a Warehouse that at least one Stage is running."""
    index = FreightIndex(state_db or ProdConfig().state_db_path)
    try:
        freight = index.active_by_warehouse(namespace, warehouse)
    except ActivityIndexQueryError as exc:
        console.print(f"[bold red]Activity index error:[/bold red] {exc}")
        raise typer.Exit(code=1)

    if not freight:
        console.print(f"[dim]No active Freight for {namespace}/{warehouse}.[/dim]")
        return
    console.print(render_freight_table(freight))
