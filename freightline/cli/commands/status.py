"""``freightline status NAMESPACE NAME`` — show persisted discovery status.

Read-only: prints what the last successful discovery pass wrote, without
contacting any registry.
"""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console

from freightline.config import ProdConfig
from freightline.core.warehouse_store import WarehouseStore
from freightline.cli.render import render_image_result, render_warehouse_header

console = Console()


def status_cmd(
    namespace: str = typer.Argument(..., help="Namespace of the Warehouse."),
    name: str = typer.Argument(..., help="Name of the Warehouse."),
    state_db: Path = typer.Option(
        None, "--state", "-s", help="Path to the state database."
    ),
) -> None:
    """Show the persisted discovery status of a Warehouse."""
    store = WarehouseStore(state_db or ProdConfig().state_db_path)
    warehouse = store.get(namespace, name)
    if warehouse is None:
        console.print(f"[bold red]Warehouse not found:[/bold red] {namespace}/{name}")
        raise typer.Exit(code=1)

    console.print(render_warehouse_header(warehouse))
    artifacts = warehouse.status.discovered_artifacts
    if artifacts is None:
        console.print("[dim]Not discovered yet. Run: freightline discover[/dim]")
        return
    for result in artifacts.images:
        console.print(render_image_result(result))
