"""``freightline discover NAMESPACE NAME`` — run one discovery pass.

Loads the Warehouse, discovers images for every image subscription, merges
in tags from active Freight, persists the result to Warehouse status and
prints it.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

import typer
from rich.console import Console

from freightline.config import ProdConfig
from freightline.core.errors import DiscoveryError
from freightline.core.reconciler import WarehouseReconciler
from freightline.core.warehouse_store import WarehouseNotFoundError
from freightline.cli.render import render_image_result, render_warehouse_header

console = Console()


def discover_cmd(
    namespace: str = typer.Argument(..., help="Namespace of the Warehouse."),
    name: str = typer.Argument(..., help="Name of the Warehouse."),
    state_db: Path = typer.Option(
        None,
        "--state",
        "-s",
        help="Path to the state database (defaults to FREIGHTLINE_STATE_DB_PATH).",
    ),
    credentials: Path = typer.Option(
        None,
        "--credentials",
        "-c",
        help="Path to the credentials file (defaults to FREIGHTLINE_CREDENTIALS_PATH).",
    ),
) -> None:
    """Discover artifacts for a Warehouse and persist the result."""
    overrides = {}
    if state_db is not None:
        overrides["state_db_path"] = state_db
    if credentials is not None:
        overrides["credentials_path"] = credentials
    prod_config = ProdConfig(**overrides)

    reconciler = WarehouseReconciler(prod_config)
    try:
        warehouse = asyncio.run(reconciler.reconcile(namespace, name))
    except WarehouseNotFoundError:
        console.print(f"[bold red]Warehouse not found:[/bold red] {namespace}/{name}")
        raise typer.Exit(code=1)
    except DiscoveryError as exc:
        console.print(f"[bold red]Discovery failed:[/bold red] {exc}")
        raise typer.Exit(code=1)

    console.print(render_warehouse_header(warehouse))
    for result in warehouse.status.discovered_artifacts.images:
        console.print(render_image_result(result))
