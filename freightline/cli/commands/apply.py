"""``freightline apply FILE`` — load Warehouses and Freight from JSON.

The file holds an object with optional ``warehouses`` and ``freight``
lists, each entry in the models' JSON form::

    {
      "warehouses": [
        {"namespace": "demo", "name": "web",
         "spec": {"subscriptions": [{"image": {"repo_url": "ghcr.io/acme/web"}}]}}
      ],
      "freight": [
        {"namespace": "demo", "name": "f-1",
         "origin": {"kind": "Warehouse", "name": "web"},
         "images": [{"repo_url": "ghcr.io/acme/web", "tag": "v1.0.0"}],
         "status": {"currently_in": {"prod": {}}}}
      ]
    }

Warehouse spec changes bump the stored generation; stored status is kept.
"""

from __future__ import annotations

import json
from pathlib import Path

import typer
from pydantic import ValidationError
from rich.console import Console

from freightline.config import ProdConfig
from freightline.core.freight_index import FreightIndex
from freightline.core.warehouse_store import WarehouseStore
from freightline.models.freight import Freight
from freightline.models.warehouse import Warehouse

console = Console()


def apply_cmd(
    file: Path = typer.Argument(..., help="JSON file with warehouses and freight."),
    state_db: Path = typer.Option(
        None, "--state", "-s", help="Path to the state database."
    ),
) -> None:
    """Create or update Warehouses and Freight from a JSON file."""
    try:
        doc = json.loads(file.read_text(encoding="utf-8"))
        if not isinstance(doc, dict):
            raise ValueError(f"expected a JSON object, got {type(doc).__name__}")
        warehouses = [Warehouse.model_validate(w) for w in doc.get("warehouses", [])]
        freight = [Freight.model_validate(f) for f in doc.get("freight", [])]
    except (OSError, ValueError, ValidationError) as exc:
        console.print(f"[bold red]Cannot load {file}:[/bold red] {exc}")
        raise typer.Exit(code=1)

    db_path = state_db or ProdConfig().state_db_path
    store = WarehouseStore(db_path)
    index = FreightIndex(db_path)

    for w in warehouses:
        stored = store.put(w)
        console.print(
            f"warehouse [cyan]{stored.namespace}/{stored.name}[/cyan] "
            f"generation {stored.generation}"
        )
    for f in freight:
        index.upsert(f)
        state = "[green]active[/green]" if f.is_active else "[dim]inactive[/dim]"
        console.print(f"freight [cyan]{f.namespace}/{f.name}[/cyan] {state}")
