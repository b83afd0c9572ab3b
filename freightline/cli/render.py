"""Rich renderables for discovery results, Warehouses and Freight.

Color scheme
------------
- green   : freshly discovered tag
- yellow  : tag retained from active Freight
- dim     : metadata not available
"""

from __future__ import annotations

from rich.panel import Panel
from rich.table import Table

from freightline.models.discovery import ImageDiscoveryResult
from freightline.models.freight import Freight
from freightline.models.warehouse import Warehouse


def render_image_result(result: ImageDiscoveryResult) -> Table:
    """Render one repository's discovered references as a table."""
    title = result.repo_url + (f" ({result.platform})" if result.platform else "")
    table = Table(title=title, title_justify="left")
    table.add_column("Tag", style="cyan")
    table.add_column("Digest")
    table.add_column("Created")
    table.add_column("Source", justify="center")

    if not result.references:
        table.add_row("[dim]no images found[/dim]", "", "", "")
        return table

    for ref in result.references:
        source = (
            "[yellow]retained[/yellow]" if ref.from_active_freight
            else "[green]discovered[/green]"
        )
        table.add_row(
            ref.tag,
            ref.digest[:19] if ref.digest else "[dim]-[/dim]",
            ref.created_at.isoformat() if ref.created_at else "[dim]-[/dim]",
            source,
        )
    return table


def render_warehouse_header(warehouse: Warehouse) -> Panel:
    """Summarise a Warehouse's generation bookkeeping."""
    artifacts = warehouse.status.discovered_artifacts
    discovered_at = (
        artifacts.discovered_at.isoformat()
        if artifacts is not None and artifacts.discovered_at is not None
        else "never"
    )
    lines = [
        f"[bold]Warehouse:[/bold] {warehouse.namespace}/{warehouse.name}",
        f"[bold]Generation:[/bold] {warehouse.generation}",
        f"[bold]Observed generation:[/bold] {warehouse.status.observed_generation}",
        f"[bold]Last discovery:[/bold] {discovered_at}",
    ]
    return Panel("\n".join(lines), border_style="blue")


def render_freight_table(freight: list[Freight]) -> Table:
    """Render Freight with the Stages currently running each one."""
    table = Table(title="Active Freight")
    table.add_column("Name", style="cyan")
    table.add_column("Images")
    table.add_column("Stages", style="green")
    for f in freight:
        images = "\n".join(f"{i.repo_url}:{i.tag}" for i in f.images if i.tag)
        stages = ", ".join(sorted(f.status.currently_in))
        table.add_row(f.name, images, stages)
    return table
