"""Freightline: artifact discovery with active-Freight retention.

For every Warehouse, Freightline works out which container-image tags are
selectable right now, and guarantees that any tag currently deployed to a
Stage stays selectable after it ages out of the discovery window:

  - Registry-backed selectors (SemVer, Digest, NewestBuild, Lexical)
  - Active-Freight retention with fresh and cache-reuse modes
  - Generation-triggered activity queries, cached in Warehouse status
  - SQLite-backed Warehouse store and indexed Freight activity lookup
  - Typer/Rich CLI
"""

__version__ = "0.1.0"
__description__ = "Artifact discovery with active-Freight retention"

from freightline.core.discovery import ImageDiscoverer
from freightline.core.reconciler import WarehouseReconciler
from freightline.core.retention import retain_active_freight_tags

__all__ = [
    "ImageDiscoverer",
    "WarehouseReconciler",
    "retain_active_freight_tags",
    "__version__",
]
