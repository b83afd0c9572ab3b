"""SQLite-backed Warehouse store.

Holds each Warehouse as JSON, keyed by (namespace, name). The status
column family is the discovery cache: the reconciler writes it once per
successful pass and discovery reads it back on the next one.

``put`` owns generation bookkeeping: writing a different spec bumps the
generation, writing the same spec leaves it alone.
"""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path

from freightline.models.warehouse import Warehouse, WarehouseStatus

logger = logging.getLogger(__name__)


_CREATE_WAREHOUSES = """
CREATE TABLE IF NOT EXISTS warehouses (
    namespace    TEXT NOT NULL,
    name         TEXT NOT NULL,
    generation   INTEGER NOT NULL,
    body_json    TEXT NOT NULL,
    PRIMARY KEY (namespace, name)
);
"""


class WarehouseNotFoundError(KeyError):
    """Raised when a Warehouse does not exist in the store."""


class WarehouseStore:
    """Persists Warehouse spec and status.

    Parameters
    ----------
    db_path:
        Path to the SQLite database file. Created if it does not exist.
    """

    def __init__(self, db_path: Path) -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        with self._connect() as conn:
            conn.execute(_CREATE_WAREHOUSES)
            conn.commit()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), check_same_thread=False)
        conn.execute("PRAGMA journal_mode=WAL")
        return conn

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def put(self, warehouse: Warehouse) -> Warehouse:
        """Create or update a Warehouse's spec, keeping its stored status.

        Returns the stored Warehouse with its current generation.
        """
        existing = self.get(warehouse.namespace, warehouse.name)
        if existing is None:
            stored = warehouse.model_copy(update={"status": WarehouseStatus()})
        elif existing.spec == warehouse.spec:
            return existing
        else:
            stored = existing.model_copy(
                update={"spec": warehouse.spec, "generation": existing.generation + 1}
            )
            logger.info(
                "Warehouse %s/%s spec changed, generation %d",
                stored.namespace,
                stored.name,
                stored.generation,
            )
        self._write(stored)
        return stored

    def update_status(
        self, namespace: str, name: str, status: WarehouseStatus
    ) -> Warehouse:
        """Replace the status of an existing Warehouse."""
        existing = self.get(namespace, name)
        if existing is None:
            raise WarehouseNotFoundError(f"Warehouse {namespace}/{name} not found")
        stored = existing.model_copy(update={"status": status})
        self._write(stored)
        return stored

    def delete(self, namespace: str, name: str) -> bool:
        """Delete a Warehouse, and with it its discovery status."""
        with self._connect() as conn:
            cur = conn.execute(
                "DELETE FROM warehouses WHERE namespace = ? AND name = ?",
                (namespace, name),
            )
            conn.commit()
        return cur.rowcount > 0

    def _write(self, warehouse: Warehouse) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO warehouses (namespace, name, generation, body_json)
                VALUES (?, ?, ?, ?)
                """,
                (
                    warehouse.namespace,
                    warehouse.name,
                    warehouse.generation,
                    warehouse.model_dump_json(),
                ),
            )
            conn.commit()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, namespace: str, name: str) -> Warehouse | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT body_json FROM warehouses WHERE namespace = ? AND name = ?",
                (namespace, name),
            ).fetchone()
        return Warehouse.model_validate_json(row[0]) if row else None

    def require(self, namespace: str, name: str) -> Warehouse:
        warehouse = self.get(namespace, name)
        if warehouse is None:
            raise WarehouseNotFoundError(f"Warehouse {namespace}/{name} not found")
        return warehouse

    def list_warehouses(self, namespace: str | None = None) -> list[Warehouse]:
        """Return stored Warehouses, optionally limited to one namespace."""
        with self._connect() as conn:
            if namespace is None:
                rows = conn.execute(
                    "SELECT body_json FROM warehouses ORDER BY namespace, name"
                ).fetchall()
            else:
                rows = conn.execute(
                    "SELECT body_json FROM warehouses WHERE namespace = ? ORDER BY name",
                    (namespace,),
                ).fetchall()
        return [Warehouse.model_validate_json(row[0]) for row in rows]
