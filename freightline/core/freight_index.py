"""Freight Activity Index backed by SQLite.

Answers "which Freight from this Warehouse is running in at least one
Stage right now". The lookup runs on every generation-changed discovery
pass of every Warehouse, so it is served from a composite index over
(namespace, origin kind, origin name, active) rather than a scan.

Design:
- One row per Freight, keyed by (namespace, name).
- The full Freight is stored as JSON; the indexed columns are derived
  from it on every write.
- ``active`` mirrors ``bool(status.currently_in)``.
"""

from __future__ import annotations

import asyncio
import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path

from freightline.core.errors import ActivityIndexQueryError
from freightline.models.freight import (
    CurrentStage,
    Freight,
    FreightOriginKind,
    FreightStatus,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# DDL
# ---------------------------------------------------------------------------

_CREATE_FREIGHT = """
CREATE TABLE IF NOT EXISTS freight (
    namespace    TEXT NOT NULL,
    name         TEXT NOT NULL,
    origin_kind  TEXT NOT NULL,
    origin_name  TEXT NOT NULL,
    active       INTEGER NOT NULL DEFAULT 0,
    body_json    TEXT NOT NULL,
    PRIMARY KEY (namespace, name)
);
"""

_CREATE_IDX_BY_WAREHOUSE = """
CREATE INDEX IF NOT EXISTS idx_freight_by_warehouse
    ON freight(namespace, origin_kind, origin_name, active);
"""


class FreightIndex:
    """Indexed store of Freight with an active-by-Warehouse lookup.

    Parameters
    ----------
    db_path:
        Path to the SQLite database file. Created if it does not exist.
    """

    def __init__(self, db_path: Path) -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), check_same_thread=False)
        conn.execute("PRAGMA journal_mode=WAL")
        return conn

    def _init_schema(self) -> None:
        with self._connect() as conn:
            conn.execute(_CREATE_FREIGHT)
            conn.execute(_CREATE_IDX_BY_WAREHOUSE)
            conn.commit()

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def upsert(self, freight: Freight) -> Freight:
        """Insert or replace *freight*, refreshing its index columns."""
        with self._connect() as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO freight
                    (namespace, name, origin_kind, origin_name, active, body_json)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    freight.namespace,
                    freight.name,
                    freight.origin.kind.value,
                    freight.origin.name,
                    int(freight.is_active),
                    freight.model_dump_json(),
                ),
            )
            conn.commit()
        return freight

    def mark_current(
        self,
        namespace: str,
        name: str,
        stage: str,
        *,
        since: datetime | None = None,
    ) -> Freight:
        """Record that *stage* now runs the Freight *name*."""
        freight = self._require(namespace, name)
        currently_in = dict(freight.status.currently_in)
        currently_in[stage] = CurrentStage(since=since or datetime.now(timezone.utc))
        updated = freight.model_copy(
            update={"status": FreightStatus(currently_in=currently_in)}
        )
        logger.debug("Freight %s/%s now current in stage %s", namespace, name, stage)
        return self.upsert(updated)

    def clear_current(self, namespace: str, name: str, stage: str) -> Freight:
        """Record that *stage* no longer runs the Freight *name*."""
        freight = self._require(namespace, name)
        currently_in = {
            s: c for s, c in freight.status.currently_in.items() if s != stage
        }
        updated = freight.model_copy(
            update={"status": FreightStatus(currently_in=currently_in)}
        )
        logger.debug("Freight %s/%s no longer current in stage %s", namespace, name, stage)
        return self.upsert(updated)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, namespace: str, name: str) -> Freight | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT body_json FROM freight WHERE namespace = ? AND name = ?",
                (namespace, name),
            ).fetchone()
        return Freight.model_validate_json(row[0]) if row else None

    def list_freight(self, namespace: str) -> list[Freight]:
        """Return all Freight in *namespace*, ordered by name."""
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT body_json FROM freight WHERE namespace = ? ORDER BY name ASC",
                (namespace,),
            ).fetchall()
        return [Freight.model_validate_json(row[0]) for row in rows]

    def active_by_warehouse(self, namespace: str, warehouse_name: str) -> list[Freight]:
        """Return active Freight produced by the named Warehouse.

        An empty list means nothing is active; store failures raise
        ``ActivityIndexQueryError``.
        """
        try:
            with self._connect() as conn:
                rows = conn.execute(
                    """
                    SELECT body_json FROM freight
                    WHERE namespace = ? AND origin_kind = ? AND origin_name = ?
                      AND active = 1
                    ORDER BY name ASC
                    """,
                    (namespace, FreightOriginKind.WAREHOUSE.value, warehouse_name),
                ).fetchall()
        except sqlite3.Error as exc:
            raise ActivityIndexQueryError(
                f"error listing active Freight for Warehouse "
                f"{namespace}/{warehouse_name}: {exc}"
            ) from exc
        return [Freight.model_validate_json(row[0]) for row in rows]

    async def list_active_by_warehouse(
        self, namespace: str, warehouse_name: str
    ) -> list[Freight]:
        """Async form of ``active_by_warehouse``; the read runs on a worker thread."""
        return await asyncio.to_thread(self.active_by_warehouse, namespace, warehouse_name)

    def _require(self, namespace: str, name: str) -> Freight:
        freight = self.get(namespace, name)
        if freight is None:
            raise KeyError(f"Freight {namespace}/{name} not found")
        return freight
