"""Warehouse reconciler — runs one discovery pass and persists the result.

The reconciler wires the WarehouseStore, FreightIndex, CredentialStore and
ImageDiscoverer together. Scheduling, retries and backoff belong to the
caller; a pass either fully succeeds and writes status once, or raises
and leaves the previously persisted status untouched.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from functools import partial

from freightline.config import ProdConfig
from freightline.core.credentials import CredentialStore
from freightline.core.discovery import ImageDiscoverer, SelectorFactory
from freightline.core.freight_index import FreightIndex
from freightline.core.retention import RetentionPolicy
from freightline.core.selectors import new_selector
from freightline.core.warehouse_store import WarehouseStore
from freightline.models.discovery import DiscoveredArtifacts
from freightline.models.warehouse import Warehouse, WarehouseStatus

logger = logging.getLogger(__name__)


class WarehouseReconciler:
    """Reconciles Warehouses by discovering their artifacts.

    Parameters
    ----------
    prod_config:
        Runtime configuration. Uses defaults if not provided.
    store, freight_index, credentials_db:
        Override the subsystems normally built from *prod_config*.
    selector_factory:
        Override selector construction (tests, custom registries).
    """

    def __init__(
        self,
        prod_config: ProdConfig | None = None,
        *,
        store: WarehouseStore | None = None,
        freight_index: FreightIndex | None = None,
        credentials_db: CredentialStore | None = None,
        selector_factory: SelectorFactory | None = None,
    ) -> None:
        self._prod_config = prod_config or ProdConfig()
        cfg = self._prod_config

        self.store = store or WarehouseStore(cfg.state_db_path)
        self.freight_index = freight_index or FreightIndex(cfg.state_db_path)
        self.credentials_db = credentials_db or CredentialStore(cfg.credentials_path)
        self.discoverer = ImageDiscoverer(
            self.credentials_db,
            self.freight_index,
            selector_factory=selector_factory or partial(
                new_selector,
                timeout=cfg.registry_timeout_seconds,
                insecure=cfg.registry_insecure,
                max_concurrent_requests=cfg.registry_max_concurrent_requests,
            ),
            retention_policy=RetentionPolicy(strategies=frozenset(cfg.retention_strategies)),
            always_query_active_freight=cfg.always_query_active_freight,
        )

    async def reconcile(self, namespace: str, name: str) -> Warehouse:
        """Run one discovery pass for a Warehouse and persist its status.

        Returns the Warehouse as stored after the pass.

        Raises
        ------
        WarehouseNotFoundError
            If the Warehouse does not exist.
        DiscoveryError
            If any part of the pass fails. Status is not written.
        """
        warehouse = self.store.require(namespace, name)
        logger.info(
            "Discovering artifacts for Warehouse %s/%s (generation %d)",
            namespace,
            name,
            warehouse.generation,
        )
        try:
            images = await self.discoverer.discover_images(warehouse)
        except Exception:
            logger.error("Discovery failed for Warehouse %s/%s", namespace, name)
            raise

        status = WarehouseStatus(
            observed_generation=warehouse.generation,
            discovered_artifacts=DiscoveredArtifacts(
                discovered_at=datetime.now(timezone.utc),
                images=images,
            ),
        )
        stored = self.store.update_status(namespace, name, status)
        logger.info(
            "Warehouse %s/%s: discovered %d image repositories",
            namespace,
            name,
            len(images),
        )
        return stored
