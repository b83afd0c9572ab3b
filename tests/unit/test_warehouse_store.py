"""Tests for the SQLite-backed Warehouse store."""

from __future__ import annotations

import pytest

from freightline.core.warehouse_store import WarehouseNotFoundError
from freightline.models.discovery import DiscoveredArtifacts, ImageDiscoveryResult
from freightline.models.warehouse import ImageSubscription, WarehouseStatus

NAMESPACE = "test-namespace"
WAREHOUSE = "test-warehouse"


def _status(generation: int = 1) -> WarehouseStatus:
    return WarehouseStatus(
        observed_generation=generation,
        discovered_artifacts=DiscoveredArtifacts(
            images=[ImageDiscoveryResult(repo_url="example.com/my-image")]
        ),
    )


class TestPut:
    def test_new_warehouse_starts_at_generation_one(self, warehouse_store, make_warehouse):
        stored = warehouse_store.put(make_warehouse(status=_status()))

        assert stored.generation == 1
        # Incoming status is ignored; only discovery writes status
        assert stored.status == WarehouseStatus()

    def test_same_spec_keeps_generation(self, warehouse_store, make_warehouse):
        warehouse_store.put(make_warehouse())
        again = warehouse_store.put(make_warehouse())

        assert again.generation == 1

    def test_changed_spec_bumps_generation_and_keeps_status(
        self, warehouse_store, make_warehouse
    ):
        warehouse_store.put(make_warehouse())
        warehouse_store.update_status(NAMESPACE, WAREHOUSE, _status())

        changed = warehouse_store.put(
            make_warehouse(subs=[ImageSubscription(repo_url="example.com/my-image", constraint="^2")])
        )

        assert changed.generation == 2
        assert changed.status == _status()
        assert warehouse_store.require(NAMESPACE, WAREHOUSE).generation == 2


class TestStatus:
    def test_update_status(self, warehouse_store, make_warehouse):
        warehouse_store.put(make_warehouse())

        stored = warehouse_store.update_status(NAMESPACE, WAREHOUSE, _status())

        assert stored.status.observed_generation == 1
        assert warehouse_store.get(NAMESPACE, WAREHOUSE).status == _status()

    def test_update_status_missing(self, warehouse_store):
        with pytest.raises(WarehouseNotFoundError):
            warehouse_store.update_status(NAMESPACE, "ghost", _status())


class TestReads:
    def test_require_missing(self, warehouse_store):
        with pytest.raises(KeyError):
            warehouse_store.require(NAMESPACE, "ghost")

    def test_list_and_delete(self, warehouse_store, make_warehouse):
        warehouse_store.put(make_warehouse(name="b"))
        warehouse_store.put(make_warehouse(name="a"))
        warehouse_store.put(make_warehouse(namespace="other-ns", name="c"))

        assert [w.name for w in warehouse_store.list_warehouses(NAMESPACE)] == ["a", "b"]
        assert [w.name for w in warehouse_store.list_warehouses()] == ["c", "a", "b"]

        assert warehouse_store.delete(NAMESPACE, "a") is True
        assert warehouse_store.delete(NAMESPACE, "a") is False
        assert warehouse_store.get(NAMESPACE, "a") is None
