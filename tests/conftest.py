"""Shared test fixtures for Freightline."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import pytest

from freightline.core.credentials import CredentialStore
from freightline.core.freight_index import FreightIndex
from freightline.core.warehouse_store import WarehouseStore
from freightline.models.discovery import DiscoveredImageReference
from freightline.models.freight import (
    CurrentStage,
    Freight,
    FreightImage,
    FreightOrigin,
    FreightStatus,
)
from freightline.models.warehouse import (
    ImageSubscription,
    RepoSubscription,
    Warehouse,
    WarehouseSpec,
)

REPO_URL = "example.com/my-image"
NAMESPACE = "test-namespace"
WAREHOUSE = "test-warehouse"


class FakeSelector:
    """ImageSelector double: configurable match predicate and select result."""

    def __init__(
        self,
        matches: Callable[[str], bool] | None = None,
        images: list[DiscoveredImageReference] | None = None,
        error: Exception | None = None,
    ) -> None:
        self._matches = matches
        self._images = images or []
        self._error = error
        self.select_calls = 0

    def matches_tag(self, tag: str) -> bool:
        if self._matches is not None:
            return self._matches(tag)
        return True

    async def select(self) -> list[DiscoveredImageReference]:
        self.select_calls += 1
        if self._error is not None:
            raise self._error
        return list(self._images)


class FakeFreightLister:
    """Activity index double that records how often it was queried."""

    def __init__(self, freight: list[Freight] | None = None, error: Exception | None = None):
        self.freight = freight or []
        self.error = error
        self.calls: list[tuple[str, str]] = []

    async def list_active_by_warehouse(self, namespace: str, warehouse_name: str) -> list[Freight]:
        self.calls.append((namespace, warehouse_name))
        if self.error is not None:
            raise self.error
        return [
            f for f in self.freight
            if f.namespace == namespace and f.origin.name == warehouse_name and f.is_active
        ]


class FakeCredentialsDB:
    """Credential lookup double returning nothing unless told otherwise."""

    def __init__(self, creds: Any = None, error: Exception | None = None) -> None:
        self.creds = creds
        self.error = error
        self.calls: list[tuple[str, Any, str]] = []

    async def get(self, namespace: str, credential_type: Any, repo_url: str) -> Any:
        self.calls.append((namespace, credential_type, repo_url))
        if self.error is not None:
            raise self.error
        return self.creds


@pytest.fixture
def tmp_dir(tmp_path: Path) -> Path:
    """Provide a temporary directory for test state."""
    return tmp_path


@pytest.fixture
def freight_index(tmp_dir: Path) -> FreightIndex:
    """Provide a fresh FreightIndex backed by a temp SQLite database."""
    return FreightIndex(tmp_dir / "state.db")


@pytest.fixture
def warehouse_store(tmp_dir: Path) -> WarehouseStore:
    """Provide a fresh WarehouseStore sharing the temp database."""
    return WarehouseStore(tmp_dir / "state.db")


@pytest.fixture
def credential_store(tmp_dir: Path) -> CredentialStore:
    """Provide a CredentialStore backed by a temp JSON file."""
    return CredentialStore(tmp_dir / "credentials.json")


@pytest.fixture
def subscription() -> ImageSubscription:
    """A SemVer subscription to the test repository."""
    return ImageSubscription(repo_url=REPO_URL)


# ---------------------------------------------------------------------------
# Factories shared across test modules
# ---------------------------------------------------------------------------


@pytest.fixture
def make_freight() -> Callable[..., Freight]:
    """Factory fixture: build Freight for the test Warehouse.

    ``stages`` lists the Stages currently running it; empty means inactive.
    """

    def _factory(
        name: str = "freight-1",
        tags: list[str] | None = None,
        stages: list[str] | None = None,
        *,
        repo_url: str = REPO_URL,
        warehouse: str = WAREHOUSE,
        namespace: str = NAMESPACE,
    ) -> Freight:
        since = datetime(2026, 1, 1, tzinfo=timezone.utc)
        return Freight(
            namespace=namespace,
            name=name,
            origin=FreightOrigin(name=warehouse),
            images=[FreightImage(repo_url=repo_url, tag=t) for t in (tags or [])],
            status=FreightStatus(
                currently_in={s: CurrentStage(since=since) for s in (stages or [])}
            ),
        )

    return _factory


@pytest.fixture
def make_warehouse() -> Callable[..., Warehouse]:
    """Factory fixture: build a Warehouse with image subscriptions."""

    def _factory(
        subs: list[ImageSubscription] | None = None,
        **overrides: Any,
    ) -> Warehouse:
        defaults: dict[str, Any] = {
            "namespace": NAMESPACE,
            "name": WAREHOUSE,
            "spec": WarehouseSpec(
                subscriptions=[
                    RepoSubscription(image=s)
                    for s in (subs or [ImageSubscription(repo_url=REPO_URL)])
                ]
            ),
        }
        defaults.update(overrides)
        return Warehouse(**defaults)

    return _factory


@pytest.fixture
def make_selector() -> Callable[..., FakeSelector]:
    """Factory fixture: build a FakeSelector."""
    return FakeSelector


@pytest.fixture
def make_lister() -> Callable[..., FakeFreightLister]:
    """Factory fixture: build a FakeFreightLister."""
    return FakeFreightLister


@pytest.fixture
def make_credentials_db() -> Callable[..., FakeCredentialsDB]:
    """Factory fixture: build a FakeCredentialsDB."""
    return FakeCredentialsDB
