"""Freightline data models — all Pydantic v2, all frozen (immutable)."""

from freightline.models.credentials import CredentialEntry, Credentials, CredentialType
from freightline.models.discovery import (
    DiscoveredArtifacts,
    DiscoveredImageReference,
    ImageDiscoveryResult,
)
from freightline.models.freight import (
    CurrentStage,
    Freight,
    FreightImage,
    FreightOrigin,
    FreightOriginKind,
    FreightStatus,
)
from freightline.models.warehouse import (
    ChartSubscription,
    GitSubscription,
    ImageSubscription,
    RepoSubscription,
    SelectionStrategy,
    Warehouse,
    WarehouseSpec,
    WarehouseStatus,
)

__all__ = [
    # credentials
    "CredentialType",
    "Credentials",
    "CredentialEntry",
    # discovery
    "DiscoveredImageReference",
    "ImageDiscoveryResult",
    "DiscoveredArtifacts",
    # freight
    "FreightOriginKind",
    "FreightOrigin",
    "FreightImage",
    "CurrentStage",
    "FreightStatus",
    "Freight",
    # warehouse
    "SelectionStrategy",
    "ImageSubscription",
    "GitSubscription",
    "ChartSubscription",
    "RepoSubscription",
    "WarehouseSpec",
    "WarehouseStatus",
    "Warehouse",
]
