"""Tests for Freightline data models."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from freightline.models import (
    ChartSubscription,
    CredentialEntry,
    DiscoveredArtifacts,
    DiscoveredImageReference,
    Freight,
    FreightOrigin,
    FreightOriginKind,
    GitSubscription,
    ImageDiscoveryResult,
    ImageSubscription,
    RepoSubscription,
    SelectionStrategy,
    Warehouse,
    WarehouseSpec,
)


class TestDiscoveryModels:
    def test_reference_defaults(self):
        ref = DiscoveredImageReference(tag="v1.0.0")
        assert ref.digest == ""
        assert ref.created_at is None
        assert ref.annotations == {}
        assert ref.from_active_freight is False

    def test_frozen(self):
        ref = DiscoveredImageReference(tag="v1.0.0")
        with pytest.raises(ValidationError):
            ref.tag = "v2.0.0"

    def test_image_result_lookup(self):
        artifacts = DiscoveredArtifacts(
            images=[
                ImageDiscoveryResult(repo_url="a.io/x"),
                ImageDiscoveryResult(repo_url="a.io/y", platform="linux/amd64"),
            ]
        )
        assert artifacts.image_result("a.io/y").platform == "linux/amd64"
        assert artifacts.image_result("a.io/z") is None

    def test_json_round_trip_keeps_retention_flag(self):
        artifacts = DiscoveredArtifacts(
            images=[
                ImageDiscoveryResult(
                    repo_url="a.io/x",
                    references=[DiscoveredImageReference(tag="v1", from_active_freight=True)],
                )
            ]
        )
        restored = DiscoveredArtifacts.model_validate_json(artifacts.model_dump_json())
        assert restored.images[0].references[0].from_active_freight is True


class TestSubscriptions:
    def test_image_defaults(self):
        sub = ImageSubscription(repo_url="ghcr.io/acme/web")
        assert sub.image_selection_strategy == SelectionStrategy.SEMVER
        assert sub.discovery_limit == 20

    @pytest.mark.parametrize("limit", [0, 101])
    def test_discovery_limit_bounds(self, limit):
        with pytest.raises(ValidationError):
            ImageSubscription(repo_url="ghcr.io/acme/web", discovery_limit=limit)

    def test_strategy_from_wire_name(self):
        sub = ImageSubscription.model_validate(
            {"repo_url": "ghcr.io/acme/web", "image_selection_strategy": "NewestBuild"}
        )
        assert sub.image_selection_strategy == SelectionStrategy.NEWEST_BUILD

    def test_exactly_one_kind(self):
        with pytest.raises(ValidationError):
            RepoSubscription()
        with pytest.raises(ValidationError):
            RepoSubscription(
                image=ImageSubscription(repo_url="a.io/x"),
                git=GitSubscription(repo_url="https://git.example.com/x"),
            )

    def test_image_subscriptions_in_order(self):
        warehouse = Warehouse(
            namespace="ns",
            name="wh",
            spec=WarehouseSpec(
                subscriptions=[
                    RepoSubscription(image=ImageSubscription(repo_url="a.io/first")),
                    RepoSubscription(chart=ChartSubscription(repo_url="oci://charts", name="c")),
                    RepoSubscription(image=ImageSubscription(repo_url="a.io/second")),
                ]
            ),
        )
        assert [s.repo_url for s in warehouse.image_subscriptions] == [
            "a.io/first",
            "a.io/second",
        ]


class TestFreight:
    def test_inactive_by_default(self):
        freight = Freight(namespace="ns", name="f", origin=FreightOrigin(name="wh"))
        assert freight.origin.kind == FreightOriginKind.WAREHOUSE
        assert freight.is_active is False

    def test_active_when_current_in_a_stage(self, make_freight):
        assert make_freight(stages=["prod"]).is_active is True


def test_credential_entry_to_credentials():
    entry = CredentialEntry(
        namespace="ns", repo_url="ghcr.io/acme/web", username="u", password="p"
    )
    creds = entry.to_credentials()
    assert (creds.username, creds.password) == ("u", "p")
