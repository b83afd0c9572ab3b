"""Warehouse models — subscriptions, generation tracking, discovery status."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator

from freightline.models.discovery import DiscoveredArtifacts


class SelectionStrategy(str, Enum):
    """How an image subscription picks tags from a repository."""

    SEMVER = "SemVer"
    DIGEST = "Digest"
    NEWEST_BUILD = "NewestBuild"
    LEXICAL = "Lexical"


class ImageSubscription(BaseModel):
    """Subscription to a container image repository.

    ``constraint`` is a semver range for ``SemVer`` and the name of the
    mutable tag to follow for ``Digest``. Other strategies ignore it.
    """

    model_config = ConfigDict(frozen=True)

    repo_url: str
    image_selection_strategy: SelectionStrategy = SelectionStrategy.SEMVER
    constraint: str = ""
    allow_tags: str = ""  # regex
    ignore_tags: list[str] = Field(default_factory=list)
    strict_semvers: bool = True
    platform: str = ""  # e.g. "linux/amd64"
    discovery_limit: int = Field(default=20, ge=1, le=100)


class GitSubscription(BaseModel):
    model_config = ConfigDict(frozen=True)

    repo_url: str
    branch: str = ""


class ChartSubscription(BaseModel):
    model_config = ConfigDict(frozen=True)

    repo_url: str
    name: str = ""
    semver_constraint: str = ""


class RepoSubscription(BaseModel):
    """A single Warehouse subscription. Exactly one field is set."""

    model_config = ConfigDict(frozen=True)

    image: ImageSubscription | None = None
    git: GitSubscription | None = None
    chart: ChartSubscription | None = None

    @model_validator(mode="after")
    def _exactly_one(self) -> RepoSubscription:
        kinds = [k for k in (self.image, self.git, self.chart) if k is not None]
        if len(kinds) != 1:
            raise ValueError(
                "a subscription must set exactly one of image, git or chart"
            )
        return self


class WarehouseSpec(BaseModel):
    model_config = ConfigDict(frozen=True)

    subscriptions: list[RepoSubscription] = Field(default_factory=list)


class WarehouseStatus(BaseModel):
    """Persisted status. ``discovered_artifacts`` doubles as the discovery cache."""

    model_config = ConfigDict(frozen=True)

    observed_generation: int = 0
    discovered_artifacts: DiscoveredArtifacts | None = None


class Warehouse(BaseModel):
    """A source of subscriptions whose artifacts become Freight.

    ``generation`` increments whenever the spec changes; status records the
    generation that the last successful discovery observed.
    """

    model_config = ConfigDict(frozen=True)

    namespace: str
    name: str
    generation: int = 1
    spec: WarehouseSpec = WarehouseSpec()
    status: WarehouseStatus = WarehouseStatus()

    @property
    def image_subscriptions(self) -> list[ImageSubscription]:
        """Image subscriptions in declared order."""
        return [s.image for s in self.spec.subscriptions if s.image is not None]
