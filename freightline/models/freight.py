"""Freight models — immutable bundles of artifact references.

Freight lifecycle belongs to the promotion system. Discovery only reads it
to learn which tags are live in at least one Stage.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class FreightOriginKind(str, Enum):
    """The kind of resource that produced a piece of Freight."""

    WAREHOUSE = "Warehouse"


class FreightOrigin(BaseModel):
    """Identifies the resource a piece of Freight came from."""

    model_config = ConfigDict(frozen=True)

    kind: FreightOriginKind = FreightOriginKind.WAREHOUSE
    name: str


class FreightImage(BaseModel):
    """One container image reference inside a piece of Freight."""

    model_config = ConfigDict(frozen=True)

    repo_url: str
    tag: str = ""
    digest: str = ""


class CurrentStage(BaseModel):
    """Records when a Stage started running a piece of Freight."""

    model_config = ConfigDict(frozen=True)

    since: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class FreightStatus(BaseModel):
    model_config = ConfigDict(frozen=True)

    currently_in: dict[str, CurrentStage] = Field(default_factory=dict)


class Freight(BaseModel):
    """A bundle of artifact references produced by a Warehouse."""

    model_config = ConfigDict(frozen=True)

    namespace: str
    name: str
    origin: FreightOrigin
    images: list[FreightImage] = Field(default_factory=list)
    status: FreightStatus = FreightStatus()

    @property
    def is_active(self) -> bool:
        """Whether at least one Stage currently runs this Freight."""
        return bool(self.status.currently_in)
