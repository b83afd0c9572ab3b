"""Discovery result models — the per-repository output of image discovery.

These are persisted inside Warehouse status and replayed on cache-reuse
passes, so field names are part of the stored schema. Add fields with
defaults; never rename.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class DiscoveredImageReference(BaseModel):
    """A single selectable tag for an image repository.

    ``from_active_freight`` marks entries that exist only because a Stage
    currently runs Freight referencing the tag. Retained entries created on
    a fresh pass carry the tag alone; digest, creation time and annotations
    are left empty.
    """

    model_config = ConfigDict(frozen=True)

    tag: str
    digest: str = ""
    created_at: datetime | None = None
    annotations: dict[str, str] = Field(default_factory=dict)
    from_active_freight: bool = False


class ImageDiscoveryResult(BaseModel):
    """Discovery output for one image subscription.

    An empty ``references`` list means discovery ran and found nothing.
    """

    model_config = ConfigDict(frozen=True)

    repo_url: str
    platform: str = ""
    references: list[DiscoveredImageReference] = Field(default_factory=list)


class DiscoveredArtifacts(BaseModel):
    """Everything the last successful discovery pass produced for a Warehouse."""

    model_config = ConfigDict(frozen=True)

    discovered_at: datetime | None = None
    images: list[ImageDiscoveryResult] = Field(default_factory=list)

    def image_result(self, repo_url: str) -> ImageDiscoveryResult | None:
        """Return the stored result for *repo_url*, or ``None``."""
        for result in self.images:
            if result.repo_url == repo_url:
                return result
        return None
