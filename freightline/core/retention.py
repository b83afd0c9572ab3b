"""Active-Freight retention — keeps deployed tags selectable.

A selector only reports the newest N tags. Once a tag that is running in
some Stage falls out of that window it would disappear from discovery and
the Stage could no longer be rolled back to it. Retention appends such
tags to the discovered list.

Two modes:

* **Fresh** — ``active_freight`` is supplied (possibly empty). Tags are
  taken from active Freight images for the same repository that still
  pass ``selector.matches_tag``. Retained entries carry the tag only.
* **Cache reuse** — ``active_freight`` is ``None``. Entries of the
  previous discovery result marked ``from_active_freight`` are replayed,
  metadata included, if they still pass ``selector.matches_tag``.

In both modes discovered entries come first and are never replaced, the
retained tail is sorted by tag, and no tag appears twice.
"""

from __future__ import annotations

import logging
from typing import Protocol

from pydantic import BaseModel, ConfigDict

from freightline.core.selectors import ImageSelector
from freightline.models.discovery import DiscoveredImageReference
from freightline.models.freight import Freight
from freightline.models.warehouse import ImageSubscription, SelectionStrategy, Warehouse

logger = logging.getLogger(__name__)


class ActiveFreightLister(Protocol):
    """Anything that can list active Freight for a Warehouse."""

    async def list_active_by_warehouse(
        self, namespace: str, warehouse_name: str
    ) -> list[Freight]:
        ...


class RetentionPolicy(BaseModel):
    """Which selection strategies active-Freight retention applies to."""

    model_config = ConfigDict(frozen=True)

    strategies: frozenset[SelectionStrategy] = frozenset(SelectionStrategy)

    def applies_to(self, strategy: SelectionStrategy) -> bool:
        return strategy in self.strategies


def active_tags(
    sub: ImageSubscription,
    selector: ImageSelector,
    active_freight: list[Freight],
) -> set[str]:
    """Collect tags for *sub*'s repository referenced by active Freight.

    Only exact repository URL matches with a non-empty tag that the
    selector admits are returned.
    """
    tags: set[str] = set()
    for freight in active_freight:
        for image in freight.images:
            if image.repo_url != sub.repo_url or not image.tag:
                continue
            if selector.matches_tag(image.tag):
                tags.add(image.tag)
    return tags


def retain_active_freight_tags(
    sub: ImageSubscription,
    selector: ImageSelector,
    discovered: list[DiscoveredImageReference],
    active_freight: list[Freight] | None = None,
    previous_discovery: list[DiscoveredImageReference] | None = None,
) -> list[DiscoveredImageReference]:
    """Merge tags obligated by active deployments into *discovered*.

    Parameters
    ----------
    sub:
        The image subscription being discovered.
    selector:
        The selector built from the current subscription; its
        ``matches_tag`` gates every retained tag.
    discovered:
        Freshly discovered references. Returned unmodified at the head of
        the result.
    active_freight:
        Active Freight for the Warehouse. ``None`` selects cache-reuse mode.
    previous_discovery:
        The previous result for this repository, used in cache-reuse mode.

    Returns
    -------
    list[DiscoveredImageReference]
        ``discovered`` followed by retained references sorted by tag.
    """
    seen = {ref.tag for ref in discovered}
    retained: list[DiscoveredImageReference] = []

    if active_freight is not None:
        logger.debug(
            "Collecting active tags for %s from %d Freight",
            sub.repo_url,
            len(active_freight),
        )
        for tag in active_tags(sub, selector, active_freight) - seen:
            # Digest and creation time are left out to avoid a registry
            # round trip per retained tag.
            retained.append(DiscoveredImageReference(tag=tag, from_active_freight=True))
    else:
        logger.debug("Reusing retained tags for %s from previous discovery", sub.repo_url)
        for prev in previous_discovery or []:
            if not prev.from_active_freight or prev.tag in seen:
                continue
            if not selector.matches_tag(prev.tag):
                continue
            seen.add(prev.tag)
            retained.append(prev)

    if not retained:
        return list(discovered)

    retained.sort(key=lambda ref: ref.tag)
    logger.debug(
        "Retained %d active Freight tag(s) for %s (total %d)",
        len(retained),
        sub.repo_url,
        len(discovered) + len(retained),
    )
    return list(discovered) + retained


async def retain_from_index(
    index: ActiveFreightLister,
    warehouse: Warehouse,
    sub: ImageSubscription,
    selector: ImageSelector,
    discovered: list[DiscoveredImageReference],
) -> list[DiscoveredImageReference]:
    """Fresh-mode retention that queries the activity index itself.

    Errors from the index propagate unchanged.
    """
    active_freight = await index.list_active_by_warehouse(warehouse.namespace, warehouse.name)
    return retain_active_freight_tags(sub, selector, discovered, active_freight=active_freight)
