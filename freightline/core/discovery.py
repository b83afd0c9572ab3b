"""Image discovery orchestrator — one result per image subscription.

For each image subscription of a Warehouse, in declared order:

1. Resolve registry credentials (none found means anonymous access).
2. Build the selector for the subscription's strategy.
3. Ask the selector for the newest applicable tags.
4. Merge in tags obligated by active Freight (see ``retention``).
5. Emit an ``ImageDiscoveryResult``, empty if nothing was found.

The first failure aborts the pass; no partial result is returned. The
activity index is queried at most once per pass and only when the
Warehouse has never been discovered or its spec generation changed.
Otherwise the previously persisted result is replayed in cache-reuse mode.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Protocol

from freightline.core.errors import (
    ActivityIndexQueryError,
    CredentialLookupError,
    DiscoveryError,
    RegistryDiscoveryError,
    SelectorConstructionError,
)
from freightline.core.retention import (
    ActiveFreightLister,
    RetentionPolicy,
    retain_active_freight_tags,
)
from freightline.core.selectors import ImageSelector, new_selector
from freightline.models.credentials import Credentials, CredentialType
from freightline.models.discovery import DiscoveredImageReference, ImageDiscoveryResult
from freightline.models.freight import Freight
from freightline.models.warehouse import ImageSubscription, RepoSubscription, Warehouse

logger = logging.getLogger(__name__)

SelectorFactory = Callable[[ImageSubscription, Credentials | None], ImageSelector]


class CredentialsLookup(Protocol):
    """Anything that resolves credentials for a repository URL."""

    async def get(
        self,
        namespace: str,
        credential_type: CredentialType,
        repo_url: str,
    ) -> Credentials | None:
        ...


def needs_fresh_active_freight(warehouse: Warehouse) -> bool:
    """Whether this pass must query the activity index.

    True on the first discovery and whenever the spec generation moved
    past the one the persisted status observed.
    """
    return (
        warehouse.status.discovered_artifacts is None
        or warehouse.status.observed_generation != warehouse.generation
    )


class ImageDiscoverer:
    """Drives credentials, selectors and retention for a Warehouse.

    Parameters
    ----------
    credentials_db:
        Credential lookup, usually a ``CredentialStore``.
    freight_index:
        Active Freight lookup, usually a ``FreightIndex``.
    selector_factory:
        Builds a selector from a subscription and optional credentials.
        Defaults to ``new_selector``.
    retention_policy:
        Strategies that retention applies to. Defaults to all of them.
    always_query_active_freight:
        Query the activity index on every pass instead of only when the
        generation check requires it.
    """

    def __init__(
        self,
        credentials_db: CredentialsLookup,
        freight_index: ActiveFreightLister,
        *,
        selector_factory: SelectorFactory | None = None,
        retention_policy: RetentionPolicy | None = None,
        always_query_active_freight: bool = False,
    ) -> None:
        self.credentials_db = credentials_db
        self.freight_index = freight_index
        self.selector_factory: SelectorFactory = selector_factory or new_selector
        self.retention_policy = retention_policy or RetentionPolicy()
        self.always_query_active_freight = always_query_active_freight

    async def discover_images(
        self,
        warehouse: Warehouse,
        subscriptions: list[RepoSubscription] | None = None,
    ) -> list[ImageDiscoveryResult]:
        """Discover images for every image subscription of *warehouse*.

        Parameters
        ----------
        warehouse:
            The Warehouse under discovery; its status supplies the previous
            result for cache reuse.
        subscriptions:
            Subscriptions to process. Defaults to the Warehouse spec's.

        Raises
        ------
        DiscoveryError
            One of its subclasses, naming the offending repository.
        """
        if subscriptions is None:
            subscriptions = warehouse.spec.subscriptions
        image_subs = [s.image for s in subscriptions if s.image is not None]

        active_freight: list[Freight] | None = None
        if self.always_query_active_freight or needs_fresh_active_freight(warehouse):
            active_freight = await self._list_active_freight(warehouse)

        results: list[ImageDiscoveryResult] = []
        for sub in image_subs:
            images = await self._discover_one(warehouse, sub, active_freight)
            results.append(
                ImageDiscoveryResult(
                    repo_url=sub.repo_url,
                    platform=sub.platform,
                    references=images,
                )
            )
            if images:
                logger.debug("Discovered %d image(s) for %s", len(images), sub.repo_url)
            else:
                logger.debug("Discovered no images for %s", sub.repo_url)
        return results

    # ------------------------------------------------------------------
    # Per-subscription steps
    # ------------------------------------------------------------------

    async def _discover_one(
        self,
        warehouse: Warehouse,
        sub: ImageSubscription,
        active_freight: list[Freight] | None,
    ) -> list[DiscoveredImageReference]:
        creds = await self._get_credentials(warehouse.namespace, sub.repo_url)

        try:
            selector = self.selector_factory(sub, creds)
        except DiscoveryError:
            raise
        except Exception as exc:
            raise _wrap(
                SelectorConstructionError,
                f"error obtaining selector for image {sub.repo_url!r}",
                sub.repo_url,
                exc,
            ) from exc

        try:
            images = await selector.select()
        except Exception as exc:
            raise _wrap(
                RegistryDiscoveryError,
                f"error discovering newest applicable images {sub.repo_url!r}",
                sub.repo_url,
                exc,
            ) from exc

        if not self.retention_policy.applies_to(sub.image_selection_strategy):
            return list(images)

        previous: list[DiscoveredImageReference] | None = None
        if active_freight is None:
            previous = _previous_references(warehouse, sub.repo_url)
        return retain_active_freight_tags(
            sub,
            selector,
            images,
            active_freight=active_freight,
            previous_discovery=previous,
        )

    async def _get_credentials(self, namespace: str, repo_url: str) -> Credentials | None:
        try:
            creds = await self.credentials_db.get(namespace, CredentialType.IMAGE, repo_url)
        except Exception as exc:
            raise _wrap(
                CredentialLookupError,
                f"error obtaining credentials for image repo {repo_url!r}",
                repo_url,
                exc,
            ) from exc
        if creds is None:
            logger.debug("Found no credentials for image repo %s", repo_url)
        else:
            logger.debug("Obtained credentials for image repo %s", repo_url)
        return creds

    async def _list_active_freight(self, warehouse: Warehouse) -> list[Freight]:
        try:
            freight = await self.freight_index.list_active_by_warehouse(
                warehouse.namespace, warehouse.name
            )
        except ActivityIndexQueryError:
            raise
        except Exception as exc:
            raise ActivityIndexQueryError(
                f"error listing active Freight for Warehouse "
                f"{warehouse.namespace}/{warehouse.name}: {exc}"
            ) from exc
        logger.debug(
            "Found %d active Freight for Warehouse %s/%s",
            len(freight),
            warehouse.namespace,
            warehouse.name,
        )
        return freight


def _previous_references(
    warehouse: Warehouse, repo_url: str
) -> list[DiscoveredImageReference] | None:
    artifacts = warehouse.status.discovered_artifacts
    if artifacts is None:
        return None
    result = artifacts.image_result(repo_url)
    return list(result.references) if result is not None else None


def _wrap(
    kind: type[DiscoveryError], message: str, repo_url: str, exc: Exception
) -> DiscoveryError:
    return kind(f"{message}: {exc}", repo_url=repo_url)
