"""Pluggable image selectors — one per tag selection strategy.

Defines the ``ImageSelector`` Protocol consumed by discovery and retention,
plus the four built-in strategies:

* ``SemVer`` — tags that parse as semantic versions and satisfy the
  subscription's constraint, newest version first.
* ``Digest`` — a single mutable tag (the constraint) and the digest it
  currently resolves to.
* ``NewestBuild`` — any allowed tag, most recently built image first.
* ``Lexical`` — any allowed tag, reverse lexical order.

All strategies share tag filtering (``allow_tags`` regex, ``ignore_tags``
list) through ``TagFilter``. Selectors are built by ``new_selector``, which
dispatches on the subscription's strategy.
"""

from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Awaitable, Callable
from typing import Protocol, TypeVar, runtime_checkable

from freightline.core.errors import SelectorConstructionError
from freightline.core.registry_client import RegistryClient
from freightline.core.semver import Constraint, InvalidConstraintError, try_parse_version
from freightline.models.credentials import Credentials
from freightline.models.discovery import DiscoveredImageReference
from freightline.models.warehouse import ImageSubscription, SelectionStrategy

logger = logging.getLogger(__name__)

T = TypeVar("T")


# ---------------------------------------------------------------------------
# Protocol
# ---------------------------------------------------------------------------


@runtime_checkable
class ImageSelector(Protocol):
    """Protocol for tag selection strategies.

    ``matches_tag`` is pure and must not perform I/O. ``select`` talks to
    the registry and returns at most the subscription's discovery limit.
    """

    def matches_tag(self, tag: str) -> bool:
        """Return ``True`` if *tag* is admissible under this selector's rules."""
        ...

    async def select(self) -> list[DiscoveredImageReference]:
        """Return the newest applicable references, newest first."""
        ...


# ---------------------------------------------------------------------------
# Shared filtering
# ---------------------------------------------------------------------------


class TagFilter:
    """``allow_tags`` / ``ignore_tags`` filtering common to every strategy."""

    def __init__(self, allow_tags: str = "", ignore_tags: list[str] | None = None) -> None:
        try:
            self._allow = re.compile(allow_tags) if allow_tags else None
        except re.error as exc:
            raise ValueError(f"invalid allow_tags pattern {allow_tags!r}: {exc}") from exc
        self._ignore = set(ignore_tags or [])

    def allows(self, tag: str) -> bool:
        if tag in self._ignore:
            return False
        return self._allow is None or self._allow.search(tag) is not None


async def _gather_or_cancel(coros: list[Awaitable[T]]) -> list[T]:
    """Like ``asyncio.gather``, but the first failure cancels the rest."""
    tasks = [asyncio.ensure_future(c) for c in coros]
    try:
        return await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------


class SemVerSelector:
    """Selects semantic-version tags, optionally within a constraint range."""

    def __init__(self, sub: ImageSubscription, client: RegistryClient) -> None:
        self._sub = sub
        self._client = client
        self._filter = TagFilter(sub.allow_tags, sub.ignore_tags)
        try:
            self._constraint = Constraint(sub.constraint) if sub.constraint else None
        except InvalidConstraintError as exc:
            raise ValueError(str(exc)) from exc

    def matches_tag(self, tag: str) -> bool:
        if not self._filter.allows(tag):
            return False
        version = try_parse_version(tag, strict=self._sub.strict_semvers)
        if version is None:
            return False
        if self._constraint is None:
            # Without a constraint, pre-releases are never selected.
            return not version.prerelease
        return self._constraint.check(version)

    async def select(self) -> list[DiscoveredImageReference]:
        tags = await self._client.list_tags(self._sub.repo_url)
        matched = [t for t in tags if self.matches_tag(t)]
        matched.sort(
            key=lambda t: try_parse_version(t, strict=self._sub.strict_semvers).sort_key,
            reverse=True,
        )
        return [DiscoveredImageReference(tag=t) for t in matched[: self._sub.discovery_limit]]


class DigestSelector:
    """Follows one mutable tag and reports the digest it resolves to."""

    def __init__(self, sub: ImageSubscription, client: RegistryClient) -> None:
        if not sub.constraint:
            raise ValueError("the Digest strategy requires a constraint naming a tag")
        self._sub = sub
        self._client = client
        self._filter = TagFilter(sub.allow_tags, sub.ignore_tags)

    def matches_tag(self, tag: str) -> bool:
        return tag == self._sub.constraint and self._filter.allows(tag)

    async def select(self) -> list[DiscoveredImageReference]:
        tag = self._sub.constraint
        if not self._filter.allows(tag):
            return []
        async with self._client:
            digest = await self._client.get_digest(self._sub.repo_url, tag)
            created = await self._client.get_created(
                self._sub.repo_url, digest, self._sub.platform
            )
        return [DiscoveredImageReference(tag=tag, digest=digest, created_at=created)]


class NewestBuildSelector:
    """Orders allowed tags by image creation time, newest first.

    Needs one manifest and one config round trip per candidate tag. The
    lookups share one registry session, whose request bound caps how many
    run at once. If any lookup fails the others are cancelled.
    """

    def __init__(self, sub: ImageSubscription, client: RegistryClient) -> None:
        self._sub = sub
        self._client = client
        self._filter = TagFilter(sub.allow_tags, sub.ignore_tags)

    def matches_tag(self, tag: str) -> bool:
        return self._filter.allows(tag)

    async def select(self) -> list[DiscoveredImageReference]:
        async with self._client:
            tags = [
                t for t in await self._client.list_tags(self._sub.repo_url)
                if self.matches_tag(t)
            ]
            created = await _gather_or_cancel([
                self._client.get_created(self._sub.repo_url, t, self._sub.platform)
                for t in tags
            ])
        dated = [(c, t) for t, c in zip(tags, created) if c is not None]
        dated.sort(reverse=True)
        return [
            DiscoveredImageReference(tag=t, created_at=c)
            for c, t in dated[: self._sub.discovery_limit]
        ]


class LexicalSelector:
    """Orders allowed tags in reverse lexical order."""

    def __init__(self, sub: ImageSubscription, client: RegistryClient) -> None:
        self._sub = sub
        self._client = client
        self._filter = TagFilter(sub.allow_tags, sub.ignore_tags)

    def matches_tag(self, tag: str) -> bool:
        return self._filter.allows(tag)

    async def select(self) -> list[DiscoveredImageReference]:
        tags = sorted(
            (t for t in await self._client.list_tags(self._sub.repo_url) if self.matches_tag(t)),
            reverse=True,
        )
        return [DiscoveredImageReference(tag=t) for t in tags[: self._sub.discovery_limit]]


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

_SelectorFactory = Callable[[ImageSubscription, RegistryClient], ImageSelector]

SELECTOR_FACTORIES: dict[SelectionStrategy, _SelectorFactory] = {
    SelectionStrategy.SEMVER: SemVerSelector,
    SelectionStrategy.DIGEST: DigestSelector,
    SelectionStrategy.NEWEST_BUILD: NewestBuildSelector,
    SelectionStrategy.LEXICAL: LexicalSelector,
}


def new_selector(
    sub: ImageSubscription,
    credentials: Credentials | None = None,
    *,
    client: RegistryClient | None = None,
    timeout: float = 30.0,
    insecure: bool = False,
    max_concurrent_requests: int = 8,
) -> ImageSelector:
    """Build the selector for *sub*'s strategy.

    Parameters
    ----------
    sub:
        The image subscription.
    credentials:
        Registry credentials, or ``None`` for anonymous access.
    client:
        Registry client to use. One is created from *credentials* when
        omitted.
    max_concurrent_requests:
        Request bound for a client created here.

    Raises
    ------
    SelectorConstructionError
        If the strategy is unknown or the subscription is malformed.
    """
    factory = SELECTOR_FACTORIES.get(sub.image_selection_strategy)
    if factory is None:
        raise SelectorConstructionError(
            f"unsupported image selection strategy {sub.image_selection_strategy!r}",
            repo_url=sub.repo_url,
        )
    try:
        if client is None:
            client = RegistryClient(
                credentials,
                timeout=timeout,
                insecure=insecure,
                max_concurrent_requests=max_concurrent_requests,
            )
        selector = factory(sub, client)
    except ValueError as exc:
        raise SelectorConstructionError(
            f"invalid subscription for {sub.repo_url!r}: {exc}",
            repo_url=sub.repo_url,
        ) from exc
    logger.debug(
        "Built %s selector for %s", sub.image_selection_strategy.value, sub.repo_url
    )
    return selector
