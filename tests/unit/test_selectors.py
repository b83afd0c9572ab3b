"""Tests for the built-in image selectors and the selector factory."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone

import pytest

from freightline.core.errors import SelectorConstructionError
from freightline.core.registry_client import RegistryClient, RegistryError
from freightline.core.selectors import (
    DigestSelector,
    ImageSelector,
    LexicalSelector,
    NewestBuildSelector,
    SemVerSelector,
    TagFilter,
    new_selector,
)
from freightline.models.credentials import Credentials
from freightline.models.warehouse import ImageSubscription, SelectionStrategy

REPO_URL = "example.com/my-image"


class FakeRegistry:
    """Stands in for RegistryClient; answers from in-memory tables."""

    def __init__(self, tags=None, digests=None, created=None):
        self.tags = tags or []
        self.digests = digests or {}
        self.created = created or {}
        self.created_calls: list[tuple[str, str]] = []
        self.sessions = 0

    async def __aenter__(self):
        self.sessions += 1
        return self

    async def __aexit__(self, *exc_info):
        return None

    async def list_tags(self, repo_url):
        return list(self.tags)

    async def get_digest(self, repo_url, reference):
        return self.digests[reference]

    async def get_created(self, repo_url, reference, platform=""):
        self.created_calls.append((reference, platform))
        return self.created.get(reference)


class StallingRegistry(FakeRegistry):
    """Fails one creation lookup; the rest wait until cancelled."""

    def __init__(self, tags, failing):
        super().__init__(tags=tags)
        self.failing = failing
        self.cancelled: list[str] = []

    async def get_created(self, repo_url, reference, platform=""):
        if reference == self.failing:
            await asyncio.sleep(0)
            raise RegistryError(f"manifest unknown: {reference}")
        try:
            await asyncio.sleep(30)
        except asyncio.CancelledError:
            self.cancelled.append(reference)
            raise
        return None


def _sub(**kwargs) -> ImageSubscription:
    return ImageSubscription(repo_url=REPO_URL, **kwargs)


def _day(n: int) -> datetime:
    return datetime(2026, 1, n, tzinfo=timezone.utc)


class TestTagFilter:
    def test_no_rules_allows_everything(self):
        assert TagFilter().allows("anything")

    def test_allow_pattern(self):
        f = TagFilter(allow_tags=r"^v\d")
        assert f.allows("v1.0.0")
        assert not f.allows("latest")

    def test_ignore_list_wins(self):
        f = TagFilter(allow_tags=r"^v", ignore_tags=["v1.0.0"])
        assert not f.allows("v1.0.0")
        assert f.allows("v1.0.1")

    def test_invalid_pattern(self):
        with pytest.raises(ValueError, match="invalid allow_tags pattern"):
            TagFilter(allow_tags="(")


class TestSemVerSelector:
    def test_matches_tag_with_constraint(self):
        selector = SemVerSelector(_sub(constraint="^1.0.0"), FakeRegistry())
        assert selector.matches_tag("v1.4.0")
        assert not selector.matches_tag("v2.0.0")
        assert not selector.matches_tag("latest")

    def test_prereleases_excluded_without_constraint(self):
        selector = SemVerSelector(_sub(), FakeRegistry())
        assert selector.matches_tag("1.0.0")
        assert not selector.matches_tag("1.1.0-rc.1")

    def test_strict_semvers(self):
        strict = SemVerSelector(_sub(), FakeRegistry())
        lenient = SemVerSelector(_sub(strict_semvers=False), FakeRegistry())
        assert not strict.matches_tag("v1.2")
        assert lenient.matches_tag("v1.2")

    def test_invalid_constraint(self):
        with pytest.raises(ValueError):
            SemVerSelector(_sub(constraint="not a range"), FakeRegistry())

    @pytest.mark.asyncio
    async def test_select_orders_and_limits(self):
        registry = FakeRegistry(tags=["v1.0.0", "v1.10.0", "latest", "v1.2.0", "v0.9.0"])
        selector = SemVerSelector(_sub(discovery_limit=3), registry)

        refs = await selector.select()

        assert [r.tag for r in refs] == ["v1.10.0", "v1.2.0", "v1.0.0"]

    def test_satisfies_protocol(self):
        assert isinstance(SemVerSelector(_sub(), FakeRegistry()), ImageSelector)


class TestDigestSelector:
    def test_requires_constraint(self):
        with pytest.raises(ValueError):
            DigestSelector(_sub(image_selection_strategy=SelectionStrategy.DIGEST), FakeRegistry())

    def test_matches_only_followed_tag(self):
        selector = DigestSelector(
            _sub(image_selection_strategy=SelectionStrategy.DIGEST, constraint="stable"),
            FakeRegistry(),
        )
        assert selector.matches_tag("stable")
        assert not selector.matches_tag("v1.0.0")

    @pytest.mark.asyncio
    async def test_select_resolves_digest(self):
        registry = FakeRegistry(
            digests={"stable": "sha256:abc"}, created={"sha256:abc": _day(3)}
        )
        selector = DigestSelector(
            _sub(
                image_selection_strategy=SelectionStrategy.DIGEST,
                constraint="stable",
                platform="linux/amd64",
            ),
            registry,
        )

        refs = await selector.select()

        assert len(refs) == 1
        assert refs[0].tag == "stable"
        assert refs[0].digest == "sha256:abc"
        assert refs[0].created_at == _day(3)
        assert registry.created_calls == [("sha256:abc", "linux/amd64")]

    @pytest.mark.asyncio
    async def test_ignored_tag_selects_nothing(self):
        selector = DigestSelector(
            _sub(
                image_selection_strategy=SelectionStrategy.DIGEST,
                constraint="stable",
                ignore_tags=["stable"],
            ),
            FakeRegistry(),
        )
        assert await selector.select() == []


class TestNewestBuildSelector:
    @pytest.mark.asyncio
    async def test_orders_by_creation_time(self):
        registry = FakeRegistry(
            tags=["a", "b", "c", "undated"],
            created={"a": _day(2), "b": _day(9), "c": _day(5)},
        )
        selector = NewestBuildSelector(
            _sub(image_selection_strategy=SelectionStrategy.NEWEST_BUILD, discovery_limit=2),
            registry,
        )

        refs = await selector.select()

        assert [r.tag for r in refs] == ["b", "c"]
        assert refs[0].created_at == _day(9)
        assert registry.sessions == 1

    @pytest.mark.asyncio
    async def test_failed_lookup_cancels_the_rest(self):
        tags = ["a", "b", "c", "d"]
        registry = StallingRegistry(tags, failing="b")
        selector = NewestBuildSelector(
            _sub(image_selection_strategy=SelectionStrategy.NEWEST_BUILD), registry
        )

        with pytest.raises(RegistryError, match="manifest unknown: b"):
            await selector.select()

        assert sorted(registry.cancelled) == ["a", "c", "d"]

    def test_matches_tag_uses_filter(self):
        selector = NewestBuildSelector(
            _sub(image_selection_strategy=SelectionStrategy.NEWEST_BUILD, allow_tags="^main-"),
            FakeRegistry(),
        )
        assert selector.matches_tag("main-abc123")
        assert not selector.matches_tag("pr-12")


class TestLexicalSelector:
    @pytest.mark.asyncio
    async def test_reverse_lexical_order(self):
        registry = FakeRegistry(tags=["nightly-001", "nightly-010", "nightly-002", "latest"])
        selector = LexicalSelector(
            _sub(image_selection_strategy=SelectionStrategy.LEXICAL, allow_tags="^nightly-"),
            registry,
        )

        refs = await selector.select()

        assert [r.tag for r in refs] == ["nightly-010", "nightly-002", "nightly-001"]


class TestNewSelector:
    @pytest.mark.parametrize(
        ("strategy", "cls"),
        [
            (SelectionStrategy.SEMVER, SemVerSelector),
            (SelectionStrategy.NEWEST_BUILD, NewestBuildSelector),
            (SelectionStrategy.LEXICAL, LexicalSelector),
        ],
    )
    def test_dispatches_on_strategy(self, strategy, cls):
        selector = new_selector(_sub(image_selection_strategy=strategy), client=FakeRegistry())
        assert isinstance(selector, cls)

    def test_builds_registry_client_from_credentials(self):
        creds = Credentials(username="robot", password="pw")
        selector = new_selector(_sub(), creds, timeout=5.0)
        client = selector._client
        assert isinstance(client, RegistryClient)
        assert client.credentials == creds
        assert client.timeout == 5.0
        assert client.max_concurrent_requests == 8

    def test_request_bound_passed_to_client(self):
        selector = new_selector(_sub(), max_concurrent_requests=3)
        assert selector._client.max_concurrent_requests == 3

    def test_invalid_request_bound(self):
        with pytest.raises(SelectorConstructionError) as excinfo:
            new_selector(_sub(), max_concurrent_requests=0)
        assert excinfo.value.repo_url == REPO_URL

    def test_malformed_subscription(self):
        with pytest.raises(SelectorConstructionError) as excinfo:
            new_selector(
                _sub(image_selection_strategy=SelectionStrategy.DIGEST), client=FakeRegistry()
            )
        assert excinfo.value.repo_url == REPO_URL

    def test_bad_allow_pattern(self):
        with pytest.raises(SelectorConstructionError):
            new_selector(_sub(allow_tags="["), client=FakeRegistry())
