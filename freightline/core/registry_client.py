"""Async OCI distribution API client used by image selectors.

Speaks just enough of the registry v2 API for tag discovery:

- ``GET  /v2/<repo>/tags/list``        (with ``Link`` pagination)
- ``HEAD /v2/<repo>/manifests/<ref>``  (``Docker-Content-Digest``)
- ``GET  /v2/<repo>/manifests/<ref>``  (image manifests and indexes)
- ``GET  /v2/<repo>/blobs/<digest>``   (image config, for ``created``)

Authentication: HTTP basic when credentials are supplied, upgraded to a
bearer token when the registry answers with a ``WWW-Authenticate: Bearer``
challenge. Tokens are cached per repository for the client's lifetime.

Requests share one ``httpx.AsyncClient`` per session and are bounded by a
semaphore, so wide fan-out (one manifest lookup per tag) cannot flood a
registry.

Dependencies:
    httpx (async HTTP)
"""

from __future__ import annotations

import asyncio
import base64
import logging
import re
from datetime import datetime
from typing import Any

import httpx

from freightline.models.credentials import Credentials

logger = logging.getLogger(__name__)

DOCKER_HUB_HOST = "registry-1.docker.io"

_MANIFEST_ACCEPT = ", ".join([
    "application/vnd.oci.image.index.v1+json",
    "application/vnd.docker.distribution.manifest.list.v2+json",
    "application/vnd.oci.image.manifest.v1+json",
    "application/vnd.docker.distribution.manifest.v2+json",
])
_CHALLENGE_PARAM_RE = re.compile(r'(\w+)="([^"]*)"')
_NEXT_LINK_RE = re.compile(r'<([^>]+)>\s*;\s*rel="?next"?')
_FRACTION_RE = re.compile(r"(\.\d{6})\d+")


class RegistryError(RuntimeError):
    """Raised when a registry request fails."""


def split_repo_url(repo_url: str) -> tuple[str, str]:
    """Split an image repository URL into (registry host, repository path).

    Short Docker Hub names are expanded: ``nginx`` becomes
    ``("registry-1.docker.io", "library/nginx")``.
    """
    url = repo_url.removeprefix("https://").removeprefix("http://").rstrip("/")
    first, _, rest = url.partition("/")
    if rest and ("." in first or ":" in first or first == "localhost"):
        host, path = first, rest
    else:
        host, path = DOCKER_HUB_HOST, url
    if host in ("docker.io", "index.docker.io"):
        host = DOCKER_HUB_HOST
    if host == DOCKER_HUB_HOST and "/" not in path:
        path = f"library/{path}"
    return host, path


def parse_created(value: str) -> datetime | None:
    """Parse an RFC 3339 ``created`` timestamp from an image config."""
    if not value:
        return None
    text = _FRACTION_RE.sub(r"\1", value.replace("Z", "+00:00"))
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        logger.debug("Ignoring unparseable created timestamp %r", value)
        return None


class RegistryClient:
    """Minimal async client for one or more OCI registries.

    One ``httpx.AsyncClient`` is opened per session and shared by every
    request made inside it. Use the client as an async context manager to
    hold a session across many calls; a call made outside a session opens
    and closes its own.

    Parameters
    ----------
    credentials:
        Optional username/password. Anonymous access when ``None``.
    timeout:
        Per-request timeout in seconds.
    insecure:
        Use plain HTTP instead of HTTPS.
    max_concurrent_requests:
        Upper bound on requests in flight at once across the session.
    transport:
        Optional ``httpx`` transport, e.g. ``httpx.MockTransport`` in tests.
    """

    def __init__(
        self,
        credentials: Credentials | None = None,
        *,
        timeout: float = 30.0,
        insecure: bool = False,
        max_concurrent_requests: int = 8,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if max_concurrent_requests < 1:
            raise ValueError("max_concurrent_requests must be at least 1")
        self.credentials = credentials
        self.timeout = timeout
        self.scheme = "http" if insecure else "https"
        self.max_concurrent_requests = max_concurrent_requests
        self._transport = transport
        self._tokens: dict[str, str] = {}
        self._client: httpx.AsyncClient | None = None
        self._sessions = 0
        self._limit = asyncio.Semaphore(max_concurrent_requests)

    # -- Lifecycle ------------------------------------------------------------

    async def __aenter__(self) -> RegistryClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                follow_redirects=True,
                transport=self._transport,
            )
        self._sessions += 1
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self._sessions -= 1
        if self._sessions <= 0:
            await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
        self._sessions = 0

    # -- Public API -----------------------------------------------------------

    async def list_tags(self, repo_url: str) -> list[str]:
        """Return every tag in the repository, following pagination."""
        host, repo = split_repo_url(repo_url)
        tags: list[str] = []
        target: str | None = f"/v2/{repo}/tags/list?n=1000"
        async with self:
            while target:
                resp = await self._send("GET", host, repo, target)
                tags.extend(resp.json().get("tags") or [])
                target = self._next_page(resp)
        logger.debug("Listed %d tags for %s", len(tags), repo_url)
        return tags

    async def get_digest(self, repo_url: str, reference: str) -> str:
        """Return the manifest digest that *reference* currently points at."""
        host, repo = split_repo_url(repo_url)
        async with self:
            resp = await self._send(
                "HEAD", host, repo, f"/v2/{repo}/manifests/{reference}",
                headers={"Accept": _MANIFEST_ACCEPT},
            )
        digest = resp.headers.get("Docker-Content-Digest", "")
        if not digest:
            raise RegistryError(
                f"registry returned no digest for {repo_url}:{reference}"
            )
        return digest

    async def get_created(
        self, repo_url: str, reference: str, platform: str = ""
    ) -> datetime | None:
        """Return the image creation time for *reference*.

        For multi-platform indexes the manifest matching *platform* (or the
        first one, when no platform is given) is used.
        """
        host, repo = split_repo_url(repo_url)
        async with self:
            manifest = await self._get_manifest(host, repo, reference)
            if "manifests" in manifest:
                child = _pick_platform(manifest["manifests"], platform)
                if child is None:
                    return None
                manifest = await self._get_manifest(host, repo, child["digest"])
            config_digest = (manifest.get("config") or {}).get("digest")
            if not config_digest:
                return None
            resp = await self._send("GET", host, repo, f"/v2/{repo}/blobs/{config_digest}")
        return parse_created(resp.json().get("created", ""))

    # -- Internals ------------------------------------------------------------

    async def _get_manifest(self, host: str, repo: str, reference: str) -> dict[str, Any]:
        resp = await self._send(
            "GET", host, repo, f"/v2/{repo}/manifests/{reference}",
            headers={"Accept": _MANIFEST_ACCEPT},
        )
        return resp.json()

    async def _send(
        self,
        method: str,
        host: str,
        repo: str,
        target: str,
        *,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        # target is a path on host, or an absolute URL from a Link header
        url = target if target.startswith(("http://", "https://")) else (
            f"{self.scheme}://{host}{target}"
        )
        http = self._client
        if http is None:
            raise RuntimeError("RegistryClient used outside a session")
        async with self._limit:
            try:
                resp = await http.request(method, url, headers=self._auth_headers(repo, headers))
                if resp.status_code == 401:
                    challenge = resp.headers.get("WWW-Authenticate", "")
                    if challenge.lower().startswith("bearer"):
                        self._tokens[repo] = await self._fetch_token(http, challenge)
                        resp = await http.request(
                            method, url, headers=self._auth_headers(repo, headers)
                        )
            except httpx.HTTPError as exc:
                raise RegistryError(f"{method} {url} failed: {exc}") from exc
        if resp.status_code >= 400:
            raise RegistryError(f"{method} {url} returned HTTP {resp.status_code}")
        return resp

    def _auth_headers(self, repo: str, extra: dict[str, str] | None) -> dict[str, str]:
        headers = dict(extra or {})
        token = self._tokens.get(repo)
        if token:
            headers["Authorization"] = f"Bearer {token}"
        elif self.credentials is not None:
            userpass = f"{self.credentials.username}:{self.credentials.password}"
            headers["Authorization"] = "Basic " + base64.b64encode(userpass.encode()).decode()
        return headers

    async def _fetch_token(self, http: httpx.AsyncClient, challenge: str) -> str:
        params = dict(_CHALLENGE_PARAM_RE.findall(challenge))
        realm = params.pop("realm", "")
        if not realm:
            raise RegistryError(f"bearer challenge without realm: {challenge!r}")
        auth = None
        if self.credentials is not None:
            auth = (self.credentials.username, self.credentials.password)
        resp = await http.get(realm, params=params, auth=auth)
        if resp.status_code >= 400:
            raise RegistryError(f"token request to {realm} returned HTTP {resp.status_code}")
        body = resp.json()
        token = body.get("token") or body.get("access_token")
        if not token:
            raise RegistryError(f"token response from {realm} carried no token")
        return token

    @staticmethod
    def _next_page(resp: httpx.Response) -> str | None:
        """Return the next page as a path on the same host, else an absolute URL."""
        m = _NEXT_LINK_RE.search(resp.headers.get("Link", ""))
        if not m:
            return None
        link = m[1]
        if not link.startswith(("http://", "https://")):
            return link
        parsed = httpx.URL(link)
        if parsed.host == resp.request.url.host and parsed.port == resp.request.url.port:
            return parsed.raw_path.decode("ascii")
        return link


def _pick_platform(manifests: list[dict[str, Any]], platform: str) -> dict[str, Any] | None:
    if not manifests:
        return None
    if not platform:
        return manifests[0]
    want = platform.split("/")
    for entry in manifests:
        plat = entry.get("platform") or {}
        have = [plat.get("os", ""), plat.get("architecture", "")]
        if len(want) > 2:
            have.append(plat.get("variant", ""))
        if have == want:
            return entry
    return None
