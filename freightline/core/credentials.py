"""Credential store — resolves registry credentials for a repository URL.

The store is a local JSON file (``.freightline/credentials.json`` by
default) holding a list of ``CredentialEntry`` rows. It is re-read on
every lookup so credential rotation takes effect on the next pass.

Lookup precedence for a (namespace, type, repo_url) triple:

1. An entry whose ``repo_url`` equals the URL exactly.
2. The first entry, in file order, whose regex ``repo_url`` matches.

No match is not an error; callers fall back to anonymous access.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
from pathlib import Path

from pydantic import ValidationError

from freightline.core.errors import CredentialLookupError
from freightline.models.credentials import CredentialEntry, Credentials, CredentialType

logger = logging.getLogger(__name__)


class CredentialStore:
    """File-backed credential lookup.

    Parameters
    ----------
    path:
        Path to the credentials JSON file. A missing file means no
        credentials are configured.
    """

    def __init__(self, path: Path = Path(".freightline/credentials.json")) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    # -- Lookup -------------------------------------------------------------

    async def get(
        self,
        namespace: str,
        credential_type: CredentialType,
        repo_url: str,
    ) -> Credentials | None:
        """Return credentials for *repo_url*, or ``None`` if none are stored.

        Raises
        ------
        CredentialLookupError
            If the credentials file exists but cannot be read or parsed.
        """
        entries = await asyncio.to_thread(self.entries)
        match = _find_match(entries, namespace, credential_type, repo_url)
        if match is None:
            return None
        return match.to_credentials()

    def entries(self) -> list[CredentialEntry]:
        """Read and validate every stored entry."""
        if not self._path.exists():
            return []
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
            return [CredentialEntry.model_validate(row) for row in raw]
        except (OSError, ValueError, TypeError, ValidationError) as exc:
            raise CredentialLookupError(
                f"error reading credentials from {self._path}: {exc}"
            ) from exc

    # -- Maintenance --------------------------------------------------------

    def add(self, entry: CredentialEntry) -> None:
        """Add *entry*, replacing any entry with the same scope and URL."""
        entries = [
            e for e in self.entries()
            if (e.namespace, e.credential_type, e.repo_url)
            != (entry.namespace, entry.credential_type, entry.repo_url)
        ]
        entries.append(entry)
        self.persist(entries)
        logger.info(
            "Stored %s credentials for %s in namespace %s",
            entry.credential_type.value,
            entry.repo_url,
            entry.namespace,
        )

    def persist(self, entries: list[CredentialEntry]) -> None:
        """Write *entries* to the credentials file."""
        self._path.parent.mkdir(parents=True, exist_ok=True)
        data = [json.loads(e.model_dump_json()) for e in entries]
        self._path.write_text(json.dumps(data, indent=2), encoding="utf-8")
        logger.debug("Persisted %d credential entries to %s", len(entries), self._path)


def _find_match(
    entries: list[CredentialEntry],
    namespace: str,
    credential_type: CredentialType,
    repo_url: str,
) -> CredentialEntry | None:
    scoped = [
        e for e in entries
        if e.namespace == namespace and e.credential_type == credential_type
    ]
    for entry in scoped:
        if not entry.repo_url_is_regex and entry.repo_url == repo_url:
            return entry
    for entry in scoped:
        if not entry.repo_url_is_regex:
            continue
        try:
            if re.search(entry.repo_url, repo_url):
                return entry
        except re.error as exc:
            raise CredentialLookupError(
                f"invalid repo URL pattern {entry.repo_url!r}: {exc}",
                repo_url=repo_url,
            ) from exc
    return None
