"""Error kinds raised by a discovery pass.

Every kind is fatal for the whole pass: results already computed for
earlier subscriptions are discarded and the caller keeps the previously
persisted status.
"""

from __future__ import annotations


class DiscoveryError(RuntimeError):
    """Base class for discovery failures.

    ``repo_url`` names the offending repository, or is empty when the
    failure is not tied to one subscription.
    """

    def __init__(self, message: str, *, repo_url: str = "") -> None:
        super().__init__(message)
        self.repo_url = repo_url


class CredentialLookupError(DiscoveryError):
    """Raised when the credential store cannot be read."""


class SelectorConstructionError(DiscoveryError):
    """Raised when a subscription cannot be turned into a selector."""


class RegistryDiscoveryError(DiscoveryError):
    """Raised when querying a registry for tags fails."""


class ActivityIndexQueryError(DiscoveryError):
    """Raised when the active-Freight lookup fails."""
