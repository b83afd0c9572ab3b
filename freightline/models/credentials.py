"""Registry credential models."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict


class CredentialType(str, Enum):
    """The kind of repository a set of credentials unlocks."""

    GIT = "git"
    HELM = "helm"
    IMAGE = "image"


class Credentials(BaseModel):
    """Username/password pair handed to a registry client."""

    model_config = ConfigDict(frozen=True)

    username: str
    password: str


class CredentialEntry(BaseModel):
    """A stored credential, scoped to a namespace and a repository URL.

    When ``repo_url_is_regex`` is set, ``repo_url`` is a pattern matched
    against the full repository URL.
    """

    model_config = ConfigDict(frozen=True)

    namespace: str
    credential_type: CredentialType = CredentialType.IMAGE
    repo_url: str
    repo_url_is_regex: bool = False
    username: str
    password: str
    description: str = ""

    def to_credentials(self) -> Credentials:
        return Credentials(username=self.username, password=self.password)
