"""Runtime configuration — env-driven.

Centralized config using pydantic-settings for environment variable
support. Reads from .env file and FREIGHTLINE_* environment variables.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from freightline.models.warehouse import SelectionStrategy


class ProdConfig(BaseSettings):
    """Runtime configuration with environment variable overrides.

    All settings can be overridden via FREIGHTLINE_* environment variables
    or a .env file in the working directory.

    Examples
    --------
    Override via environment::

        export FREIGHTLINE_LOG_LEVEL=DEBUG
        export FREIGHTLINE_STATE_DB_PATH=/data/state.db
        export FREIGHTLINE_RETENTION_STRATEGIES='["SemVer"]'

    Or via .env file::

        FREIGHTLINE_DEBUG=true
        FREIGHTLINE_ALWAYS_QUERY_ACTIVE_FREIGHT=true
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="FREIGHTLINE_",
        env_file_encoding="utf-8",
    )

    # Logging
    log_level: str = "INFO"
    debug: bool = False  # DEBUG logging with local variables in tracebacks

    # Storage paths
    state_db_path: Path = Path(".freightline/state.db")
    credentials_path: Path = Path(".freightline/credentials.json")

    # Registry access
    registry_timeout_seconds: float = 30.0
    registry_insecure: bool = False  # plain HTTP, for local registries
    # Requests in flight at once per registry client
    registry_max_concurrent_requests: int = Field(default=8, ge=1)

    # Retention
    retention_strategies: list[SelectionStrategy] = list(SelectionStrategy)
    # Query the activity index on every pass instead of only on
    # generation changes.
    always_query_active_freight: bool = False


# Module-level singleton: import as `from freightline.config import config`
config = ProdConfig()
