"""
Simple configuration management.

The ``Settings`` dataclass reads configuration directly from
environment variables.  Defaults are provided for all fields so the
service starts locally without any environment at all; in a
production deployment override them via the environment.
"""

import os
from dataclasses import dataclass
from typing import FrozenSet


def _split_csv(raw: str) -> FrozenSet[str]:
    return frozenset(item.strip() for item in raw.split(",") if item.strip())


@dataclass
class Settings:
    """Application settings loaded from environment variables."""

    project_name: str = os.getenv("PROJECT_NAME", "Team Hub API")
    api_version: str = os.getenv("API_VERSION", "1.0.0")
    debug: bool = os.getenv("DEBUG", "false").lower() in {"1", "true", "yes"}
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    log_file: str = os.getenv("LOG_FILE", "")
    secret_key: str = os.getenv("SECRET_KEY", "change_me")
    access_token_expire_minutes: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", str(60 * 24)))
    algorithm: str = os.getenv("ALGORITHM", "HS256")

    # Directory groups whose members may review team registration
    # requests and see every team.  Comma separated.
    portal_admin_groups: str = os.getenv("PORTAL_ADMIN_GROUPS", "TEAMHUB_ADMINS")

    # Comma-separated static tokens for the scheduler that triggers the
    # staleness sweep and daily snapshots.  Requests carrying one of
    # these tokens authenticate as the ``automation`` principal.
    automation_tokens: str = os.getenv("AUTOMATION_TOKENS", "")

    # Path to the SQLite database.  Relative paths are resolved against
    # the project root by the ``db`` module.
    database_url: str = os.getenv("DATABASE_URL", "team_hub.db")

    # Central application inventory.  Applications are looked up with
    # ``GET {central_api_url}?assetId=<id>``.
    central_api_url: str = os.getenv("CENTRAL_API_URL", "http://localhost:8008/api/central")
    central_api_timeout: int = int(os.getenv("CENTRAL_API_TIMEOUT", "15"))

    # Default age, in hours, after which a turnover entry is considered
    # stale by the automation sweep.
    stale_hours_threshold: int = int(os.getenv("STALE_HOURS_THRESHOLD", "24"))

    @property
    def portal_admin_group_set(self) -> FrozenSet[str]:
        return _split_csv(self.portal_admin_groups)

    @property
    def automation_token_set(self) -> FrozenSet[str]:
        return _split_csv(self.automation_tokens)


# Instantiate settings once so other modules can import it without
# repeatedly reading environment variables.  Environment variables
# must therefore be set before this module is imported.
settings = Settings()
