"""Runtime settings for the reconciliation service.

Reads configuration from environment variables. A `.env` file at the
repository root is loaded first if it exists:

- LEDGER_GRAPHQL_URL: GraphQL endpoint that persists confirmed batches
- LEDGER_API_TOKEN: Bearer token sent with the commit mutation (optional)
- LEDGER_COMMIT_TIMEOUT_SECONDS: Timeout for the commit request (default 30)
- RECON_LOG_LEVEL: Logging level name (default INFO)
- RECON_LOG_JSON: "1"/"true" to emit JSON logs (default human-readable)
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

env_path = Path(__file__).resolve().parents[1] / ".env"
if env_path.exists():
    load_dotenv(env_path)


DEFAULT_GRAPHQL_URL = "http://localhost:3000/api/graphql"
DEFAULT_COMMIT_TIMEOUT_SECONDS = 30


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    """Resolved service settings."""
    graphql_url: str = DEFAULT_GRAPHQL_URL
    api_token: Optional[str] = None
    commit_timeout_seconds: int = DEFAULT_COMMIT_TIMEOUT_SECONDS
    log_level: str = "INFO"
    log_json: bool = False


def get_settings() -> Settings:
    """Build settings from the current environment.

    Read on every call so tests can patch the environment.
    """
    return Settings(
        graphql_url=os.getenv("LEDGER_GRAPHQL_URL", DEFAULT_GRAPHQL_URL),
        api_token=os.getenv("LEDGER_API_TOKEN") or None,
        commit_timeout_seconds=_env_int(
            "LEDGER_COMMIT_TIMEOUT_SECONDS", DEFAULT_COMMIT_TIMEOUT_SECONDS
        ),
        log_level=os.getenv("RECON_LOG_LEVEL", "INFO").upper(),
        log_json=_env_flag("RECON_LOG_JSON"),
    )
