from __future__ import annotations

import os
from dataclasses import dataclass, replace
from pathlib import Path

_PROJECT_ROOT = Path(__file__).resolve().parent

DEFAULT_DB_PATH = _PROJECT_ROOT / "data" / "problems.db"
DEFAULT_GRAPHQL_URL = "https://leetcode.com/graphql"
DEFAULT_USER_AGENT = "problemset-sync/0.1 (compatible; tag-sync)"


def _env_str(*names: str, default: str | None = None) -> str | None:
    """Return the first non-empty env var among `names`."""

    for name in names:
        v = os.getenv(name)
        if v is not None and v.strip():
            return v.strip()
    return default


def _env_int(name: str, default: int) -> int:
    v = os.getenv(name)
    if v is None or not v.strip():
        return default
    return int(v)


def _env_float(name: str, default: float) -> float:
    v = os.getenv(name)
    if v is None or not v.strip():
        return default
    return float(v)


@dataclass(frozen=True)
class SyncConfig:
    """Process configuration, passed explicitly into every job entry point."""

    primary_database_url: str = f"sqlite:///{DEFAULT_DB_PATH}"
    replica_database_url: str | None = None
    root_dir: Path | None = None

    log_level: str = "INFO"

    # Tag enrichment
    graphql_url: str = DEFAULT_GRAPHQL_URL
    graphql_user_agent: str = DEFAULT_USER_AGENT
    http_timeout_seconds: float = 20.0
    enrich_batch_size: int = 40
    enrich_delay_seconds: float = 0.3

    # Replication
    replication_chunk_size: int = 1000

    @classmethod
    def from_env(cls) -> "SyncConfig":
        root_dir = _env_str("ROOT_DIR")
        return cls(
            primary_database_url=_env_str(
                "PRIMARY_DATABASE_URL",
                "LOCAL_DATABASE_URL",
                default=f"sqlite:///{DEFAULT_DB_PATH}",
            ),
            replica_database_url=_env_str(
                "REPLICA_DATABASE_URL", "SUPABASE_DATABASE_URL"
            ),
            root_dir=Path(root_dir) if root_dir else None,
            log_level=(_env_str("LOG_LEVEL", default="INFO") or "INFO").upper(),
            graphql_url=_env_str("GRAPHQL_URL", default=DEFAULT_GRAPHQL_URL),
            graphql_user_agent=_env_str(
                "GRAPHQL_USER_AGENT", default=DEFAULT_USER_AGENT
            ),
            http_timeout_seconds=_env_float("HTTP_TIMEOUT_SECONDS", 20.0),
            enrich_batch_size=_env_int("ENRICH_BATCH_SIZE", 40),
            enrich_delay_seconds=_env_int("ENRICH_DELAY_MS", 300) / 1000.0,
            replication_chunk_size=_env_int("REPLICATION_CHUNK_SIZE", 1000),
        )

    def with_overrides(self, **overrides) -> "SyncConfig":
        """Return a copy with CLI overrides applied (None values are ignored)."""

        return replace(self, **{k: v for k, v in overrides.items() if v is not None})
