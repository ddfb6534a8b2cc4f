from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    App settings.

    Notes:
    - Defaults are local and deterministic (SQLite file next to the repo).
    - Override via REVIEWHUB_* environment variables.
    - `access_cache_ttl_seconds` is a fallback bound on cached resolutions;
      leave unset when every write path invalidates in-process.
    """

    model_config = SettingsConfigDict(env_prefix="REVIEWHUB_", extra="ignore")

    db_url: str | None = None
    db_isolation_level: str | None = None
    access_config_path: str | None = None
    log_level: str = "INFO"

    access_cache_ttl_seconds: float | None = None
    store_timeout_seconds: float = 5.0

    def resolved_db_url(self) -> str:
        if self.db_url:
            return self.db_url

        repo_root = Path(__file__).resolve().parents[1]
        db_path = repo_root / "reviewhub.db"
        return f"sqlite:///{db_path}"

    def resolved_access_config_path(self) -> Path:
        if self.access_config_path:
            return Path(self.access_config_path)

        repo_root = Path(__file__).resolve().parents[1]
        return repo_root / "config" / "access_config.yaml"


@lru_cache
def get_settings() -> Settings:
    return Settings()
