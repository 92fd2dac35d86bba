from __future__ import annotations

from functools import lru_cache
from typing import Annotated, Any

from loguru import logger
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

log = logger.bind(module="config")


class Settings(BaseSettings):
    """Centralised configuration for rehearsal selection."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    app_name: str = Field(default="rehearsal-diff", alias="APP_NAME")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    logs_base_dir: str | None = Field(default=None, alias="LOGS_BASE_DIR")

    release_repo_path: str = Field(default=".", alias="REHEARSAL_RELEASE_REPO")
    base_ref: str = Field(default="master", alias="REHEARSAL_BASE_REF")
    # Unset means: read the candidate from the working copy.
    candidate_ref: str | None = Field(default=None, alias="REHEARSAL_CANDIDATE_REF")
    git_remote: str = Field(default="origin", alias="REHEARSAL_GIT_REMOTE")
    fetch_depth: int | None = Field(default=None, alias="REHEARSAL_FETCH_DEPTH")

    cluster_profiles: Annotated[list[str], NoDecode] = Field(
        default_factory=list,
        alias="REHEARSAL_CLUSTER_PROFILES",
    )
    strict_projection: bool = Field(default=False, alias="REHEARSAL_STRICT_PROJECTION")

    @field_validator("cluster_profiles", mode="before")
    @classmethod
    def _split_profiles(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        return value

    def export_safe(self) -> dict[str, Any]:
        """Return settings that are safe to log."""
        return {
            "app_name": self.app_name,
            "release_repo_path": self.release_repo_path,
            "base_ref": self.base_ref,
            "candidate_ref": self.candidate_ref,
            "git_remote": self.git_remote,
            "cluster_profiles": list(self.cluster_profiles),
            "strict_projection": self.strict_projection,
        }


@lru_cache
def get_settings() -> Settings:
    """Load and cache settings."""
    settings = Settings()
    log.info("Settings initialised: {}", settings.export_safe())
    return settings
