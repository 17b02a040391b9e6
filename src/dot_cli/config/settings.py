"""Application settings using Pydantic Settings."""

from functools import lru_cache
from pathlib import Path

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from dot_cli.core.exceptions import HomeDirectoryNotFoundError


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="DOT_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # General
    log_level: str = "WARNING"
    log_json: bool = False

    # Local state
    home: str = "~/.dot"
    config_file: str = "dot.conf"
    index_directory: str = ".index"  # also the remote index repository name
    index_file: str = "index.json"

    # Hosting provider
    git_host: str = "github.com"
    github_api_url: str = "https://api.github.com"
    github_token: str | None = Field(
        default=None,
        validation_alias=AliasChoices("DOT_GITHUB_TOKEN", "GITHUB_TOKEN", "GH_TOKEN"),
    )
    http_timeout: float = 15.0

    @property
    def home_path(self) -> Path:
        """dot's data directory, with ``~`` expanded."""
        try:
            return Path(self.home).expanduser()
        except RuntimeError as e:
            raise HomeDirectoryNotFoundError() from e

    @property
    def config_path(self) -> Path:
        return self.home_path / self.config_file

    @property
    def index_path(self) -> Path:
        return self.home_path / self.index_directory


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
