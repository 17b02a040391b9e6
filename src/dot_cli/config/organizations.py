"""Organization configuration stored in ``~/.dot/dot.conf``."""

import json
from pathlib import Path

import structlog
from pydantic import ValidationError

from dot_cli.core.exceptions import (
    ConfigurationError,
    NoDefaultOrganizationError,
    OrganizationNotAuthorizedError,
)
from dot_cli.core.models.config import DotConfig

logger = structlog.get_logger(__name__)


class ConfigManager:
    """Loads and updates the organization configuration file."""

    def __init__(self, config_path: Path, config: DotConfig) -> None:
        self._config_path = config_path
        self._config = config

    @classmethod
    def load(cls, config_path: str | Path) -> "ConfigManager":
        """Read the config file, creating it with defaults when absent."""
        path = Path(config_path)
        if path.exists():
            try:
                config = DotConfig.model_validate_json(path.read_text(encoding="utf-8"))
            except (OSError, ValidationError) as e:
                raise ConfigurationError(
                    f"Invalid configuration file: {path}",
                    details={"path": str(path), "error": str(e)},
                ) from e
            return cls(path, config)

        manager = cls(path, DotConfig())
        manager.save()
        logger.info("Created default configuration", path=str(path))
        return manager

    @property
    def config(self) -> DotConfig:
        return self._config

    @property
    def config_path(self) -> Path:
        return self._config_path

    @property
    def default_organization(self) -> str | None:
        return self._config.default_organization

    @property
    def github_token(self) -> str | None:
        return self._config.github_token

    def is_organization_authorized(self, organization: str) -> bool:
        return organization in self._config.authorized_organizations

    def require_default_organization(self) -> str:
        if not self._config.default_organization:
            raise NoDefaultOrganizationError()
        return self._config.default_organization

    def add_organization(self, organization: str) -> None:
        if organization not in self._config.authorized_organizations:
            self._config.authorized_organizations.append(organization)
            self.save()

    def remove_organization(self, organization: str) -> None:
        self._config.authorized_organizations = [
            org for org in self._config.authorized_organizations if org != organization
        ]
        if self._config.default_organization == organization:
            self._config.default_organization = None
        self.save()

    def set_default_organization(self, organization: str) -> None:
        if not self.is_organization_authorized(organization):
            raise OrganizationNotAuthorizedError(organization)
        self._config.default_organization = organization
        self.save()

    def save(self) -> None:
        try:
            self._config_path.parent.mkdir(parents=True, exist_ok=True)
            self._config_path.write_text(
                json.dumps(self._config.model_dump(), indent=2) + "\n",
                encoding="utf-8",
            )
        except OSError as e:
            raise ConfigurationError(
                f"Cannot write configuration file: {self._config_path}",
                details={"error": str(e)},
            ) from e
