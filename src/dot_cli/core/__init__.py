"""Core domain models and exceptions for dot."""

from dot_cli.core.exceptions import (
    AtomicOperationFailedError,
    ConfigurationError,
    DotError,
    GitCommandError,
    GitNotFoundError,
    HiddenRepositorySetupError,
    HomeDirectoryNotFoundError,
    HostingProviderError,
    IndexStorageError,
    InvalidRemoteUrlError,
    NoDefaultOrganizationError,
    OperationError,
    OrganizationNotAuthorizedError,
    ProjectAlreadyExistsError,
    ProjectIndexError,
    RepositoryBackendError,
    RollbackError,
)
from dot_cli.core.models import DotConfig, IndexData, ProjectRegistration

__all__ = [
    # Models
    "DotConfig",
    "IndexData",
    "ProjectRegistration",
    # Exceptions
    "DotError",
    "ConfigurationError",
    "HomeDirectoryNotFoundError",
    "OrganizationNotAuthorizedError",
    "ProjectIndexError",
    "NoDefaultOrganizationError",
    "HostingProviderError",
    "ProjectAlreadyExistsError",
    "IndexStorageError",
    "RepositoryBackendError",
    "GitNotFoundError",
    "InvalidRemoteUrlError",
    "GitCommandError",
    "OperationError",
    "RollbackError",
    "AtomicOperationFailedError",
    "HiddenRepositorySetupError",
]
