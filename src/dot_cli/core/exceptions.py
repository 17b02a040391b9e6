"""Exception hierarchy for dot.

All dot-specific exceptions inherit from DotError so the CLI can
report any of them with a single catch clause.
"""

from typing import Any


class DotError(Exception):
    """Base exception for all dot errors."""

    def __init__(self, message: str = "", details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


# --- Configuration ---


class ConfigurationError(DotError):
    """Invalid or missing configuration."""


class HomeDirectoryNotFoundError(ConfigurationError):
    """The user's home directory could not be determined."""

    def __init__(self) -> None:
        super().__init__("Home directory not found")


class OrganizationNotAuthorizedError(ConfigurationError):
    """An organization was used that is not in the authorized list."""

    def __init__(self, organization: str) -> None:
        super().__init__(
            f"Organization is not authorized: {organization}",
            details={"organization": organization},
        )
        self.organization = organization


# --- Project index ---


class ProjectIndexError(DotError):
    """Failure reading, updating or replicating the project index."""


class NoDefaultOrganizationError(ProjectIndexError):
    """No default organization is configured."""

    def __init__(self) -> None:
        super().__init__(
            "No default organization configured; run 'dot org add <org>' "
            "and 'dot org default <org>'"
        )


class HostingProviderError(ProjectIndexError):
    """The hosting provider rejected or failed a request."""


class ProjectAlreadyExistsError(ProjectIndexError):
    """A registration with the same repository key already exists."""

    def __init__(self, repository_key: str) -> None:
        super().__init__(
            f"Project already exists: {repository_key}",
            details={"repository_key": repository_key},
        )
        self.repository_key = repository_key


class IndexStorageError(ProjectIndexError):
    """The index document could not be read, written or committed."""


# --- Repository backend ---


class RepositoryBackendError(DotError):
    """A primitive repository operation failed."""


class GitNotFoundError(RepositoryBackendError):
    """The git executable is not installed or not on PATH."""

    def __init__(self) -> None:
        super().__init__("git is not installed or not in PATH")


class InvalidRemoteUrlError(RepositoryBackendError):
    """A remote URL is missing or cannot be turned into a repository key."""


class GitCommandError(RepositoryBackendError):
    """A git command exited with a non-zero status."""

    def __init__(self, args: list[str], stderr: str, returncode: int) -> None:
        command = " ".join(["git", *args])
        message = stderr.strip() or f"exit status {returncode}"
        super().__init__(
            f"{command} failed: {message}",
            details={"returncode": returncode},
        )
        self.args_list = args
        self.stderr = stderr
        self.returncode = returncode


# --- Operations ---


class OperationError(DotError):
    """A single repository operation failed."""


class RollbackError(OperationError):
    """An operation could not be rolled back."""


class AtomicOperationFailedError(OperationError):
    """An atomic transaction failed and its completed operations were reverted."""

    def __init__(
        self,
        failed_operation: str,
        cause: BaseException,
        reverted_count: int,
    ) -> None:
        super().__init__(
            f"Atomic operation failed at '{failed_operation}': {cause} "
            f"({reverted_count} operation(s) rolled back)",
            details={
                "failed_operation": failed_operation,
                "reverted_count": reverted_count,
            },
        )
        self.failed_operation = failed_operation
        self.cause = cause
        self.reverted_count = reverted_count


class HiddenRepositorySetupError(OperationError):
    """Atomic init failed for a hidden directory and was rolled back."""

    def __init__(self, directory: str, cause: BaseException, reverted_count: int) -> None:
        super().__init__(
            f"Failed to create hidden repository '{directory}': {cause} "
            f"({reverted_count} director(y/ies) rolled back)",
            details={"directory": directory, "reverted_count": reverted_count},
        )
        self.directory = directory
        self.cause = cause
        self.reverted_count = reverted_count
