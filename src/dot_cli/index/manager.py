"""Project index replicated through a dedicated git repository."""

from pathlib import Path
from types import MappingProxyType
from typing import TYPE_CHECKING, Mapping

import structlog
from pydantic import ValidationError

from dot_cli.core.exceptions import (
    IndexStorageError,
    ProjectAlreadyExistsError,
    RepositoryBackendError,
)
from dot_cli.core.models.registration import IndexData, ProjectRegistration
from dot_cli.git.backend import GitBackend
from dot_cli.git.keys import build_remote_url

if TYPE_CHECKING:
    from dot_cli.config.settings import Settings
    from dot_cli.hosting.github import GitHubClient

logger = structlog.get_logger(__name__)

PUSH_BRANCHES = ("main", "master")
INDEX_DESCRIPTION = "Dot CLI index repository"


class ProjectIndex:
    """Registry of hidden repositories keyed by repository key.

    The document lives in ``<local_path>/<index_file>`` and is committed
    and pushed after every registration. Writers are not coordinated: two
    machines registering against the same remote at once can diverge, and
    the later push is rejected until the next successful pull.
    """

    def __init__(
        self,
        local_path: str | Path,
        remote_url: str,
        index_file: str = "index.json",
    ) -> None:
        self._local_path = Path(local_path)
        self._remote_url = remote_url
        self._index_file = index_file
        self._data = IndexData()

    @classmethod
    async def from_settings(
        cls,
        settings: "Settings",
        organization: str,
        hosting: "GitHubClient | None" = None,
    ) -> "ProjectIndex":
        """Open the index of ``organization`` under dot's home directory."""
        remote_url = build_remote_url(settings.git_host, organization, settings.index_directory)
        index = cls(settings.index_path, remote_url, index_file=settings.index_file)
        await index.open(hosting=hosting, organization=organization)
        return index

    @property
    def local_path(self) -> Path:
        return self._local_path

    @property
    def index_file_path(self) -> Path:
        return self._local_path / self._index_file

    @property
    def projects(self) -> Mapping[str, ProjectRegistration]:
        return MappingProxyType(self._data.projects)

    # --- Setup ---

    async def open(
        self,
        hosting: "GitHubClient | None" = None,
        organization: str | None = None,
    ) -> None:
        """Make the local index repository available and load the document."""
        if self._local_path.exists():
            self._refresh()
        else:
            if hosting is not None and organization is not None:
                await hosting.create_repository(
                    organization, self._local_path.name, INDEX_DESCRIPTION
                )
            self._clone_or_initialize()
        self.load()

    def _refresh(self) -> None:
        try:
            GitBackend(self._local_path).pull()
        except RepositoryBackendError as e:
            logger.warning(
                "Could not refresh index, using local copy",
                path=str(self._local_path),
                error=str(e),
            )

    def _clone_or_initialize(self) -> None:
        try:
            backend = GitBackend.clone(self._remote_url, self._local_path)
            logger.info("Cloned index repository", remote_url=self._remote_url)
        except RepositoryBackendError as e:
            logger.info(
                "Index repository not cloned, initializing locally",
                remote_url=self._remote_url,
                error=str(e),
            )
            backend = GitBackend(self._local_path)
            try:
                backend.init()
                backend.set_remote_origin(self._remote_url)
            except RepositoryBackendError as init_error:
                raise IndexStorageError(
                    f"Cannot initialize index repository: {init_error}",
                    details={"path": str(self._local_path)},
                ) from init_error

        if not self.index_file_path.exists():
            self._write(IndexData())
            self._commit(backend, "Initialize index repository")

    def load(self) -> None:
        """Read the document from disk; a missing file is an empty index."""
        path = self.index_file_path
        if not path.exists():
            self._data = IndexData()
            return
        try:
            self._data = IndexData.model_validate_json(path.read_text(encoding="utf-8"))
        except (OSError, ValidationError) as e:
            raise IndexStorageError(
                f"Cannot read index document: {path}",
                details={"path": str(path), "error": str(e)},
            ) from e

    # --- Queries ---

    def project_exists(self, repository_key: str) -> bool:
        return repository_key in self._data.projects

    def get(self, repository_key: str) -> ProjectRegistration | None:
        return self._data.projects.get(repository_key)

    def find_projects_by_prefix(self, base_key: str) -> list[ProjectRegistration]:
        """All registrations whose key starts with ``base_key``."""
        return [
            registration
            for key, registration in sorted(self._data.projects.items())
            if key.startswith(base_key)
        ]

    # --- Registration ---

    def register_project(self, registration: ProjectRegistration) -> None:
        """Insert a new registration and replicate the document.

        Raises ProjectAlreadyExistsError, leaving the index unchanged, when
        the key is already registered.
        """
        self.register_projects([registration])

    def register_projects(self, registrations: list[ProjectRegistration]) -> None:
        """Insert several registrations with a single commit, all or none."""
        seen: set[str] = set()
        for registration in registrations:
            key = registration.repository_key
            if key in seen or self.project_exists(key):
                raise ProjectAlreadyExistsError(key)
            seen.add(key)

        if not registrations:
            return

        previous = dict(self._data.projects)
        for registration in registrations:
            self._data.projects[registration.repository_key] = registration

        keys = ", ".join(r.repository_key for r in registrations)
        try:
            self._write(self._data)
            backend = GitBackend(self._local_path)
            self._commit(backend, f"Register {keys}")
        except (IndexStorageError, RepositoryBackendError) as e:
            self._data.projects = previous
            self._restore_document()
            raise IndexStorageError(
                f"Cannot save index: {e}",
                details={"keys": keys},
            ) from e

        logger.info("Registered projects", keys=keys)
        self._push(backend)

    # --- Persistence ---

    def _write(self, data: IndexData) -> None:
        try:
            self._local_path.mkdir(parents=True, exist_ok=True)
            self.index_file_path.write_text(
                data.model_dump_json(indent=2) + "\n",
                encoding="utf-8",
            )
        except OSError as e:
            raise IndexStorageError(
                f"Cannot write index document: {self.index_file_path}",
                details={"error": str(e)},
            ) from e

    def _restore_document(self) -> None:
        try:
            self._write(self._data)
        except IndexStorageError as e:
            logger.error("Could not restore index document", error=str(e))

    def _commit(self, backend: GitBackend, message: str) -> None:
        backend.stage_files([self._index_file])
        backend.commit(message)

    def _push(self, backend: GitBackend) -> None:
        """Push to the first branch name that works; the local commit stands otherwise."""
        for branch in PUSH_BRANCHES:
            try:
                backend.push_branch(branch)
                logger.debug("Pushed index", branch=branch)
                return
            except RepositoryBackendError as e:
                logger.debug("Index push failed", branch=branch, error=str(e))
        logger.warning(
            "Could not push index; it will be pushed with the next registration",
            remote_url=self._remote_url,
        )
