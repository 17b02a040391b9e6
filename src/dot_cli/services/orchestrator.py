"""Repository orchestrator.

Applies dot commands to a parent repository and the hidden repositories
bound to it in the project index. Hidden repositories are always handled
before the parent so the parent's final state reflects their work;
rollback runs in the opposite order.
"""

import shutil
from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING

import structlog
from pydantic import BaseModel, Field

from dot_cli.core.exceptions import (
    DotError,
    HiddenRepositorySetupError,
    InvalidRemoteUrlError,
    OperationError,
    ProjectAlreadyExistsError,
)
from dot_cli.core.models.registration import ProjectRegistration
from dot_cli.git.backend import GitBackend
from dot_cli.git.keys import (
    default_clone_directory,
    generate_base_key,
    generate_repository_key,
    remote_repository_name,
)
from dot_cli.transactions import (
    AddOperation,
    CommitOperation,
    OperationFailure,
    PushOperation,
    Transaction,
    TransactionResult,
    describe_operation,
)

if TYPE_CHECKING:
    from dot_cli.hosting.github import GitHubClient
    from dot_cli.index.manager import ProjectIndex

logger = structlog.get_logger(__name__)

GITIGNORE_CONTENT = "# Managed by dot: contents are tracked in a hidden repository\n*\n!.gitignore\n"
NOT_INITIALIZED = (
    "This directory is not initialized with dot. "
    "Run 'dot init <directory>' to initialize."
)


class InitReport(BaseModel):
    """Outcome of ``init_project``."""

    base_key: str
    created: list[str] = Field(default_factory=list)
    failures: list[OperationFailure] = Field(default_factory=list)


class PushReport(BaseModel):
    """Outcome of ``push`` with one summary line per repository."""

    result: TransactionResult
    lines: list[str] = Field(default_factory=list)


class CloneReport(BaseModel):
    """Outcome of ``clone``."""

    path: str
    cloned: list[str] = Field(default_factory=list)
    failures: list[OperationFailure] = Field(default_factory=list)


class HiddenRepositorySetup(BaseModel):
    """What ``init`` changed for one hidden directory, for rollback."""

    directory: str
    repository_key: str
    path: Path
    remote_name: str
    created_directory: bool = False
    created_git: bool = False
    wrote_gitignore: bool = False
    previous_gitignore: str | None = None
    staged_gitignore: bool = False
    remote_created: bool = False


def _normalize_directory(directory: str) -> str:
    normalized = directory.strip().strip("/")
    parts = PurePosixPath(normalized).parts
    if not normalized or ".." in parts or normalized == ".":
        raise OperationError(
            f"Invalid hidden directory: {directory!r}",
            details={"directory": directory},
        )
    return normalized


class RepositoryOrchestrator:
    """Coordinates commands across a parent and its hidden repositories."""

    def __init__(
        self,
        index: "ProjectIndex",
        hosting: "GitHubClient",
        organization: str,
        working_dir: str | Path | None = None,
    ) -> None:
        self._index = index
        self._hosting = hosting
        self._organization = organization
        self._working_dir = Path(working_dir or Path.cwd()).resolve()

    @property
    def working_dir(self) -> Path:
        return self._working_dir

    # --- init ---

    async def init_project(
        self,
        directories: list[str],
        skip_hidden: bool = False,
        atomic: bool = True,
    ) -> InitReport:
        """Create and register one hidden repository per directory.

        Every key is checked against the index before anything is created.
        """
        parent = GitBackend(self._working_dir)
        if not parent.is_git_repo():
            parent.init()
            logger.info("Initialized git repository", path=str(self._working_dir))

        parent_remote = parent.get_remote_origin()
        base_key = generate_base_key(parent_remote)

        setups: list[HiddenRepositorySetup] = []
        seen: set[str] = set()
        for directory in directories:
            name = _normalize_directory(directory)
            key = generate_repository_key(parent_remote, name)
            if key in seen or self._index.project_exists(key):
                raise ProjectAlreadyExistsError(key)
            seen.add(key)
            setups.append(
                HiddenRepositorySetup(
                    directory=name,
                    repository_key=key,
                    path=self._working_dir / name,
                    remote_name=remote_repository_name(key),
                )
            )

        report = InitReport(base_key=base_key)
        if skip_hidden:
            return report

        owner = parent.get_user_identity()
        if atomic:
            await self._init_atomic(setups, parent_remote, owner, report)
        else:
            await self._init_best_effort(setups, parent_remote, owner, report)
        return report

    async def _init_atomic(
        self,
        setups: list[HiddenRepositorySetup],
        parent_remote: str,
        owner: str,
        report: InitReport,
    ) -> None:
        # Registrations are written in one batch once every directory is set
        # up, so a failure never leaves entries in the index.
        started: list[HiddenRepositorySetup] = []
        registrations: list[ProjectRegistration] = []
        for setup in setups:
            started.append(setup)
            try:
                registrations.append(await self._create_hidden_repository(setup, parent_remote, owner))
            except (DotError, OSError) as e:
                await self._fail_atomic_init(setup.directory, e, started)

        try:
            self._index.register_projects(registrations)
        except DotError as e:
            await self._fail_atomic_init(", ".join(s.directory for s in setups), e, started)

        report.created.extend(setup.directory for setup in setups)

    async def _fail_atomic_init(
        self,
        directory: str,
        error: BaseException,
        started: list[HiddenRepositorySetup],
    ) -> None:
        logger.error("Hidden repository setup failed", directory=directory, error=str(error))
        for setup in reversed(started):
            await self._rollback_hidden_repository(setup)
        raise HiddenRepositorySetupError(directory, error, len(started)) from error

    async def _init_best_effort(
        self,
        setups: list[HiddenRepositorySetup],
        parent_remote: str,
        owner: str,
        report: InitReport,
    ) -> None:
        for setup in setups:
            try:
                registration = await self._create_hidden_repository(setup, parent_remote, owner)
                self._index.register_project(registration)
            except (DotError, OSError) as e:
                logger.warning(
                    "Hidden repository setup failed",
                    directory=setup.directory,
                    error=str(e),
                )
                report.failures.append(
                    OperationFailure(operation=f"Initialize {setup.directory}", error=str(e))
                )
                continue
            report.created.append(setup.directory)

    async def _create_hidden_repository(
        self,
        setup: HiddenRepositorySetup,
        parent_remote: str,
        owner: str,
    ) -> ProjectRegistration:
        if not setup.path.exists():
            setup.path.mkdir(parents=True)
            setup.created_directory = True

        # Tracked by the parent; keeps the hidden content out of its history
        gitignore = setup.path / ".gitignore"
        if gitignore.exists():
            setup.previous_gitignore = gitignore.read_text(encoding="utf-8")
        gitignore.write_text(GITIGNORE_CONTENT, encoding="utf-8")
        setup.wrote_gitignore = True
        # Staged before the hidden repository exists so the parent treats the
        # directory as a plain one rather than an embedded repository
        GitBackend(self._working_dir).stage_files([f"{setup.directory}/.gitignore"])
        setup.staged_gitignore = True

        existed = await self._hosting.repository_exists(self._organization, setup.remote_name)
        remote_url = await self._hosting.create_repository(
            self._organization,
            setup.remote_name,
            f"Hidden directory {setup.directory} of {generate_base_key(parent_remote)}",
        )
        # A remote that was already there is never deleted on rollback
        setup.remote_created = not existed

        backend = GitBackend(setup.path)
        if not backend.is_git_repo():
            backend.init()
            setup.created_git = True
        backend.set_remote_origin(remote_url)

        logger.info("Created hidden repository", directory=setup.directory, remote_url=remote_url)
        return ProjectRegistration(
            repository_key=setup.repository_key,
            remote_repository_name=setup.remote_name,
            owning_user=owner,
            parent_remote_url=parent_remote,
            parent_disk_path=str(self._working_dir),
            hidden_directory_name=setup.directory,
            remote_url=remote_url,
        )

    async def _rollback_hidden_repository(self, setup: HiddenRepositorySetup) -> None:
        """Undo what ``_create_hidden_repository`` did; failures are logged."""
        try:
            if setup.created_directory:
                if setup.path.exists():
                    shutil.rmtree(setup.path)
            else:
                if setup.created_git:
                    shutil.rmtree(setup.path / ".git", ignore_errors=True)
                if setup.wrote_gitignore:
                    gitignore = setup.path / ".gitignore"
                    if setup.previous_gitignore is None:
                        gitignore.unlink(missing_ok=True)
                    else:
                        gitignore.write_text(setup.previous_gitignore, encoding="utf-8")
        except OSError as e:
            logger.error("Failed to roll back local directory", directory=setup.directory, error=str(e))

        if setup.staged_gitignore:
            try:
                GitBackend(self._working_dir).unstage([f"{setup.directory}/.gitignore"])
            except DotError as e:
                logger.error("Failed to unstage .gitignore", directory=setup.directory, error=str(e))

        if setup.remote_created:
            await self._hosting.delete_repository(self._organization, setup.remote_name)
        logger.info("Rolled back hidden repository", directory=setup.directory)

    # --- Bound repositories ---

    def _hidden_repositories(self, parent: GitBackend) -> list[tuple[ProjectRegistration, Path]]:
        base_key = generate_base_key(parent.get_remote_origin())
        # Trailing slash keeps "org/repo" from matching "org/repo-other"
        projects = self._index.find_projects_by_prefix(f"{base_key}/")
        return [
            (project, self._working_dir / project.hidden_directory_name)
            for project in projects
        ]

    def _existing_hidden_repositories(self, skip_hidden: bool) -> list[tuple[ProjectRegistration, Path]]:
        if skip_hidden:
            return []
        parent = GitBackend(self._working_dir)
        return [
            (project, path)
            for project, path in self._hidden_repositories(parent)
            if GitBackend(path).is_git_repo()
        ]

    # --- status ---

    async def status(self, skip_hidden: bool = False) -> str:
        parent = GitBackend(self._working_dir)
        if not parent.is_git_repo():
            return NOT_INITIALIZED
        try:
            hidden = self._hidden_repositories(parent)
        except InvalidRemoteUrlError:
            return NOT_INITIALIZED
        if not hidden:
            return NOT_INITIALIZED

        output = ["=== Parent Repository ===", parent.status()]
        if not skip_hidden:
            for project, path in hidden:
                output.append(f"=== Hidden Repository: {project.hidden_directory_name} ===")
                backend = GitBackend(path)
                if backend.is_git_repo():
                    output.append(backend.status(include_ignored=True))
                else:
                    output.append("Repository not found locally")
        return "\n".join(output)

    # --- add / commit / push ---

    async def add(
        self,
        files: list[str],
        skip_hidden: bool = False,
        atomic: bool = True,
    ) -> TransactionResult:
        """Stage ``files`` in every hidden repository, then in the parent.

        Paths under a hidden directory are staged in that repository only,
        relative to it; other paths go to every repository.
        """
        hidden = self._existing_hidden_repositories(skip_hidden)
        shared, per_directory = _split_files(files, [p.hidden_directory_name for p, _ in hidden])

        transaction = Transaction(atomic=atomic)
        for project, path in hidden:
            hidden_files = per_directory[project.hidden_directory_name] + shared
            # The hidden directory's own .gitignore ignores everything
            transaction.add(AddOperation(repository_path=path, files=hidden_files, force=True))
        transaction.add(AddOperation(repository_path=self._working_dir, files=shared))
        return await transaction.execute()

    async def commit(
        self,
        message: str,
        skip_hidden: bool = False,
        atomic: bool = True,
    ) -> TransactionResult:
        transaction = Transaction(atomic=atomic)
        for _, path in self._existing_hidden_repositories(skip_hidden):
            transaction.add(CommitOperation(repository_path=path, message=message))
        transaction.add(CommitOperation(repository_path=self._working_dir, message=message))
        return await transaction.execute()

    async def push(self, skip_hidden: bool = False, atomic: bool = True) -> PushReport:
        transaction = Transaction(atomic=atomic)
        names = []
        for project, path in self._existing_hidden_repositories(skip_hidden):
            transaction.add(PushOperation(repository_path=path))
            names.append(f"Hidden repository '{project.hidden_directory_name}'")
        transaction.add(PushOperation(repository_path=self._working_dir))
        names.append("Parent repository")

        result = await transaction.execute()
        failed = {failure.operation for failure in result.failures}
        lines = [
            f"{name}: {'failed' if describe_operation(operation) in failed else 'pushed'}"
            for name, operation in zip(names, transaction.operations)
        ]
        return PushReport(result=result, lines=lines)

    # --- clone ---

    async def clone(self, url: str, target: str | None = None) -> CloneReport:
        """Clone a parent repository and every hidden repository bound to it."""
        target_path = (self._working_dir / (target or default_clone_directory(url))).resolve()
        GitBackend.clone(url, target_path)
        logger.info("Cloned parent repository", url=url, path=str(target_path))

        report = CloneReport(path=str(target_path))
        projects = self._index.find_projects_by_prefix(f"{generate_base_key(url)}/")
        if not projects:
            logger.info("No hidden repositories bound to project", url=url)
            return report

        for project in projects:
            hidden_url = project.remote_url or self._hosting.remote_url(
                self._organization, project.remote_repository_name
            )
            try:
                GitBackend.clone(
                    hidden_url,
                    target_path / project.hidden_directory_name,
                    into_existing=True,
                )
            except (DotError, OSError) as e:
                logger.error(
                    "Failed to clone hidden repository",
                    directory=project.hidden_directory_name,
                    error=str(e),
                )
                report.failures.append(
                    OperationFailure(
                        operation=f"Clone {project.hidden_directory_name}",
                        error=str(e),
                    )
                )
                continue
            report.cloned.append(project.hidden_directory_name)
        return report


def _split_files(files: list[str], directories: list[str]) -> tuple[list[str], dict[str, list[str]]]:
    """Route paths under a hidden directory to that directory, relative to it."""
    shared: list[str] = []
    per_directory: dict[str, list[str]] = {directory: [] for directory in directories}
    for file in files:
        path = PurePosixPath(file)
        for directory in directories:
            try:
                relative = path.relative_to(directory)
            except ValueError:
                continue
            per_directory[directory].append(str(relative))
            break
        else:
            shared.append(file)
    return shared, per_directory
