"""Single-repository git primitives using subprocess."""

import os
import shutil
import subprocess
import tempfile
from pathlib import Path

import structlog

from dot_cli.core.exceptions import (
    GitCommandError,
    GitNotFoundError,
    InvalidRemoteUrlError,
    RepositoryBackendError,
)

logger = structlog.get_logger(__name__)

DEFAULT_AUTHOR_NAME = "dot-cli"
DEFAULT_AUTHOR_EMAIL = "dot-cli@example.com"
FALLBACK_BRANCHES = ("main", "master")
STATUS_CLEAN = "nothing to commit, working tree clean"


def _run(
    args: list[str],
    cwd: Path,
    input: str | None = None,
    env: dict[str, str] | None = None,
) -> str:
    try:
        result = subprocess.run(
            ["git", *args],
            cwd=cwd,
            input=input,
            env=env,
            capture_output=True,
            text=True,
        )
    except FileNotFoundError as e:
        if shutil.which("git") is None:
            raise GitNotFoundError() from e
        raise RepositoryBackendError(f"Repository path does not exist: {cwd}") from e

    if result.returncode != 0:
        raise GitCommandError(args, result.stderr or result.stdout, result.returncode)
    return result.stdout.strip()


class GitBackend:
    """Primitive operations against one on-disk repository.

    Uses subprocess + git CLI directly (no gitpython dependency).
    """

    def __init__(self, repo_path: str | Path) -> None:
        self._repo_path = Path(repo_path).resolve()

    @property
    def repo_path(self) -> Path:
        return self._repo_path

    def _run_git(self, *args: str, input: str | None = None, env: dict[str, str] | None = None) -> str:
        """Run a git command in the repository and return stdout."""
        return _run(list(args), self._repo_path, input=input, env=env)

    # --- Repository lifecycle ---

    def is_git_repo(self) -> bool:
        """Check if the path is the top level of a git repository."""
        if not self._repo_path.is_dir():
            return False
        try:
            toplevel = self._run_git("rev-parse", "--show-toplevel")
        except RepositoryBackendError:
            return False
        return Path(toplevel).resolve() == self._repo_path

    def init(self) -> None:
        """Initialize a repository at the path, creating it if needed."""
        self._repo_path.mkdir(parents=True, exist_ok=True)
        self._run_git("init", "-q")
        logger.debug("Initialized repository", repository_path=str(self._repo_path))

    @classmethod
    def clone(cls, url: str, path: str | Path, into_existing: bool = False) -> "GitBackend":
        """Clone ``url`` into ``path``.

        A non-empty ``path`` is refused unless ``into_existing`` is set, in
        which case (for example a hidden directory holding its tracked
        ``.gitignore``) the clone is made in a temporary sibling directory
        and moved in, replacing entries of the same name.
        """
        target = Path(path).resolve()
        target.parent.mkdir(parents=True, exist_ok=True)

        if not target.exists() or not any(target.iterdir()):
            _run(["clone", "-q", url, str(target)], cwd=target.parent)
            return cls(target)

        if not into_existing:
            raise RepositoryBackendError(
                f"Destination path already exists and is not empty: {target}",
                details={"path": str(target)},
            )

        with tempfile.TemporaryDirectory(prefix=".dot-clone-", dir=target.parent) as tmp:
            checkout = Path(tmp) / "checkout"
            _run(["clone", "-q", url, str(checkout)], cwd=target.parent)
            for entry in checkout.iterdir():
                destination = target / entry.name
                if destination.is_dir() and not destination.is_symlink():
                    shutil.rmtree(destination)
                elif destination.exists() or destination.is_symlink():
                    destination.unlink()
                shutil.move(str(entry), str(destination))
        return cls(target)

    # --- Inspection ---

    def has_commits(self) -> bool:
        try:
            self._run_git("rev-parse", "--verify", "-q", "HEAD")
            return True
        except GitCommandError:
            return False

    def head_commit(self) -> str | None:
        """Get the current HEAD commit hash, or None on an unborn branch."""
        try:
            return self._run_git("rev-parse", "--verify", "-q", "HEAD")
        except GitCommandError:
            return None

    def current_branch(self) -> str | None:
        """Get the checked out branch name, even when it has no commits yet."""
        try:
            return self._run_git("symbolic-ref", "--short", "-q", "HEAD")
        except GitCommandError:
            return None

    def first_parent(self, commit_id: str) -> str | None:
        """First parent of a commit, or None for a root commit."""
        output = self._run_git("rev-list", "--parents", "-n", "1", commit_id)
        hashes = output.split()
        return hashes[1] if len(hashes) > 1 else None

    def status(self, include_ignored: bool = False) -> str:
        """Short status lines, or the clean-tree message."""
        args = ["status", "--porcelain"]
        if include_ignored:
            args.append("--ignored")
        output = self._run_git(*args)
        return output if output else STATUS_CLEAN

    def get_remote_origin(self) -> str:
        """Get the remote origin URL."""
        try:
            url = self._run_git("remote", "get-url", "origin")
        except GitCommandError as e:
            raise InvalidRemoteUrlError(
                f"No remote 'origin' configured in {self._repo_path}",
                details={"repository_path": str(self._repo_path)},
            ) from e
        if not url:
            raise InvalidRemoteUrlError(f"Empty remote 'origin' in {self._repo_path}")
        return url

    def set_remote_origin(self, url: str) -> None:
        """Point ``origin`` at ``url``, adding the remote if needed."""
        try:
            self._run_git("remote", "get-url", "origin")
        except GitCommandError:
            self._run_git("remote", "add", "origin", url)
        else:
            self._run_git("remote", "set-url", "origin", url)

    def _config_value(self, key: str) -> str | None:
        try:
            value = self._run_git("config", "--get", key)
        except GitCommandError:
            return None
        return value or None

    def get_user_identity(self) -> str:
        """Configured git user name, falling back to the email."""
        identity = self._config_value("user.name") or self._config_value("user.email")
        if not identity:
            raise RepositoryBackendError(
                "No git user configured",
                details={"repository_path": str(self._repo_path)},
            )
        return identity

    # --- Staging ---

    def stage_files(self, files: list[str], force: bool = False) -> None:
        args = ["add"]
        if force:
            args.append("--force")
        self._run_git(*args, "--", *files)

    def stage_all(self, force: bool = False) -> None:
        args = ["add", "--all"]
        if force:
            args.append("--force")
        self._run_git(*args)

    def unstage(self, files: list[str]) -> None:
        """Restore index entries for ``files`` to HEAD, or drop them before the first commit."""
        if self.has_commits():
            self._run_git("reset", "-q", "HEAD", "--", *files)
        else:
            self._run_git("rm", "--cached", "-q", "-f", "--ignore-unmatch", "--", *files)

    def reset_index(self) -> None:
        """Reset the index to the tree of the HEAD commit."""
        self._run_git("reset", "-q", "--mixed", "HEAD")

    # --- Commits ---

    def _commit_env(self) -> dict[str, str]:
        env = dict(os.environ)
        name = self._config_value("user.name") or DEFAULT_AUTHOR_NAME
        email = self._config_value("user.email") or DEFAULT_AUTHOR_EMAIL
        env.setdefault("GIT_AUTHOR_NAME", name)
        env.setdefault("GIT_AUTHOR_EMAIL", email)
        env.setdefault("GIT_COMMITTER_NAME", name)
        env.setdefault("GIT_COMMITTER_EMAIL", email)
        return env

    def commit(self, message: str) -> str:
        """Write the staged tree as a commit on HEAD and return its id."""
        tree = self._run_git("write-tree")
        args = ["commit-tree", tree, "-m", message]
        parent = self.head_commit()
        if parent:
            args.extend(["-p", parent])
        commit_id = self._run_git(*args, env=self._commit_env())
        self._run_git("update-ref", "-m", f"commit: {message}", "HEAD", commit_id)
        logger.debug(
            "Created commit",
            repository_path=str(self._repo_path),
            commit=commit_id,
        )
        return commit_id

    def hard_reset(self, commit_id: str) -> None:
        self._run_git("reset", "-q", "--hard", commit_id)

    def reset_to_empty(self) -> None:
        """Hard reset to the empty tree, leaving the branch unborn."""
        empty_tree = self._run_git("mktree", input="")
        self._run_git("read-tree", "--reset", "-u", empty_tree)
        if self.has_commits():
            self._run_git("update-ref", "-d", "HEAD")

    # --- Remotes ---

    def push(self) -> None:
        """Push the current branch to origin and set its upstream."""
        branch = self.current_branch()
        if branch:
            self.push_branch(branch)
            return

        # Unborn or detached HEAD
        *candidates, last = FALLBACK_BRANCHES
        for candidate in candidates:
            try:
                self.push_branch(candidate)
                return
            except GitCommandError:
                logger.debug("Push failed, trying next branch", branch=candidate)
        self.push_branch(last)

    def push_branch(self, branch: str) -> None:
        try:
            self._run_git("push", "-q", "-u", "origin", branch)
        except GitCommandError as e:
            if "Everything up-to-date" in e.stderr or "up to date" in e.stderr:
                return
            raise

    def pull(self) -> None:
        self._run_git("pull", "-q", "--ff-only")
