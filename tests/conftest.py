"""Pytest configuration and fixtures."""

import shutil
import subprocess
from pathlib import Path

import pytest

from dot_cli.config.settings import get_settings
from dot_cli.core.exceptions import HostingProviderError
from dot_cli.index.manager import ProjectIndex


def run_git(repo_path: Path, *args: str) -> str:
    result = subprocess.run(
        ["git", *args],
        cwd=repo_path,
        capture_output=True,
        text=True,
        check=True,
    )
    return result.stdout.strip()


@pytest.fixture(autouse=True)
def isolated_environment(
    tmp_path_factory: pytest.TempPathFactory,
    monkeypatch: pytest.MonkeyPatch,
):
    """Give every test its own git identity and dot home directory."""
    env_dir = tmp_path_factory.mktemp("env")
    gitconfig = env_dir / "gitconfig"
    gitconfig.write_text(
        "[user]\n"
        "\tname = Test User\n"
        "\temail = test@example.com\n"
        "[init]\n"
        "\tdefaultBranch = main\n"
    )
    monkeypatch.setenv("GIT_CONFIG_GLOBAL", str(gitconfig))
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    monkeypatch.setenv("GIT_CEILING_DIRECTORIES", str(tmp_path_factory.getbasetemp()))
    # SSH remotes are never reachable from tests
    monkeypatch.setenv("GIT_SSH_COMMAND", "false")
    monkeypatch.setenv("GIT_TERMINAL_PROMPT", "0")
    for name in (
        "GIT_DIR",
        "GIT_WORK_TREE",
        "GIT_AUTHOR_NAME",
        "GIT_AUTHOR_EMAIL",
        "GIT_COMMITTER_NAME",
        "GIT_COMMITTER_EMAIL",
        "GITHUB_TOKEN",
        "GH_TOKEN",
        "DOT_GITHUB_TOKEN",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("DOT_HOME", str(env_dir / "dot-home"))

    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def git():
    """Run a git command in a repository and return stdout."""
    return run_git


@pytest.fixture
def bare_remote(tmp_path: Path):
    """Create bare repositories standing in for remotes."""

    def _create(name: str) -> Path:
        path = tmp_path / "remotes" / f"{name}.git"
        path.mkdir(parents=True)
        run_git(path, "init", "--bare", "-q")
        return path

    return _create


@pytest.fixture
def git_repo(tmp_path: Path) -> Path:
    """Create an empty repository with no remote."""
    repo_path = tmp_path / "repo"
    repo_path.mkdir()
    run_git(repo_path, "init", "-q")
    return repo_path


@pytest.fixture
def committed_repo(git_repo: Path) -> Path:
    """Repository with one commit containing README.md."""
    (git_repo / "README.md").write_text("# Test\n")
    run_git(git_repo, "add", "README.md")
    run_git(git_repo, "commit", "-q", "-m", "Initial commit")
    return git_repo


class FakeHosting:
    """Hosting provider backed by local bare repositories."""

    def __init__(self, root: Path) -> None:
        self.root = root
        self.created: list[tuple[str, str]] = []
        self.deleted: list[tuple[str, str]] = []
        self.fail_on: set[str] = set()
        # Owner used instead of the organization, as when GitHub falls back
        # to creating the repository for the authenticated user
        self.user_owner: str | None = None

    @property
    def host(self) -> str:
        return "localhost"

    def remote_url(self, owner: str, name: str) -> str:
        return str(self.root / owner / f"{name}.git")

    async def create_repository(self, org: str, name: str, description: str) -> str:
        if name in self.fail_on:
            raise HostingProviderError(f"Refused to create {org}/{name}")
        path = Path(self.remote_url(self.user_owner or org, name))
        if not path.exists():
            path.mkdir(parents=True)
            run_git(path, "init", "--bare", "-q")
        self.created.append((org, name))
        return str(path)

    async def repository_exists(self, org: str, name: str) -> bool:
        return Path(self.remote_url(org, name)).exists()

    async def delete_repository(self, org: str, name: str) -> None:
        self.deleted.append((org, name))
        shutil.rmtree(self.remote_url(org, name), ignore_errors=True)


@pytest.fixture
def hosting(tmp_path: Path) -> FakeHosting:
    return FakeHosting(tmp_path / "hosting")


@pytest.fixture
async def project_index(tmp_path: Path, bare_remote) -> ProjectIndex:
    """Project index replicated to a local bare remote."""
    index = ProjectIndex(tmp_path / "home" / ".index", str(bare_remote("index")))
    await index.open()
    return index
