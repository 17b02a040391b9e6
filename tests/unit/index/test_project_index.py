"""Tests for the git-replicated project index."""

import json
from pathlib import Path

import pytest

from factories import ProjectRegistrationFactory

from dot_cli.config.settings import Settings
from dot_cli.core.exceptions import IndexStorageError, ProjectAlreadyExistsError
from dot_cli.index.manager import INDEX_DESCRIPTION, ProjectIndex


@pytest.mark.unit
class TestOpen:
    """Tests for making the index available locally."""

    @pytest.mark.asyncio
    async def test_open_empty_remote_creates_document(self, project_index: ProjectIndex, git) -> None:
        document = json.loads(project_index.index_file_path.read_text())
        assert document == {"projects": {}}
        assert git(project_index.local_path, "log", "--format=%s") == "Initialize index repository"
        assert project_index.projects == {}

    @pytest.mark.asyncio
    async def test_open_unreachable_remote_initializes_locally(self, tmp_path: Path) -> None:
        index = ProjectIndex(tmp_path / ".index", str(tmp_path / "missing.git"))
        await index.open()

        assert index.index_file_path.exists()
        assert index.projects == {}

    @pytest.mark.asyncio
    async def test_open_creates_remote_through_hosting(self, tmp_path: Path, hosting) -> None:
        index = ProjectIndex(tmp_path / ".index", hosting.remote_url("acme", ".index"))
        await index.open(hosting=hosting, organization="acme")

        assert hosting.created == [("acme", ".index")]
        assert index.index_file_path.exists()

    @pytest.mark.asyncio
    async def test_from_settings_uses_home_directory(self, tmp_path: Path) -> None:
        settings = Settings(_env_file=None, home=str(tmp_path / "dot"), git_host="localhost")
        index = await ProjectIndex.from_settings(settings, "acme")

        assert index.local_path == tmp_path / "dot" / ".index"
        assert index.index_file_path.name == "index.json"

    @pytest.mark.asyncio
    async def test_invalid_document_is_rejected(self, project_index: ProjectIndex) -> None:
        project_index.index_file_path.write_text("not json")
        with pytest.raises(IndexStorageError):
            project_index.load()

    def test_description(self) -> None:
        assert INDEX_DESCRIPTION == "Dot CLI index repository"


@pytest.mark.unit
class TestRegistration:
    """Tests for registering projects."""

    @pytest.mark.asyncio
    async def test_register_commits_and_pushes(
        self, project_index: ProjectIndex, tmp_path: Path, git
    ) -> None:
        registration = ProjectRegistrationFactory(hidden_directory_name=".kiro")
        project_index.register_project(registration)

        assert project_index.project_exists("github.com:acme/widgets/.kiro")
        assert project_index.get("github.com:acme/widgets/.kiro") == registration
        assert git(project_index.local_path, "log", "-1", "--format=%s") == (
            "Register github.com:acme/widgets/.kiro"
        )

        remote = git(project_index.local_path, "remote", "get-url", "origin")
        replica = ProjectIndex(tmp_path / "other" / ".index", remote)
        await replica.open()
        assert replica.get("github.com:acme/widgets/.kiro") == registration

    @pytest.mark.asyncio
    async def test_duplicate_leaves_index_unchanged(self, project_index: ProjectIndex, git) -> None:
        project_index.register_project(ProjectRegistrationFactory(hidden_directory_name=".kiro"))
        document = project_index.index_file_path.read_text()
        head = git(project_index.local_path, "rev-parse", "HEAD")

        with pytest.raises(ProjectAlreadyExistsError) as exc_info:
            project_index.register_project(
                ProjectRegistrationFactory(hidden_directory_name=".kiro", owning_user="Someone Else")
            )

        assert exc_info.value.repository_key == "github.com:acme/widgets/.kiro"
        assert project_index.get("github.com:acme/widgets/.kiro").owning_user == "Test User"
        assert project_index.index_file_path.read_text() == document
        assert git(project_index.local_path, "rev-parse", "HEAD") == head

    @pytest.mark.asyncio
    async def test_batch_is_all_or_none(self, project_index: ProjectIndex) -> None:
        project_index.register_project(ProjectRegistrationFactory(hidden_directory_name="b"))

        with pytest.raises(ProjectAlreadyExistsError):
            project_index.register_projects(
                [
                    ProjectRegistrationFactory(hidden_directory_name="a"),
                    ProjectRegistrationFactory(hidden_directory_name="b"),
                ]
            )

        assert list(project_index.projects) == ["github.com:acme/widgets/b"]

    @pytest.mark.asyncio
    async def test_batch_rejects_repeated_key(self, project_index: ProjectIndex) -> None:
        with pytest.raises(ProjectAlreadyExistsError):
            project_index.register_projects(
                [
                    ProjectRegistrationFactory(hidden_directory_name="a"),
                    ProjectRegistrationFactory(hidden_directory_name="a"),
                ]
            )
        assert project_index.projects == {}

    @pytest.mark.asyncio
    async def test_push_failure_keeps_local_commit(self, tmp_path: Path) -> None:
        index = ProjectIndex(tmp_path / ".index", str(tmp_path / "missing.git"))
        await index.open()
        index.register_project(ProjectRegistrationFactory(hidden_directory_name=".kiro"))

        reopened = ProjectIndex(tmp_path / ".index", str(tmp_path / "missing.git"))
        await reopened.open()
        assert reopened.project_exists("github.com:acme/widgets/.kiro")


@pytest.mark.unit
class TestQueries:
    """Tests for prefix lookups."""

    @pytest.mark.asyncio
    async def test_find_by_prefix(self, project_index: ProjectIndex) -> None:
        project_index.register_projects(
            [
                ProjectRegistrationFactory(hidden_directory_name=".kiro"),
                ProjectRegistrationFactory(hidden_directory_name=".claude"),
                ProjectRegistrationFactory(
                    repository_key="github.com:acme/widgets-legacy/.kiro",
                    hidden_directory_name=".kiro",
                ),
            ]
        )

        found = project_index.find_projects_by_prefix("github.com:acme/widgets/")

        assert [p.repository_key for p in found] == [
            "github.com:acme/widgets/.claude",
            "github.com:acme/widgets/.kiro",
        ]

    def test_unknown_key(self, tmp_path: Path) -> None:
        index = ProjectIndex(tmp_path / ".index", "unused")
        assert index.get("nothing") is None
        assert index.find_projects_by_prefix("") == []
