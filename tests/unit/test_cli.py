"""Tests for the command line interface."""

import logging

import pytest
import structlog
from click.testing import CliRunner

from dot_cli.cli import cli


@pytest.fixture
def runner():
    yield CliRunner()
    # The CLI configures logging against the runner's streams
    structlog.reset_defaults()
    logging.basicConfig(force=True)


@pytest.mark.unit
class TestOrganizationCommands:
    """Tests for the org command group."""

    def test_list_empty(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["org", "list"], obj={})
        assert result.exit_code == 0
        assert "No authorized organizations." in result.output

    def test_add_with_default(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["org", "add", "acme", "--default"], obj={})
        assert result.exit_code == 0

        result = runner.invoke(cli, ["org", "add", "globex"], obj={})
        assert result.exit_code == 0

        result = runner.invoke(cli, ["org", "list"], obj={})
        assert result.output.splitlines() == ["* acme", "  globex"]

    def test_default_requires_authorization(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["org", "default", "acme"], obj={})
        assert result.exit_code == 1
        assert "not authorized" in result.output

    def test_remove(self, runner: CliRunner) -> None:
        runner.invoke(cli, ["org", "add", "acme"], obj={})
        result = runner.invoke(cli, ["org", "remove", "acme"], obj={})
        assert result.exit_code == 0

        result = runner.invoke(cli, ["org", "list"], obj={})
        assert "No authorized organizations." in result.output


@pytest.mark.unit
class TestRepositoryCommands:
    """Tests for commands that need a configured organization."""

    def test_status_without_default_organization(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["status"], obj={})
        assert result.exit_code == 1
        assert "No default organization configured" in result.output

    def test_commit_requires_message(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["commit"], obj={})
        assert result.exit_code == 2
        assert "--message" in result.output

    def test_init_requires_directory(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["init"], obj={})
        assert result.exit_code == 2
