"""CLI for dot."""

import asyncio
import sys

import click
import structlog

from dot_cli.config.logging import configure_logging
from dot_cli.core.exceptions import DotError

logger = structlog.get_logger(__name__)


def run_async(coro):
    """Run an async function synchronously."""
    return asyncio.run(coro)


def _fail(error: DotError) -> None:
    click.echo(f"dot: {error}", err=True)
    sys.exit(1)


def _load_config(settings):
    from dot_cli.config.organizations import ConfigManager

    return ConfigManager.load(settings.config_path)


async def _create_orchestrator(settings=None):
    """Load configuration, open the project index and build the orchestrator."""
    from dot_cli.config.settings import get_settings
    from dot_cli.hosting.github import GitHubClient
    from dot_cli.index.manager import ProjectIndex
    from dot_cli.services.orchestrator import RepositoryOrchestrator

    if settings is None:
        settings = get_settings()

    config = _load_config(settings)
    organization = config.require_default_organization()

    hosting = GitHubClient(
        token=settings.github_token or config.github_token,
        api_url=settings.github_api_url,
        host=settings.git_host,
        timeout=settings.http_timeout,
    )
    index = await ProjectIndex.from_settings(settings, organization, hosting=hosting)

    return RepositoryOrchestrator(
        index=index,
        hosting=hosting,
        organization=organization,
    )


def _echo_failures(failures) -> None:
    for failure in failures:
        click.echo(f"  failed: {failure.operation}: {failure.error}", err=True)


@click.group()
@click.option("--skip-hidden", is_flag=True, help="Skip hidden repository operations")
@click.option("--no-atomic", is_flag=True, help="Disable atomic behavior (best-effort mode)")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.version_option(package_name="dot-cli")
@click.pass_context
def cli(ctx: click.Context, skip_hidden: bool, no_atomic: bool, verbose: bool) -> None:
    """dot: a git proxy for managing hidden directories with version control."""
    from dot_cli.config.settings import get_settings

    settings = get_settings()
    configure_logging(
        log_level="DEBUG" if verbose else settings.log_level,
        json_logs=settings.log_json,
    )
    ctx.ensure_object(dict)
    ctx.obj["skip_hidden"] = skip_hidden
    ctx.obj["atomic"] = not no_atomic


@cli.command()
@click.argument("directories", nargs=-1, required=True)
@click.pass_context
def init(ctx: click.Context, directories: tuple[str, ...]) -> None:
    """Initialize dot project with hidden directories."""

    async def _init():
        orchestrator = await _create_orchestrator()
        return await orchestrator.init_project(
            list(directories),
            skip_hidden=ctx.obj["skip_hidden"],
            atomic=ctx.obj["atomic"],
        )

    try:
        report = run_async(_init())
    except DotError as e:
        _fail(e)

    for directory in report.created:
        click.echo(f"Created hidden repository: {directory}")
        click.echo("  - Added .gitignore to exclude from parent repository")
    _echo_failures(report.failures)


@cli.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show status of all repositories."""

    async def _status():
        orchestrator = await _create_orchestrator()
        return await orchestrator.status(skip_hidden=ctx.obj["skip_hidden"])

    try:
        click.echo(run_async(_status()))
    except DotError as e:
        _fail(e)


@cli.command()
@click.argument("files", nargs=-1, required=True)
@click.pass_context
def add(ctx: click.Context, files: tuple[str, ...]) -> None:
    """Add files to all repositories (use . for all files)."""

    async def _add():
        orchestrator = await _create_orchestrator()
        return await orchestrator.add(
            list(files),
            skip_hidden=ctx.obj["skip_hidden"],
            atomic=ctx.obj["atomic"],
        )

    try:
        result = run_async(_add())
    except DotError as e:
        _fail(e)
    _echo_failures(result.failures)


@cli.command()
@click.option("--message", "-m", required=True, help="Commit message")
@click.pass_context
def commit(ctx: click.Context, message: str) -> None:
    """Commit changes to all repositories."""

    async def _commit():
        orchestrator = await _create_orchestrator()
        return await orchestrator.commit(
            message,
            skip_hidden=ctx.obj["skip_hidden"],
            atomic=ctx.obj["atomic"],
        )

    try:
        result = run_async(_commit())
    except DotError as e:
        _fail(e)
    click.echo(f"Committed to {result.executed - len(result.failures)} repositories")
    _echo_failures(result.failures)


@cli.command()
@click.pass_context
def push(ctx: click.Context) -> None:
    """Push changes to all repositories."""

    async def _push():
        orchestrator = await _create_orchestrator()
        return await orchestrator.push(
            skip_hidden=ctx.obj["skip_hidden"],
            atomic=ctx.obj["atomic"],
        )

    try:
        report = run_async(_push())
    except DotError as e:
        _fail(e)
    for line in report.lines:
        click.echo(line)
    _echo_failures(report.result.failures)


@cli.command(name="clone")
@click.argument("url")
@click.argument("target", required=False)
def clone_command(url: str, target: str | None) -> None:
    """Clone project with hidden repositories."""

    async def _clone():
        orchestrator = await _create_orchestrator()
        return await orchestrator.clone(url, target)

    try:
        report = run_async(_clone())
    except DotError as e:
        _fail(e)

    click.echo(f"Cloned into {report.path}")
    if not report.cloned and not report.failures:
        click.echo("No associated hidden repositories found for this project.")
    for directory in report.cloned:
        click.echo(f"Cloned hidden repository: {directory}")
    for failure in report.failures:
        click.echo(f"Failed to clone hidden repository {failure.operation}: {failure.error}", err=True)


# --- Organizations ---


@cli.group()
def org() -> None:
    """Manage authorized organizations."""


@org.command(name="list")
def org_list() -> None:
    """List authorized organizations."""
    from dot_cli.config.settings import get_settings

    try:
        config = _load_config(get_settings())
    except DotError as e:
        _fail(e)

    if not config.config.authorized_organizations:
        click.echo("No authorized organizations.")
        return
    for organization in config.config.authorized_organizations:
        marker = "*" if organization == config.default_organization else " "
        click.echo(f"{marker} {organization}")


@org.command(name="add")
@click.argument("organization")
@click.option("--default", "make_default", is_flag=True, help="Also make it the default")
def org_add(organization: str, make_default: bool) -> None:
    """Authorize an organization."""
    from dot_cli.config.settings import get_settings

    try:
        config = _load_config(get_settings())
        config.add_organization(organization)
        if make_default:
            config.set_default_organization(organization)
    except DotError as e:
        _fail(e)
    click.echo(f"Authorized organization: {organization}")


@org.command(name="remove")
@click.argument("organization")
def org_remove(organization: str) -> None:
    """Remove an authorized organization."""
    from dot_cli.config.settings import get_settings

    try:
        _load_config(get_settings()).remove_organization(organization)
    except DotError as e:
        _fail(e)
    click.echo(f"Removed organization: {organization}")


@org.command(name="default")
@click.argument("organization")
def org_default(organization: str) -> None:
    """Set the default organization."""
    from dot_cli.config.settings import get_settings

    try:
        _load_config(get_settings()).set_default_organization(organization)
    except DotError as e:
        _fail(e)
    click.echo(f"Default organization: {organization}")


def main() -> None:
    cli(obj={})


if __name__ == "__main__":
    main()
