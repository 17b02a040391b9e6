"""Remote hosting providers."""

from dot_cli.hosting.github import GitHubClient

__all__ = ["GitHubClient"]
