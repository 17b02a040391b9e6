"""Git integration module for dot."""

from dot_cli.git.backend import GitBackend
from dot_cli.git.keys import (
    build_remote_url,
    generate_base_key,
    generate_repository_key,
    remote_repository_name,
)

__all__ = [
    "GitBackend",
    "build_remote_url",
    "generate_base_key",
    "generate_repository_key",
    "remote_repository_name",
]
