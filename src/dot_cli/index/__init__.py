"""Project index."""

from dot_cli.index.manager import ProjectIndex

__all__ = ["ProjectIndex"]
