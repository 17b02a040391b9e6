"""dot: keep hidden repositories in step with their parent repository."""

__version__ = "0.1.0"
