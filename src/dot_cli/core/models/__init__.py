"""Domain models for dot."""

from dot_cli.core.models.config import DotConfig
from dot_cli.core.models.registration import IndexData, ProjectRegistration

__all__ = [
    "DotConfig",
    "IndexData",
    "ProjectRegistration",
]
