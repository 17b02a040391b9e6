"""Business logic services for dot."""

from dot_cli.services.orchestrator import (
    CloneReport,
    InitReport,
    PushReport,
    RepositoryOrchestrator,
)

__all__ = [
    "CloneReport",
    "InitReport",
    "PushReport",
    "RepositoryOrchestrator",
]
