"""Repository operations that can execute and undo themselves.

The set of operation kinds is closed: Add, Commit and Push. Each is a
pydantic model tagged by ``kind``; behaviour is dispatched by
``execute_operation``, ``rollback_operation`` and ``describe_operation``.

State recorded by execute (staged paths, commit id, whether a push
happened) lives in private attributes guarded by a per-operation lock.
"""

import asyncio
from pathlib import Path
from typing import Annotated, Literal, Union

import structlog
from pydantic import BaseModel, Field, PrivateAttr

from dot_cli.core.exceptions import OperationError, RepositoryBackendError, RollbackError
from dot_cli.git.backend import GitBackend

logger = structlog.get_logger(__name__)

STAGE_EVERYTHING = "."


class _BaseOperation(BaseModel):
    repository_path: Path

    _lock: asyncio.Lock = PrivateAttr(default_factory=asyncio.Lock)

    def backend(self) -> GitBackend:
        return GitBackend(self.repository_path)


class AddOperation(_BaseOperation):
    """Stage files in one repository."""

    kind: Literal["add"] = "add"
    files: list[str]
    force: bool = False

    _staged: list[str] = PrivateAttr(default_factory=list)

    @property
    def staged(self) -> list[str]:
        return list(self._staged)


class CommitOperation(_BaseOperation):
    """Commit the staged tree of one repository."""

    kind: Literal["commit"] = "commit"
    message: str

    _commit_id: str | None = PrivateAttr(default=None)

    @property
    def commit_id(self) -> str | None:
        return self._commit_id


class PushOperation(_BaseOperation):
    """Push the current branch of one repository."""

    kind: Literal["push"] = "push"

    _pushed: bool = PrivateAttr(default=False)

    @property
    def pushed(self) -> bool:
        return self._pushed


Operation = Annotated[
    Union[AddOperation, CommitOperation, PushOperation],
    Field(discriminator="kind"),
]


# --- Add ---


async def _execute_add(op: AddOperation) -> None:
    async with op._lock:
        backend = op.backend()
        to_stage = []
        for file in op.files:
            if file == STAGE_EVERYTHING:
                backend.stage_all(force=op.force)
                op._staged.append(STAGE_EVERYTHING)
                return
            if (op.repository_path / file).exists():
                to_stage.append(file)

        if to_stage:
            backend.stage_files(to_stage, force=op.force)
            op._staged.extend(to_stage)


async def _rollback_add(op: AddOperation) -> None:
    async with op._lock:
        if not op._staged:
            return
        backend = op.backend()
        # Nothing to reset to before the first commit
        if not backend.has_commits():
            return
        backend.reset_index()
        op._staged.clear()


# --- Commit ---


async def _execute_commit(op: CommitOperation) -> None:
    async with op._lock:
        op._commit_id = op.backend().commit(op.message)


async def _rollback_commit(op: CommitOperation) -> None:
    async with op._lock:
        if op._commit_id is None:
            return
        backend = op.backend()
        parent = backend.first_parent(op._commit_id)
        if parent:
            backend.hard_reset(parent)
        else:
            backend.reset_to_empty()
        op._commit_id = None


# --- Push ---


async def _execute_push(op: PushOperation) -> None:
    async with op._lock:
        op.backend().push()
        op._pushed = True


async def _rollback_push(op: PushOperation) -> None:
    async with op._lock:
        if op._pushed:
            raise RollbackError(
                f"Cannot auto-rollback a push of {op.repository_path}; "
                "revert it on the remote manually",
                details={"repository_path": str(op.repository_path)},
            )


# --- Dispatch ---


def describe_operation(op: Operation) -> str:
    """Human-readable description of an operation."""
    if isinstance(op, AddOperation):
        return f"Add files to {op.repository_path}"
    elif isinstance(op, CommitOperation):
        return f"Commit to {op.repository_path}"
    elif isinstance(op, PushOperation):
        return f"Push {op.repository_path}"
    raise TypeError(f"Unknown operation: {op!r}")


async def execute_operation(op: Operation) -> None:
    """Apply an operation, recording what is needed to undo it."""
    try:
        if isinstance(op, AddOperation):
            await _execute_add(op)
        elif isinstance(op, CommitOperation):
            await _execute_commit(op)
        elif isinstance(op, PushOperation):
            await _execute_push(op)
        else:
            raise TypeError(f"Unknown operation: {op!r}")
    except RepositoryBackendError as e:
        raise OperationError(
            f"{describe_operation(op)} failed: {e}",
            details={"repository_path": str(op.repository_path)},
        ) from e


async def rollback_operation(op: Operation) -> None:
    """Undo an operation previously applied by ``execute_operation``."""
    try:
        if isinstance(op, AddOperation):
            await _rollback_add(op)
        elif isinstance(op, CommitOperation):
            await _rollback_commit(op)
        elif isinstance(op, PushOperation):
            await _rollback_push(op)
        else:
            raise TypeError(f"Unknown operation: {op!r}")
    except RepositoryBackendError as e:
        raise RollbackError(
            f"Rollback of '{describe_operation(op)}' failed: {e}",
            details={"repository_path": str(op.repository_path)},
        ) from e
    logger.debug("Rolled back operation", operation=describe_operation(op))
