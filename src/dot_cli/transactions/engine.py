"""Atomic transaction engine.

Runs an ordered list of operations either atomically (stop at the first
failure and roll back the completed operations in reverse order) or in
best-effort mode (run everything, report failures, never abort).
"""

import structlog
from pydantic import BaseModel, ConfigDict, Field

from dot_cli.core.exceptions import AtomicOperationFailedError
from dot_cli.transactions.operations import (
    Operation,
    describe_operation,
    execute_operation,
    rollback_operation,
)

logger = structlog.get_logger(__name__)


class OperationFailure(BaseModel):
    """A failed operation in a best-effort transaction."""

    model_config = ConfigDict(frozen=True)

    operation: str
    error: str


class TransactionResult(BaseModel):
    """Outcome of a transaction."""

    succeeded: bool = True
    executed: int = 0
    failures: list[OperationFailure] = Field(default_factory=list)
    reverted_count: int = 0


class Transaction(BaseModel):
    """An ordered operation list plus its execution mode.

    Created fresh for each command and discarded after ``execute``.
    """

    operations: list[Operation] = Field(default_factory=list)
    atomic: bool = True

    def add(self, operation: Operation) -> None:
        self.operations.append(operation)

    async def execute(self) -> TransactionResult:
        return await execute_transaction(self.operations, atomic=self.atomic)


async def execute_transaction(
    operations: list[Operation],
    atomic: bool = True,
) -> TransactionResult:
    """Execute ``operations`` in order.

    Atomic mode raises AtomicOperationFailedError after rolling back the
    operations that completed before the failing one. Best-effort mode
    always succeeds and itemizes failures in the result.
    """
    if not atomic:
        return await _execute_best_effort(operations)

    completed: list[Operation] = []
    for operation in operations:
        try:
            await execute_operation(operation)
        except Exception as e:
            description = describe_operation(operation)
            logger.error("Operation failed", operation=description, error=str(e))
            reverted = await _rollback(completed)
            raise AtomicOperationFailedError(
                failed_operation=description,
                cause=e,
                reverted_count=reverted,
            ) from e
        completed.append(operation)

    return TransactionResult(executed=len(completed))


async def _execute_best_effort(operations: list[Operation]) -> TransactionResult:
    result = TransactionResult()
    for operation in operations:
        try:
            await execute_operation(operation)
        except Exception as e:
            description = describe_operation(operation)
            logger.warning("Operation failed", operation=description, error=str(e))
            result.failures.append(OperationFailure(operation=description, error=str(e)))
        result.executed += 1
    return result


async def _rollback(completed: list[Operation]) -> int:
    """Roll back completed operations newest first; returns how many were attempted."""
    for operation in reversed(completed):
        try:
            await rollback_operation(operation)
        except Exception as e:
            logger.error(
                "Rollback failed",
                operation=describe_operation(operation),
                error=str(e),
            )
    return len(completed)
