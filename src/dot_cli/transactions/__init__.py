"""Multi-repository transactions."""

from dot_cli.transactions.engine import (
    OperationFailure,
    Transaction,
    TransactionResult,
    execute_transaction,
)
from dot_cli.transactions.operations import (
    AddOperation,
    CommitOperation,
    Operation,
    PushOperation,
    describe_operation,
    execute_operation,
    rollback_operation,
)

__all__ = [
    "AddOperation",
    "CommitOperation",
    "Operation",
    "OperationFailure",
    "PushOperation",
    "Transaction",
    "TransactionResult",
    "describe_operation",
    "execute_operation",
    "execute_transaction",
    "rollback_operation",
]
