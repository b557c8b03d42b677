"""Exceptions for ledgerlock."""

from typing import Any

# ---------------------------------------------------------------------------
# Base Exception
# ---------------------------------------------------------------------------


class LedgerLockError(Exception):
    """
    Base exception for all ledgerlock errors.

    All exceptions raised by this library inherit from this class,
    allowing callers to catch all library-specific errors with a single
    except clause.
    """

    pass


# ---------------------------------------------------------------------------
# Configuration Exceptions
# ---------------------------------------------------------------------------


class ConfigurationError(LedgerLockError):
    """
    Raised when the changelog table is missing or misconfigured.

    This is fatal at connect time and is never retried.

    Attributes:
        table_name: The DynamoDB table involved (if applicable)
    """

    def __init__(self, message: str, *, table_name: str | None = None) -> None:
        self.table_name = table_name
        if table_name:
            message = f"{message} [table={table_name}]"
        super().__init__(message)


class ValidationError(ConfigurationError):
    """Raised when a configuration value is invalid."""

    def __init__(self, field: str, value: Any, reason: str) -> None:
        self.field = field
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid {field}={value!r}: {reason}")


# ---------------------------------------------------------------------------
# Store Exceptions
# ---------------------------------------------------------------------------


class StoreConnectionError(LedgerLockError):
    """
    Raised when a DynamoDB operation fails for a reason other than a
    condition check (network, throttling, permissions, ...).

    The failure is surfaced as-is; retries beyond what botocore does at
    the transport level are left to the caller.

    Attributes:
        cause: The underlying exception
        table_name: The DynamoDB table that was being accessed
        operation: The DynamoDB operation that failed (e.g. "PutItem")
    """

    def __init__(
        self,
        message: str,
        cause: Exception | None = None,
        *,
        table_name: str | None = None,
        operation: str | None = None,
    ) -> None:
        self.cause = cause
        self.table_name = table_name
        self.operation = operation
        super().__init__(self._format_message(message))

    def _format_message(self, message: str) -> str:
        context = []
        if self.table_name:
            context.append(f"table={self.table_name}")
        if self.operation:
            context.append(f"operation={self.operation}")
        if context:
            return f"{message} [{', '.join(context)}]"
        return message


class DuplicateChangeError(LedgerLockError):
    """
    Raised when a conditional put finds the key already present.

    For the lock record this is the expected "someone else holds it"
    signal and is converted to ``False`` by the lock manager. For a
    ledger entry it means the change has already been recorded.
    """

    def __init__(self, change_id: str) -> None:
        self.change_id = change_id
        super().__init__(f"Change already recorded: {change_id}")


# ---------------------------------------------------------------------------
# Run Exceptions
# ---------------------------------------------------------------------------


class LockError(LedgerLockError):
    """Raised when the process lock could not be acquired within policy."""

    def __init__(self, message: str = "Could not acquire process lock") -> None:
        super().__init__(message)


class ChangeExecutionError(LedgerLockError):
    """
    Raised when a change's effect fails during a run.

    The run is aborted at this change: it is not recorded and no later
    change is attempted. The original exception is chained as
    ``__cause__``.

    Attributes:
        change_id: The change whose effect failed
        executed: Ids of the changes executed and recorded before the failure
    """

    def __init__(self, change_id: str, executed: list[str], cause: Exception) -> None:
        self.change_id = change_id
        self.executed = executed
        super().__init__(f"Change {change_id} failed: {cause}. Executed changes: {executed}")
