"""Core models for ledgerlock."""

import socket
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any

from . import schema
from .exceptions import ValidationError
from .naming import DEFAULT_TABLE_NAME, resolve_table_name, validate_table_name


EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


def to_epoch_ms(value: datetime) -> int:
    """Convert a datetime to epoch milliseconds (naive values are taken as UTC)."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return (value - EPOCH) // timedelta(milliseconds=1)


def from_epoch_ms(epoch_ms: int) -> datetime:
    """Convert epoch milliseconds to an aware UTC datetime."""
    return EPOCH + timedelta(milliseconds=epoch_ms)


def get_host_name() -> str:
    """Identity of this process's host, used as the lock holder."""
    try:
        return socket.gethostname() or schema.UNKNOWN_HOST
    except OSError:
        return schema.UNKNOWN_HOST


@dataclass(frozen=True)
class ChangeEntry:
    """
    Entry in the changelog table.

    One entry is written for each change that executed successfully. The
    record is immutable: ``timestamp`` is fixed at construction.

    Attributes:
        change_id: Globally unique change identifier (the partition key)
        author: Free-text attribution
        timestamp: Execution time
        change_log_class: Where the change was defined (audit only)
        change_set_method: The callable that applied the change (audit only)
    """

    change_id: str
    author: str
    timestamp: datetime
    change_log_class: str
    change_set_method: str

    def __post_init__(self) -> None:
        if not self.change_id:
            raise ValidationError("change_id", self.change_id, "Change id cannot be empty")
        if self.change_id == schema.LOCK_ID:
            raise ValidationError(
                "change_id", self.change_id, "Reserved for the process lock record"
            )
        # Normalize to an aware UTC datetime truncated to stored precision
        object.__setattr__(self, "timestamp", from_epoch_ms(to_epoch_ms(self.timestamp)))

    @property
    def timestamp_ms(self) -> int:
        """Execution time in epoch milliseconds."""
        return to_epoch_ms(self.timestamp)

    def to_item(self, partition_key: str = schema.KEY_CHANGE_ID) -> dict[str, Any]:
        """Serialize to a DynamoDB item."""
        return {
            partition_key: {"S": self.change_id},
            schema.KEY_AUTHOR: {"S": self.author},
            schema.KEY_TIMESTAMP: schema.epoch_ms_attr(self.timestamp_ms),
            schema.KEY_CHANGE_LOG_CLASS: {"S": self.change_log_class},
            schema.KEY_CHANGE_SET_METHOD: {"S": self.change_set_method},
        }

    @classmethod
    def from_item(
        cls, item: dict[str, Any], partition_key: str = schema.KEY_CHANGE_ID
    ) -> "ChangeEntry":
        """Deserialize from a DynamoDB item."""
        return cls(
            change_id=item[partition_key]["S"],
            author=item.get(schema.KEY_AUTHOR, {}).get("S", ""),
            timestamp=from_epoch_ms(schema.parse_epoch_ms_attr(item[schema.KEY_TIMESTAMP])),
            change_log_class=item.get(schema.KEY_CHANGE_LOG_CLASS, {}).get("S", ""),
            change_set_method=item.get(schema.KEY_CHANGE_SET_METHOD, {}).get("S", ""),
        )

    def __str__(self) -> str:
        return (
            f"[ChangeSet: id={self.change_id}, author={self.author}, "
            f"changeLogClass={self.change_log_class}, "
            f"changeSetMethod={self.change_set_method}]"
        )


@dataclass(frozen=True)
class LockRecord:
    """The process lock record stored under the reserved ``LOCK`` key."""

    holder: str
    acquired_at_ms: int

    @classmethod
    def create(cls, holder: str | None = None, now_ms: int | None = None) -> "LockRecord":
        """Build a lock record for this host at the current time."""
        if now_ms is None:
            now_ms = to_epoch_ms(datetime.now(UTC))
        return cls(holder=holder or get_host_name(), acquired_at_ms=now_ms)

    @property
    def acquired_at(self) -> datetime:
        return from_epoch_ms(self.acquired_at_ms)

    def to_item(self, partition_key: str = schema.KEY_CHANGE_ID) -> dict[str, Any]:
        """Serialize to a DynamoDB item."""
        return {
            partition_key: {"S": schema.LOCK_ID},
            schema.KEY_AUTHOR: {"S": self.holder},
            schema.KEY_TIMESTAMP: schema.epoch_ms_attr(self.acquired_at_ms),
        }

    @classmethod
    def from_item(cls, item: dict[str, Any]) -> "LockRecord":
        """Deserialize from a DynamoDB item."""
        return cls(
            holder=item.get(schema.KEY_AUTHOR, {}).get("S", schema.UNKNOWN_HOST),
            acquired_at_ms=schema.parse_epoch_ms_attr(item[schema.KEY_TIMESTAMP]),
        )


@dataclass(frozen=True)
class ChangeSet:
    """
    A named unit of migration work.

    How change sets are discovered and ordered is up to the caller; the
    coordinator only needs the identity, metadata and an ``effect``
    callable taking no arguments. The effect may be a plain function or
    a coroutine function and should be idempotent.

    Example:
        async def add_status_index() -> None:
            ...

        ChangeSet("001-add-status-index", author="ops", effect=add_status_index)
    """

    change_id: str
    author: str
    effect: Callable[[], Any] = field(repr=False)
    change_log_class: str | None = None
    change_set_method: str | None = None

    def __post_init__(self) -> None:
        if not self.change_id:
            raise ValidationError("change_id", self.change_id, "Change id cannot be empty")
        if self.change_id == schema.LOCK_ID:
            raise ValidationError(
                "change_id", self.change_id, "Reserved for the process lock record"
            )
        if not callable(self.effect):
            raise ValidationError("effect", self.effect, "Effect must be callable")
        if self.change_log_class is None:
            module = getattr(self.effect, "__module__", None) or ""
            object.__setattr__(self, "change_log_class", module)
        if self.change_set_method is None:
            qualname = getattr(self.effect, "__qualname__", None) or type(self.effect).__name__
            object.__setattr__(self, "change_set_method", qualname)

    def to_entry(self, timestamp: datetime | None = None) -> ChangeEntry:
        """Build the ledger entry recorded once this change has executed."""
        return ChangeEntry(
            change_id=self.change_id,
            author=self.author,
            timestamp=timestamp if timestamp is not None else datetime.now(UTC),
            change_log_class=self.change_log_class or "",
            change_set_method=self.change_set_method or "",
        )


@dataclass(frozen=True)
class CoordinatorConfig:
    """
    Migration coordinator configuration.

    Attributes:
        table_name: Changelog table name
        wait_for_lock: Poll for the process lock when it is held elsewhere
        lock_wait_minutes: Maximum time to poll for the lock
        lock_poll_seconds: Delay between lock attempts while polling
        fail_if_lock_unavailable: Raise LockError instead of skipping the run
        partition_key: Partition key attribute name of the changelog table
        region: AWS region for the default gateway
        endpoint_url: AWS endpoint URL (e.g. LocalStack) for the default gateway
    """

    table_name: str = DEFAULT_TABLE_NAME
    wait_for_lock: bool = False
    lock_wait_minutes: float = 5
    lock_poll_seconds: float = 10
    fail_if_lock_unavailable: bool = False
    partition_key: str = schema.KEY_CHANGE_ID
    region: str | None = None
    endpoint_url: str | None = None

    def __post_init__(self) -> None:
        validate_table_name(self.table_name)
        if self.lock_wait_minutes < 0:
            raise ValidationError(
                "lock_wait_minutes", self.lock_wait_minutes, "Must be zero or positive"
            )
        if self.lock_poll_seconds <= 0:
            raise ValidationError("lock_poll_seconds", self.lock_poll_seconds, "Must be positive")
        if not self.partition_key:
            raise ValidationError(
                "partition_key", self.partition_key, "Partition key cannot be empty"
            )

    @property
    def lock_wait_seconds(self) -> float:
        return self.lock_wait_minutes * 60

    @classmethod
    def from_env(cls, table_name: str | None = None, **kwargs: Any) -> "CoordinatorConfig":
        """Build a config, resolving the table name from ``LEDGERLOCK_TABLE`` if not given."""
        return cls(table_name=resolve_table_name(table_name), **kwargs)


@dataclass
class MigrationReport:
    """Outcome of a coordinator run."""

    lock_acquired: bool
    executed: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
