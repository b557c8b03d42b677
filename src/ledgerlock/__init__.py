"""
ledgerlock: run-once data migrations for DynamoDB-backed applications.

This library coordinates migration "change sets" across application
instances that start concurrently:
- Each named change executes at most once, recorded in a changelog table
- A process lock (a conditional write on a reserved record) keeps two
  instances from running changes at the same time
- The lock is released on every exit path of a run

Example:
    from ledgerlock import ChangeSet, CoordinatorConfig, MigrationCoordinator

    config = CoordinatorConfig(
        table_name="app-changelog",
        wait_for_lock=True,
        lock_wait_minutes=2,
        lock_poll_seconds=5,
    )

    async with MigrationCoordinator(config) as coordinator:
        report = await coordinator.run(
            [
                ChangeSet("001-seed-roles", author="ops", effect=seed_roles),
                ChangeSet("002-backfill-status", author="ops", effect=backfill_status),
            ]
        )
"""

# ---------------------------------------------------------------------------
# Lazy imports
# ---------------------------------------------------------------------------
# MigrationCoordinator, SyncMigrationCoordinator, StoreGateway and
# LockManager are imported lazily via __getattr__ below so that models and
# exceptions can be imported without aioboto3 installed (e.g. by code that
# only declares change sets).
# ---------------------------------------------------------------------------
from importlib.metadata import PackageNotFoundError, version
from typing import TYPE_CHECKING

from .exceptions import (
    ChangeExecutionError,
    ConfigurationError,
    DuplicateChangeError,
    LedgerLockError,
    LockError,
    StoreConnectionError,
    ValidationError,
)
from .gateway_protocol import StoreGatewayProtocol
from .models import (
    ChangeEntry,
    ChangeSet,
    CoordinatorConfig,
    LockRecord,
    MigrationReport,
)

if TYPE_CHECKING:
    from .coordinator import MigrationCoordinator as MigrationCoordinator
    from .coordinator import SyncMigrationCoordinator as SyncMigrationCoordinator
    from .gateway import StoreGateway as StoreGateway
    from .lock import LockManager as LockManager

try:
    __version__ = version("ledgerlock")
except PackageNotFoundError:
    __version__ = "0.0.0+unknown"

__all__ = [
    # Version
    "__version__",
    # Main classes
    "MigrationCoordinator",
    "SyncMigrationCoordinator",
    "LockManager",
    "StoreGateway",
    "StoreGatewayProtocol",
    # Models
    "ChangeEntry",
    "ChangeSet",
    "CoordinatorConfig",
    "LockRecord",
    "MigrationReport",
    # Exceptions
    "LedgerLockError",
    "ConfigurationError",
    "ValidationError",
    "StoreConnectionError",
    "LockError",
    "DuplicateChangeError",
    "ChangeExecutionError",
]


def __getattr__(name: str) -> type:
    """Lazy import for classes that require aioboto3.

    See Also:
        PEP 562 -- Module __getattr__ and __dir__
    """
    if name == "MigrationCoordinator":
        from .coordinator import MigrationCoordinator

        return MigrationCoordinator
    if name == "SyncMigrationCoordinator":
        from .coordinator import SyncMigrationCoordinator

        return SyncMigrationCoordinator
    if name == "StoreGateway":
        from .gateway import StoreGateway

        return StoreGateway
    if name == "LockManager":
        from .lock import LockManager

        return LockManager
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
