"""Migration coordinator: runs change sets at most once across processes."""

import asyncio
import inspect
import logging
from collections.abc import Iterable
from typing import Any

from . import schema
from .exceptions import ChangeExecutionError, ConfigurationError
from .gateway import StoreGateway
from .gateway_protocol import StoreGatewayProtocol
from .lock import LockManager
from .models import ChangeEntry, ChangeSet, CoordinatorConfig, LockRecord, MigrationReport

logger = logging.getLogger(__name__)


class MigrationCoordinator:
    """
    Async migration coordinator backed by a DynamoDB changelog table.

    A run acquires the process lock, executes each change set not yet
    recorded in the changelog, records it, and releases the lock on every
    exit path.

    Example:
        config = CoordinatorConfig(table_name="app-changelog", wait_for_lock=True)
        async with MigrationCoordinator(config) as coordinator:
            report = await coordinator.run(
                [
                    ChangeSet("001-seed-roles", author="ops", effect=seed_roles),
                    ChangeSet("002-backfill-status", author="ops", effect=backfill),
                ]
            )

    A change whose effect ran but whose changelog write failed is not
    recorded and will run again on the next run, so effects should be
    idempotent.
    """

    def __init__(
        self,
        config: CoordinatorConfig | None = None,
        holder: str | None = None,
    ) -> None:
        self.config = config or CoordinatorConfig()
        self._holder = holder
        self._gateway: StoreGatewayProtocol | None = None
        self._owns_gateway = False
        self._lock_manager: LockManager | None = None
        self._table: dict[str, Any] | None = None

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def connect(self, gateway: StoreGatewayProtocol | None = None) -> None:
        """
        Bind the store gateway and locate the changelog table.

        Args:
            gateway: Gateway to use. Defaults to a StoreGateway built from
                the config's table name, region and endpoint URL.

        Raises:
            ConfigurationError: If the table does not exist or is not keyed
                on the configured partition key
            StoreConnectionError: If DynamoDB could not be reached
        """
        owns_gateway = gateway is None
        if gateway is None:
            gateway = StoreGateway(
                table_name=self.config.table_name,
                region=self.config.region,
                endpoint_url=self.config.endpoint_url,
            )

        try:
            table = await self._find_table(gateway)
        except Exception:
            if owns_gateway:
                await gateway.close()
            raise

        self._gateway = gateway
        self._owns_gateway = owns_gateway
        self._lock_manager = LockManager(gateway, self.config, holder=self._holder)
        self._table = table

    async def _find_table(self, gateway: StoreGatewayProtocol) -> dict[str, Any]:
        logger.info("Searching for an existing changelog table; please wait...")
        table = await gateway.describe_table()

        hash_key = schema.hash_key_name(table)
        if hash_key is not None and hash_key != self.config.partition_key:
            raise ConfigurationError(
                f"Changelog table is keyed on '{hash_key}', "
                f"expected '{self.config.partition_key}'",
                table_name=gateway.table_name,
            )

        logger.info("Changelog table found")
        return table

    async def close(self) -> None:
        """Close the gateway if this coordinator created it."""
        if self._gateway is not None and self._owns_gateway:
            await self._gateway.close()
        self._gateway = None
        self._lock_manager = None
        self._table = None

    async def __aenter__(self) -> "MigrationCoordinator":
        if not self.is_connected:
            await self.connect()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    @property
    def is_connected(self) -> bool:
        return self._gateway is not None

    @property
    def table(self) -> dict[str, Any] | None:
        """Cached DescribeTable result (None until connected)."""
        return self._table

    @property
    def lock_manager(self) -> LockManager:
        if self._lock_manager is None:
            raise RuntimeError("MigrationCoordinator is not connected; call connect() first")
        return self._lock_manager

    def _require_gateway(self) -> StoreGatewayProtocol:
        if self._gateway is None:
            raise RuntimeError("MigrationCoordinator is not connected; call connect() first")
        return self._gateway

    # -------------------------------------------------------------------------
    # Changelog operations
    # -------------------------------------------------------------------------

    async def is_new_change(self, entry: ChangeEntry) -> bool:
        """
        Check whether a change has not been recorded yet.

        Uses a strongly consistent read. The result is advisory: ``save``
        is the authoritative guard against recording a change twice.
        """
        gateway = self._require_gateway()
        item = await gateway.get_item(
            schema.key(entry.change_id, self.config.partition_key), consistent_read=True
        )
        return item is None

    async def save(self, entry: ChangeEntry) -> None:
        """
        Record a change as executed.

        Raises:
            DuplicateChangeError: If the change is already recorded
            StoreConnectionError: If DynamoDB failed
        """
        gateway = self._require_gateway()
        await gateway.put_item_if_absent(
            entry.to_item(self.config.partition_key), self.config.partition_key
        )

    async def get_change(self, change_id: str) -> ChangeEntry | None:
        """
        Get a recorded change by id, or None if it never ran.

        The reserved lock id is never a change, so it always returns None.
        """
        gateway = self._require_gateway()
        if change_id == schema.LOCK_ID:
            return None
        item = await gateway.get_item(
            schema.key(change_id, self.config.partition_key), consistent_read=True
        )
        if item is None:
            return None
        return ChangeEntry.from_item(item, self.config.partition_key)

    # -------------------------------------------------------------------------
    # Process lock
    # -------------------------------------------------------------------------

    async def acquire_process_lock(self) -> bool:
        """Acquire the process lock according to the configured policy."""
        return await self.lock_manager.acquire_process_lock()

    async def release_process_lock(self) -> None:
        """Release the process lock."""
        await self.lock_manager.release_process_lock()

    async def is_process_lock_held(self) -> bool:
        """Check whether any process currently holds the lock."""
        return await self.lock_manager.is_process_lock_held()

    async def get_lock_holder(self) -> LockRecord | None:
        """Return the current lock record, or None if the lock is free."""
        return await self.lock_manager.get_lock_holder()

    # -------------------------------------------------------------------------
    # Run
    # -------------------------------------------------------------------------

    async def run(self, changes: Iterable[ChangeSet]) -> MigrationReport:
        """
        Execute all change sets that have not run yet, in the given order.

        Args:
            changes: Change sets, already ordered

        Returns:
            MigrationReport listing executed and skipped change ids. When
            the lock was not acquired nothing is attempted and
            ``lock_acquired`` is False.

        Raises:
            LockError: If the lock is unavailable and the config says to fail
            ChangeExecutionError: If a change's effect raised; later changes
                are not attempted
            DuplicateChangeError: If another writer recorded the change first
            StoreConnectionError: If DynamoDB failed
        """
        async with self.lock_manager.hold() as acquired:
            if not acquired:
                logger.info("Process lock not acquired. Exiting without running changes.")
                return MigrationReport(lock_acquired=False)

            report = MigrationReport(lock_acquired=True)
            for change in changes:
                entry = change.to_entry()

                if not await self.is_new_change(entry):
                    logger.debug("%s passed over", entry)
                    report.skipped.append(change.change_id)
                    continue

                try:
                    await self._execute(change)
                except Exception as e:
                    logger.error("%s failed", entry, exc_info=True)
                    raise ChangeExecutionError(change.change_id, list(report.executed), e) from e

                await self.save(entry)
                logger.info("%s applied", entry)
                report.executed.append(change.change_id)

            logger.info(
                "Changelog run complete: %d executed, %d skipped",
                len(report.executed),
                len(report.skipped),
            )
            return report

    async def _execute(self, change: ChangeSet) -> None:
        result = change.effect()
        if inspect.isawaitable(result):
            await result


class SyncMigrationCoordinator:
    """
    Synchronous migration coordinator.

    Wraps MigrationCoordinator, running async operations in a private
    event loop. Change effects may be plain functions.
    """

    def __init__(
        self,
        config: CoordinatorConfig | None = None,
        holder: str | None = None,
    ) -> None:
        self._coordinator = MigrationCoordinator(config=config, holder=holder)
        self._loop: asyncio.AbstractEventLoop | None = None

    @property
    def config(self) -> CoordinatorConfig:
        return self._coordinator.config

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        """Get or create the private event loop."""
        if self._loop is None or self._loop.is_closed():
            self._loop = asyncio.new_event_loop()
        return self._loop

    def _run(self, coro: Any) -> Any:
        """Run a coroutine in the event loop."""
        return self._get_loop().run_until_complete(coro)

    def connect(self, gateway: StoreGatewayProtocol | None = None) -> None:
        """Bind the store gateway and locate the changelog table."""
        self._run(self._coordinator.connect(gateway))

    def close(self) -> None:
        """Close the coordinator and its event loop."""
        if self._loop is None or self._loop.is_closed():
            return
        self._run(self._coordinator.close())
        self._loop.close()

    def __enter__(self) -> "SyncMigrationCoordinator":
        if not self._coordinator.is_connected:
            self.connect()
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def is_new_change(self, entry: ChangeEntry) -> bool:
        """Check whether a change has not been recorded yet."""
        return self._run(self._coordinator.is_new_change(entry))

    def save(self, entry: ChangeEntry) -> None:
        """Record a change as executed."""
        self._run(self._coordinator.save(entry))

    def get_change(self, change_id: str) -> ChangeEntry | None:
        """Get a recorded change by id."""
        return self._run(self._coordinator.get_change(change_id))

    def acquire_process_lock(self) -> bool:
        """Acquire the process lock according to the configured policy."""
        return self._run(self._coordinator.acquire_process_lock())

    def release_process_lock(self) -> None:
        """Release the process lock."""
        self._run(self._coordinator.release_process_lock())

    def is_process_lock_held(self) -> bool:
        """Check whether any process currently holds the lock."""
        return self._run(self._coordinator.is_process_lock_held())

    def get_lock_holder(self) -> LockRecord | None:
        """Return the current lock record."""
        return self._run(self._coordinator.get_lock_holder())

    def run(self, changes: Iterable[ChangeSet]) -> MigrationReport:
        """Execute all change sets that have not run yet, in the given order."""
        return self._run(self._coordinator.run(changes))
