"""Process lock management over the changelog table.

The lock is a single reserved record (``changeId = "LOCK"``) in the
changelog table. Acquiring it is one conditional put that fails when the
record already exists, so mutual exclusion across processes and hosts is
provided entirely by DynamoDB. No in-process mutex is layered on top.
"""

import asyncio
import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from . import schema
from .exceptions import DuplicateChangeError, LockError, StoreConnectionError
from .gateway_protocol import StoreGatewayProtocol
from .models import CoordinatorConfig, LockRecord

logger = logging.getLogger(__name__)


class LockManager:
    """
    Acquires and releases the process lock record.

    Lifecycle: Unlocked -> Locked (``acquire_lock`` succeeded) -> Unlocked
    (``release_process_lock``). Lock records carry the holder's host name
    and the acquisition time for diagnostics only.
    """

    def __init__(
        self,
        gateway: StoreGatewayProtocol,
        config: CoordinatorConfig,
        holder: str | None = None,
    ) -> None:
        self._gateway = gateway
        self._config = config
        self._holder = holder

    @property
    def config(self) -> CoordinatorConfig:
        return self._config

    async def acquire_lock(self) -> bool:
        """
        Try once to create the lock record.

        If the attempt is cancelled while the write is in flight, the
        record may already be stored. It is read back and deleted when it
        is the one this attempt wrote, then the cancellation propagates.

        Returns:
            True if this process now holds the lock, False if it is
            already held

        Raises:
            StoreConnectionError: If DynamoDB failed for any other reason
        """
        record = LockRecord.create(holder=self._holder)
        try:
            await self._gateway.put_item_if_absent(
                record.to_item(self._config.partition_key), self._config.partition_key
            )
        except DuplicateChangeError:
            logger.warning("The lock has been already acquired.")
            return False
        except asyncio.CancelledError:
            await self._discard_own_record(record)
            raise
        return True

    async def _discard_own_record(self, record: LockRecord) -> None:
        try:
            if await self.get_lock_holder() == record:
                await self.release_process_lock()
        except StoreConnectionError:
            logger.error(
                "Could not clean up lock record after cancelled acquisition", exc_info=True
            )

    async def acquire_process_lock(self) -> bool:
        """
        Acquire the process lock according to the configured policy.

        Makes one attempt. If the lock is busy and ``wait_for_lock`` is
        set, sleeps ``lock_poll_seconds`` (cut short at the deadline) and
        tries again, until ``lock_wait_minutes`` have passed.

        Cancelling the awaiting task while it sleeps between attempts
        aborts the wait: ``asyncio.CancelledError`` propagates and no
        further attempt is made.

        Returns:
            True if acquired, False if not acquired and
            ``fail_if_lock_unavailable`` is not set

        Raises:
            LockError: If not acquired and ``fail_if_lock_unavailable`` is set
            StoreConnectionError: If DynamoDB failed
        """
        acquired = await self.acquire_lock()

        if not acquired and self._config.wait_for_lock:
            give_up_at = time.monotonic() + self._config.lock_wait_seconds
            while not acquired:
                remaining = give_up_at - time.monotonic()
                if remaining <= 0:
                    break
                logger.info("Waiting for changelog lock....")
                await asyncio.sleep(min(self._config.lock_poll_seconds, remaining))
                acquired = await self.acquire_lock()

        if not acquired and self._config.fail_if_lock_unavailable:
            logger.info("Did not acquire process lock. Throwing exception.")
            raise LockError("Could not acquire process lock")

        if acquired:
            logger.info("Process lock acquired on table %s", self._gateway.table_name)
        return acquired

    async def release_process_lock(self) -> None:
        """Delete the lock record (idempotent)."""
        await self._gateway.delete_item(schema.lock_key(self._config.partition_key))
        logger.info("Process lock released on table %s", self._gateway.table_name)

    async def is_process_lock_held(self) -> bool:
        """Check, with a strongly consistent read, whether any process holds the lock."""
        item = await self._gateway.get_item(
            schema.lock_key(self._config.partition_key), consistent_read=True
        )
        return item is not None

    async def get_lock_holder(self) -> LockRecord | None:
        """Return the current lock record, or None if the lock is free."""
        item = await self._gateway.get_item(
            schema.lock_key(self._config.partition_key), consistent_read=True
        )
        if item is None:
            return None
        return LockRecord.from_item(item)

    @asynccontextmanager
    async def hold(self) -> AsyncIterator[bool]:
        """
        Hold the process lock for the duration of the block.

        Yields whether the lock was acquired. When it was, the lock is
        released when the block exits, whether normally or due to an
        exception or cancellation. If releasing fails while the block is
        already raising, the release failure is logged and the block's
        exception propagates.

        Example:
            async with lock_manager.hold() as acquired:
                if acquired:
                    await apply_changes()
        """
        acquired = await self.acquire_process_lock()
        try:
            yield acquired
        except BaseException:
            if acquired:
                try:
                    await self.release_process_lock()
                except StoreConnectionError:
                    logger.error("Failed to release process lock", exc_info=True)
            raise
        if acquired:
            await self.release_process_lock()
