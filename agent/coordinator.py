"""Sync coordinator: single-flight passes over the pending queue."""

import asyncio
import inspect
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, List, Optional, Set

from common.constants import SYNC_STAGGER_SECONDS
from common.logging_config import get_logger
from common.types import ItemStatus, ProgressUpdate, SyncResult, SyncStatus
from agent.chunking import progress_percentage
from agent.exceptions import ExhaustedError, StoreError, TransferFailureError
from agent.queue_manager import QueueManager
from agent.transfer import TransferProtocol
from agent.types import QueueItem
from agent.utils import get_current_timestamp

logger = get_logger(__name__)

Listener = Callable[[Any], Any]


@dataclass(frozen=True)
class ItemOutcome:
    item_id: str
    synced: bool
    error: Optional[str] = None


class SyncCoordinator:
    """
    Runs sync passes and owns the per-item state machine.

    At most one pass runs at a time. The guard is a plain flag that is tested
    and set without a suspension point in between, so every trigger (manual,
    online, background wake) shares it.

    Args:
        queue_manager: Persistence for records and queue items
        protocol: Transfer protocol used for each item
        is_online: Callable reporting current connectivity
        stagger_seconds: Dispatch delay multiplied by the item's index in the pass
        sleep: Awaitable sleep, replaceable in tests
    """

    def __init__(
        self,
        queue_manager: QueueManager,
        protocol: TransferProtocol,
        is_online: Callable[[], bool],
        stagger_seconds: float = SYNC_STAGGER_SECONDS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.queue_manager = queue_manager
        self.protocol = protocol
        self._is_online = is_online
        self.stagger_seconds = stagger_seconds
        self._sleep = sleep

        self._status = SyncStatus.IDLE
        self._is_syncing = False
        self._status_listeners: List[Listener] = []
        self._progress_listeners: List[Listener] = []
        self._notification_tasks: Set[asyncio.Task] = set()

    @property
    def status(self) -> SyncStatus:
        return self._status

    @property
    def is_syncing(self) -> bool:
        return self._is_syncing

    def subscribe_status(self, listener: Listener) -> Callable[[], None]:
        """Register a status listener; it is called right away with the current status."""
        self._status_listeners.append(listener)
        self._deliver(listener, self._status)
        return self._unsubscriber(self._status_listeners, listener)

    def subscribe_progress(self, listener: Listener) -> Callable[[], None]:
        self._progress_listeners.append(listener)
        return self._unsubscriber(self._progress_listeners, listener)

    @staticmethod
    def _unsubscriber(listeners: List[Listener], listener: Listener) -> Callable[[], None]:
        def unsubscribe() -> None:
            if listener in listeners:
                listeners.remove(listener)
        return unsubscribe

    def _set_status(self, status: SyncStatus) -> None:
        self._status = status
        for listener in list(self._status_listeners):
            self._deliver(listener, status)

    def _publish_progress(self, update: ProgressUpdate) -> None:
        for listener in list(self._progress_listeners):
            self._deliver(listener, update)

    def _deliver(self, listener: Listener, value: Any) -> None:
        try:
            result = listener(value)
        except Exception as e:
            logger.error(f"Sync listener failed: {e}", exc_info=True)
            return

        if inspect.isawaitable(result):
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                logger.warning("Async sync listener called outside an event loop, dropping notification")
                if inspect.iscoroutine(result):
                    result.close()
                return
            task = loop.create_task(self._await_listener(result))
            self._notification_tasks.add(task)
            task.add_done_callback(self._notification_tasks.discard)

    @staticmethod
    async def _await_listener(result: Awaitable) -> None:
        try:
            await result
        except Exception as e:
            logger.error(f"Async sync listener failed: {e}", exc_info=True)

    async def drain_notifications(self) -> None:
        """Wait until every scheduled async listener call has finished."""
        while self._notification_tasks:
            await asyncio.gather(*list(self._notification_tasks))

    def mark_idle(self) -> None:
        if self._is_syncing:
            logger.debug("Pass in progress, keeping current status")
            return
        self._set_status(SyncStatus.IDLE)

    async def sync_queue(self) -> SyncResult:
        """
        Run one pass over every pending item.

        Returns:
            Counts of items synced and failed in this pass; ``(0, 0)`` when
            offline or when another pass is already running

        Raises:
            StoreError: The durable store failed; raised after all dispatches settle
        """
        if self._is_syncing:
            logger.info("Sync already in progress")
            return SyncResult()
        if not self._is_online():
            logger.info("Offline - cannot sync queue")
            return SyncResult()

        self._is_syncing = True
        try:
            return await self._run_pass()
        except Exception:
            self._set_status(SyncStatus.ERROR)
            raise
        finally:
            self._is_syncing = False

    async def _run_pass(self) -> SyncResult:
        self._set_status(SyncStatus.SYNCING)

        # the guard is held, so any item still uploading belongs to no live pass
        self.queue_manager.recover_interrupted()
        pending = self.queue_manager.list_pending()
        if not pending:
            self._set_status(SyncStatus.SUCCESS)
            return SyncResult()

        logger.info(f"Syncing {len(pending)} queue items...")

        outcomes = await asyncio.gather(
            *(self._dispatch(item, index * self.stagger_seconds) for index, item in enumerate(pending)),
            return_exceptions=True,
        )

        synced = 0
        store_error: Optional[BaseException] = None
        for item, outcome in zip(pending, outcomes):
            if isinstance(outcome, ItemOutcome):
                if outcome.synced:
                    synced += 1
            elif isinstance(outcome, StoreError):
                store_error = store_error or outcome
            elif isinstance(outcome, BaseException):
                logger.error(f"Unexpected error syncing queue item [item_id={item.item_id}]: {outcome!r}")
        failed = len(pending) - synced

        if store_error is not None:
            logger.error(f"Store failure during sync pass: {store_error}")
            raise store_error

        logger.info(f"Sync pass complete: synced={synced} failed={failed}")
        self._set_status(SyncStatus.SUCCESS if failed == 0 else SyncStatus.ERROR)
        return SyncResult(synced_count=synced, failed_count=failed)

    async def _dispatch(self, item: QueueItem, delay: float) -> ItemOutcome:
        if delay > 0:
            await self._sleep(delay)
        return await self._sync_item(item)

    async def _sync_item(self, item: QueueItem) -> ItemOutcome:
        if item.attempts >= item.max_attempts:
            exhausted = ExhaustedError(item.item_id, item.attempts, item.error)
            logger.warning(str(exhausted))
            self.queue_manager.update(
                item.item_id,
                status=ItemStatus.FAILED,
                attempts=item.max_attempts,
                error=item.error or str(exhausted),
            )
            return ItemOutcome(item.item_id, synced=False, error=item.error or str(exhausted))

        item = self.queue_manager.update(
            item.item_id,
            status=ItemStatus.UPLOADING,
            attempts=item.attempts + 1,
            upload_progress=0,
            bytes_uploaded=0,
            last_attempt_at=get_current_timestamp(),
        )

        try:
            payload = self.queue_manager.read_payload(item.item_id)
            await self.protocol.transfer(item, payload, self._progress_recorder(item))
        except StoreError:
            raise
        except TransferFailureError as e:
            logger.warning(f"Transfer failed [item_id={item.item_id}] phase={e.phase}: {e}")
            return self._record_failure(item, e)
        except Exception as e:
            logger.error(f"Error syncing queue item [item_id={item.item_id}]: {e}", exc_info=True)
            return self._record_failure(item, e)

        self.queue_manager.update(
            item.item_id,
            status=ItemStatus.SYNCED,
            upload_progress=100,
            bytes_uploaded=item.file_size,
            synced_at=get_current_timestamp(),
            error=None,
        )
        self._publish_progress(ProgressUpdate(item.item_id, 100, item.file_size, item.file_size))
        self.queue_manager.reconcile(item.record_id)
        logger.info(f"Queue item synced [item_id={item.item_id}] record_id={item.record_id}")
        return ItemOutcome(item.item_id, synced=True)

    def _record_failure(self, item: QueueItem, error: Exception) -> ItemOutcome:
        should_retry = item.attempts < item.max_attempts
        message = str(error) or type(error).__name__
        self.queue_manager.update(
            item.item_id,
            status=ItemStatus.PENDING if should_retry else ItemStatus.FAILED,
            error=message,
            last_attempt_at=get_current_timestamp(),
            upload_progress=0,
            bytes_uploaded=0,
        )
        if not should_retry:
            logger.error(str(ExhaustedError(item.item_id, item.attempts, message)))
        return ItemOutcome(item.item_id, synced=False, error=message)

    def _progress_recorder(self, item: QueueItem):
        async def record(bytes_uploaded: int, total_bytes: int) -> None:
            percentage = progress_percentage(bytes_uploaded, total_bytes)
            self.queue_manager.update(item.item_id, upload_progress=percentage, bytes_uploaded=bytes_uploaded)
            self._publish_progress(ProgressUpdate(item.item_id, percentage, bytes_uploaded, total_bytes))
        return record

    async def retry_failed(self, include_exhausted: bool = False) -> SyncResult:
        """
        Put failed items back in the queue and start a pass if online.

        Args:
            include_exhausted: Also retry items that used up every attempt,
                resetting their attempt counters to 0
        """
        failed = self.queue_manager.items.get_by_index("status", ItemStatus.FAILED)
        reset = 0
        for item in failed:
            exhausted = item.attempts >= item.max_attempts
            if exhausted and not include_exhausted:
                continue
            self.queue_manager.reset_for_retry(item.item_id, reset_attempts=exhausted)
            reset += 1

        logger.info(f"Reset {reset} failed queue items for retry [include_exhausted={include_exhausted}]")
        if reset > 0 and self._is_online():
            return await self.sync_queue()
        return SyncResult()
