"""Sync engine facade wiring storage, transfer, coordination and connectivity."""

import asyncio
from typing import Callable, List, Optional, Sequence, Set

from common.logging_config import get_logger
from common.types import QueueStats, SyncResult, SyncStatus
from agent.config import AgentSettings
from agent.connectivity import ConnectivityBridge, ConnectivityMonitor, WakeTimer, attach_coordinator
from agent.coordinator import SyncCoordinator
from agent.database import Database
from agent.queue_manager import QueueManager
from agent.storage_budget import QuotaBudget, StorageBudget
from agent.transfer import TransferProtocol
from agent.transfer_client import MediaApiClient
from agent.types import MediaFile, QueueItem, Record

logger = get_logger(__name__)


class SyncEngine:
    """
    Caller-facing contract of the offline sync engine.

    Owns one queue manager, one coordinator and one connectivity bridge.
    Nothing here is global, so several engines can live in one process.
    """

    def __init__(
        self,
        queue_manager: QueueManager,
        coordinator: SyncCoordinator,
        bridge: ConnectivityBridge,
        client: Optional[MediaApiClient] = None,
        monitor: Optional[ConnectivityMonitor] = None,
        wake_timer: Optional[WakeTimer] = None,
    ):
        self.queue_manager = queue_manager
        self.coordinator = coordinator
        self.bridge = bridge
        self.client = client
        self.monitor = monitor
        self.wake_timer = wake_timer
        self._background: Set[asyncio.Task] = set()
        self._unsubscribers = attach_coordinator(bridge, coordinator)

    def enqueue(
        self,
        title: str,
        description: Optional[str],
        files: Sequence[MediaFile],
        storage_budget: Optional[StorageBudget] = None,
    ) -> str:
        """
        Queue a submission. When online, a pass is started in the background.

        Returns:
            The new record id
        """
        record_id = self.queue_manager.enqueue(title, description, files, storage_budget=storage_budget)
        if self.bridge.is_online():
            self._start_background_pass()
        return record_id

    def _start_background_pass(self) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop, queued submission waits for the next trigger")
            return
        task = loop.create_task(self._background_pass())
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _background_pass(self) -> None:
        try:
            await self.coordinator.sync_queue()
        except Exception as e:
            logger.error(f"Background sync pass failed: {e}", exc_info=True)

    async def sync_now(self) -> SyncResult:
        return await self.coordinator.sync_queue()

    async def retry_failed(self, include_exhausted: bool = False) -> SyncResult:
        return await self.coordinator.retry_failed(include_exhausted=include_exhausted)

    def get_stats(self) -> QueueStats:
        return self.queue_manager.get_stats()

    @property
    def status(self) -> SyncStatus:
        return self.coordinator.status

    def is_online(self) -> bool:
        return self.bridge.is_online()

    def subscribe_status(self, listener: Callable) -> Callable[[], None]:
        return self.coordinator.subscribe_status(listener)

    def subscribe_progress(self, listener: Callable) -> Callable[[], None]:
        return self.coordinator.subscribe_progress(listener)

    def list_records(self) -> List[Record]:
        return self.queue_manager.list_records()

    def get_record(self, record_id: str) -> Record:
        return self.queue_manager.get_record(record_id)

    def list_items(self) -> List[QueueItem]:
        return self.queue_manager.list_all()

    def items_for_record(self, record_id: str) -> List[QueueItem]:
        return self.queue_manager.list_by_parent(record_id)

    async def start(self) -> None:
        """Start the reachability probe and the background wake timer, if configured."""
        if not self.coordinator.is_syncing:
            self.queue_manager.recover_interrupted()
        if self.monitor is not None:
            await self.monitor.start()
        if self.wake_timer is not None:
            await self.wake_timer.start()

    async def wait_idle(self) -> None:
        """Wait for background passes, signal handlers and async listeners to finish."""
        while self._background:
            await asyncio.gather(*list(self._background))
        await self.bridge.drain()
        await self.coordinator.drain_notifications()

    async def close(self) -> None:
        if self.wake_timer is not None:
            await self.wake_timer.stop()
        if self.monitor is not None:
            await self.monitor.stop()
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        await self.wait_idle()
        if self.client is not None:
            await self.client.close()
        logger.info("Sync engine closed")


def build_engine(
    settings: Optional[AgentSettings] = None,
    client: Optional[MediaApiClient] = None,
    online: bool = False,
    with_background_tasks: bool = True,
) -> SyncEngine:
    """
    Create a fully wired engine from settings.

    Args:
        settings: Agent settings (environment defaults if None)
        client: Media API client to use instead of one built from settings
        online: Initial connectivity flag
        with_background_tasks: Create the reachability monitor and wake timer
    """
    settings = settings or AgentSettings()

    database = Database(settings.database_path)
    database.init_schema()

    queue_manager = QueueManager(database, max_attempts=settings.max_attempts)
    queue_manager.storage_budget = QuotaBudget(settings.storage_quota_bytes, queue_manager.stored_bytes)

    client = client or MediaApiClient(
        settings.api_base_url,
        auth_token=settings.api_auth_token,
        timeout=settings.request_timeout,
    )
    protocol = TransferProtocol(client, call_timeout=settings.request_timeout)
    bridge = ConnectivityBridge(online=online)
    coordinator = SyncCoordinator(
        queue_manager,
        protocol,
        is_online=bridge.is_online,
        stagger_seconds=settings.stagger_seconds,
    )

    monitor = None
    wake_timer = None
    if with_background_tasks:
        monitor = ConnectivityMonitor(bridge, settings.resolved_health_url(), interval_seconds=settings.probe_interval)
        wake_timer = WakeTimer(bridge, interval_seconds=settings.wake_interval)

    logger.info(f"Sync engine built [database={settings.database_path}] api={settings.api_base_url}")
    return SyncEngine(queue_manager, coordinator, bridge, client=client, monitor=monitor, wake_timer=wake_timer)
