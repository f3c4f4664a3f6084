"""Connectivity and trigger signals, plus the background probe and wake timer."""

import asyncio
import inspect
from enum import Enum
from typing import Callable, Dict, List, Optional, Set

import aiohttp

from common.logging_config import get_logger

logger = get_logger(__name__)


class SignalKind(str, Enum):
    ONLINE = "online"
    OFFLINE = "offline"
    MANUAL_SYNC = "manual_sync_requested"
    BACKGROUND_WAKE = "background_wake"


class ConnectivityBridge:
    """
    Holds the online flag and fans signals out to subscribers.

    Callbacks take no arguments and may be coroutine functions; their
    coroutines are scheduled as tasks on the running loop.
    """

    def __init__(self, online: bool = False):
        self._online = online
        self._subscribers: Dict[SignalKind, List[Callable]] = {kind: [] for kind in SignalKind}
        self._tasks: Set[asyncio.Task] = set()

    def is_online(self) -> bool:
        return self._online

    def subscribe(self, signal: SignalKind, callback: Callable) -> Callable[[], None]:
        signal = SignalKind(signal)
        self._subscribers[signal].append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers[signal]:
                self._subscribers[signal].remove(callback)
        return unsubscribe

    def set_online(self, online: bool) -> bool:
        """
        Update the connectivity flag. Emits ``online``/``offline`` only on a transition.

        Returns:
            True if the flag changed
        """
        if online == self._online:
            return False
        self._online = online
        logger.info("Back online - triggering sync" if online else "Gone offline")
        self._emit(SignalKind.ONLINE if online else SignalKind.OFFLINE)
        return True

    def request_manual_sync(self) -> None:
        self._emit(SignalKind.MANUAL_SYNC)

    def background_wake(self) -> None:
        self._emit(SignalKind.BACKGROUND_WAKE)

    def _emit(self, signal: SignalKind) -> None:
        for callback in list(self._subscribers[signal]):
            try:
                result = callback()
            except Exception as e:
                logger.error(f"Signal handler failed [signal={signal.value}]: {e}", exc_info=True)
                continue
            if inspect.isawaitable(result):
                task = asyncio.get_running_loop().create_task(self._run_handler(signal, result))
                self._tasks.add(task)
                task.add_done_callback(self._tasks.discard)

    @staticmethod
    async def _run_handler(signal: SignalKind, awaitable) -> None:
        try:
            await awaitable
        except Exception as e:
            logger.error(f"Signal handler failed [signal={signal.value}]: {e}", exc_info=True)

    async def drain(self) -> None:
        """Wait for every handler task started by a signal."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))


def attach_coordinator(bridge: ConnectivityBridge, coordinator) -> List[Callable[[], None]]:
    """
    Wire bridge signals to a coordinator: every trigger except ``offline``
    starts a pass; ``offline`` marks the coordinator idle.

    Returns:
        Unsubscribe callables for the four registrations
    """
    return [
        bridge.subscribe(SignalKind.ONLINE, coordinator.sync_queue),
        bridge.subscribe(SignalKind.OFFLINE, coordinator.mark_idle),
        bridge.subscribe(SignalKind.MANUAL_SYNC, coordinator.sync_queue),
        bridge.subscribe(SignalKind.BACKGROUND_WAKE, coordinator.sync_queue),
    ]


class ConnectivityMonitor:
    """
    Periodically probes the remote health URL with aiohttp and feeds the
    result into the bridge.
    """

    def __init__(
        self,
        bridge: ConnectivityBridge,
        health_url: str,
        interval_seconds: float = 15,
        probe_timeout: float = 3,
    ):
        self.bridge = bridge
        self.health_url = health_url
        self.interval_seconds = interval_seconds
        self.probe_timeout = probe_timeout
        self._running = False
        self._task: Optional[asyncio.Task] = None

    async def start(self) -> None:
        if self._running:
            logger.warning("Connectivity monitor already running")
            return
        self._running = True
        self._task = asyncio.create_task(self._run())
        logger.info(f"Started connectivity monitor [url={self.health_url}] interval={self.interval_seconds}s")

    async def stop(self) -> None:
        if not self._running:
            return
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        logger.info("Stopped connectivity monitor")

    async def _run(self) -> None:
        while self._running:
            try:
                self.bridge.set_online(await self.probe())
                await asyncio.sleep(self.interval_seconds)
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Error in connectivity monitor: {e}", exc_info=True)
                await asyncio.sleep(self.interval_seconds)

    async def probe(self) -> bool:
        """
        Returns:
            True when the health URL answers with a status below 500
        """
        try:
            async with aiohttp.ClientSession() as session:
                async with session.get(
                    self.health_url,
                    timeout=aiohttp.ClientTimeout(total=self.probe_timeout)
                ) as resp:
                    if resp.status < 500:
                        return True
                    logger.warning(f"Health probe returned {resp.status}")
                    return False
        except asyncio.TimeoutError:
            logger.debug(f"Health probe timed out [url={self.health_url}]")
            return False
        except aiohttp.ClientError as e:
            logger.debug(f"Health probe failed [url={self.health_url}]: {e}")
            return False


class WakeTimer:
    """Fires ``background_wake`` on the bridge every ``interval_seconds``."""

    def __init__(self, bridge: ConnectivityBridge, interval_seconds: float = 300):
        self.bridge = bridge
        self.interval_seconds = interval_seconds
        self._running = False
        self._task: Optional[asyncio.Task] = None

    async def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._run())
        logger.info(f"Started background wake timer (interval: {self.interval_seconds}s)")

    async def stop(self) -> None:
        if not self._running:
            return
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        logger.info("Stopped background wake timer")

    async def _run(self) -> None:
        while self._running:
            try:
                await asyncio.sleep(self.interval_seconds)
                if not self._running:
                    break
                self.bridge.background_wake()
            except asyncio.CancelledError:
                break
