"""Storage budgets consulted before a submission is queued."""

import shutil
from pathlib import Path
from typing import Callable

from common.logging_config import get_logger

logger = get_logger(__name__)


class StorageBudget:
    """Reports how many more payload bytes may be queued."""

    def available_bytes(self) -> int:
        raise NotImplementedError


class FixedBudget(StorageBudget):
    def __init__(self, available: int):
        self.available = available

    def available_bytes(self) -> int:
        return self.available


class QuotaBudget(StorageBudget):
    """
    Fixed quota minus the bytes already held by the queue.

    Args:
        quota_bytes: Total bytes the queue may hold
        usage: Callable returning the bytes currently stored
    """

    def __init__(self, quota_bytes: int, usage: Callable[[], int]):
        self.quota_bytes = quota_bytes
        self.usage = usage

    def available_bytes(self) -> int:
        return max(0, self.quota_bytes - self.usage())


class DiskBudget(StorageBudget):
    """
    Free space on the volume holding the database, minus a reserve.
    """

    def __init__(self, path: str, reserve_bytes: int = 0):
        self.path = Path(path)
        self.reserve_bytes = reserve_bytes

    def available_bytes(self) -> int:
        target = self.path if self.path.is_dir() else self.path.parent
        try:
            target.mkdir(parents=True, exist_ok=True)
            free = shutil.disk_usage(str(target)).free
        except OSError as e:
            logger.error(f"Failed to get storage stats [path={target}]: {e}")
            return 0
        return max(0, free - self.reserve_bytes)
