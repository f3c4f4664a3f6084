"""Repository layer for data access."""

from agent.repositories.record_repository import RecordRepository
from agent.repositories.queue_item_repository import QueueItemRepository

__all__ = [
    "RecordRepository",
    "QueueItemRepository",
]
