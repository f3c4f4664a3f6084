"""Custom exception classes for the sync engine."""

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    VALIDATION = "VALIDATION_ERROR"
    STORAGE_EXHAUSTED = "STORAGE_EXHAUSTED"
    NOT_FOUND = "NOT_FOUND"
    TRANSFER_FAILURE = "TRANSFER_FAILURE"
    EXHAUSTED = "EXHAUSTED"
    STORE_ERROR = "STORE_ERROR"


class SyncEngineError(Exception):
    """
    Base exception class for all sync engine errors.
    """
    kind: ErrorKind = ErrorKind.STORE_ERROR


class ValidationError(SyncEngineError):
    """
    Raised when a submission is missing required fields. Nothing is persisted.
    """
    kind = ErrorKind.VALIDATION


class StorageExhaustedError(SyncEngineError):
    """
    Raised when the storage budget cannot hold the submission payload.
    """
    kind = ErrorKind.STORAGE_EXHAUSTED

    def __init__(self, available: int, needed: int):
        self.available = available
        self.needed = needed
        super().__init__(
            f"Not enough storage space. Available: {available} bytes, Needed: {needed} bytes"
        )


class NotFoundError(SyncEngineError):
    """
    Raised when an operation references an unknown record or queue item.
    """
    kind = ErrorKind.NOT_FOUND

    def __init__(self, entity: str, identifier: str):
        self.entity = entity
        self.identifier = identifier
        super().__init__(f"{entity} not found: {identifier}")


class TransferFailureError(SyncEngineError):
    """
    Raised for network errors, timeouts and non-success responses in any
    transfer phase. Always retryable up to the item's attempt ceiling.
    """
    kind = ErrorKind.TRANSFER_FAILURE

    def __init__(self, message: str, phase: str = "upload", status_code: Optional[int] = None):
        self.phase = phase
        self.status_code = status_code
        super().__init__(message)


class ExhaustedError(SyncEngineError):
    """
    Terminal outcome of an item that used up all of its attempts.
    """
    kind = ErrorKind.EXHAUSTED

    def __init__(self, item_id: str, attempts: int, last_error: Optional[str]):
        self.item_id = item_id
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"Queue item {item_id} exhausted after {attempts} attempts: {last_error}"
        )


class StoreError(SyncEngineError):
    """
    Raised when the durable store itself fails (e.g. a write error).
    """
    kind = ErrorKind.STORE_ERROR
