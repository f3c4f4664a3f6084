"""Transfer protocol: moves one queue item to the remote API, whole or in chunks."""

import asyncio
from typing import Awaitable, Callable, Optional

from common.constants import (
    CHUNK_BACKOFF_BASE,
    CHUNK_MAX_ATTEMPTS,
    CHUNK_SIZE_BYTES,
    REQUEST_TIMEOUT_SECONDS,
)
from common.logging_config import get_logger
from common.types import MediaDescriptor
from agent.chunking import bytes_after_chunk, iter_chunks, total_chunks
from agent.exceptions import TransferFailureError
from agent.transfer_client import MediaApiClient
from agent.types import QueueItem
from agent.utils import current_epoch_ms

logger = get_logger(__name__)

ProgressCallback = Callable[[int, int], Awaitable[None]]


class TransferProtocol:
    """
    Drives a single transfer attempt for one queue item.

    The whole or chunked path is chosen from ``item.use_chunked``, which is
    fixed at enqueue time. Chunks go strictly in order; each chunk is retried
    with exponential backoff before the attempt is given up.

    Args:
        client: Media API client
        chunk_size: Bytes per chunk
        chunk_max_attempts: Tries per chunk before the transfer fails
        backoff_base: Backoff after failed try ``n`` (0-based) is ``base ** (n + 1)`` seconds
        call_timeout: Upper bound for every network call
        sleep: Awaitable sleep, replaceable in tests
    """

    def __init__(
        self,
        client: MediaApiClient,
        chunk_size: int = CHUNK_SIZE_BYTES,
        chunk_max_attempts: int = CHUNK_MAX_ATTEMPTS,
        backoff_base: float = CHUNK_BACKOFF_BASE,
        call_timeout: float = REQUEST_TIMEOUT_SECONDS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.client = client
        self.chunk_size = chunk_size
        self.chunk_max_attempts = chunk_max_attempts
        self.backoff_base = backoff_base
        self.call_timeout = call_timeout
        self._sleep = sleep

    async def _call(self, phase: str, awaitable):
        try:
            return await asyncio.wait_for(awaitable, timeout=self.call_timeout)
        except asyncio.TimeoutError as e:
            raise TransferFailureError(
                f"{phase.capitalize()} timed out after {self.call_timeout}s", phase=phase
            ) from e

    async def transfer(
        self,
        item: QueueItem,
        payload: bytes,
        on_progress: Optional[ProgressCallback] = None,
    ) -> None:
        """
        Transfer ``payload`` for ``item``. Returns on success.

        Raises:
            TransferFailureError: Any phase failed
        """
        if item.use_chunked:
            await self._transfer_chunked(item, payload, on_progress)
        else:
            await self._call(
                "upload",
                self.client.upload_whole(
                    item.record_id, item.metadata, item.file_name, item.mime_type, payload
                ),
            )

    async def _transfer_chunked(
        self,
        item: QueueItem,
        payload: bytes,
        on_progress: Optional[ProgressCallback],
    ) -> None:
        size = len(payload)
        chunk_count = total_chunks(size, self.chunk_size)
        token = f"{item.record_id}-{item.file_name}-{current_epoch_ms()}"
        descriptor = MediaDescriptor(name=item.file_name, mime_type=item.mime_type, size=size)

        init = await self._call(
            "init", self.client.init_chunked(item.record_id, descriptor, chunk_count, token)
        )
        logger.info(
            f"Chunked upload started [item_id={item.item_id}] upload_id={init.upload_id} chunks={chunk_count}"
        )

        for index, data in iter_chunks(payload, self.chunk_size):
            await self._upload_chunk_with_retry(init.upload_id, index, chunk_count, data, init.chunk_endpoint)
            if on_progress is not None:
                await on_progress(bytes_after_chunk(index, size, self.chunk_size), size)

        await self._call("finalize", self.client.finalize_chunked(init.upload_id, item.record_id))
        logger.info(f"Chunked upload finalized [item_id={item.item_id}] upload_id={init.upload_id}")

    async def _upload_chunk_with_retry(
        self,
        upload_id: str,
        index: int,
        chunk_count: int,
        data: bytes,
        endpoint: str,
    ) -> None:
        for attempt in range(self.chunk_max_attempts):
            try:
                await self._call(
                    "chunk", self.client.upload_chunk(upload_id, index, chunk_count, data, endpoint)
                )
                return
            except TransferFailureError as e:
                if attempt >= self.chunk_max_attempts - 1:
                    raise TransferFailureError(
                        f"Failed to upload chunk {index + 1}/{chunk_count}: {e}",
                        phase="chunk",
                        status_code=e.status_code,
                    ) from e
                delay = self.backoff_base ** (attempt + 1)
                logger.warning(
                    f"Chunk {index + 1}/{chunk_count} failed (attempt {attempt + 1}/{self.chunk_max_attempts}), "
                    f"retrying in {delay}s [upload_id={upload_id}]: {e}"
                )
                await self._sleep(delay)
