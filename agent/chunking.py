"""Chunk arithmetic for the chunked upload path."""

import math
from typing import Iterator, Tuple

from common.constants import CHUNK_SIZE_BYTES, CHUNKED_UPLOAD_THRESHOLD_BYTES


def should_use_chunked_upload(file_size: int, threshold: int = CHUNKED_UPLOAD_THRESHOLD_BYTES) -> bool:
    """Files strictly larger than the threshold go through init/chunk/finalize."""
    return file_size > threshold


def total_chunks(file_size: int, chunk_size: int = CHUNK_SIZE_BYTES) -> int:
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")
    return math.ceil(file_size / chunk_size)


def chunk_bounds(index: int, file_size: int, chunk_size: int = CHUNK_SIZE_BYTES) -> Tuple[int, int]:
    """
    Byte range ``[start, end)`` of chunk ``index``. The last chunk may be short.
    """
    start = index * chunk_size
    end = min(start + chunk_size, file_size)
    return start, end


def bytes_after_chunk(index: int, file_size: int, chunk_size: int = CHUNK_SIZE_BYTES) -> int:
    """Cumulative bytes uploaded once chunk ``index`` (0-based) has succeeded."""
    return min((index + 1) * chunk_size, file_size)


def iter_chunks(data: bytes, chunk_size: int = CHUNK_SIZE_BYTES) -> Iterator[Tuple[int, bytes]]:
    for index in range(total_chunks(len(data), chunk_size)):
        start, end = chunk_bounds(index, len(data), chunk_size)
        yield index, data[start:end]


def progress_percentage(bytes_uploaded: int, total_bytes: int) -> int:
    """Percentage rounded half up and clamped to [0, 100]; an empty payload counts as complete."""
    if total_bytes <= 0:
        return 100
    return max(0, min(100, math.floor(bytes_uploaded / total_bytes * 100 + 0.5)))
