"""Shared pytest fixtures for all tests."""

import asyncio
from typing import List, Optional

import pytest

from cli.config import Config
from common.constants import DEFAULT_CHUNK_ENDPOINT, MIB
from agent.connectivity import ConnectivityBridge
from agent.coordinator import SyncCoordinator
from agent.database import Database
from agent.exceptions import TransferFailureError
from agent.queue_manager import QueueManager
from agent.transfer import TransferProtocol
from agent.transfer_client import InitResult
from agent.types import MediaFile


class FakeMediaApi:
    """
    In-memory stand-in for MediaApiClient with scriptable failures.

    Attributes:
        failing_files: File names whose whole upload always fails
        failing_chunks: Chunk indexes (0-based) that always fail
        flaky_chunks: Chunk index -> number of failures before succeeding
        gate: When set, whole uploads wait on this event
    """

    def __init__(self):
        self.whole_uploads: List[str] = []
        self.init_calls: List[dict] = []
        self.chunk_calls: List[tuple] = []
        self.finalize_calls: List[tuple] = []
        self.failing_files = set()
        self.failing_chunks = set()
        self.flaky_chunks = {}
        self.chunk_url: Optional[str] = None
        self.gate: Optional[asyncio.Event] = None
        self.upload_started = asyncio.Event()

    async def upload_whole(self, record_id, metadata, file_name, mime_type, payload):
        self.whole_uploads.append(file_name)
        self.upload_started.set()
        if self.gate is not None:
            await self.gate.wait()
        if file_name in self.failing_files:
            raise TransferFailureError("Service Unavailable", phase="upload", status_code=503)
        return {}

    async def init_chunked(self, record_id, descriptor, total_chunks, correlation_token):
        self.init_calls.append({
            "record_id": record_id,
            "name": descriptor.name,
            "size": descriptor.size,
            "total_chunks": total_chunks,
            "token": correlation_token,
        })
        return InitResult(upload_id=correlation_token, chunk_endpoint=self.chunk_url or DEFAULT_CHUNK_ENDPOINT)

    async def upload_chunk(self, upload_id, index, total_chunks, data, endpoint=DEFAULT_CHUNK_ENDPOINT):
        self.chunk_calls.append((index, len(data), endpoint))
        if index in self.failing_chunks:
            raise TransferFailureError("Chunk upload failed: Bad Gateway", phase="chunk", status_code=502)
        if self.flaky_chunks.get(index, 0) > 0:
            self.flaky_chunks[index] -= 1
            raise TransferFailureError("Chunk upload failed: timeout", phase="chunk")

    async def finalize_chunked(self, upload_id, record_id):
        self.finalize_calls.append((upload_id, record_id))
        return {}

    async def close(self):
        pass


class RecordingSleep:
    """Awaitable sleep replacement that records requested delays."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        await asyncio.sleep(0)


@pytest.fixture
def temp_config_dir(tmp_path):
    """
    Create temporary config directory.

    Returns:
        Path to temporary .mediasync directory
    """
    config_dir = tmp_path / '.mediasync'
    config_dir.mkdir()
    return config_dir


@pytest.fixture
def temp_config(temp_config_dir):
    """
    Create temporary config instance.
    """
    return Config(temp_config_dir / 'config.json')


@pytest.fixture
def sample_file(tmp_path):
    file_path = tmp_path / 'photo.jpg'
    file_path.write_bytes(b'\xff\xd8\xff' + b'x' * 100)
    return file_path


@pytest.fixture
def multiple_sample_files(tmp_path):
    files = []
    for i in range(3):
        file_path = tmp_path / f'clip{i}.mp4'
        file_path.write_bytes(f'clip content {i}'.encode())
        files.append(file_path)
    return files


@pytest.fixture
def database(tmp_path) -> Database:
    """Fresh SQLite database with schema, one file per test."""
    db = Database(str(tmp_path / "data" / "queue.db"))
    db.init_schema()
    return db


@pytest.fixture
def queue_manager(database) -> QueueManager:
    return QueueManager(database)


@pytest.fixture
def fake_api() -> FakeMediaApi:
    return FakeMediaApi()


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def bridge() -> ConnectivityBridge:
    return ConnectivityBridge(online=True)


@pytest.fixture
def coordinator(queue_manager, fake_api, bridge, recording_sleep) -> SyncCoordinator:
    protocol = TransferProtocol(fake_api, sleep=recording_sleep)
    return SyncCoordinator(
        queue_manager,
        protocol,
        is_online=bridge.is_online,
        stagger_seconds=0.1,
        sleep=recording_sleep,
    )


def make_file(name: str = "photo.jpg", size: int = 1024, mime_type: str = "image/jpeg") -> MediaFile:
    return MediaFile(name=name, mime_type=mime_type, data=b"\x01" * size)


def make_large_file(name: str = "video.mp4", size_mib: int = 22) -> MediaFile:
    return MediaFile(name=name, mime_type="video/mp4", data=bytes(size_mib * MIB))


@pytest.fixture
def media_file():
    """Factory for small in-memory media files."""
    return make_file


@pytest.fixture
def large_media_file():
    """Factory for media files above the chunked-upload threshold."""
    return make_large_file
