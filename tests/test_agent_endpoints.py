"""
API tests for the agent endpoints using FastAPI's TestClient.
"""

import time

import pytest
from fastapi.testclient import TestClient

from agent.connectivity import ConnectivityBridge
from agent.coordinator import SyncCoordinator
from agent.engine import SyncEngine
from agent.main import create_app
from agent.storage_budget import FixedBudget
from agent.transfer import TransferProtocol


def _engine(queue_manager, fake_api, recording_sleep, online):
    bridge = ConnectivityBridge(online=online)
    protocol = TransferProtocol(fake_api, sleep=recording_sleep)
    coordinator = SyncCoordinator(
        queue_manager, protocol, is_online=bridge.is_online, stagger_seconds=0, sleep=recording_sleep
    )
    return SyncEngine(queue_manager, coordinator, bridge, client=fake_api)


@pytest.fixture
def offline_client(queue_manager, fake_api, recording_sleep):
    app = create_app(engine=_engine(queue_manager, fake_api, recording_sleep, online=False))
    with TestClient(app) as client:
        yield client


@pytest.fixture
def online_client(queue_manager, fake_api, recording_sleep):
    app = create_app(engine=_engine(queue_manager, fake_api, recording_sleep, online=True))
    with TestClient(app) as client:
        yield client


def _submit(client, title="Field notes", files=None, description=None):
    files = files if files is not None else [("files", ("a.jpg", b"\xff\xd8" * 50, "image/jpeg"))]
    data = {"title": title}
    if description is not None:
        data["description"] = description
    return client.post("/submissions", data=data, files=files)


def _wait_for(client, predicate, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        stats = client.get("/queue/stats").json()
        if predicate(stats):
            return stats
        time.sleep(0.02)
    raise AssertionError(f"condition not met, last stats: {stats}")


class TestHealth:
    def test_root_and_health(self, offline_client):
        assert offline_client.get("/").json()["status"] == "running"

        response = offline_client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "service": "agent"}
        assert "X-Request-ID" in response.headers


class TestSubmissions:
    def test_submit_creates_pending_record(self, offline_client):
        response = _submit(
            offline_client,
            files=[
                ("files", ("a.jpg", b"1" * 10, "image/jpeg")),
                ("files", ("b.mp4", b"2" * 20, "video/mp4")),
            ],
            description="two files",
        )

        assert response.status_code == 201
        record_id = response.json()["record_id"]

        detail = offline_client.get(f"/submissions/{record_id}").json()
        assert detail["title"] == "Field notes"
        assert detail["description"] == "two files"
        assert detail["synced"] is False
        assert [m["name"] for m in detail["media"]] == ["a.jpg", "b.mp4"]
        assert [m["size"] for m in detail["media"]] == [10, 20]
        assert {i["status"] for i in detail["items"]} == {"pending"}
        assert all(i["metadata"]["title"] == "Field notes" for i in detail["items"])

        listed = offline_client.get("/submissions").json()["records"]
        assert [r["record_id"] for r in listed] == [record_id]

    def test_blank_title_rejected(self, offline_client):
        response = _submit(offline_client, title="   ")

        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"
        assert offline_client.get("/queue").json()["items"] == []

    def test_missing_files_rejected(self, offline_client):
        response = offline_client.post("/submissions", data={"title": "No files"})

        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"

    def test_storage_exhausted(self, offline_client, queue_manager):
        queue_manager.storage_budget = FixedBudget(5)

        response = _submit(offline_client)

        assert response.status_code == 507
        body = response.json()
        assert body["code"] == "STORAGE_EXHAUSTED"
        assert body["available"] == 5
        assert body["needed"] == 100

    def test_unknown_record_returns_404(self, offline_client):
        response = offline_client.get("/submissions/does-not-exist")

        assert response.status_code == 404
        assert response.json()["code"] == "NOT_FOUND"


class TestSync:
    def test_sync_while_offline_does_nothing(self, offline_client, fake_api):
        _submit(offline_client)

        response = offline_client.post("/sync")

        assert response.json() == {"synced_count": 0, "failed_count": 0}
        assert fake_api.whole_uploads == []
        assert offline_client.get("/sync/status").json() == {"status": "idle", "online": False}

    def test_sync_now(self, online_client, queue_manager, media_file):
        record_id = queue_manager.enqueue("Direct", None, [media_file("a.jpg"), media_file("b.jpg")])

        response = online_client.post("/sync")

        assert response.status_code == 200
        assert response.json() == {"synced_count": 2, "failed_count": 0}
        assert online_client.get(f"/submissions/{record_id}").json()["synced"] is True
        assert online_client.get("/queue/stats").json() == {
            "total": 2, "pending": 0, "uploading": 0, "synced": 2, "failed": 0
        }
        assert online_client.get("/sync/status").json() == {"status": "success", "online": True}

    def test_going_online_syncs_queue(self, offline_client):
        _submit(offline_client)
        _submit(offline_client, title="Second")

        response = offline_client.post("/connectivity/online")
        assert response.json()["online"] is True

        stats = _wait_for(offline_client, lambda s: s["synced"] == 2)
        assert stats["pending"] == 0

    def test_going_offline(self, online_client):
        response = online_client.post("/connectivity/offline")

        assert response.json() == {"status": "idle", "online": False}

    def test_retry_failed(self, online_client, queue_manager, fake_api, media_file):
        fake_api.failing_files.add("bad.jpg")
        record_id = queue_manager.enqueue("Flaky", None, [media_file("bad.jpg")])
        item_id = queue_manager.list_by_parent(record_id)[0].item_id
        queue_manager.update(item_id, status="failed", attempts=5, error="Service Unavailable")

        response = online_client.post("/sync/retry")
        assert response.json() == {"synced_count": 0, "failed_count": 0}

        fake_api.failing_files.clear()
        response = online_client.post("/sync/retry", params={"include_exhausted": "true"})
        assert response.json() == {"synced_count": 1, "failed_count": 0}

        items = online_client.get("/queue").json()["items"]
        assert items[0]["status"] == "synced"
        assert items[0]["attempts"] == 1
