"""Tests for the sync coordinator: passes, state machine, retries and notifications."""

import asyncio
from unittest.mock import patch

import pytest

from common.types import ItemStatus, ProgressUpdate, SyncResult, SyncStatus
from agent.exceptions import StoreError
from agent.coordinator import SyncCoordinator
from agent.queue_manager import QueueManager
from agent.transfer import TransferProtocol


def _assert_attempt_invariants(queue_manager):
    for item in queue_manager.list_all():
        assert 0 <= item.attempts <= item.max_attempts
        if item.status == ItemStatus.FAILED:
            assert item.attempts == item.max_attempts


def _assert_record_invariant(queue_manager):
    for record in queue_manager.list_records():
        children = queue_manager.list_by_parent(record.record_id)
        all_synced = bool(children) and all(c.status == ItemStatus.SYNCED for c in children)
        assert record.synced == all_synced


class TestSyncPass:
    @pytest.mark.asyncio
    async def test_empty_queue_reports_success(self, coordinator):
        statuses = []
        coordinator.subscribe_status(statuses.append)

        assert await coordinator.sync_queue() == SyncResult(0, 0)
        assert statuses == [SyncStatus.IDLE, SyncStatus.SYNCING, SyncStatus.SUCCESS]

    @pytest.mark.asyncio
    async def test_offline_pass_touches_nothing(self, coordinator, queue_manager, bridge, fake_api, media_file):
        bridge.set_online(False)
        record_id = queue_manager.enqueue("t", None, [media_file()])

        assert await coordinator.sync_queue() == SyncResult(0, 0)

        item = queue_manager.list_by_parent(record_id)[0]
        assert item.status == ItemStatus.PENDING
        assert item.attempts == 0
        assert fake_api.whole_uploads == []
        assert coordinator.status == SyncStatus.IDLE

    @pytest.mark.asyncio
    async def test_successful_item_is_synced_and_record_reconciled(self, coordinator, queue_manager, media_file):
        record_id = queue_manager.enqueue("t", None, [media_file("a.jpg", 2048)])

        assert await coordinator.sync_queue() == SyncResult(1, 0)

        item = queue_manager.list_by_parent(record_id)[0]
        assert item.status == ItemStatus.SYNCED
        assert item.attempts == 1
        assert item.upload_progress == 100
        assert item.bytes_uploaded == 2048
        assert item.synced_at is not None
        assert item.error is None
        assert queue_manager.get_record(record_id).synced is True
        assert coordinator.status == SyncStatus.SUCCESS

    @pytest.mark.asyncio
    async def test_dispatch_is_staggered_by_index(self, coordinator, queue_manager, recording_sleep, media_file):
        queue_manager.enqueue("t", None, [media_file("a"), media_file("b"), media_file("c")])

        await coordinator.sync_queue()

        assert recording_sleep.delays == [pytest.approx(0.1), pytest.approx(0.2)]

    @pytest.mark.asyncio
    async def test_one_failure_does_not_abort_others(self, coordinator, queue_manager, fake_api, media_file):
        fake_api.failing_files.add("bad.jpg")
        record_id = queue_manager.enqueue("t", None, [media_file("good.jpg"), media_file("bad.jpg")])

        assert await coordinator.sync_queue() == SyncResult(1, 1)

        items = {i.file_name: i for i in queue_manager.list_by_parent(record_id)}
        assert items["good.jpg"].status == ItemStatus.SYNCED
        assert items["bad.jpg"].status == ItemStatus.PENDING
        assert items["bad.jpg"].attempts == 1
        assert items["bad.jpg"].error == "Service Unavailable"
        assert items["bad.jpg"].last_attempt_at is not None
        assert coordinator.status == SyncStatus.ERROR
        _assert_record_invariant(queue_manager)

    @pytest.mark.asyncio
    async def test_item_fails_after_max_attempts(self, coordinator, queue_manager, fake_api, media_file):
        fake_api.failing_files.add("bad.jpg")
        record_id = queue_manager.enqueue("t", None, [media_file("bad.jpg")])

        for _ in range(5):
            assert await coordinator.sync_queue() == SyncResult(0, 1)
            _assert_attempt_invariants(queue_manager)

        item = queue_manager.list_by_parent(record_id)[0]
        assert item.status == ItemStatus.FAILED
        assert item.attempts == 5

        assert await coordinator.sync_queue() == SyncResult(0, 0)
        assert len(fake_api.whole_uploads) == 5

    @pytest.mark.asyncio
    async def test_pending_item_over_ceiling_fails_without_transfer(self, coordinator, queue_manager, fake_api, media_file):
        record_id = queue_manager.enqueue("t", None, [media_file()])
        item = queue_manager.list_by_parent(record_id)[0]
        queue_manager.update(item.item_id, attempts=7, error="earlier failure")

        assert await coordinator.sync_queue() == SyncResult(0, 1)

        item = queue_manager.get_item(item.item_id)
        assert item.status == ItemStatus.FAILED
        assert item.attempts == 5
        assert item.error == "earlier failure"
        assert fake_api.whole_uploads == []


class TestSingleFlight:
    @pytest.mark.asyncio
    async def test_concurrent_call_returns_zero_and_touches_nothing(self, coordinator, queue_manager, fake_api, media_file):
        fake_api.gate = asyncio.Event()
        record_id = queue_manager.enqueue("t", None, [media_file()])

        first = asyncio.create_task(coordinator.sync_queue())
        await asyncio.wait_for(fake_api.upload_started.wait(), timeout=2)
        assert coordinator.is_syncing is True

        assert await coordinator.sync_queue() == SyncResult(0, 0)
        assert queue_manager.list_by_parent(record_id)[0].attempts == 1

        fake_api.gate.set()
        assert await first == SyncResult(1, 0)
        assert fake_api.whole_uploads == ["photo.jpg"]
        assert coordinator.is_syncing is False

    @pytest.mark.asyncio
    async def test_guard_released_after_store_failure(self, coordinator, queue_manager, media_file):
        queue_manager.enqueue("t", None, [media_file()])

        with patch.object(queue_manager, "list_pending", side_effect=StoreError("database is locked")):
            with pytest.raises(StoreError):
                await coordinator.sync_queue()

        assert coordinator.is_syncing is False
        assert coordinator.status == SyncStatus.ERROR
        assert await coordinator.sync_queue() == SyncResult(1, 0)


class TestStoreErrors:
    @pytest.mark.asyncio
    async def test_store_error_raised_after_all_dispatches_settle(self, coordinator, queue_manager, fake_api, media_file):
        queue_manager.enqueue("t", None, [media_file("a.jpg"), media_file("b.jpg")])

        with patch.object(queue_manager, "reconcile", side_effect=StoreError("disk I/O error")):
            with pytest.raises(StoreError):
                await coordinator.sync_queue()

        assert sorted(fake_api.whole_uploads) == ["a.jpg", "b.jpg"]
        assert coordinator.status == SyncStatus.ERROR


class TestScenarios:
    @pytest.mark.asyncio
    async def test_chunk_three_failing_until_exhausted(self, coordinator, queue_manager, fake_api, large_media_file):
        fake_api.failing_chunks.add(2)
        record_id = queue_manager.enqueue("Big upload", None, [large_media_file("video.mp4", 22)])
        item_id = queue_manager.list_by_parent(record_id)[0].item_id

        percentages = []
        coordinator.subscribe_progress(lambda update: percentages.append(update.percentage))

        for attempt in range(1, 6):
            assert await coordinator.sync_queue() == SyncResult(0, 1)
            item = queue_manager.get_item(item_id)
            assert item.attempts == attempt
            assert item.upload_progress == 0
            assert item.bytes_uploaded == 0
            assert item.error.startswith("Failed to upload chunk 3/5:")
            expected = ItemStatus.PENDING if attempt < 5 else ItemStatus.FAILED
            assert item.status == expected

        assert percentages == [23, 45] * 5
        assert queue_manager.get_record(record_id).synced is False
        _assert_attempt_invariants(queue_manager)

    @pytest.mark.asyncio
    async def test_chunked_success_persists_progress(self, coordinator, queue_manager, fake_api, large_media_file):
        record_id = queue_manager.enqueue("Big upload", None, [large_media_file("video.mp4", 22)])
        updates = []
        coordinator.subscribe_progress(updates.append)

        assert await coordinator.sync_queue() == SyncResult(1, 0)

        item = queue_manager.list_by_parent(record_id)[0]
        assert [u.percentage for u in updates] == [23, 45, 68, 91, 100, 100]
        assert updates[0] == ProgressUpdate(item.item_id, 23, 5 * 1024 * 1024, 22 * 1024 * 1024)
        assert item.upload_progress == 100
        assert queue_manager.get_record(record_id).synced is True

    @pytest.mark.asyncio
    async def test_siblings_flip_record_once(self, coordinator, queue_manager, fake_api, media_file):
        fake_api.failing_files.add("b.jpg")
        record_id = queue_manager.enqueue("t", None, [media_file("a.jpg"), media_file("b.jpg")])

        original_put = queue_manager.records.put
        synced_writes = []

        def tracking_put(record, conn=None):
            if record.synced:
                synced_writes.append(record.record_id)
            return original_put(record, conn=conn)

        with patch.object(queue_manager.records, "put", side_effect=tracking_put):
            assert await coordinator.sync_queue() == SyncResult(1, 1)
            assert queue_manager.get_record(record_id).synced is False

            fake_api.failing_files.clear()
            assert await coordinator.sync_queue() == SyncResult(1, 0)
            assert await coordinator.sync_queue() == SyncResult(0, 0)

        assert queue_manager.get_record(record_id).synced is True
        assert synced_writes == [record_id]
        _assert_record_invariant(queue_manager)


class TestRetryFailed:
    @pytest.mark.asyncio
    async def test_retries_failed_items_below_ceiling(self, coordinator, queue_manager, fake_api, media_file):
        record_id = queue_manager.enqueue("t", None, [media_file()])
        item = queue_manager.list_by_parent(record_id)[0]
        queue_manager.update(item.item_id, status=ItemStatus.FAILED, attempts=2, error="boom")

        assert await coordinator.retry_failed() == SyncResult(1, 0)
        assert queue_manager.get_item(item.item_id).status == ItemStatus.SYNCED

    @pytest.mark.asyncio
    async def test_exhausted_items_skipped_by_default(self, coordinator, queue_manager, fake_api, media_file):
        record_id = queue_manager.enqueue("t", None, [media_file()])
        item = queue_manager.list_by_parent(record_id)[0]
        queue_manager.update(item.item_id, status=ItemStatus.FAILED, attempts=5, error="boom")

        assert await coordinator.retry_failed() == SyncResult(0, 0)
        assert queue_manager.get_item(item.item_id).status == ItemStatus.FAILED
        assert fake_api.whole_uploads == []

    @pytest.mark.asyncio
    async def test_include_exhausted_resets_attempts(self, coordinator, queue_manager, fake_api, media_file):
        record_id = queue_manager.enqueue("t", None, [media_file()])
        item = queue_manager.list_by_parent(record_id)[0]
        queue_manager.update(item.item_id, status=ItemStatus.FAILED, attempts=5, error="boom")

        assert await coordinator.retry_failed(include_exhausted=True) == SyncResult(1, 0)

        item = queue_manager.get_item(item.item_id)
        assert item.status == ItemStatus.SYNCED
        assert item.attempts == 1

    @pytest.mark.asyncio
    async def test_offline_retry_resets_but_does_not_sync(self, coordinator, queue_manager, bridge, fake_api, media_file):
        bridge.set_online(False)
        record_id = queue_manager.enqueue("t", None, [media_file()])
        item = queue_manager.list_by_parent(record_id)[0]
        queue_manager.update(item.item_id, status=ItemStatus.FAILED, attempts=2, error="boom")

        assert await coordinator.retry_failed() == SyncResult(0, 0)

        item = queue_manager.get_item(item.item_id)
        assert item.status == ItemStatus.PENDING
        assert item.error is None
        assert fake_api.whole_uploads == []


class TestNotifications:
    def test_status_listener_gets_current_status_on_subscribe(self, coordinator):
        received = []
        coordinator.subscribe_status(received.append)
        assert received == [SyncStatus.IDLE]

    @pytest.mark.asyncio
    async def test_unsubscribe_stops_delivery(self, coordinator):
        received = []
        unsubscribe = coordinator.subscribe_status(received.append)
        unsubscribe()

        await coordinator.sync_queue()
        assert received == [SyncStatus.IDLE]

    @pytest.mark.asyncio
    async def test_failing_listener_does_not_break_pass(self, coordinator, queue_manager, media_file):
        def broken(status):
            raise RuntimeError("listener bug")

        coordinator.subscribe_status(broken)
        coordinator.subscribe_progress(broken)
        queue_manager.enqueue("t", None, [media_file()])

        assert await coordinator.sync_queue() == SyncResult(1, 0)

    @pytest.mark.asyncio
    async def test_async_listener(self, coordinator):
        received = []

        async def listener(status):
            received.append(status)

        coordinator.subscribe_status(listener)
        await coordinator.sync_queue()
        await coordinator.drain_notifications()

        assert received == [SyncStatus.IDLE, SyncStatus.SYNCING, SyncStatus.SUCCESS]

    @pytest.mark.asyncio
    async def test_mark_idle_ignored_during_pass(self, coordinator, queue_manager, fake_api, media_file):
        fake_api.gate = asyncio.Event()
        queue_manager.enqueue("t", None, [media_file()])

        task = asyncio.create_task(coordinator.sync_queue())
        await asyncio.wait_for(fake_api.upload_started.wait(), timeout=2)
        coordinator.mark_idle()
        assert coordinator.status == SyncStatus.SYNCING

        fake_api.gate.set()
        await task
        coordinator.mark_idle()
        assert coordinator.status == SyncStatus.IDLE


class TestInterruptedTransfers:
    @pytest.mark.asyncio
    async def test_item_left_uploading_by_restart_is_resent(
        self, database, queue_manager, fake_api, recording_sleep, media_file
    ):
        record_id = queue_manager.enqueue("t", None, [media_file()])
        item_id = queue_manager.list_by_parent(record_id)[0].item_id
        queue_manager.update(item_id, status=ItemStatus.UPLOADING, attempts=1, upload_progress=30)

        restarted = QueueManager(database)
        coordinator = SyncCoordinator(
            restarted, TransferProtocol(fake_api, sleep=recording_sleep), is_online=lambda: True, sleep=recording_sleep
        )

        assert await coordinator.sync_queue() == SyncResult(1, 0)

        item = restarted.get_item(item_id)
        assert item.status == ItemStatus.SYNCED
        assert item.attempts == 2
        assert fake_api.whole_uploads == ["photo.jpg"]
        assert restarted.get_record(record_id).synced is True

    @pytest.mark.asyncio
    async def test_item_stranded_by_store_failure_is_resent(self, coordinator, queue_manager, fake_api, media_file):
        record_id = queue_manager.enqueue("t", None, [media_file()])

        with patch.object(queue_manager, "read_payload", side_effect=StoreError("disk I/O error")):
            with pytest.raises(StoreError):
                await coordinator.sync_queue()
        assert queue_manager.list_by_parent(record_id)[0].status == ItemStatus.UPLOADING

        assert await coordinator.sync_queue() == SyncResult(1, 0)
        assert queue_manager.get_record(record_id).synced is True
        _assert_attempt_invariants(queue_manager)

    @pytest.mark.asyncio
    async def test_stranded_item_at_ceiling_is_failed_not_resent(self, coordinator, queue_manager, fake_api, media_file):
        record_id = queue_manager.enqueue("t", None, [media_file()])
        item_id = queue_manager.list_by_parent(record_id)[0].item_id
        queue_manager.update(item_id, status=ItemStatus.UPLOADING, attempts=5)

        assert await coordinator.sync_queue() == SyncResult(0, 0)

        assert queue_manager.get_item(item_id).status == ItemStatus.FAILED
        assert fake_api.whole_uploads == []
