"""
获取队列测试
"""

import asyncio
import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from modqueue.conflict import resolve_overwrite
from modqueue.exceptions import DownloadFileError, DownloadNetworkError, QueueError
from modqueue.models import ModInfo, TaskEndedEvent, TaskStatus

from conftest import settle

SOURCE = "nxm://skyrim/mods/1234/files/5678"
OTHER = "https://example.com/files/other.esp"


class TestRequestAcquisition:
    """请求去重"""

    @pytest.mark.asyncio
    async def test_repeated_requests_share_one_task(self, queue, recorder):
        handles = [queue.request_acquisition(SOURCE) for _ in range(10)]

        assert len(recorder.created) == 1
        assert all(h is handles[0] for h in handles)
        assert handles[0].start_count == 1
        assert len(queue) == 1

    @pytest.mark.asyncio
    async def test_concurrent_coroutines_share_one_task(self, queue, recorder):
        async def request():
            await asyncio.sleep(0)
            return queue.request_acquisition(SOURCE)

        handles = await asyncio.gather(*(request() for _ in range(20)))

        assert len(recorder.created) == 1
        assert len({id(h) for h in handles}) == 1

    @pytest.mark.asyncio
    async def test_requests_from_other_threads(self, queue, recorder):
        queue.attach()
        loop = asyncio.get_running_loop()
        barrier = threading.Barrier(8)

        def request():
            barrier.wait(timeout=5)
            return queue.request_acquisition_threadsafe(SOURCE).result(timeout=5)

        with ThreadPoolExecutor(max_workers=8) as pool:
            handles = await asyncio.gather(
                *(loop.run_in_executor(pool, request) for _ in range(8))
            )

        assert len(recorder.created) == 1
        assert all(h is recorder.created[0] for h in handles)

    @pytest.mark.asyncio
    async def test_keys_are_normalized(self, queue, recorder):
        first = queue.request_acquisition("NXM://Skyrim/mods/1234/files/5678")
        second = queue.request_acquisition(SOURCE)

        assert first is second
        assert len(recorder.created) == 1
        assert SOURCE in queue

    @pytest.mark.asyncio
    async def test_distinct_keys_get_distinct_tasks(self, queue, recorder):
        a = queue.request_acquisition(SOURCE)
        b = queue.request_acquisition(OTHER)

        assert a is not b
        assert len(queue) == 2

    @pytest.mark.asyncio
    async def test_default_resolver_is_used(self, queue):
        task = queue.request_acquisition(SOURCE)
        assert task.resolver is resolve_overwrite

    @pytest.mark.asyncio
    async def test_custom_resolver_is_passed_through(self, queue):
        def resolver(path):
            return None

        task = queue.request_acquisition(SOURCE, resolver)
        assert task.resolver is resolver

    @pytest.mark.asyncio
    async def test_task_registered_with_activity_monitor(self, queue):
        task = queue.request_acquisition(SOURCE)
        assert task in queue.activity_monitor.tasks

    @pytest.mark.asyncio
    async def test_unparsable_uri_raises_queue_error(self, queue, recorder):
        with pytest.raises(QueueError):
            queue.request_acquisition("http://[::1/broken.esp")

        assert recorder.created == []

    @pytest.mark.asyncio
    async def test_new_request_after_completion_starts_new_task(self, queue, recorder):
        first = queue.request_acquisition(SOURCE)
        first.complete([])
        await settle(first)

        second = queue.request_acquisition(SOURCE)

        assert second is not first
        assert len(recorder.created) == 2


class TestTaskEnded:
    """任务结束处理"""

    @pytest.mark.asyncio
    async def test_complete_registers_each_path_and_tags(self, queue, registry, tagger):
        task = queue.request_acquisition(SOURCE)
        task.mod_info = ModInfo(name="Cool Mod", author="someone")
        task.complete(["a.esp", "b.esp"])
        await settle(task)

        assert [c.args[0] for c in registry.register_mod.call_args_list] == [
            "a.esp",
            "b.esp",
        ]
        assert tagger.tag.call_count == 2
        for call in tagger.tag.call_args_list:
            assert call.args[1] is task.mod_info
            assert call.args[2] is False
        assert SOURCE not in queue

    @pytest.mark.asyncio
    async def test_complete_without_auto_fill_does_not_tag(
        self, queue, registry, tagger, environment
    ):
        environment.settings.add_missing_info_to_mods = False
        task = queue.request_acquisition(SOURCE)
        task.complete(["a.esp", "b.esp"])
        await settle(task)

        assert registry.register_mod.call_count == 2
        tagger.tag.assert_not_called()

    @pytest.mark.asyncio
    async def test_complete_with_invalid_payload_is_noop(self, queue, registry):
        task = queue.request_acquisition(SOURCE)

        queue._on_task_ended(
            task, TaskEndedEvent(status=TaskStatus.COMPLETE, result=None)
        )

        registry.register_mod.assert_not_called()
        assert SOURCE not in queue

    @pytest.mark.asyncio
    async def test_registration_error_does_not_keep_entry(self, queue, registry):
        registry.register_mod.side_effect = OSError("disk full")
        task = queue.request_acquisition(SOURCE)
        task.complete(["a.esp"])
        await settle(task)

        assert SOURCE not in queue

    @pytest.mark.asyncio
    async def test_failed_task_is_removed(self, queue, registry):
        task = queue.request_acquisition(SOURCE)
        task.fail(DownloadFileError("missing"))
        await settle(task)

        assert task.status == TaskStatus.FAILED
        assert SOURCE not in queue
        registry.register_mod.assert_not_called()

    @pytest.mark.asyncio
    async def test_cancelled_task_is_removed(self, queue):
        task = queue.cancel(queue.request_acquisition(SOURCE).key)
        await settle(task)

        assert task.status == TaskStatus.CANCELLED
        assert SOURCE not in queue

    @pytest.mark.asyncio
    async def test_paused_task_stays(self, queue):
        task = queue.request_acquisition(SOURCE)
        await asyncio.sleep(0)
        queue.pause(SOURCE)
        await settle(task)

        assert task.status == TaskStatus.PAUSED
        assert queue.get(SOURCE) is task

    @pytest.mark.asyncio
    async def test_incomplete_task_stays(self, queue):
        task = queue.request_acquisition(SOURCE)
        task.fail(DownloadNetworkError("reset", context={"partial": 1024}))
        await settle(task)

        assert task.status == TaskStatus.INCOMPLETE
        assert queue.get(SOURCE) is task

    @pytest.mark.asyncio
    async def test_paused_task_returned_on_rerequest(self, queue, recorder):
        task = queue.request_acquisition(SOURCE)
        await asyncio.sleep(0)
        queue.pause(SOURCE)
        await settle(task)

        assert queue.request_acquisition(SOURCE) is task
        assert len(recorder.created) == 1

    @pytest.mark.asyncio
    async def test_resumed_task_completes_and_is_removed(self, queue, registry):
        task = queue.request_acquisition(SOURCE)
        await asyncio.sleep(0)
        queue.pause(SOURCE)
        await settle(task)

        queue.resume(SOURCE)
        task.complete(["a.esp"])
        await settle(task)

        assert task.start_count == 2
        assert task.status == TaskStatus.COMPLETE
        assert SOURCE not in queue
        registry.register_mod.assert_called_once_with("a.esp")

    @pytest.mark.asyncio
    async def test_paused_task_can_be_cancelled(self, queue):
        task = queue.request_acquisition(SOURCE)
        await asyncio.sleep(0)
        queue.pause(SOURCE)
        await settle(task)

        queue.cancel(SOURCE)
        await settle(task)

        assert task.status == TaskStatus.CANCELLED
        assert SOURCE not in queue

    @pytest.mark.asyncio
    async def test_removed_task_leaves_activity_monitor(self, queue):
        task = queue.request_acquisition(SOURCE)
        task.complete(["a.esp"])
        await settle(task)

        assert task not in queue.activity_monitor.tasks
        assert queue.activity_monitor.finished_counts == {"complete": 1}

    @pytest.mark.asyncio
    async def test_kept_task_stays_in_activity_monitor(self, queue):
        task = queue.request_acquisition(SOURCE)
        await asyncio.sleep(0)
        queue.pause(SOURCE)
        await settle(task)

        assert task in queue.activity_monitor.tasks
        assert queue.activity_monitor.finished_counts == {}

    @pytest.mark.asyncio
    async def test_event_for_untracked_task_is_ignored(self, queue, recorder):
        task = queue.request_acquisition(SOURCE)
        task.complete([])
        await settle(task)

        replacement = queue.request_acquisition(SOURCE)
        queue._on_task_ended(task, TaskEndedEvent(status=TaskStatus.FAILED))

        assert queue.get(SOURCE) is replacement

    @pytest.mark.asyncio
    async def test_join_waits_for_running_tasks(self, queue):
        a = queue.request_acquisition(SOURCE)
        b = queue.request_acquisition(OTHER)
        asyncio.get_running_loop().call_later(0.01, a.complete, [])
        asyncio.get_running_loop().call_later(0.02, b.complete, [])

        await asyncio.wait_for(queue.join(), timeout=5)

        assert len(queue) == 0


class TestPersistence:
    """待处理记录的持久化与恢复"""

    @pytest.mark.asyncio
    async def test_request_writes_pending_record(self, queue, store):
        queue.request_acquisition(SOURCE)

        assert store.contains("Skyrim", SOURCE)
        assert store.queued["Skyrim"][SOURCE]["status"] == "queued"

    @pytest.mark.asyncio
    async def test_complete_removes_pending_record(self, queue, store):
        task = queue.request_acquisition(SOURCE)
        task.complete(["a.esp"])
        await settle(task)

        assert not store.contains("Skyrim", SOURCE)

    @pytest.mark.asyncio
    async def test_paused_record_is_kept_with_status(self, queue, store):
        task = queue.request_acquisition(SOURCE)
        await asyncio.sleep(0)
        queue.pause(SOURCE)
        await settle(task)

        assert store.queued["Skyrim"][SOURCE]["status"] == "paused"

    @pytest.mark.asyncio
    async def test_reload_replays_current_game_mode_only(self, queue, store, recorder):
        store.queued = {
            "Skyrim": {SOURCE: {"status": "queued"}, OTHER: {}},
            "Oblivion": {"nxm://oblivion/mods/1/files/2": {}},
        }

        tasks = queue.load_queued_mods()

        assert [t.key for t in tasks] == [SOURCE, OTHER]
        assert len(recorder.created) == 2
        assert all(t.resolver is resolve_overwrite for t in tasks)

    @pytest.mark.asyncio
    async def test_malformed_record_does_not_stop_reload(self, queue, store, recorder):
        store.queued = {
            "Skyrim": {
                "not a uri": {},
                "http://[::1/broken.esp": {},
                SOURCE: {},
                OTHER: "garbage",
                "https://example.com/files/third.esp": None,
            }
        }

        tasks = queue.load_queued_mods()

        assert [t.key for t in tasks] == [
            SOURCE,
            "https://example.com/files/third.esp",
        ]

    @pytest.mark.asyncio
    async def test_reload_migrates_unnormalized_keys(self, queue, store):
        store.queued = {"Skyrim": {"NXM://Skyrim/mods/1/files/2": {}}}

        tasks = queue.load_queued_mods()

        assert tasks[0].key == "nxm://skyrim/mods/1/files/2"
        assert list(store.queued["Skyrim"]) == ["nxm://skyrim/mods/1/files/2"]

    @pytest.mark.asyncio
    async def test_reload_does_not_duplicate_active_task(self, queue, store, recorder):
        existing = queue.request_acquisition(SOURCE)

        tasks = queue.load_queued_mods()

        assert tasks == [existing]
        assert len(recorder.created) == 1


class TestShutdown:
    """关闭"""

    @pytest.mark.asyncio
    async def test_shutdown_terminates_all_tasks(self, queue):
        a = queue.request_acquisition(SOURCE)
        b = queue.request_acquisition(OTHER)
        await asyncio.sleep(0)

        await queue.shutdown()

        assert len(queue) == 0
        assert a.status == TaskStatus.CANCELLED
        assert b.status == TaskStatus.CANCELLED

    @pytest.mark.asyncio
    async def test_shutdown_keeps_pending_records(self, queue, store):
        queue.request_acquisition(SOURCE)
        await queue.shutdown()

        assert store.contains("Skyrim", SOURCE)

    @pytest.mark.asyncio
    async def test_shutdown_terminates_paused_tasks(self, queue, store):
        task = queue.request_acquisition(SOURCE)
        await asyncio.sleep(0)
        queue.pause(SOURCE)
        await settle(task)

        await queue.shutdown()

        assert task.status == TaskStatus.CANCELLED
        assert store.queued["Skyrim"][SOURCE]["status"] == "paused"

    @pytest.mark.asyncio
    async def test_late_events_after_shutdown_are_ignored(self, queue, registry):
        task = queue.request_acquisition(SOURCE)
        await queue.shutdown()

        queue._on_task_ended(
            task, TaskEndedEvent(status=TaskStatus.COMPLETE, result=["a.esp"])
        )

        registry.register_mod.assert_not_called()
        assert len(queue) == 0

    @pytest.mark.asyncio
    async def test_request_after_shutdown_raises(self, queue):
        await queue.shutdown()

        with pytest.raises(QueueError):
            queue.request_acquisition(SOURCE)
