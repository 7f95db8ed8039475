"""
共享测试夹具
"""

import asyncio
from typing import List
from unittest.mock import MagicMock

import pytest

from modqueue.activity import ActivityMonitor
from modqueue.formats import FormatRegistry
from modqueue.game import GAME_MODES
from modqueue.models import Mod
from modqueue.queue import AddModQueue
from modqueue.settings import EnvironmentInfo, MemoryPendingStore, Settings
from modqueue.task import AcquisitionTask


class FakeTask(AcquisitionTask):
    """由测试控制结果的获取任务"""

    def __init__(
        self, game_mode, environment, format_registry, repository, key, resolver
    ):
        super().__init__(key)
        self.resolver = resolver
        self.release = asyncio.Event()
        self.outcome = []
        self.start_count = 0

    def start(self):
        self.start_count += 1
        return super().start()

    async def _run(self):
        await self.release.wait()
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return self.outcome

    def complete(self, result):
        self.outcome = result
        self.release.set()

    def fail(self, error: Exception):
        self.outcome = error
        self.release.set()


class TaskRecorder:
    """记录创建过的任务的工厂"""

    def __init__(self):
        self.created: List[FakeTask] = []

    def __call__(self, *args):
        task = FakeTask(*args)
        self.created.append(task)
        return task


async def settle(task: AcquisitionTask):
    """等待任务本次运行结束，并让队列的结束回调执行"""
    await asyncio.wait_for(asyncio.shield(task.ended), timeout=5)
    await asyncio.sleep(0)


@pytest.fixture
def environment(tmp_path):
    return EnvironmentInfo(
        mods_dir=str(tmp_path / "mods"),
        temp_dir=str(tmp_path / "tmp"),
        settings=Settings(add_missing_info_to_mods=True),
        max_retries=0,
        retry_delay=0,
    )


@pytest.fixture
def registry():
    registry = MagicMock()
    registry.register_mod.side_effect = lambda path: Mod(path=path)
    return registry


@pytest.fixture
def tagger():
    return MagicMock()


@pytest.fixture
def store():
    return MemoryPendingStore()


@pytest.fixture
def recorder():
    return TaskRecorder()


@pytest.fixture
def queue(environment, registry, tagger, store, recorder):
    return AddModQueue(
        game_mode=GAME_MODES["Skyrim"],
        environment=environment,
        format_registry=FormatRegistry(),
        repository=MagicMock(),
        registry=registry,
        tagger=tagger,
        activity_monitor=ActivityMonitor(),
        store=store,
        task_factory=recorder,
    )
