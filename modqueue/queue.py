"""
模组获取队列

按来源 URI 去重并跟踪进行中的获取任务，把待处理的获取持久化以便重启后恢复，
任务完成时把安装结果注册到模组目录并自动补全信息。

队列只在一个事件循环上运行：request_acquisition 在检查与插入之间没有 await，
因此同一个键同一时刻至多只有一个任务。其他线程通过
request_acquisition_threadsafe 把请求转交给事件循环。
"""

import asyncio
import concurrent.futures
import functools
from typing import Callable, Dict, List, Optional

from loguru import logger

from modqueue.activity import ActivityMonitor
from modqueue.conflict import OverwriteResolver, resolve_overwrite
from modqueue.exceptions import ModQueueError, QueueError
from modqueue.formats import FormatRegistry
from modqueue.game import GameModeDescriptor
from modqueue.models import PendingRecord, TaskEndedEvent, TaskStatus
from modqueue.registry import ModRegistry
from modqueue.services import ModRepository
from modqueue.settings import EnvironmentInfo, PendingStore
from modqueue.tagger import AutoTagger
from modqueue.task import AcquisitionTask, AddModTask
from modqueue.utils import source_key

TaskFactory = Callable[..., AcquisitionTask]


class AddModQueue:
    """模组获取队列"""

    def __init__(
        self,
        game_mode: GameModeDescriptor,
        environment: EnvironmentInfo,
        format_registry: FormatRegistry,
        repository: ModRepository,
        registry: ModRegistry,
        tagger: AutoTagger,
        activity_monitor: ActivityMonitor,
        store: PendingStore,
        task_factory: TaskFactory = AddModTask,
    ):
        self.game_mode = game_mode
        self.environment = environment
        self.format_registry = format_registry
        self.repository = repository
        self.registry = registry
        self.tagger = tagger
        self.activity_monitor = activity_monitor
        self.store = store
        self.task_factory = task_factory

        self._active: Dict[str, AcquisitionTask] = {}
        self._watching: Dict[str, asyncio.Future] = {}
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._closed = False

    # ---- 查询 ----

    def __len__(self) -> int:
        return len(self._active)

    def __contains__(self, uri: str) -> bool:
        return source_key(uri) in self._active

    def get(self, uri: str) -> Optional[AcquisitionTask]:
        """按来源 URI 获取进行中的任务"""
        return self._active.get(source_key(uri))

    @property
    def tasks(self) -> List[AcquisitionTask]:
        return list(self._active.values())

    @property
    def closed(self) -> bool:
        return self._closed

    # ---- 请求 ----

    def attach(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        """绑定队列所在的事件循环"""
        self._loop = loop or asyncio.get_running_loop()

    def request_acquisition(
        self, uri: str, overwrite_resolver: Optional[OverwriteResolver] = None
    ) -> AcquisitionTask:
        """
        请求获取模组（必须在队列的事件循环中调用，不会阻塞）

        该键已有进行中的任务时原样返回该任务，不会启动新任务。

        Args:
            uri: 模组来源 URI
            overwrite_resolver: 目标文件冲突时的处理策略，默认追加序号

        Returns:
            AcquisitionTask: 进行中的任务
        """
        if self._closed:
            raise QueueError("获取队列已关闭", context={"uri": uri})
        if self._loop is None:
            self.attach()

        try:
            key = source_key(uri)
        except ValueError as e:
            raise QueueError(
                f"无法解析来源 URI: {uri}", context={"uri": uri, "error": str(e)}
            ) from e
        task = self._active.get(key)
        if task is not None:
            logger.debug(f"[{key}] 已在获取队列中")
            return task

        logger.info(f"[{key}] 加入获取队列")
        task = self.task_factory(
            self.game_mode,
            self.environment,
            self.format_registry,
            self.repository,
            key,
            overwrite_resolver or resolve_overwrite,
        )
        self.activity_monitor.add_activity(task)
        self._active[key] = task
        self._persist(key)
        self._watch(task, task.start())
        return task

    def request_acquisition_threadsafe(
        self, uri: str, overwrite_resolver: Optional[OverwriteResolver] = None
    ) -> concurrent.futures.Future:
        """从其他线程请求获取，返回解决为任务对象的 Future"""
        if self._loop is None:
            raise QueueError("获取队列尚未绑定事件循环", context={"uri": uri})

        future: concurrent.futures.Future = concurrent.futures.Future()

        def _request():
            try:
                future.set_result(self.request_acquisition(uri, overwrite_resolver))
            except Exception as e:
                future.set_exception(e)

        self._loop.call_soon_threadsafe(_request)
        return future

    def load_queued_mods(self) -> List[AcquisitionTask]:
        """
        恢复当前游戏模式下持久化的待处理获取

        每条记录独立重放，无效记录记录日志后跳过。
        """
        mode_id = self.game_mode.mode_id
        logger.info(f"[队列] 载入 {mode_id} 待添加的模组")

        tasks = []
        for raw_key, descriptor in self.store.load(mode_id):
            try:
                record = PendingRecord.from_raw(mode_id, raw_key, descriptor)
                logger.info(f"[{record.key}] 从持久化队列恢复")
                task = self.request_acquisition(record.key)
                if task.key != record.key:
                    # 旧记录以规范化后的键重新保存
                    self._forget(record.key)
                tasks.append(task)
            except ModQueueError as e:
                logger.warning(f"[队列] 跳过待处理记录 {raw_key!r}: {e}")
        return tasks

    # ---- 控制 ----

    def pause(self, uri: str) -> Optional[AcquisitionTask]:
        task = self.get(uri)
        if task is not None:
            task.pause()
        return task

    def resume(self, uri: str) -> Optional[AcquisitionTask]:
        """恢复暂停或未完成的任务"""
        task = self.get(uri)
        if task is not None and task.status.keeps_entry:
            self._update_record(task.key, "queued")
            self._watch(task, task.resume())
        return task

    def cancel(self, uri: str) -> Optional[AcquisitionTask]:
        task = self.get(uri)
        if task is not None:
            self._watch(task, task.cancel())
        return task

    async def join(self):
        """等待所有运行中的任务结束（暂停/未完成的任务保留在队列中）"""
        while True:
            running = [
                t.ended
                for t in self._active.values()
                if t.is_running and t.ended is not None
            ]
            if not running:
                return
            await asyncio.wait(running)
            # 让结束回调先处理完
            await asyncio.sleep(0)

    async def shutdown(self):
        """
        强制终止所有任务并清空队列

        持久化的记录保留，下次启动时恢复。关闭后队列不可再用。
        """
        self._closed = True
        tasks = list(self._active.values())
        self._active.clear()
        self._watching.clear()

        logger.debug(f"[队列] 正在终止 {len(tasks)} 个任务...")
        for task in tasks:
            task.terminate()

        if tasks:
            await asyncio.gather(
                *(task.wait_stopped() for task in tasks), return_exceptions=True
            )
        logger.debug("[队列] 已关闭")

    # ---- 内部 ----

    def _watch(self, task: AcquisitionTask, ended: Optional[asyncio.Future]):
        """订阅一次运行的结束事件；同一个 Future 只订阅一次"""
        if ended is None or self._watching.get(task.key) is ended:
            return
        self._watching[task.key] = ended
        ended.add_done_callback(functools.partial(self._on_ended_future, task))

    def _on_ended_future(self, task: AcquisitionTask, ended: asyncio.Future):
        if ended.cancelled():
            event = TaskEndedEvent(status=TaskStatus.CANCELLED)
        else:
            event = ended.result()
        self._on_task_ended(task, event)

    def _on_task_ended(self, task: AcquisitionTask, event: TaskEndedEvent):
        """处理任务一次运行的结束事件"""
        if self._closed:
            logger.debug(f"[{task.key}] 队列已关闭，忽略结束事件")
            return
        if self._active.get(task.key) is not task:
            logger.error(f"[{task.key}] 收到未跟踪任务的结束事件 ({event.status.value})")
            return

        logger.debug(f"[{task.key}] 任务结束: {event.status.value}")
        if event.status == TaskStatus.COMPLETE:
            self._register_results(task, event.result)

        if event.status.keeps_entry:
            self._update_record(task.key, event.status.value)
            return

        del self._active[task.key]
        self._watching.pop(task.key, None)
        self._forget(task.key)
        self.activity_monitor.remove_activity(task)

    def _register_results(self, task: AcquisitionTask, result):
        if not isinstance(result, (list, tuple)) or not all(
            isinstance(p, str) for p in result
        ):
            logger.warning(f"[{task.key}] 任务完成但没有可注册的结果")
            return

        add_info = self.environment.settings.add_missing_info_to_mods
        for path in result:
            try:
                mod = self.registry.register_mod(path)
                if add_info:
                    self.tagger.tag(mod, task.mod_info, False)
            except (ModQueueError, OSError) as e:
                logger.error(f"[{task.key}] 注册 '{path}' 失败: {e}")

    def _persist(self, key: str):
        mode_id = self.game_mode.mode_id
        try:
            if not self.store.contains(mode_id, key):
                self.store.save(mode_id, key, PendingRecord.new_descriptor())
        except OSError as e:
            logger.error(f"[{key}] 无法写入待处理队列: {e}")

    def _update_record(self, key: str, status: str):
        mode_id = self.game_mode.mode_id
        try:
            descriptor = {}
            for stored_key, stored in self.store.load(mode_id):
                if stored_key == key and isinstance(stored, dict):
                    descriptor = dict(stored)
            descriptor["status"] = status
            self.store.save(mode_id, key, descriptor)
        except OSError as e:
            logger.error(f"[{key}] 无法更新待处理队列: {e}")

    def _forget(self, key: str):
        try:
            self.store.remove(self.game_mode.mode_id, key)
        except OSError as e:
            logger.error(f"[{key}] 无法从待处理队列移除: {e}")
