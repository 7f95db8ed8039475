"""
模组管理器

整合配置、设置存储、模组仓库、模组目录和获取队列。
"""

from collections import Counter
from typing import Iterable, List, Optional

from loguru import logger

from modqueue.activity import ActivityMonitor
from modqueue.conflict import OverwriteResolver
from modqueue.exceptions import MalformedPendingRecordError
from modqueue.formats import FormatRegistry
from modqueue.game import get_game_mode
from modqueue.models import AppConfig, PendingRecord
from modqueue.queue import AddModQueue, TaskFactory
from modqueue.registry import ModRegistry
from modqueue.services import ModRepository
from modqueue.settings import EnvironmentInfo, PendingStore, TomlSettingsStore
from modqueue.tagger import AutoTagger
from modqueue.task import AcquisitionTask, AddModTask


class ModManager:
    """ModQueue 模组管理器"""

    def __init__(
        self,
        config: AppConfig,
        activity_monitor: Optional[ActivityMonitor] = None,
        store: Optional[PendingStore] = None,
        task_factory: TaskFactory = AddModTask,
    ):
        self.config = config
        self.game_mode = get_game_mode(config.game_mode)
        self.settings_store = TomlSettingsStore(config.paths.settings_file)
        self.store: PendingStore = store if store is not None else self.settings_store
        self.environment = EnvironmentInfo(
            mods_dir=config.paths.mods_dir,
            temp_dir=config.paths.temp_dir,
            settings=self.settings_store.settings,
            max_retries=config.max_retries,
            retry_delay=config.retry_delay,
        )
        self.format_registry = FormatRegistry()
        self.repository = ModRepository(config.repository, self.game_mode)
        self.registry = ModRegistry(config.paths.registry_file)
        self.activity_monitor = activity_monitor or ActivityMonitor()
        self.tagger = AutoTagger(self.registry)
        self.queue = AddModQueue(
            game_mode=self.game_mode,
            environment=self.environment,
            format_registry=self.format_registry,
            repository=self.repository,
            registry=self.registry,
            tagger=self.tagger,
            activity_monitor=self.activity_monitor,
            store=self.store,
            task_factory=task_factory,
        )

    def get_mod_tagger(self) -> AutoTagger:
        return self.tagger

    async def start(self) -> List[AcquisitionTask]:
        """绑定事件循环、加载插件并恢复持久化的待处理获取"""
        self.queue.attach()
        for name in self.config.plugins.enabled:
            self.activity_monitor.load_builtin(name)
        logger.info(f"[管理器] 游戏模式: {self.game_mode.name}")
        return self.queue.load_queued_mods()

    def add_mod(
        self, uri: str, overwrite_resolver: Optional[OverwriteResolver] = None
    ) -> AcquisitionTask:
        """把模组加入获取队列"""
        return self.queue.request_acquisition(uri, overwrite_resolver)

    def pending(self) -> List[PendingRecord]:
        """当前游戏模式下有效的待处理记录"""
        records = []
        mode_id = self.game_mode.mode_id
        for key, descriptor in self.store.load(mode_id):
            try:
                records.append(PendingRecord.from_raw(mode_id, key, descriptor))
            except MalformedPendingRecordError as e:
                logger.warning(f"[管理器] 无效的待处理记录 {key!r}: {e}")
        return records

    async def wait_until_complete(self):
        await self.queue.join()

    async def stop(self):
        """终止所有任务并释放资源"""
        await self.queue.shutdown()
        await self.repository.close()
        logger.debug("[管理器] 已停止")

    async def run(self, uris: Iterable[str] = ()) -> dict:
        """恢复待处理获取、加入新的 URI 并等待全部结束"""
        try:
            await self.start()
            for uri in uris:
                self.add_mod(uri)
            await self.wait_until_complete()
            return self.get_stats()
        finally:
            await self.stop()

    def get_stats(self) -> dict:
        """按状态统计监视过的任务"""
        counts = Counter(self.activity_monitor.finished_counts)
        counts.update(task.status.value for task in self.activity_monitor.tasks)
        return {
            "total": sum(counts.values()),
            "by_status": dict(counts),
            "registered_mods": len(self.registry),
        }

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.stop()
