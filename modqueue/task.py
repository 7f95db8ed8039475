"""
获取任务

AcquisitionTask 管理一次获取的生命周期：每次运行（start/resume）创建一个
一次性的 ended Future，运行结束时以 TaskEndedEvent 解决。
AddModTask 实现具体流程：解析来源 -> 下载到暂存目录 -> 安装到模组目录。
"""

import asyncio
import hashlib
import os
import shutil
from abc import ABC, abstractmethod
from typing import Callable, List, Optional

from loguru import logger

from modqueue.conflict import OverwriteResolver, resolve_overwrite
from modqueue.download import FileFetcher
from modqueue.exceptions import (
    DownloadNetworkError,
    ModQueueError,
    NoAvailableDestinationError,
    UnsupportedFormatError,
)
from modqueue.formats import FormatRegistry
from modqueue.game import GameModeDescriptor
from modqueue.models import ModInfo, TaskEndedEvent, TaskStatus
from modqueue.services import ModRepository
from modqueue.settings import EnvironmentInfo

ProgressListener = Callable[["AcquisitionTask", float], None]
StatusListener = Callable[["AcquisitionTask", TaskStatus], None]


class AcquisitionTask(ABC):
    """获取任务基类"""

    def __init__(self, key: str):
        self.key = key
        self.status = TaskStatus.NOT_STARTED
        self.progress = 0.0
        self.mod_info: Optional[ModInfo] = None
        self.result: List[str] = []
        self.last_event: Optional[TaskEndedEvent] = None
        self._ended: Optional[asyncio.Future] = None
        self._worker: Optional[asyncio.Task] = None
        self._stop_reason: Optional[TaskStatus] = None
        self._progress_listeners: List[ProgressListener] = []
        self._status_listeners: List[StatusListener] = []

    @abstractmethod
    async def _run(self) -> List[str]:
        """执行获取，返回已安装的文件路径"""

    @property
    def ended(self) -> Optional[asyncio.Future]:
        """当前运行的结束 Future（尚未启动时为 None）"""
        return self._ended

    @property
    def is_running(self) -> bool:
        return self.status == TaskStatus.RUNNING

    def add_progress_listener(self, listener: ProgressListener):
        self._progress_listeners.append(listener)

    def add_status_listener(self, listener: StatusListener):
        self._status_listeners.append(listener)

    def _set_progress(self, progress: float):
        self.progress = max(0.0, min(1.0, progress))
        for listener in self._progress_listeners:
            listener(self, self.progress)

    def _set_status(self, status: TaskStatus):
        self.status = status
        for listener in self._status_listeners:
            listener(self, status)

    def _new_run(self) -> asyncio.Future:
        self._ended = asyncio.get_running_loop().create_future()
        self._stop_reason = None
        return self._ended

    def _finish(self, event: TaskEndedEvent):
        if self._ended is None or self._ended.done():
            logger.debug(f"[任务] {self.key} 的结束事件已发出，忽略重复的 {event.status.value}")
            return
        self.last_event = event
        self._set_status(event.status)
        self._ended.set_result(event)

    def start(self) -> asyncio.Future:
        """
        启动任务（必须在事件循环中调用），返回本次运行的结束 Future
        """
        if self.is_running:
            return self._ended
        ended = self._new_run()
        self._set_status(TaskStatus.RUNNING)
        self._worker = asyncio.get_running_loop().create_task(
            self._execute(), name=f"acquire:{self.key}"
        )
        self._worker.add_done_callback(self._on_worker_done)
        return ended

    def _on_worker_done(self, worker: asyncio.Task):
        # 协程尚未开始就被取消时 _execute 不会执行
        if worker.cancelled():
            status = self._stop_reason or TaskStatus.CANCELLED
            self._finish(TaskEndedEvent(status=status, message="任务被中断"))

    async def _execute(self):
        try:
            result = await self._run()
        except asyncio.CancelledError:
            status = self._stop_reason or TaskStatus.CANCELLED
            self._finish(TaskEndedEvent(status=status, message="任务被中断"))
        except DownloadNetworkError as e:
            # 已有部分数据时可续传
            status = (
                TaskStatus.INCOMPLETE if e.context.get("partial") else TaskStatus.FAILED
            )
            logger.warning(f"[任务] {self.key} 下载中断 ({status.value}): {e}")
            self._finish(TaskEndedEvent(status=status, error=e, message=str(e)))
        except ModQueueError as e:
            logger.error(f"[任务] {self.key} 失败: {e}")
            self._finish(
                TaskEndedEvent(status=TaskStatus.FAILED, error=e, message=str(e))
            )
        except Exception as e:
            logger.exception(f"[任务] {self.key} 出现意外错误: {e}")
            error = ModQueueError(f"意外错误: {e}", context={"key": self.key})
            self._finish(
                TaskEndedEvent(status=TaskStatus.FAILED, error=error, message=str(e))
            )
        else:
            self.result = list(result)
            self._set_progress(1.0)
            self._finish(TaskEndedEvent(status=TaskStatus.COMPLETE, result=self.result))

    def _interrupt(self, reason: TaskStatus) -> Optional[asyncio.Future]:
        if self.is_running and self._worker is not None:
            self._stop_reason = reason
            self._worker.cancel()
            return self._ended
        if reason == TaskStatus.CANCELLED and self.status in (
            TaskStatus.NOT_STARTED,
            TaskStatus.PAUSED,
            TaskStatus.INCOMPLETE,
        ):
            # 未运行的任务直接以一次新的运行结束
            ended = self._new_run()
            self._finish(TaskEndedEvent(status=TaskStatus.CANCELLED, message="任务已取消"))
            return ended
        return self._ended

    def pause(self) -> Optional[asyncio.Future]:
        """暂停运行中的任务"""
        return self._interrupt(TaskStatus.PAUSED)

    def cancel(self) -> Optional[asyncio.Future]:
        """取消任务"""
        return self._interrupt(TaskStatus.CANCELLED)

    def resume(self) -> Optional[asyncio.Future]:
        """恢复暂停或未完成的任务，返回新一次运行的结束 Future"""
        if self.status in (TaskStatus.PAUSED, TaskStatus.INCOMPLETE):
            logger.info(f"[任务] 恢复 {self.key}")
            return self.start()
        return self._ended

    def terminate(self):
        """强制终止，不论当前状态；已结束的任务不受影响"""
        self.cancel()

    async def wait_stopped(self):
        """等待后台协程退出"""
        if self._worker is not None and not self._worker.done():
            await asyncio.gather(self._worker, return_exceptions=True)


class AddModTask(AcquisitionTask):
    """下载并安装一个模组"""

    def __init__(
        self,
        game_mode: GameModeDescriptor,
        environment: EnvironmentInfo,
        format_registry: FormatRegistry,
        repository: ModRepository,
        key: str,
        overwrite_resolver: Optional[OverwriteResolver] = None,
    ):
        super().__init__(key)
        self.game_mode = game_mode
        self.environment = environment
        self.format_registry = format_registry
        self.repository = repository
        self.overwrite_resolver = overwrite_resolver or resolve_overwrite
        self.errors: List[ModQueueError] = []

    @property
    def staging_dir(self) -> str:
        digest = hashlib.sha1(self.key.encode("utf-8")).hexdigest()[:16]
        return os.path.join(self.environment.temp_dir, self.game_mode.mode_id, digest)

    async def _run(self) -> List[str]:
        self.errors = []
        remote = await self.repository.resolve(self.key)
        self.mod_info = remote.info
        logger.info(f"[任务] 获取 '{remote.info.name or remote.filename}' ({self.key})")

        async with FileFetcher(
            max_retries=self.environment.max_retries,
            retry_delay=self.environment.retry_delay,
        ) as fetcher:
            staged = await fetcher.fetch(
                remote.url,
                os.path.join(self.staging_dir, remote.filename),
                remote.sha1,
                self._set_progress,
            )

        loop = asyncio.get_running_loop()
        try:
            # 冲突探测和移动都是阻塞的文件系统操作
            return [await loop.run_in_executor(None, self._install_file, staged)]
        except (NoAvailableDestinationError, UnsupportedFormatError) as e:
            logger.error(f"[安装] '{os.path.basename(staged)}' 未安装: {e}")
            self.errors.append(e)
            raise
        finally:
            shutil.rmtree(self.staging_dir, ignore_errors=True)

    def _install_file(self, staged: str) -> str:
        """把暂存文件移动到模组目录，必要时用覆盖策略改名"""
        filename = os.path.basename(staged)
        if not self.format_registry.is_supported(filename):
            raise UnsupportedFormatError(
                f"不支持的模组格式: {filename}", context={"file": filename}
            )

        os.makedirs(self.environment.mods_dir, exist_ok=True)
        dest = os.path.join(self.environment.mods_dir, filename)
        if os.path.exists(dest):
            resolution = self.overwrite_resolver(dest)
            if not resolution.ok:
                raise resolution.error or NoAvailableDestinationError(
                    f"没有可用的目标路径: {dest}", context={"path": dest}
                )
            logger.info(
                f"[安装] '{filename}' 已存在，改为 '{os.path.basename(resolution.path)}'"
            )
            dest = resolution.path

        shutil.move(staged, dest)
        logger.success(f"[安装] 已安装 {dest}")
        return dest
