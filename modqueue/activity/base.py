"""
活动监视器

接收所有已启动的获取任务，订阅其进度与状态，并通过 Hook 分发给插件。
"""

import asyncio
import importlib
from abc import ABC, abstractmethod
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Callable, Dict, List, Optional, TYPE_CHECKING

from loguru import logger

from modqueue.models import TaskStatus

if TYPE_CHECKING:
    from modqueue.task import AcquisitionTask


class HookType(Enum):
    """Hook 类型定义"""

    TASK_ADDED = auto()  # 任务加入监视器时
    TASK_PROGRESS = auto()  # 任务进度更新
    TASK_STATUS = auto()  # 任务状态变化
    TASK_ENDED = auto()  # 任务一次运行结束

    PLUGIN_LOAD = auto()  # 插件加载时
    PLUGIN_UNLOAD = auto()  # 插件卸载时


@dataclass
class HookContext:
    """Hook 上下文信息"""

    task: Optional["AcquisitionTask"] = None
    status: Optional[TaskStatus] = None
    progress: Optional[float] = None
    extra_data: Dict[str, Any] = field(default_factory=dict)


@dataclass
class HookResult:
    """Hook 执行结果"""

    success: bool = True
    data: Any = None
    error: Optional[str] = None
    should_stop: bool = False  # 是否阻止后续处理


class ActivityPlugin(ABC):
    """
    活动监视插件基类

    所有插件必须继承此类并实现 register_hooks。
    """

    name: str = ""
    version: str = "1.0.0"
    description: str = ""
    author: str = ""

    def __init__(self):
        self._enabled = True
        self._config: Dict[str, Any] = {}

    @property
    def enabled(self) -> bool:
        """插件是否启用"""
        return self._enabled

    @enabled.setter
    def enabled(self, value: bool):
        self._enabled = value

    @property
    def config(self) -> Dict[str, Any]:
        """插件配置"""
        return self._config

    @abstractmethod
    def register_hooks(self) -> Dict[HookType, Callable]:
        """
        注册 Hook 处理器

        Returns:
            Dict[HookType, Callable]: Hook 类型到处理函数的映射
        """
        pass

    def configure(self, config: Dict[str, Any]) -> None:
        self._config = config
        logger.debug(f"插件 {self.name} 已配置")


class ActivityMonitor:
    """
    活动监视器

    保存被监视的任务，并负责插件的注册和 Hook 调用。
    """

    def __init__(self):
        self._tasks: List["AcquisitionTask"] = []
        self._finished: Counter = Counter()
        self._plugins: Dict[str, ActivityPlugin] = {}
        self._hooks: Dict[HookType, List[tuple]] = {hook: [] for hook in HookType}

    # ---- 任务 ----

    def add_activity(self, task: "AcquisitionTask"):
        """开始监视任务"""
        if task in self._tasks:
            return
        self._tasks.append(task)
        task.add_progress_listener(self._on_task_progress)
        task.add_status_listener(self._on_task_status)
        logger.debug(f"[活动] 监视任务 {task.key}")
        self.notify(HookType.TASK_ADDED, HookContext(task=task, status=task.status))

    def remove_activity(self, task: "AcquisitionTask"):
        """停止监视任务，只保留其最终状态的计数"""
        if task in self._tasks:
            self._tasks.remove(task)
            self._finished[task.status.value] += 1

    @property
    def finished_counts(self) -> Dict[str, int]:
        """已移除任务按最终状态的计数"""
        return dict(self._finished)

    @property
    def tasks(self) -> List["AcquisitionTask"]:
        return list(self._tasks)

    @property
    def active_tasks(self) -> List["AcquisitionTask"]:
        return [t for t in self._tasks if t.status == TaskStatus.RUNNING]

    def _on_task_progress(self, task: "AcquisitionTask", progress: float):
        self.notify(
            HookType.TASK_PROGRESS,
            HookContext(task=task, status=task.status, progress=progress),
        )

    def _on_task_status(self, task: "AcquisitionTask", status: TaskStatus):
        self.notify(HookType.TASK_STATUS, HookContext(task=task, status=status))
        if status not in (TaskStatus.NOT_STARTED, TaskStatus.RUNNING):
            self.notify(
                HookType.TASK_ENDED,
                HookContext(task=task, status=status, progress=task.progress),
            )

    # ---- 插件 ----

    def register_plugin(
        self, plugin: ActivityPlugin, config: Optional[Dict[str, Any]] = None
    ) -> bool:
        """
        注册插件

        Returns:
            bool: 是否注册成功
        """
        if plugin.name in self._plugins:
            logger.warning(f"插件 {plugin.name} 已存在，跳过注册")
            return False

        if config:
            plugin.configure(config)

        self._plugins[plugin.name] = plugin
        for hook_type, handler in plugin.register_hooks().items():
            if hook_type in self._hooks:
                self._hooks[hook_type].append((plugin.name, handler))

        logger.info(f"插件 {plugin.name} v{plugin.version} 注册成功")
        self.notify(
            HookType.PLUGIN_LOAD, HookContext(extra_data={"plugin": plugin.name})
        )
        return True

    def unregister_plugin(self, plugin_name: str) -> bool:
        """卸载插件"""
        if plugin_name not in self._plugins:
            logger.warning(f"插件 {plugin_name} 不存在")
            return False

        self.notify(
            HookType.PLUGIN_UNLOAD, HookContext(extra_data={"plugin": plugin_name})
        )
        for hook_type in self._hooks:
            self._hooks[hook_type] = [
                (name, handler)
                for name, handler in self._hooks[hook_type]
                if name != plugin_name
            ]
        del self._plugins[plugin_name]
        logger.info(f"插件 {plugin_name} 已卸载")
        return True

    def load_builtin(self, name: str, config: Optional[Dict[str, Any]] = None) -> bool:
        """按名称加载 modqueue.activity.builtin 下的插件"""
        try:
            module = importlib.import_module(f"modqueue.activity.builtin.{name}")
        except ImportError as e:
            logger.warning(f"内置插件 {name} 不存在: {e}")
            return False
        plugin_class = getattr(module, "plugin_class", None)
        if plugin_class is None:
            logger.warning(f"模块 {module.__name__} 未声明 plugin_class")
            return False
        return self.register_plugin(plugin_class(), config)

    def notify(self, hook_type: HookType, context: HookContext) -> List[HookResult]:
        """
        同步执行指定类型的所有 Hook

        协程处理器在当前事件循环上调度，不等待其结果。
        """
        results = []
        for plugin_name, handler in list(self._hooks.get(hook_type, [])):
            plugin = self._plugins.get(plugin_name)
            if plugin is None or not plugin.enabled:
                continue
            try:
                if asyncio.iscoroutinefunction(handler):
                    asyncio.ensure_future(handler(context))
                    result = HookResult()
                else:
                    result = handler(context)

                if result is None:
                    result = HookResult()
                elif not isinstance(result, HookResult):
                    result = HookResult(data=result)

                results.append(result)
                if result.should_stop:
                    logger.debug(f"Hook {hook_type.name} 被阻止")
                    break

            except Exception as e:
                logger.error(f"Hook {hook_type.name} 执行失败: {e}")
                results.append(HookResult(success=False, error=str(e)))

        return results

    def get_plugin(self, name: str) -> Optional[ActivityPlugin]:
        return self._plugins.get(name)

    def list_plugins(self) -> List[Dict[str, Any]]:
        """列出所有已注册的插件"""
        return [
            {
                "name": p.name,
                "version": p.version,
                "description": p.description,
                "author": p.author,
                "enabled": p.enabled,
            }
            for p in self._plugins.values()
        ]
