"""
进度显示内置插件

在获取过程中输出任务进度和结果。
"""

from loguru import logger

from modqueue.activity.base import ActivityPlugin, HookType, HookContext, HookResult
from modqueue.models import TaskStatus


class ProgressPlugin(ActivityPlugin):
    """
    获取进度显示插件

    进度每前进 step 个百分点输出一次（默认 10）。
    """

    name = "progress"
    version = "1.0.0"
    description = "显示模组获取进度信息"
    author = "ModQueue"

    def __init__(self):
        super().__init__()
        self._last_reported: dict = {}
        self.completed = 0
        self.failed = 0

    @property
    def step(self) -> float:
        return float(self.config.get("step", 10))

    def register_hooks(self):
        """注册 Hook 处理器"""
        return {
            HookType.TASK_ADDED: self.on_task_added,
            HookType.TASK_PROGRESS: self.on_task_progress,
            HookType.TASK_ENDED: self.on_task_ended,
        }

    def on_task_added(self, context: HookContext) -> HookResult:
        self._last_reported[context.task.key] = 0.0
        logger.info(f"📦 开始获取: {context.task.key}")
        return HookResult()

    def on_task_progress(self, context: HookContext) -> HookResult:
        key = context.task.key
        percent = (context.progress or 0.0) * 100
        if percent - self._last_reported.get(key, 0.0) >= self.step:
            self._last_reported[key] = percent
            logger.info(f"[进度] {key}: {percent:.1f}%")
        return HookResult()

    def on_task_ended(self, context: HookContext) -> HookResult:
        key = context.task.key
        self._last_reported.pop(key, None)
        if context.status == TaskStatus.COMPLETE:
            self.completed += 1
            logger.info(f"✓ 获取完成: {key}")
        elif context.status == TaskStatus.FAILED:
            self.failed += 1
            logger.info(f"✗ 获取失败: {key}")
        elif context.status == TaskStatus.CANCELLED:
            self.failed += 1
            logger.info(f"✗ 获取已取消: {key}")
        else:
            logger.info(f"⏸ 获取暂停: {key}")
        return HookResult()


# 插件入口点
plugin_class = ProgressPlugin
