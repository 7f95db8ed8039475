"""
ModQueue 活动监视

提供任务监视、插件管理和 Hook 机制。
"""

from modqueue.activity.base import (
    HookType,
    HookContext,
    HookResult,
    ActivityPlugin,
    ActivityMonitor,
)

__all__ = [
    "HookType",
    "HookContext",
    "HookResult",
    "ActivityPlugin",
    "ActivityMonitor",
]
