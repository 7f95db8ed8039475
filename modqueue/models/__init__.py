"""
ModQueue 数据模型包

包含配置模型、模组模型和任务模型定义。
"""

from modqueue.models.config import (
    AppConfig,
    PathsConfig,
    RepositoryConfig,
    PluginConfig,
)
from modqueue.models.mod import (
    ModInfo,
    Mod,
    RemoteFile,
    TAGGABLE_FIELDS,
)
from modqueue.models.task import (
    TaskStatus,
    TaskEndedEvent,
    PendingRecord,
)

__all__ = [
    # 配置模型
    "AppConfig",
    "PathsConfig",
    "RepositoryConfig",
    "PluginConfig",
    # 模组模型
    "ModInfo",
    "Mod",
    "RemoteFile",
    "TAGGABLE_FIELDS",
    # 任务模型
    "TaskStatus",
    "TaskEndedEvent",
    "PendingRecord",
]
