"""
ModQueue - 游戏模组获取队列

按来源去重获取模组，持久化待处理队列并在重启后恢复。
"""

from modqueue.conflict import Resolution, resolve_overwrite
from modqueue.logger import setup_logger
from modqueue.manager import ModManager
from modqueue.queue import AddModQueue
from modqueue.task import AcquisitionTask, AddModTask

__version__ = "0.1.0"

__all__ = [
    "AddModQueue",
    "AcquisitionTask",
    "AddModTask",
    "ModManager",
    "Resolution",
    "resolve_overwrite",
    "setup_logger",
]
