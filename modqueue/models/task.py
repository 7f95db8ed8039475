"""
任务相关数据模型

任务状态、终止事件与持久化的待处理记录。
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional
from urllib.parse import urlparse

from modqueue.exceptions import MalformedPendingRecordError, ModQueueError


class TaskStatus(Enum):
    """获取任务状态"""

    NOT_STARTED = "not_started"
    RUNNING = "running"
    PAUSED = "paused"
    INCOMPLETE = "incomplete"
    COMPLETE = "complete"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def keeps_entry(self) -> bool:
        """该终止状态下任务是否仍保留在活动表中（可恢复）"""
        return self in (TaskStatus.PAUSED, TaskStatus.INCOMPLETE)


@dataclass
class TaskEndedEvent:
    """任务一次运行结束时发出的事件"""

    status: TaskStatus
    result: Any = None
    error: Optional[ModQueueError] = None
    message: str = ""


@dataclass
class PendingRecord:
    """持久化的待处理获取记录"""

    mode_id: str
    key: str
    descriptor: Dict[str, Any] = field(default_factory=dict)

    @staticmethod
    def new_descriptor() -> Dict[str, Any]:
        return {
            "status": "queued",
            "queued_at": datetime.now(timezone.utc).isoformat(timespec="seconds"),
        }

    @classmethod
    def from_raw(cls, mode_id: str, key: Any, descriptor: Any) -> "PendingRecord":
        """
        校验从设置存储读取的原始条目。

        Raises:
            MalformedPendingRecordError: 键不是带协议的 URI 或描述不是字典
        """
        if not isinstance(key, str) or not key.strip():
            raise MalformedPendingRecordError(
                "待处理记录的键无效", context={"key": repr(key)}
            )
        try:
            scheme = urlparse(key.strip()).scheme
        except ValueError as e:
            raise MalformedPendingRecordError(
                "待处理记录的键无法解析", context={"key": key, "error": str(e)}
            ) from e
        if not scheme:
            raise MalformedPendingRecordError(
                "待处理记录的键不是 URI", context={"key": key}
            )
        if descriptor is None:
            descriptor = {}
        if not isinstance(descriptor, dict):
            raise MalformedPendingRecordError(
                "待处理记录的描述格式错误",
                context={"key": key, "descriptor": repr(descriptor)},
            )
        return cls(mode_id=mode_id, key=key.strip(), descriptor=dict(descriptor))
