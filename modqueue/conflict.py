"""
目标文件冲突解决

目标路径已存在时，计算一个未被占用的替代路径。
"""

import os
from dataclasses import dataclass
from typing import Callable, Optional

from modqueue.exceptions import NoAvailableDestinationError

MAX_SUFFIX_INDEX = 2**31 - 1


@dataclass(frozen=True)
class Resolution:
    """冲突解决结果：新路径或失败原因"""

    path: Optional[str] = None
    error: Optional[NoAvailableDestinationError] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.path is not None


# 接收被占用的目标路径，返回解决结果
OverwriteResolver = Callable[[str], Resolution]


def resolve_overwrite(path: str, max_index: int = MAX_SUFFIX_INDEX) -> Resolution:
    """
    默认覆盖策略：在扩展名前追加 " (2)"、" (3)" ... 直到找到未使用的文件名。

    只读取文件系统，不写入。

    Args:
        path: 期望的目标路径
        max_index: 最大序号

    Returns:
        Resolution: 未被占用的路径；序号耗尽时带 NoAvailableDestinationError
    """
    if not os.path.exists(path):
        return Resolution(path=path)

    directory = os.path.dirname(path)
    stem, ext = os.path.splitext(os.path.basename(path))

    for i in range(2, max_index + 1):
        candidate = os.path.join(directory, f"{stem} ({i}){ext}")
        if not os.path.exists(candidate):
            return Resolution(path=candidate)

    return Resolution(
        error=NoAvailableDestinationError(
            "无法写入文件，找不到未使用的文件名",
            context={"path": path, "max_index": max_index},
        )
    )
