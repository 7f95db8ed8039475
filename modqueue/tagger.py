"""
自动标记

用来源模组的元数据补全已注册模组的信息。
"""

from typing import Optional

from loguru import logger

from modqueue.models import Mod, ModInfo, TAGGABLE_FIELDS
from modqueue.registry import ModRegistry


class AutoTagger:
    """模组信息自动标记器"""

    def __init__(self, registry: Optional[ModRegistry] = None):
        self.registry = registry

    def tag(self, mod: Mod, info: Optional[ModInfo], overwrite: bool = False) -> Mod:
        """
        将 info 中的字段写入 mod

        Args:
            mod: 要标记的模组
            info: 来源模组信息
            overwrite: 为 False 时只填补空字段
        """
        if info is None:
            return mod

        changed = []
        for name in TAGGABLE_FIELDS:
            value = getattr(info, name)
            if not value:
                continue
            if overwrite or not getattr(mod, name):
                if getattr(mod, name) != value:
                    setattr(mod, name, value)
                    changed.append(name)

        if changed:
            logger.debug(f"[标记] '{mod.name}' 更新字段: {', '.join(changed)}")
            if self.registry is not None:
                self.registry.save()
        return mod
