"""
模组目录

记录已安装的模组文件。同一路径重复注册返回同一个 Mod。
"""

import json
import os
from typing import Dict, List, Optional

from loguru import logger

from modqueue.models import Mod


class ModRegistry:
    """已管理模组注册表"""

    def __init__(self, index_file: Optional[str] = None):
        self.index_file = index_file
        self._mods: Dict[str, Mod] = {}
        if index_file and os.path.exists(index_file):
            self._load()

    def _load(self):
        try:
            with open(self.index_file, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"[目录] 无法读取模组索引 {self.index_file}: {e}")
            return
        for entry in data.get("mods", []):
            mod = Mod.from_dict(entry)
            self._mods[self._key(mod.path)] = mod
        logger.debug(f"[目录] 已载入 {len(self._mods)} 个模组")

    def save(self):
        """写入模组索引"""
        if not self.index_file:
            return
        os.makedirs(os.path.dirname(os.path.abspath(self.index_file)), exist_ok=True)
        with open(self.index_file, "w", encoding="utf-8") as f:
            json.dump(
                {"mods": [m.to_dict() for m in self._mods.values()]},
                f,
                ensure_ascii=False,
                indent=2,
            )

    @staticmethod
    def _key(path: str) -> str:
        return os.path.normcase(os.path.abspath(path))

    def register_mod(self, path: str) -> Mod:
        """注册模组文件"""
        key = self._key(path)
        mod = self._mods.get(key)
        if mod is not None:
            logger.debug(f"[目录] '{os.path.basename(path)}' 已注册")
            return mod

        name, _ = os.path.splitext(os.path.basename(path))
        mod = Mod(path=os.path.abspath(path), name=name)
        self._mods[key] = mod
        self.save()
        logger.info(f"[目录] 已注册模组 '{mod.name}'")
        return mod

    def get(self, path: str) -> Optional[Mod]:
        return self._mods.get(self._key(path))

    def list_mods(self) -> List[Mod]:
        return list(self._mods.values())

    def __len__(self) -> int:
        return len(self._mods)
