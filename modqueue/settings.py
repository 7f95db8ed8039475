"""
设置与待处理队列持久化

持久化端口 PendingStore 按游戏模式保存 (来源 URI -> 描述) 条目，
获取队列启动时从中恢复未完成的任务。
"""

import os
import tempfile
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol, Tuple

import toml
from loguru import logger

from modqueue.exceptions import ConfigParseError


class PendingStore(Protocol):
    """待处理获取记录的存储接口"""

    def load(self, mode_id: str) -> List[Tuple[Any, Any]]:
        """按插入顺序返回该游戏模式的原始 (键, 描述) 条目"""
        ...

    def save(self, mode_id: str, key: str, descriptor: Dict[str, Any]) -> None:
        ...

    def remove(self, mode_id: str, key: str) -> None:
        ...

    def contains(self, mode_id: str, key: str) -> bool:
        ...


class MemoryPendingStore:
    """内存中的待处理存储，用于测试和不需要持久化的场景"""

    def __init__(self, queued: Optional[Dict[str, Dict[Any, Any]]] = None):
        self.queued: Dict[str, Dict[Any, Any]] = queued if queued is not None else {}

    def load(self, mode_id: str) -> List[Tuple[Any, Any]]:
        return list(self.queued.get(mode_id, {}).items())

    def save(self, mode_id: str, key: str, descriptor: Dict[str, Any]) -> None:
        self.queued.setdefault(mode_id, {})[key] = descriptor

    def remove(self, mode_id: str, key: str) -> None:
        mode = self.queued.get(mode_id)
        if mode is not None:
            mode.pop(key, None)

    def contains(self, mode_id: str, key: str) -> bool:
        return key in self.queued.get(mode_id, {})


@dataclass
class Settings:
    """用户设置"""

    add_missing_info_to_mods: bool = True


class TomlSettingsStore:
    """
    基于 TOML 文件的设置存储

    文件结构::

        [settings]
        add_missing_info_to_mods = true

        [queued_mods.Skyrim."nxm://skyrim/mods/1/files/2"]
        status = "queued"
    """

    def __init__(self, path: str):
        self.path = path
        self._data: Dict[str, Any] = self._read()

    def _read(self) -> Dict[str, Any]:
        if not os.path.exists(self.path):
            return {}
        try:
            data = toml.load(self.path)
        except (toml.TomlDecodeError, OSError) as e:
            raise ConfigParseError(
                f"无法读取设置文件: {self.path}", context={"error": str(e)}
            )
        return data

    def _write(self):
        directory = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(directory, exist_ok=True)
        # 先写临时文件再替换，避免中途退出留下半个文件
        fd, tmp_path = tempfile.mkstemp(dir=directory, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                toml.dump(self._data, f)
            os.replace(tmp_path, self.path)
        except OSError:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise

    @property
    def settings(self) -> Settings:
        raw = self._data.get("settings", {})
        if not isinstance(raw, dict):
            logger.warning("[设置] settings 不是表，使用默认设置")
            raw = {}
        return Settings(
            add_missing_info_to_mods=bool(raw.get("add_missing_info_to_mods", True))
        )

    def save_settings(self, settings: Settings):
        self._data["settings"] = {
            "add_missing_info_to_mods": settings.add_missing_info_to_mods
        }
        self._write()

    def _queued_root(self) -> Dict[str, Any]:
        queued = self._data.get("queued_mods", {})
        if not isinstance(queued, dict):
            logger.warning("[设置] queued_mods 不是表，已忽略")
            return {}
        return queued

    def _queued(self, mode_id: str) -> Dict[Any, Any]:
        mode = self._queued_root().get(mode_id, {})
        if not isinstance(mode, dict):
            logger.warning(f"[设置] queued_mods.{mode_id} 不是表，已忽略")
            return {}
        return mode

    def load(self, mode_id: str) -> List[Tuple[Any, Any]]:
        return list(self._queued(mode_id).items())

    def save(self, mode_id: str, key: str, descriptor: Dict[str, Any]) -> None:
        queued = self._data.get("queued_mods")
        if not isinstance(queued, dict):
            queued = self._data["queued_mods"] = {}
        if not isinstance(queued.get(mode_id), dict):
            queued[mode_id] = {}
        queued[mode_id][key] = descriptor
        self._write()

    def remove(self, mode_id: str, key: str) -> None:
        mode = self._queued(mode_id)
        if key in mode:
            del mode[key]
            self._write()

    def contains(self, mode_id: str, key: str) -> bool:
        return key in self._queued(mode_id)


@dataclass
class EnvironmentInfo:
    """应用运行环境：目录、用户设置和重试策略"""

    mods_dir: str
    temp_dir: str
    settings: Settings
    max_retries: int = 3
    retry_delay: float = 1.0
