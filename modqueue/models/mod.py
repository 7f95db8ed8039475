"""
模组数据模型

定义来源模组信息、已注册模组和远程文件描述。
"""

from dataclasses import dataclass, fields
from typing import Optional


@dataclass
class ModInfo:
    """
    模组元数据。

    来自模组仓库或文件名推断，自动标记时作为信息来源。
    """

    mod_id: Optional[str] = None
    file_id: Optional[str] = None
    name: str = ""
    version: str = ""
    author: str = ""
    website: str = ""
    category: str = ""
    description: str = ""

    @classmethod
    def from_nexus(cls, mod: dict, file: Optional[dict] = None) -> "ModInfo":
        """
        将 Nexus Mods API 返回的模组/文件信息转换为 ModInfo 对象。
        """
        file = file or {}
        return cls(
            mod_id=str(mod.get("mod_id", "")) or None,
            file_id=str(file.get("file_id", "")) or None,
            name=mod.get("name", "") or "",
            version=file.get("version") or mod.get("version", "") or "",
            author=mod.get("author", "") or "",
            website=mod.get("url", "") or "",
            category=str(mod.get("category_id", "") or ""),
            description=mod.get("summary", "") or "",
        )


TAGGABLE_FIELDS = tuple(
    f.name for f in fields(ModInfo) if f.name not in ("mod_id", "file_id")
)


@dataclass
class Mod:
    """模组目录中已注册的模组"""

    path: str
    name: str = ""
    version: str = ""
    author: str = ""
    website: str = ""
    category: str = ""
    description: str = ""

    def to_dict(self) -> dict:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    @classmethod
    def from_dict(cls, data: dict) -> "Mod":
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})


@dataclass
class RemoteFile:
    """解析后的可下载文件"""

    url: str
    filename: str
    info: ModInfo
    sha1: Optional[str] = None
    size: int = 0
