"""
模组格式注册表

按扩展名识别可安装的模组文件。归档解压不在此处理，归档文件原样安装。
"""

import os
from typing import Dict, Iterable, Optional

DEFAULT_FORMATS: Dict[str, str] = {
    ".esp": "plugin",
    ".esm": "plugin",
    ".esl": "plugin",
    ".bsa": "archive",
    ".ba2": "archive",
    ".zip": "package",
    ".7z": "package",
    ".rar": "package",
    ".fomod": "package",
}


class FormatRegistry:
    """模组格式注册表"""

    def __init__(self, formats: Optional[Dict[str, str]] = None):
        self._formats: Dict[str, str] = dict(
            DEFAULT_FORMATS if formats is None else formats
        )

    def register(self, extension: str, kind: str):
        """注册扩展名"""
        if not extension.startswith("."):
            extension = f".{extension}"
        self._formats[extension.lower()] = kind

    def get_format(self, path: str) -> Optional[str]:
        """获取文件的格式类别，未知格式返回 None"""
        _, ext = os.path.splitext(path)
        return self._formats.get(ext.lower())

    def is_supported(self, path: str) -> bool:
        return self.get_format(path) is not None

    @property
    def extensions(self) -> Iterable[str]:
        return sorted(self._formats)
