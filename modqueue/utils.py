import os
from pathlib import Path
from urllib.parse import unquote, urlparse, urlunparse


def source_key(uri: str) -> str:
    """
    规范化模组来源 URI，作为任务去重的键。

    协议与主机名转为小写，其余部分保持原样；本地路径转为 file:// URI。
    """
    uri = uri.strip()
    parsed = urlparse(uri)
    # Windows 盘符 (C:\...) 会被解析成单字母协议
    if not parsed.scheme or len(parsed.scheme) == 1:
        return Path(os.path.abspath(uri)).as_uri()
    return urlunparse(
        parsed._replace(scheme=parsed.scheme.lower(), netloc=parsed.netloc.lower())
    )


def file_uri_path(uri: str) -> str:
    """file:// URI 对应的本地路径"""
    parsed = urlparse(uri)
    path = unquote(parsed.path)
    if parsed.netloc and parsed.netloc != "localhost":
        path = f"//{parsed.netloc}{path}"
    return os.path.normpath(path)
