"""
ModQueue 下载层

包含文件获取（下载/本地复制）与文件校验。
"""

from modqueue.download.fetcher import FileFetcher
from modqueue.download.verifier import FileVerifier

__all__ = [
    "FileFetcher",
    "FileVerifier",
]
