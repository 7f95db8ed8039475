"""
文件获取器

下载远程文件（带重试、指数退避和断点续传）或复制本地文件到暂存路径。
"""

import asyncio
import os
import shutil
from typing import Callable, Optional

import aiofiles
import aiohttp
from loguru import logger

from modqueue.download.verifier import FileVerifier
from modqueue.exceptions import (
    DownloadNetworkError,
    DownloadChecksumError,
    DownloadFileError,
)
from modqueue.utils import file_uri_path

ProgressCallback = Callable[[float], None]

CHUNK_SIZE = 65536


class FileFetcher:
    """文件获取器"""

    def __init__(
        self,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.verifier = FileVerifier()
        self._session = session
        self._owned_session = session is None

    @property
    def session(self) -> aiohttp.ClientSession:
        """获取或创建 aiohttp session"""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owned_session = True
        return self._session

    async def fetch(
        self,
        url: str,
        dest_path: str,
        expected_sha1: Optional[str] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> str:
        """
        获取文件到 dest_path

        远程文件先写入 dest_path + ".part"，完成并校验后再改名；
        网络失败时保留 .part 文件，下次调用从断点继续。

        Returns:
            dest_path

        Raises:
            DownloadNetworkError: 重试耗尽，context["partial"] 为已下载字节数
            DownloadChecksumError: SHA1 不匹配
            DownloadFileError: 本地文件不存在或无法复制
        """
        os.makedirs(os.path.dirname(os.path.abspath(dest_path)), exist_ok=True)

        if url.startswith("file://"):
            return self._copy_local_file(file_uri_path(url), dest_path)

        part_path = dest_path + ".part"
        filename = os.path.basename(dest_path)
        logger.info(f"[下载] 开始: {filename}")

        for attempt in range(self.max_retries + 1):
            try:
                await self._download(url, part_path, progress_callback)
                break
            except (
                aiohttp.ClientError,
                asyncio.TimeoutError,
                DownloadNetworkError,
            ) as e:
                if attempt < self.max_retries:
                    delay = self.retry_delay * (2**attempt)
                    logger.warning(
                        f"[重试] 下载 '{filename}' 失败 (第 {attempt + 1} 次): {e}. "
                        f"{delay:.1f}s 后重试..."
                    )
                    await asyncio.sleep(delay)
                else:
                    partial = self.verifier.partial_size(part_path)
                    logger.error(f"[错误] 下载 '{filename}' 最终失败: {e}")
                    raise DownloadNetworkError(
                        f"下载失败: {filename}",
                        context={"url": url, "error": str(e), "partial": partial},
                    )

        if not await self.verifier.verify_sha1(part_path, expected_sha1):
            os.remove(part_path)
            raise DownloadChecksumError(
                f"SHA1 校验失败: {filename}",
                context={"file": filename, "expected": expected_sha1},
            )

        os.replace(part_path, dest_path)
        logger.success(f"[完成] '{filename}' 下载完成")
        return dest_path

    async def _download(
        self,
        url: str,
        part_path: str,
        progress_callback: Optional[ProgressCallback],
    ):
        existing = self.verifier.partial_size(part_path)
        headers = {}
        if existing:
            headers["Range"] = f"bytes={existing}-"

        async with self.session.get(url, headers=headers) as response:
            if response.status == 206 and existing:
                mode = "ab"
                logger.info(f"[续传] 从 {existing} 字节处继续")
            elif response.status == 200:
                mode = "wb"
                existing = 0
            elif response.status == 416 and existing:
                # 服务器认为已下载完整
                return
            else:
                raise DownloadNetworkError(
                    f"HTTP {response.status}",
                    context={"url": url, "status": response.status},
                )

            total_size = existing + int(response.headers.get("Content-Length", 0))
            downloaded = existing

            async with aiofiles.open(part_path, mode) as f:
                async for chunk in response.content.iter_chunked(CHUNK_SIZE):
                    await f.write(chunk)
                    downloaded += len(chunk)
                    if total_size > 0 and progress_callback:
                        progress_callback(downloaded / total_size)

            if total_size > 0 and downloaded < total_size:
                raise DownloadNetworkError(
                    "连接提前关闭",
                    context={
                        "url": url,
                        "received": downloaded,
                        "expected": total_size,
                    },
                )

    def _copy_local_file(self, src_path: str, dest_path: str) -> str:
        """复制本地文件"""
        logger.info(f"[复制] 本地文件: {os.path.basename(src_path)}")
        if not os.path.isfile(src_path):
            raise DownloadFileError(
                f"本地文件不存在: {src_path}", context={"path": src_path}
            )
        try:
            shutil.copy2(src_path, dest_path)
        except OSError as e:
            raise DownloadFileError("复制文件失败", context={"error": str(e)})
        logger.success(f"[完成] 本地文件复制完成: {os.path.basename(src_path)}")
        return dest_path

    async def close(self):
        """关闭 session"""
        if self._owned_session and self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()


__all__ = ["FileFetcher", "ProgressCallback"]
