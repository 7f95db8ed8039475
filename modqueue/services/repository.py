"""
模组仓库客户端

把来源 URI 解析为可下载文件：nxm:// 链接经 Nexus Mods API 解析，
http(s):// 与 file:// 直接使用，模组信息由文件名推断。
"""

import os
from typing import Any, Optional
from urllib.parse import parse_qs, unquote, urlparse

import aiohttp
from loguru import logger

from modqueue.exceptions import APIError, APINotFoundError, APIRateLimitError
from modqueue.game import GameModeDescriptor
from modqueue.models import ModInfo, RemoteFile, RepositoryConfig
from modqueue.utils import file_uri_path

NEXUS_SITE_URL = "https://www.nexusmods.com"


class ModRepository:
    """模组仓库客户端"""

    def __init__(
        self,
        config: RepositoryConfig,
        game_mode: GameModeDescriptor,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.config = config
        self.game_mode = game_mode
        self._session = session
        self._owned_session = session is None

    @property
    def session(self) -> aiohttp.ClientSession:
        """获取或创建 aiohttp session"""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.config.timeout)
            )
            self._owned_session = True
        return self._session

    async def _request(self, endpoint: str, params: Optional[dict] = None) -> Any:
        """发送 API 请求"""
        if not self.config.api_key:
            raise APIError("未配置 Nexus Mods API key", context={"endpoint": endpoint})

        headers = {"apikey": self.config.api_key, "Accept": "application/json"}
        async with self.session.get(
            f"{self.config.base_url}{endpoint}", params=params, headers=headers
        ) as response:
            if response.status == 200:
                return await response.json()
            elif response.status == 404:
                raise APINotFoundError(
                    f"资源不存在: {endpoint}", response=response
                )
            elif response.status == 429:
                raise APIRateLimitError("API 请求过于频繁", response=response)
            else:
                raise APIError(
                    f"API 请求失败 (状态码: {response.status})",
                    response=response,
                )

    async def resolve(self, key: str) -> RemoteFile:
        """
        解析来源 URI

        Raises:
            APIError: 协议不受支持或仓库请求失败
        """
        parsed = urlparse(key)
        if parsed.scheme == "nxm":
            return await self._resolve_nxm(key)
        if parsed.scheme in ("http", "https"):
            filename = os.path.basename(unquote(parsed.path)) or "download"
        elif parsed.scheme == "file":
            filename = os.path.basename(file_uri_path(key))
        else:
            filename = None
        if filename is not None:
            return RemoteFile(
                url=key, filename=filename, info=self._info_from_name(filename)
            )
        raise APIError(f"不支持的来源协议: {parsed.scheme}", context={"key": key})

    async def _resolve_nxm(self, key: str) -> RemoteFile:
        """
        解析 nxm://<game>/mods/<mod_id>/files/<file_id>?key=..&expires=..
        """
        parsed = urlparse(key)
        parts = [p for p in parsed.path.split("/") if p]
        if len(parts) != 4 or parts[0] != "mods" or parts[2] != "files":
            raise APIError("无效的 nxm 链接", context={"key": key})

        domain = parsed.netloc or self.game_mode.nexus_domain
        mod_id, file_id = parts[1], parts[3]
        query = {k: v[0] for k, v in parse_qs(parsed.query).items()}
        base = f"/games/{domain}/mods/{mod_id}"

        logger.debug(f"[仓库] 解析 {domain} 模组 {mod_id} 文件 {file_id}")
        mod = await self._request(f"{base}.json")
        file = await self._request(f"{base}/files/{file_id}.json")

        params = None
        if "key" in query and "expires" in query:
            params = {"key": query["key"], "expires": query["expires"]}
        links = await self._request(
            f"{base}/files/{file_id}/download_link.json", params
        )
        if not links:
            raise APINotFoundError("没有可用的下载镜像", context={"key": key})

        info = ModInfo.from_nexus(mod, file)
        if not info.website:
            info.website = f"{NEXUS_SITE_URL}/{domain}/mods/{mod_id}"

        return RemoteFile(
            url=links[0]["URI"],
            filename=file.get("file_name") or f"{mod_id}-{file_id}",
            info=info,
            size=int(file.get("size_in_bytes") or 0),
        )

    @staticmethod
    def _info_from_name(filename: str) -> ModInfo:
        name, _ = os.path.splitext(filename)
        return ModInfo(name=name)

    async def close(self):
        """关闭客户端"""
        if self._owned_session and self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
