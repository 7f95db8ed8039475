"""
ModQueue 统一异常体系

提供分层的异常结构，支持错误代码、上下文信息和 JSON 序列化。
"""

from typing import Any, Dict, Optional
import aiohttp


class ModQueueError(Exception):
    """ModQueue 基础异常类"""

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self._get_default_code()
        self.context = context or {}

    def _get_default_code(self) -> str:
        """获取默认错误代码"""
        return "E000"

    def to_dict(self) -> Dict[str, Any]:
        """将异常转换为字典格式"""
        return {
            "error": True,
            "code": self.code,
            "message": self.message,
            "context": self.context,
            "type": self.__class__.__name__,
        }

    def __str__(self) -> str:
        if self.code:
            return f"[{self.code}] {self.message}"
        return self.message


class ConfigError(ModQueueError):
    """配置相关错误"""

    def _get_default_code(self) -> str:
        return "E100"


class ConfigParseError(ConfigError):
    """配置解析错误"""

    def _get_default_code(self) -> str:
        return "E101"


class ConfigValidationError(ConfigError):
    """配置验证错误"""

    def _get_default_code(self) -> str:
        return "E102"


class APIError(ModQueueError):
    """模组仓库 API 错误"""

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        response: Optional[aiohttp.ClientResponse] = None,
    ):
        super().__init__(message, code, context)
        self.response = response
        if response is not None:
            self.context["status_code"] = response.status
            self.context["url"] = str(response.url)

    def _get_default_code(self) -> str:
        return "E200"


class APINotFoundError(APIError):
    """API 资源不存在"""

    def _get_default_code(self) -> str:
        return "E404"


class APIRateLimitError(APIError):
    """API 速率限制"""

    def _get_default_code(self) -> str:
        return "E429"


class DownloadError(ModQueueError):
    """下载相关错误"""

    def _get_default_code(self) -> str:
        return "E300"


class DownloadNetworkError(DownloadError):
    """下载网络错误"""

    def _get_default_code(self) -> str:
        return "E301"


class DownloadChecksumError(DownloadError):
    """下载校验错误"""

    def _get_default_code(self) -> str:
        return "E302"


class DownloadFileError(DownloadError):
    """下载文件操作错误"""

    def _get_default_code(self) -> str:
        return "E303"


class InstallError(ModQueueError):
    """安装相关错误"""

    def _get_default_code(self) -> str:
        return "E400"


class NoAvailableDestinationError(InstallError):
    """找不到可用的目标文件名"""

    def _get_default_code(self) -> str:
        return "E401"


class UnsupportedFormatError(InstallError):
    """不支持的模组文件格式"""

    def _get_default_code(self) -> str:
        return "E402"


class QueueError(ModQueueError):
    """获取队列相关错误"""

    def _get_default_code(self) -> str:
        return "E600"


class MalformedPendingRecordError(QueueError):
    """持久化的待处理记录无法解析"""

    def _get_default_code(self) -> str:
        return "E601"


class UnknownGameModeError(QueueError):
    """未知的游戏模式"""

    def _get_default_code(self) -> str:
        return "E602"


__all__ = [
    # 基础异常
    "ModQueueError",
    # 配置异常
    "ConfigError",
    "ConfigParseError",
    "ConfigValidationError",
    # API 异常
    "APIError",
    "APINotFoundError",
    "APIRateLimitError",
    # 下载异常
    "DownloadError",
    "DownloadNetworkError",
    "DownloadChecksumError",
    "DownloadFileError",
    # 安装异常
    "InstallError",
    "NoAvailableDestinationError",
    "UnsupportedFormatError",
    # 队列异常
    "QueueError",
    "MalformedPendingRecordError",
    "UnknownGameModeError",
]
