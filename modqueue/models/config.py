"""
配置模型

从 TOML/JSON/YAML 解析得到的字典构建强类型配置。
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List

from modqueue.exceptions import ConfigValidationError


NEXUS_API_BASE_URL = "https://api.nexusmods.com/v1"


@dataclass
class PathsConfig:
    """路径配置"""

    mods_dir: str = "mods"
    temp_dir: str = ".modqueue/tmp"
    settings_file: str = ".modqueue/settings.toml"
    registry_file: str = ".modqueue/registry.json"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PathsConfig":
        return cls(
            mods_dir=data.get("mods_dir", cls.mods_dir),
            temp_dir=data.get("temp_dir", cls.temp_dir),
            settings_file=data.get("settings_file", cls.settings_file),
            registry_file=data.get("registry_file", cls.registry_file),
        )


@dataclass
class RepositoryConfig:
    """模组仓库配置"""

    base_url: str = NEXUS_API_BASE_URL
    api_key: str = ""
    timeout: float = 30.0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RepositoryConfig":
        return cls(
            base_url=data.get("base_url", NEXUS_API_BASE_URL).rstrip("/"),
            api_key=data.get("api_key", ""),
            timeout=float(data.get("timeout", 30.0)),
        )


@dataclass
class PluginConfig:
    """插件配置"""

    enabled: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PluginConfig":
        return cls(enabled=list(data.get("enabled", [])))


@dataclass
class AppConfig:
    """ModQueue 主配置"""

    game_mode: str
    paths: PathsConfig = field(default_factory=PathsConfig)
    repository: RepositoryConfig = field(default_factory=RepositoryConfig)
    plugins: PluginConfig = field(default_factory=PluginConfig)
    max_retries: int = 3
    retry_delay: float = 1.0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AppConfig":
        """从字典构建配置并校验"""
        if not isinstance(data, dict):
            raise ConfigValidationError("配置根节点必须是表/字典")

        game_mode = data.get("game_mode")
        if not game_mode or not isinstance(game_mode, str):
            raise ConfigValidationError("请配置 game_mode")

        try:
            max_retries = int(data.get("max_retries", 3))
            retry_delay = float(data.get("retry_delay", 1.0))
        except (TypeError, ValueError) as e:
            raise ConfigValidationError(
                "max_retries/retry_delay 必须是数字", context={"error": str(e)}
            )

        if max_retries < 0:
            raise ConfigValidationError("max_retries 不能为负数")
        if retry_delay < 0:
            raise ConfigValidationError("retry_delay 不能为负数")

        return cls(
            game_mode=game_mode,
            paths=PathsConfig.from_dict(data.get("paths", {})),
            repository=RepositoryConfig.from_dict(data.get("repository", {})),
            plugins=PluginConfig.from_dict(data.get("plugins", {})),
            max_retries=max_retries,
            retry_delay=retry_delay,
        )
