"""
游戏模式描述

各游戏模式的静态信息：模式 ID、显示名称、可执行文件和 Nexus 域名。
"""

from dataclasses import dataclass, field
from typing import Dict, List, Tuple

from modqueue.exceptions import UnknownGameModeError


@dataclass(frozen=True)
class GameModeDescriptor:
    """游戏模式的基本信息"""

    mode_id: str
    name: str
    executables: Tuple[str, ...] = field(default_factory=tuple)
    nexus_domain: str = ""
    # 主题色 (R, G, B)
    theme_color: Tuple[int, int, int] = (0, 0, 0)


GAME_MODES: Dict[str, GameModeDescriptor] = {
    "Skyrim": GameModeDescriptor(
        mode_id="Skyrim",
        name="Skyrim",
        executables=("SkyrimLauncher.exe",),
        nexus_domain="skyrim",
        theme_color=(50, 104, 158),
    ),
    "SkyrimSE": GameModeDescriptor(
        mode_id="SkyrimSE",
        name="Skyrim Special Edition",
        executables=("SkyrimSELauncher.exe", "SkyrimSE.exe"),
        nexus_domain="skyrimspecialedition",
        theme_color=(50, 104, 158),
    ),
    "Oblivion": GameModeDescriptor(
        mode_id="Oblivion",
        name="Oblivion",
        executables=("OblivionLauncher.exe", "Oblivion.exe"),
        nexus_domain="oblivion",
        theme_color=(84, 117, 58),
    ),
    "Fallout3": GameModeDescriptor(
        mode_id="Fallout3",
        name="Fallout 3",
        executables=("FalloutLauncher.exe", "Fallout3.exe"),
        nexus_domain="fallout3",
        theme_color=(62, 109, 40),
    ),
    "FalloutNV": GameModeDescriptor(
        mode_id="FalloutNV",
        name="Fallout: New Vegas",
        executables=("FalloutNVLauncher.exe", "FalloutNV.exe"),
        nexus_domain="newvegas",
        theme_color=(165, 107, 36),
    ),
}


def get_game_mode(mode_id: str) -> GameModeDescriptor:
    """按模式 ID 查找游戏模式（不区分大小写）"""
    if mode_id in GAME_MODES:
        return GAME_MODES[mode_id]
    for known_id, descriptor in GAME_MODES.items():
        if known_id.lower() == mode_id.lower():
            return descriptor
    raise UnknownGameModeError(
        f"未知的游戏模式: {mode_id}", context={"known": sorted(GAME_MODES)}
    )


def list_game_modes() -> List[GameModeDescriptor]:
    return list(GAME_MODES.values())
