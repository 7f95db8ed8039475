"""
内置插件

可通过配置 plugins.enabled 按名称加载。
"""

from modqueue.activity.builtin.progress import ProgressPlugin

__all__ = ["ProgressPlugin"]
