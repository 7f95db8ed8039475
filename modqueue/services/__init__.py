"""
ModQueue 服务层

包含模组仓库客户端。
"""

from modqueue.services.repository import ModRepository

__all__ = [
    "ModRepository",
]
