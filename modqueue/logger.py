"""
日志模块

使用 loguru 提供统一的日志记录功能，可选写入滚动日志文件。
"""

import os
import sys
from typing import Optional

from loguru import logger

LOG_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {message}"


def resolve_level(level: Optional[str] = None) -> str:
    """根据参数或 MODQUEUE_DEBUG 环境变量确定日志级别"""
    if level:
        return level.upper()
    return "DEBUG" if os.environ.get("MODQUEUE_DEBUG", "0") == "1" else "INFO"


def setup_logger(
    level: Optional[str] = None,
    sink=sys.stdout,
    enqueue: bool = True,
    colorize: bool = True,
    log_file: Optional[str] = None,
) -> None:
    """
    设置日志记录器

    Args:
        level: 日志级别 (DEBUG, INFO, WARNING, ERROR)
        sink: 控制台输出目标
        enqueue: 是否启用队列（线程安全，下载任务可能在其他线程上报进度）
        colorize: 是否启用颜色
        log_file: 额外写入的日志文件路径
    """
    level = resolve_level(level)
    debug = level == "DEBUG"

    logger.remove()
    logger.add(
        sink=sink,
        format=LOG_FORMAT,
        enqueue=enqueue,
        level=level,
        colorize=colorize,
        backtrace=debug,
        diagnose=debug,
    )

    if log_file:
        logger.add(
            log_file,
            format=LOG_FORMAT,
            enqueue=enqueue,
            level=level,
            rotation="5 MB",
            retention=3,
            encoding="utf-8",
        )

    if debug:
        logger.debug("DEBUG 模式已启用")


def get_logger():
    """获取日志记录器实例"""
    return logger


__all__ = ["logger", "setup_logger", "get_logger", "resolve_level"]
