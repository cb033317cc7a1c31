"""
日志初始化 - 按 LoggingConfig 配置控制台与文件输出

控制台默认只输出 WARNING 及以上（进度由事件通道打印），
--verbose 时按配置级别输出。
"""

from __future__ import annotations

import logging

from .config.runtime_config import LoggingConfig

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(config: LoggingConfig, verbose: bool = False) -> logging.Logger:
    """配置进程级日志"""
    level = logging.getLevelName(config.log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)

    console = logging.StreamHandler()
    console.setFormatter(formatter)
    console.setLevel(level if verbose else max(level, logging.WARNING))
    root_logger.addHandler(console)

    if config.log_to_file:
        config.log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(config.log_file, encoding="utf-8")
        file_handler.setFormatter(formatter)
        file_handler.setLevel(level)
        root_logger.addHandler(file_handler)

    root_logger.setLevel(level)
    return logging.getLogger("deckkit")
