"""procshell 日志配置。

库代码只通过 logging.getLogger(__name__) 记录日志，导入时不做任何配置。
需要看到 procshell 日志的调用方调用 setup_logging()。
"""

from __future__ import annotations

import logging
import sys

from .config import Config, get_config

__all__ = ["LOG_FORMAT", "setup_logging"]

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def setup_logging(config: Config | None = None) -> logging.Logger:
    """配置 procshell 命名空间的日志输出。

    Args:
        config: 配置（默认使用全局配置）

    Returns:
        procshell 命名空间 logger
    """
    config = config if config is not None else get_config()

    log_handlers: list[logging.Handler] = []

    if config.log_debug and config.log_file:
        # LOG_DEBUG 模式：输出到临时文件
        file_handler = logging.FileHandler(config.log_file, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        log_handlers.append(file_handler)
        log_level = logging.DEBUG
    else:
        # 默认模式：输出到 stderr
        stderr_handler = logging.StreamHandler(sys.stderr)
        stderr_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        log_handlers.append(stderr_handler)
        log_level = logging.INFO

    # 配置 root logger（第三方库）为 WARNING，减少噪音
    logging.basicConfig(
        level=logging.WARNING,
        handlers=log_handlers,
    )
    # 只对 procshell 命名空间启用详细日志
    logger = logging.getLogger("procshell")
    logger.setLevel(log_level)
    return logger
