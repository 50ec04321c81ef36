"""procshell 环境变量配置管理。

环境变量:
    PROCSHELL_KILL_SIGNAL: kill() 发送的信号
        - 信号名（大小写不敏感，可省略 SIG 前缀）或信号编号
        - 例: "SIGKILL"、"term"、"9"
        - 默认 SIGKILL，无效值回退到默认

    PROCSHELL_LOCATOR: 可执行文件查找方式
        - path = 使用 shutil.which 搜索 PATH (默认)
        - which = 启动 which 工具进行查找

    PROCSHELL_LOG_DEBUG: 日志调试模式
        - true/1/yes/on = 开启 (日志输出到临时文件)
        - false/0/no = 关闭 (默认，日志输出到 stderr)
"""

from __future__ import annotations

import os
import signal
import tempfile
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path

__all__ = [
    "Config",
    "LocatorKind",
    "DEFAULT_KILL_SIGNAL",
    "load_config",
    "get_config",
    "reload_config",
    "parse_signal",
]

# SIGKILL 在 Windows 上不存在，此时 kill() 总是走 Process.kill()
DEFAULT_KILL_SIGNAL = getattr(signal, "SIGKILL", signal.SIGTERM)


class LocatorKind(Enum):
    """可执行文件查找方式。

    - PATH: shutil.which，不启动子进程
    - WHICH: 启动 which 工具
    """

    PATH = "path"
    WHICH = "which"

    @classmethod
    def from_string(cls, value: str) -> "LocatorKind":
        """从字符串解析查找方式。

        Args:
            value: 查找方式字符串 (path/which)

        Returns:
            对应的 LocatorKind 枚举值，无效值返回 PATH
        """
        value = value.lower().strip()
        for kind in cls:
            if kind.value == value:
                return kind
        return cls.PATH  # 默认值


def _parse_bool(value: str | None, default: bool = False) -> bool:
    """解析布尔值环境变量。"""
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes", "on")


def parse_signal(value: str | None, default: signal.Signals = DEFAULT_KILL_SIGNAL) -> signal.Signals:
    """解析信号名或信号编号。

    Args:
        value: "SIGKILL" / "kill" / "9" 等
        default: 无法解析时返回的信号

    Returns:
        signal.Signals 枚举值
    """
    if not value or not value.strip():
        return default

    value = value.strip()
    if value.isdigit():
        try:
            return signal.Signals(int(value))
        except ValueError:
            return default

    name = value.upper()
    if not name.startswith("SIG"):
        name = f"SIG{name}"
    try:
        return signal.Signals[name]
    except KeyError:
        return default


@dataclass
class Config:
    """procshell 配置。

    Attributes:
        kill_signal: kill() 发送给进程组的信号
        locator: 可执行文件查找方式
        log_debug: 日志调试模式（输出到临时文件）
        log_file: 日志文件路径（当 log_debug=True 时自动设置）
    """

    kill_signal: signal.Signals = DEFAULT_KILL_SIGNAL
    locator: LocatorKind = LocatorKind.PATH
    log_debug: bool = False
    log_file: str | None = None

    def __repr__(self) -> str:
        return (
            f"Config(kill_signal={self.kill_signal.name}, "
            f"locator={self.locator.value}, "
            f"log_debug={self.log_debug}, "
            f"log_file={self.log_file})"
        )


def _generate_log_file_path() -> str:
    """生成日志文件路径。

    Returns:
        临时目录下的日志文件绝对路径
    """
    log_dir = Path(tempfile.gettempdir()) / "procshell"
    log_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = log_dir / f"procshell_debug_{timestamp}.log"

    return str(log_file.resolve())


def load_config() -> Config:
    """从环境变量加载配置。"""
    log_debug = _parse_bool(os.environ.get("PROCSHELL_LOG_DEBUG"), default=False)
    log_file = _generate_log_file_path() if log_debug else None

    locator = os.environ.get("PROCSHELL_LOCATOR")

    return Config(
        kill_signal=parse_signal(os.environ.get("PROCSHELL_KILL_SIGNAL")),
        locator=LocatorKind.from_string(locator) if locator else LocatorKind.PATH,
        log_debug=log_debug,
        log_file=log_file,
    )


# 全局配置实例（延迟加载）
_config: Config | None = None


def get_config() -> Config:
    """获取全局配置实例。"""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reload_config() -> Config:
    """重新加载配置（用于测试）。"""
    global _config
    _config = load_config()
    return _config
