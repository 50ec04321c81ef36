"""procshell - external process lifecycle controller.

Start a process, stream its standard I/O, observe completion
asynchronously, and kill it together with every child it spawned.

环境变量:
    PROCSHELL_KILL_SIGNAL: kill() 发送的信号 (默认 SIGKILL)
    PROCSHELL_LOCATOR: 可执行文件查找方式 (path/which)
    PROCSHELL_LOG_DEBUG: 日志输出到临时文件 (默认 false)
"""

__version__ = "0.1.0"

from .errors import (
    AppAlreadyExitedError,
    AppAlreadyStartedError,
    AppError,
    AppLaunchError,
    AppNotInstalledError,
    AppNotStartedError,
    AppSignaledError,
    AppStateError,
    AppStreamError,
    AppWaitError,
)
from .locator import ExecutableLocator, PathLocator, WhichLocator, check_is_installed
from .runtime import App, Completion, ExitStatus, supports_process_groups

__all__ = [
    "__version__",
    "App",
    "Completion",
    "ExitStatus",
    "supports_process_groups",
    "ExecutableLocator",
    "PathLocator",
    "WhichLocator",
    "check_is_installed",
    "AppError",
    "AppLaunchError",
    "AppStateError",
    "AppNotStartedError",
    "AppAlreadyStartedError",
    "AppAlreadyExitedError",
    "AppWaitError",
    "AppSignaledError",
    "AppStreamError",
    "AppNotInstalledError",
]
