"""Runtime module for external process lifecycle management.

This module provides isolated process execution, asynchronous completion
tracking and process group termination.
"""

from __future__ import annotations

from .app import App
from .completion import Completion
from .kill import (
    IS_WINDOWS,
    KillStrategy,
    ProcessGroupKill,
    SingleProcessKill,
    supports_process_groups,
)
from .types import ExitStatus

__all__ = [
    "App",
    "Completion",
    "ExitStatus",
    "IS_WINDOWS",
    "KillStrategy",
    "ProcessGroupKill",
    "SingleProcessKill",
    "supports_process_groups",
]
