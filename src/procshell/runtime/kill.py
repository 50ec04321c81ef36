"""Platform capability check and kill strategies.

POSIX: the process starts in its own session (start_new_session=True), so
its pid is also its process group id. Killing the group reaches every
descendant that did not move to another group.

Windows: no group kill; only the immediate process is terminated.
"""

from __future__ import annotations

import asyncio
import errno
import logging
import os
import signal
import subprocess
import sys
from typing import Any, Protocol

__all__ = [
    "IS_WINDOWS",
    "KillStrategy",
    "ProcessGroupKill",
    "SingleProcessKill",
    "supports_process_groups",
    "select_kill_strategy",
    "isolation_kwargs",
]

logger = logging.getLogger(__name__)

IS_WINDOWS = sys.platform == "win32"


def supports_process_groups() -> bool:
    """Whether signals can target a whole process group."""
    return not IS_WINDOWS and hasattr(os, "killpg") and hasattr(os, "getpgid")


def _ensure_unreaped(process: asyncio.subprocess.Process) -> None:
    # after reaping, the pid may already belong to an unrelated process
    if process.returncode is not None:
        raise ProcessLookupError(
            errno.ESRCH, f"Process pid={process.pid} already exited"
        )


def isolation_kwargs() -> dict[str, Any]:
    """Build platform-specific kwargs for asyncio.create_subprocess_exec."""
    if IS_WINDOWS:
        return {"creationflags": subprocess.CREATE_NEW_PROCESS_GROUP}
    return {"start_new_session": True}


class KillStrategy(Protocol):
    """How ``App.kill()`` delivers its signal.

    ``group`` tells whether the signal reaches the whole process group.
    """

    group: bool

    def kill(self, process: asyncio.subprocess.Process, signum: signal.Signals) -> None:
        ...


class ProcessGroupKill:
    """Signal the process group of the process.

    Raises:
        OSError: Group id could not be resolved (ProcessLookupError when
            the process was already reaped) or the signal was not delivered
    """

    group = True

    def kill(self, process: asyncio.subprocess.Process, signum: signal.Signals) -> None:
        _ensure_unreaped(process)
        pgid = os.getpgid(process.pid)
        # killpg(pgid) is kill(-pgid): every member of the group gets it
        os.killpg(pgid, signum)
        logger.debug(f"Sent {signum.name} to process group pgid={pgid}")

    def __repr__(self) -> str:
        return "ProcessGroupKill()"


class SingleProcessKill:
    """Terminate only the immediate process."""

    group = False

    def kill(self, process: asyncio.subprocess.Process, signum: signal.Signals) -> None:
        _ensure_unreaped(process)
        # Process.kill() is SIGKILL on POSIX and TerminateProcess on Windows
        if IS_WINDOWS or signum == getattr(signal, "SIGKILL", None):
            process.kill()
        else:
            process.send_signal(signum)
        logger.debug(f"Killed pid={process.pid} (single process)")

    def __repr__(self) -> str:
        return "SingleProcessKill()"


def select_kill_strategy() -> KillStrategy:
    """Pick the kill strategy for this platform."""
    if supports_process_groups():
        return ProcessGroupKill()
    return SingleProcessKill()
