"""Blocking helpers for synchronous callers.

Each call runs its own event loop with anyio, so these must not be used
from inside a running loop; use the async API there.
"""

from __future__ import annotations

import functools
from collections.abc import Iterable
from pathlib import Path
from typing import Any

import anyio

from .locator import ExecutableLocator
from .locator import check_is_installed as _check_is_installed
from .runtime.app import App
from .runtime.types import ExitStatus

__all__ = ["run", "check_is_installed"]


async def _run_app(app: App, stdin: Any, stdout: Any, stderr: Any) -> ExitStatus:
    return await app.run(stdin, stdout, stderr)


def run(
    name: str,
    *args: str,
    env: Iterable[str] | None = None,
    cwd: str | Path | None = None,
    stdin: Any = None,
    stdout: Any = None,
    stderr: Any = None,
) -> ExitStatus:
    """Run a process to completion and return its status.

    Args:
        name: Executable
        *args: Arguments
        env: Extra ``key=value`` entries added to the inherited environment
        cwd: Working directory
        stdin/stdout/stderr: Endpoints as accepted by ``App.start``
    """
    app = App(name, *args, cwd=cwd)
    if env is not None:
        app.add_environments(env)
    return anyio.run(_run_app, app, stdin, stdout, stderr, backend="asyncio")


def check_is_installed(name: str, locator: ExecutableLocator | None = None) -> str:
    """Blocking variant of ``procshell.locator.check_is_installed``."""
    return anyio.run(
        functools.partial(_check_is_installed, name, locator=locator),
        backend="asyncio",
    )
