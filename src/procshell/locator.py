"""Executable lookup.

``PathLocator`` searches PATH in-process with ``shutil.which``.
``WhichLocator`` runs the ``which`` utility through ``App.run`` for callers
that want the system tool's answer. ``whereis`` is not an option here
because it does not report a failed search through its exit code.
"""

from __future__ import annotations

import inspect
import io
import logging
import shutil
from collections.abc import Awaitable
from typing import Protocol

from .config import LocatorKind, get_config
from .errors import AppNotInstalledError
from .runtime.app import App

__all__ = [
    "ExecutableLocator",
    "PathLocator",
    "WhichLocator",
    "default_locator",
    "check_is_installed",
]

logger = logging.getLogger(__name__)


class ExecutableLocator(Protocol):
    """Resolve an executable name to a path, or None when absent.

    ``locate`` may be a plain function or a coroutine function.
    """

    def locate(self, name: str) -> str | None | Awaitable[str | None]:
        ...


class PathLocator:
    """Search PATH with shutil.which (no subprocess)."""

    def __init__(self, path: str | None = None) -> None:
        self.path = path

    def locate(self, name: str) -> str | None:
        return shutil.which(name, path=self.path)

    def __repr__(self) -> str:
        return f"PathLocator(path={self.path!r})"


class WhichLocator:
    """Ask the ``which`` utility.

    Raises:
        AppLaunchError: ``which`` itself could not be run
    """

    def __init__(self, command: str = "which") -> None:
        self.command = command

    async def locate(self, name: str) -> str | None:
        out = io.BytesIO()
        status = await App(self.command, name).run(stdout=out)
        status.raise_for_error()
        if status.exit_code != 0:
            logger.debug(f"{self.command} {name} exited with {status.exit_code}")
            return None
        lines = out.getvalue().decode("utf-8", errors="replace").splitlines()
        return lines[0].strip() if lines else name

    def __repr__(self) -> str:
        return f"WhichLocator(command={self.command!r})"


def default_locator() -> ExecutableLocator:
    """Locator selected by PROCSHELL_LOCATOR."""
    if get_config().locator is LocatorKind.WHICH:
        return WhichLocator()
    return PathLocator()


async def check_is_installed(
    app: App | str,
    locator: ExecutableLocator | None = None,
) -> str:
    """Make sure an executable can be found.

    Args:
        app: App (its ``name`` is looked up) or an executable name
        locator: Lookup strategy; defaults to the configured one

    Returns:
        Resolved path of the executable

    Raises:
        AppNotInstalledError: The executable was not found
        AppLaunchError: The lookup utility itself could not be run
    """
    name = app.name if isinstance(app, App) else app
    locator = locator if locator is not None else default_locator()

    found = locator.locate(name)
    if inspect.isawaitable(found):
        found = await found

    if not found:
        raise AppNotInstalledError(name)
    logger.debug(f"Located {name} at {found} via {locator!r}")
    return found
