"""One-shot completion handle.

A single primitive serves both as the completion channel (one delivery,
then "already exited") and as the cached terminal result (readable any
number of times without consuming anything).
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Generator
from typing import Any

from ..errors import AppAlreadyExitedError
from .types import ExitStatus

__all__ = ["Completion"]

logger = logging.getLogger(__name__)


class Completion:
    """Completion handle returned by ``App.start()``.

    The watcher publishes exactly once. The first ``receive()`` to resume
    after the publish gets the status; every later receiver gets
    ``ExitStatus(0, AppAlreadyExitedError())`` immediately. ``status``
    exposes the published value for any number of readers.

    The handle is awaitable: ``await completion`` is ``await
    completion.receive()``.

    Must be created inside a running event loop.
    """

    def __init__(self) -> None:
        self._future: asyncio.Future[ExitStatus] = (
            asyncio.get_running_loop().create_future()
        )
        self._delivered = False

    def publish(self, status: ExitStatus) -> bool:
        """Publish the terminal status.

        Returns:
            True if this call published, False if a status already existed
        """
        if self._future.done():
            logger.warning(f"Completion already published, dropping {status!r}")
            return False
        self._future.set_result(status)
        return True

    def done(self) -> bool:
        """Whether the terminal status has been published."""
        return self._future.done()

    @property
    def delivered(self) -> bool:
        """Whether the single delivery has been consumed."""
        return self._delivered

    @property
    def status(self) -> ExitStatus | None:
        """Published status, or None before completion."""
        if not self._future.done():
            return None
        return self._future.result()

    async def settled(self) -> ExitStatus:
        """Wait for the publish without consuming the delivery."""
        # shield: a cancelled waiter must not cancel the shared future
        return await asyncio.shield(self._future)

    async def receive(self) -> ExitStatus:
        """Wait for the single delivery.

        Returns:
            The published status for the first receiver, an
            ``AppAlreadyExitedError`` status for everyone after
        """
        if self._delivered:
            return ExitStatus(0, AppAlreadyExitedError())
        status = await self.settled()
        if self._delivered:
            return ExitStatus(0, AppAlreadyExitedError())
        self._delivered = True
        return status

    def __await__(self) -> Generator[Any, None, ExitStatus]:
        return self.receive().__await__()

    def __repr__(self) -> str:
        if not self._future.done():
            state = "pending"
        elif self._delivered:
            state = "delivered"
        else:
            state = "ready"
        return f"Completion({state}, status={self.status!r})"
