"""Process controller with asynchronous completion and group kill.

procshell runtime module v0.1.0

This module provides:
- App: one controller per external process (start / run / wait / kill)
- A completion watcher task that normalizes the OS result and publishes
  it exactly once
- Process group isolation so kill() reaches every descendant

Key design points:
- POSIX: start_new_session=True creates a new process group
- Windows: CREATE_NEW_PROCESS_GROUP, kill() terminates the process only
- A non-zero exit code is data; only "no exit code available" is an error
- The watcher publishes inside ``finally`` so waiters can never hang on a
  watcher fault

Example:
    app = App("sh", "-c", "exit 7")
    status = await app.run()
    if status.error is not None:
        raise status.error
    print(status.exit_code)  # 7
"""

from __future__ import annotations

import asyncio
import logging
import os
import signal
from collections.abc import Iterable, Sequence
from pathlib import Path
from typing import Any

from ..config import get_config
from ..errors import (
    AppAlreadyExitedError,
    AppAlreadyStartedError,
    AppError,
    AppLaunchError,
    AppNotStartedError,
    AppSignaledError,
    AppStreamError,
    AppWaitError,
)
from .completion import Completion
from .kill import KillStrategy, isolation_kwargs, select_kill_strategy
from .streams import plan_streams, start_pumps
from .types import ExitStatus

__all__ = ["App"]

logger = logging.getLogger(__name__)


def _env_to_mapping(entries: Sequence[str]) -> dict[str, str]:
    """Turn ``key=value`` entries into a mapping; later keys win."""
    env: dict[str, str] = {}
    for entry in entries:
        key, _, value = entry.partition("=")
        env[key] = value
    return env


def _interrupted() -> ExitStatus:
    return ExitStatus(0, AppWaitError("completion watcher interrupted"))


class App:
    """Controller for one external process.

    One controller runs one process lifetime: ``start`` succeeds at most
    once. Launch problems are raised; completion problems are reported in
    the returned ``ExitStatus``.

    Attributes:
        name: Executable name or path
        args: Arguments passed after the executable
        cwd: Working directory (None = inherit)
    """

    def __init__(
        self,
        name: str,
        *args: str,
        cwd: str | Path | None = None,
        kill_signal: signal.Signals | None = None,
        kill_strategy: KillStrategy | None = None,
    ) -> None:
        self.name = name
        self.args: tuple[str, ...] = tuple(str(a) for a in args)
        self.cwd = Path(cwd) if cwd is not None else None
        self._env: list[str] | None = None
        self._kill_signal = kill_signal if kill_signal is not None else get_config().kill_signal
        self._kill_strategy = kill_strategy if kill_strategy is not None else select_kill_strategy()

        self._process: asyncio.subprocess.Process | None = None
        self._completion: Completion | None = None
        self._watcher: asyncio.Task[None] | None = None
        self._pumps: list[asyncio.Task[Any]] = []

    # ------------------------------------------------------------------
    # Command specification
    # ------------------------------------------------------------------

    @property
    def argv(self) -> list[str]:
        return [self.name, *self.args]

    @property
    def env(self) -> list[str] | None:
        """Explicit environment entries, or None to inherit the parent's."""
        return list(self._env) if self._env is not None else None

    @property
    def kill_signal(self) -> signal.Signals:
        return self._kill_signal

    @property
    def kill_strategy(self) -> KillStrategy:
        return self._kill_strategy

    def add_environments(self, entries: Iterable[str]) -> None:
        """Append ``key=value`` entries to the process environment.

        The first call seeds the environment from ``os.environ`` so the
        entries extend the inherited environment instead of replacing it.

        Raises:
            ValueError: An entry has no ``=``
            AppAlreadyStartedError: The process was already started
        """
        if self._process is not None:
            raise AppAlreadyStartedError(
                f"Cannot change environment of started app \"{self.name}\""
            )
        entries = list(entries)
        for entry in entries:
            if "=" not in entry:
                raise ValueError(f"Environment entry must be key=value: {entry!r}")

        if self._env is None:
            self._env = [f"{k}={v}" for k, v in os.environ.items()]
        self._env.extend(entries)

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def pid(self) -> int | None:
        return self._process.pid if self._process is not None else None

    @property
    def started(self) -> bool:
        return self._process is not None

    @property
    def finished(self) -> bool:
        return self._completion is not None and self._completion.done()

    @property
    def completion(self) -> Completion | None:
        return self._completion

    @property
    def exit_status(self) -> ExitStatus | None:
        """Cached terminal status; None until the watcher has published.

        Reading it consumes nothing, so any number of callers can use it
        after ``wait()`` or the completion handle has fired.
        """
        if self._completion is None:
            return None
        return self._completion.status

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(
        self,
        stdin: Any = None,
        stdout: Any = None,
        stderr: Any = None,
    ) -> Completion:
        """Launch the process and return its completion handle.

        Args:
            stdin: None, bytes, a file/fd, or a readable object
            stdout: None, a file/fd, a writable object or a bytes callback
            stderr: Same as stdout, or subprocess.STDOUT to merge

        Returns:
            Completion handle; ``await`` it to receive the ExitStatus

        Raises:
            AppAlreadyStartedError: start() already succeeded once
            AppLaunchError: The OS could not create the process
            TypeError: An endpoint is of an unsupported kind
            ValueError: An endpoint cannot be used in its position
        """
        if self._process is not None:
            raise AppAlreadyStartedError(f"App \"{self.name}\" already started")

        plan = plan_streams(stdin, stdout, stderr)
        kwargs = isolation_kwargs()
        if self._env is not None:
            kwargs["env"] = _env_to_mapping(self._env)
        if self.cwd is not None:
            kwargs["cwd"] = self.cwd

        try:
            process = await asyncio.create_subprocess_exec(
                *self.argv,
                **plan.as_kwargs(),
                **kwargs,
            )
        except OSError as e:
            logger.debug(f"Failed to launch argv={self.argv[0]}: {e}")
            raise AppLaunchError(self.name, e) from e

        self._process = process
        self._completion = Completion()
        self._pumps = start_pumps(process, plan)
        self._watcher = asyncio.create_task(
            self._watch(process, self._completion),
            name=f"procshell-watch-{process.pid}",
        )
        self._watcher.add_done_callback(self._on_watcher_done)

        logger.debug(
            f"Started subprocess pid={process.pid} "
            f"argv={self.argv[0]} cwd={self.cwd}"
        )
        return self._completion

    async def run(
        self,
        stdin: Any = None,
        stdout: Any = None,
        stderr: Any = None,
    ) -> ExitStatus:
        """Start the process and wait for it to finish.

        Never raises for start failures: launch errors, state misuse and
        unsupported endpoints (TypeError, ValueError) come back as
        ``ExitStatus(0, error)``. Check ``error`` before ``exit_code``.
        """
        try:
            await self.start(stdin, stdout, stderr)
        except (AppError, TypeError, ValueError) as e:
            return ExitStatus(0, e)
        return await self.wait()

    async def wait(self) -> ExitStatus:
        """Wait for the single completion delivery.

        Returns:
            The terminal status, or ``ExitStatus(0, AppAlreadyExitedError())``
            when the delivery was already consumed

        Raises:
            AppNotStartedError: start() has not succeeded
        """
        if self._completion is None:
            raise AppNotStartedError(f"App \"{self.name}\" not started")
        return await self._completion.receive()

    async def kill(self) -> None:
        """Terminate the process (and its process group) and wait for it.

        Raises:
            AppNotStartedError: start() has not succeeded
            OSError: Group id lookup or signal delivery failed; no wait
                is attempted in that case
            AppWaitError: Completion could not be observed after the kill
        """
        if self._process is None or self._completion is None:
            raise AppNotStartedError(f"App \"{self.name}\" not started")

        logger.debug(
            f"Killing subprocess pid={self._process.pid} "
            f"signal={self._kill_signal.name} strategy={self._kill_strategy!r} "
            f"group={self._kill_strategy.group}"
        )
        self._kill_strategy.kill(self._process, self._kill_signal)

        status = await self.wait()
        if isinstance(status.error, AppAlreadyExitedError):
            # another waiter took the delivery; the cached status is the same
            status = await self._completion.settled()

        error = status.error
        if isinstance(error, AppSignaledError) and error.signal == self._kill_signal:
            logger.debug(f"Subprocess killed pid={self._process.pid}")
            return
        if error is not None:
            raise error

    # ------------------------------------------------------------------
    # Completion watcher
    # ------------------------------------------------------------------

    async def _watch(
        self,
        process: asyncio.subprocess.Process,
        completion: Completion,
    ) -> None:
        """Wait for the process, normalize its result, publish once."""
        status: ExitStatus | None = None
        try:
            returncode = await process.wait()
            status = await self._collect(returncode)
        except Exception as e:
            logger.warning(f"Completion watcher failed pid={process.pid}: {e}")
            error = AppWaitError(f"Waiting for pid={process.pid} failed: {e}")
            error.__cause__ = e
            status = ExitStatus(0, error)
        finally:
            if status is None:
                status = _interrupted()
            self._cancel_pumps()
            completion.publish(status)
            logger.debug(f"Subprocess completed pid={process.pid} status={status!r}")

    def _on_watcher_done(self, task: asyncio.Task[None]) -> None:
        # a watcher cancelled before its first step never runs its finally
        self._cancel_pumps()
        if self._completion is not None and not self._completion.done():
            logger.warning(f"Completion watcher ended without publishing pid={self.pid}")
            self._completion.publish(_interrupted())

    def _cancel_pumps(self) -> None:
        for pump in self._pumps:
            if not pump.done():
                pump.cancel()

    async def _collect(self, returncode: int) -> ExitStatus:
        results = await asyncio.gather(*self._pumps, return_exceptions=True)
        for result in results:
            if isinstance(result, AppStreamError):
                return ExitStatus(0, result)
            if isinstance(result, BaseException):
                error = AppStreamError(f"I/O pump failed: {result!r}")
                error.__cause__ = result
                return ExitStatus(0, error)
        return self._normalize(returncode)

    @staticmethod
    def _normalize(returncode: int) -> ExitStatus:
        if returncode < 0:
            # POSIX only: -N means terminated by signal N, no exit code
            return ExitStatus(0, AppSignaledError(-returncode))
        return ExitStatus(returncode, None)

    def __repr__(self) -> str:
        if self._process is None:
            state = "created"
        elif not self.finished:
            state = f"running pid={self._process.pid}"
        else:
            state = f"finished {self.exit_status!r}"
        return f"App({self.argv!r}, {state})"
