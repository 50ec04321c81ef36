"""Standard I/O wiring for a launched process.

Each of the three endpoints is one of:

- None: the OS null device
- an int file descriptor or anything with a working ``fileno()``:
  handed to the OS directly
- stdin only: bytes, or a readable object without a usable fileno
  (``io.BytesIO``, ``io.StringIO``): fed through a pipe by a pump task
- stdout/stderr: a writable object without a usable fileno, or a callable
  taking bytes: filled from a pipe by a pump task

Pump tasks never stop reading early. A failing sink is detached and the
rest of the output is discarded, so the child cannot block on a full pipe.
"""

from __future__ import annotations

import asyncio
import codecs
import contextlib
import io
import logging
import subprocess
from dataclasses import dataclass, field
from typing import Any

from ..errors import AppStreamError

__all__ = [
    "CHUNK_SIZE",
    "StreamPlan",
    "plan_streams",
    "start_pumps",
]

logger = logging.getLogger(__name__)

CHUNK_SIZE = 4096

_BYTES_TYPES = (bytes, bytearray, memoryview)


def _usable_fileno(obj: Any) -> int | None:
    """Return obj's file descriptor, or None if it has no real one."""
    if isinstance(obj, bool):
        return None
    if isinstance(obj, int):
        if obj == subprocess.PIPE:
            raise ValueError("PIPE is managed internally; pass a sink object instead")
        return obj
    fileno = getattr(obj, "fileno", None)
    if fileno is None:
        return None
    try:
        return fileno()
    except (OSError, ValueError):
        # io.BytesIO and friends raise io.UnsupportedOperation
        return None


class _Sink:
    """Adapter from raw output chunks to a caller-provided sink."""

    def __init__(self, target: Any) -> None:
        self._target = target
        self._decoder = None
        if isinstance(target, io.TextIOBase):
            encoding = getattr(target, "encoding", None) or "utf-8"
            self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")

    def feed(self, chunk: bytes) -> None:
        if self._decoder is not None:
            text = self._decoder.decode(chunk)
            if text:
                self._target.write(text)
        elif callable(getattr(self._target, "write", None)):
            self._target.write(chunk)
        else:
            self._target(chunk)

    def finish(self) -> None:
        if self._decoder is not None:
            tail = self._decoder.decode(b"", final=True)
            if tail:
                self._target.write(tail)


@dataclass
class StreamPlan:
    """Arguments for create_subprocess_exec plus the pumps they require."""

    stdin: Any = subprocess.DEVNULL
    stdout: Any = subprocess.DEVNULL
    stderr: Any = subprocess.DEVNULL
    stdin_source: Any = None
    sinks: dict[str, _Sink] = field(default_factory=dict)

    def as_kwargs(self) -> dict[str, Any]:
        return {"stdin": self.stdin, "stdout": self.stdout, "stderr": self.stderr}


def _plan_stdin(plan: StreamPlan, stdin: Any) -> None:
    if stdin is None:
        return
    if isinstance(stdin, _BYTES_TYPES):
        plan.stdin = subprocess.PIPE
        plan.stdin_source = bytes(stdin)
        return
    fd = _usable_fileno(stdin)
    if fd is not None:
        plan.stdin = fd
        return
    if callable(getattr(stdin, "read", None)):
        plan.stdin = subprocess.PIPE
        plan.stdin_source = stdin
        return
    raise TypeError(f"Unsupported stdin endpoint: {type(stdin).__name__}")


def _plan_output(plan: StreamPlan, name: str, target: Any) -> None:
    if target is None:
        return
    if name == "stderr" and isinstance(target, int) and target == subprocess.STDOUT:
        plan.stderr = subprocess.STDOUT
        return
    fd = _usable_fileno(target)
    if fd is not None:
        setattr(plan, name, fd)
        return
    if callable(getattr(target, "write", None)) or callable(target):
        setattr(plan, name, subprocess.PIPE)
        plan.sinks[name] = _Sink(target)
        return
    raise TypeError(f"Unsupported {name} endpoint: {type(target).__name__}")


def plan_streams(stdin: Any = None, stdout: Any = None, stderr: Any = None) -> StreamPlan:
    """Decide how each endpoint is wired before launch.

    Raises:
        TypeError: An endpoint is of an unsupported kind
        ValueError: subprocess.PIPE was passed explicitly
    """
    plan = StreamPlan()
    _plan_stdin(plan, stdin)
    _plan_output(plan, "stdout", stdout)
    _plan_output(plan, "stderr", stderr)
    return plan


async def _feed_stdin(writer: asyncio.StreamWriter, source: Any) -> None:
    """Write the stdin source into the pipe, then close it."""
    try:
        if isinstance(source, bytes):
            writer.write(source)
            await writer.drain()
        else:
            while True:
                chunk = source.read(CHUNK_SIZE)
                if not chunk:
                    break
                if isinstance(chunk, str):
                    chunk = chunk.encode("utf-8")
                writer.write(chunk)
                await writer.drain()
    except (BrokenPipeError, ConnectionResetError):
        # child exited without reading all of its input
        logger.debug("stdin pipe closed by child before input was consumed")
    finally:
        writer.close()
        with contextlib.suppress(BrokenPipeError, ConnectionResetError):
            await writer.wait_closed()


async def _drain(reader: asyncio.StreamReader, sink: _Sink, name: str) -> int:
    """Copy a pipe into its sink until EOF.

    Returns:
        Number of bytes read from the pipe

    Raises:
        AppStreamError: The sink failed (raised only after EOF)
    """
    total = 0
    failure: Exception | None = None
    while True:
        chunk = await reader.read(CHUNK_SIZE)
        if not chunk:
            break
        total += len(chunk)
        if failure is not None:
            continue
        try:
            sink.feed(chunk)
        except Exception as e:
            logger.debug(f"{name} sink failed, discarding remaining output: {e}")
            failure = e

    if failure is None:
        try:
            sink.finish()
        except Exception as e:
            failure = e

    if failure is not None:
        raise AppStreamError(f"Copying {name} failed: {failure}") from failure
    return total


def start_pumps(
    process: asyncio.subprocess.Process,
    plan: StreamPlan,
) -> list[asyncio.Task[Any]]:
    """Spawn the pump tasks a plan requires."""
    tasks: list[asyncio.Task[Any]] = []

    if plan.stdin_source is not None and process.stdin is not None:
        tasks.append(asyncio.create_task(
            _feed_stdin(process.stdin, plan.stdin_source),
            name=f"procshell-stdin-{process.pid}",
        ))

    for name in ("stdout", "stderr"):
        sink = plan.sinks.get(name)
        reader = getattr(process, name)
        if sink is not None and reader is not None:
            tasks.append(asyncio.create_task(
                _drain(reader, sink, name),
                name=f"procshell-{name}-{process.pid}",
            ))

    return tasks
