"""Kill tests.

Test coverage:
- Platform capability and strategy selection
- Process group isolation
- Group kill reaches descendants
- Single-process kill
- Kill error paths (group lookup, signal delivery, reaped pid)
- Kill raising captured completion errors
"""

from __future__ import annotations

import asyncio
import io
import logging
import os
import signal
import sys
from pathlib import Path

import pytest

from conftest import fake_app_args, pid_alive, wait_until

from procshell.config import DEFAULT_KILL_SIGNAL
from procshell.errors import (
    AppAlreadyExitedError,
    AppNotStartedError,
    AppSignaledError,
    AppStreamError,
)
from procshell.runtime.app import App
from procshell.runtime.kill import (
    IS_WINDOWS,
    ProcessGroupKill,
    SingleProcessKill,
    isolation_kwargs,
    select_kill_strategy,
    supports_process_groups,
)


def fake(*args: str, **kwargs) -> App:
    return App(sys.executable, *fake_app_args(*args), **kwargs)


async def read_child_pid(pidfile: Path, timeout: float = 10.0) -> int:
    deadline = asyncio.get_running_loop().time() + timeout
    while not pidfile.exists():
        if asyncio.get_running_loop().time() > deadline:
            raise TimeoutError(f"{pidfile} never appeared")
        await asyncio.sleep(0.05)
    return int(pidfile.read_text())


# =============================================================================
# Capability Tests
# =============================================================================


class TestCapability:
    """Test platform capability resolution."""

    def test_supports_process_groups_matches_platform(self):
        assert supports_process_groups() is (not IS_WINDOWS)

    def test_strategy_selected_at_construction(self):
        app = App("anything")
        expected = ProcessGroupKill if supports_process_groups() else SingleProcessKill
        assert isinstance(app.kill_strategy, expected)
        assert isinstance(select_kill_strategy(), expected)

    def test_explicit_strategy(self):
        strategy = SingleProcessKill()
        app = App("anything", kill_strategy=strategy)
        assert app.kill_strategy is strategy

    def test_strategy_group_flag(self):
        assert ProcessGroupKill().group is True
        assert SingleProcessKill().group is False

    def test_isolation_kwargs(self):
        kwargs = isolation_kwargs()
        if IS_WINDOWS:
            assert "creationflags" in kwargs
        else:
            assert kwargs == {"start_new_session": True}


# =============================================================================
# Isolation Tests
# =============================================================================


@pytest.mark.skipif(IS_WINDOWS, reason="POSIX-specific test")
class TestProcessGroup:
    """Test that the process leads its own process group."""

    @pytest.mark.asyncio
    async def test_process_group_leader(self, python: str):
        out = io.BytesIO()
        app = App(python, "-c", "import os; print(os.getpid(), os.getpgid(0))")

        status = await app.run(stdout=out)

        pid, pgid = out.getvalue().decode().split()
        assert status.ok
        assert pid == pgid == str(app.pid)

    @pytest.mark.asyncio
    async def test_new_session(self, python: str):
        out = io.BytesIO()
        app = App(python, "-c", "import os; print(os.getsid(0))")

        await app.run(stdout=out)

        assert out.getvalue().decode().strip() != str(os.getsid(os.getpid()))


# =============================================================================
# Kill Tests
# =============================================================================


class TestKill:
    """Test forced termination."""

    @pytest.mark.asyncio
    async def test_kill_before_start(self):
        with pytest.raises(AppNotStartedError):
            await fake().kill()

    @pytest.mark.asyncio
    async def test_kill_long_running(self):
        """kill() returns once the watcher has published."""
        app = fake("--sleep", "60")
        await app.start()

        await asyncio.wait_for(app.kill(), timeout=10.0)

        assert app.finished is True
        status = app.exit_status
        assert status is not None
        if IS_WINDOWS:
            assert status.error is None
        else:
            assert status.exit_code == 0
            assert isinstance(status.error, AppSignaledError)
            assert status.error.signal == signal.SIGKILL

    @pytest.mark.asyncio
    async def test_wait_after_kill_reports_already_exited(self):
        """kill() consumes the delivery through wait()."""
        app = fake("--sleep", "60")
        await app.start()
        await app.kill()

        status = await asyncio.wait_for(app.wait(), timeout=1.0)
        assert isinstance(status.error, AppAlreadyExitedError)

    @pytest.mark.asyncio
    @pytest.mark.skipif(IS_WINDOWS, reason="POSIX-specific test")
    async def test_kill_reaches_descendants(self, tmp_path: Path):
        """Group kill terminates children the process spawned."""
        pidfile = tmp_path / "child.pid"
        app = fake("--spawn-child", str(pidfile), "--sleep", "60")
        await app.start()

        child_pid = await read_child_pid(pidfile)
        assert pid_alive(child_pid)

        await asyncio.wait_for(app.kill(), timeout=10.0)

        assert wait_until(lambda: not pid_alive(child_pid))

    @pytest.mark.asyncio
    @pytest.mark.skipif(IS_WINDOWS, reason="POSIX-specific test")
    async def test_kill_reaches_descendants_with_pipes(self, tmp_path: Path):
        """Pumps finish because every holder of the pipes is gone."""
        pidfile = tmp_path / "child.pid"
        out = io.BytesIO()
        app = fake("--spawn-child", str(pidfile), "--stdout", "ready", "--sleep", "60")
        await app.start(stdout=out)

        child_pid = await read_child_pid(pidfile)
        await asyncio.wait_for(app.kill(), timeout=10.0)

        assert out.getvalue() == b"ready"
        assert wait_until(lambda: not pid_alive(child_pid))

    @pytest.mark.asyncio
    @pytest.mark.skipif(IS_WINDOWS, reason="POSIX-specific test")
    async def test_single_process_kill_spares_descendants(self, tmp_path: Path):
        """Without group kill only the immediate process dies."""
        pidfile = tmp_path / "child.pid"
        app = fake(
            "--spawn-child", str(pidfile), "--sleep", "60",
            kill_strategy=SingleProcessKill(),
        )
        await app.start()
        child_pid = await read_child_pid(pidfile)

        try:
            await asyncio.wait_for(app.kill(), timeout=10.0)
            assert app.finished is True
            assert pid_alive(child_pid)
        finally:
            try:
                os.kill(child_pid, signal.SIGKILL)
            except ProcessLookupError:
                pass

    @pytest.mark.asyncio
    @pytest.mark.skipif(IS_WINDOWS, reason="POSIX-specific test")
    async def test_custom_kill_signal(self):
        """The configured signal is the one sent; its own termination is not an error."""
        app = fake("--sleep", "60", kill_signal=signal.SIGTERM)
        await app.start()

        await asyncio.wait_for(app.kill(), timeout=10.0)

        assert isinstance(app.exit_status.error, AppSignaledError)
        assert app.exit_status.error.signal == signal.SIGTERM

    @pytest.mark.asyncio
    @pytest.mark.skipif(IS_WINDOWS, reason="POSIX-specific test")
    async def test_kill_after_exit_reports_lookup_error(self):
        """Killing a reaped process is refused before any pid lookup."""
        app = fake()
        await app.run()

        with pytest.raises(ProcessLookupError):
            await app.kill()

    @pytest.mark.asyncio
    async def test_signal_failure_propagates_without_wait(self):
        """A failed signal delivery is raised and the delivery is untouched."""

        class Refusing:
            group = True

            def kill(self, process, signum):
                raise PermissionError("not allowed")

        app = fake("--sleep", "60", kill_strategy=Refusing())
        await app.start()
        try:
            with pytest.raises(PermissionError):
                await app.kill()
            assert app.completion.delivered is False
            assert app.finished is False
        finally:
            app._process.kill()
            await app.wait()

    @pytest.mark.asyncio
    async def test_kill_while_another_waiter_holds_delivery(self):
        """kill() falls back to the cached status when a waiter won the race."""
        app = fake("--sleep", "60")
        await app.start()

        waiter = asyncio.create_task(app.wait())
        await asyncio.sleep(0.05)

        await asyncio.wait_for(app.kill(), timeout=10.0)
        status = await waiter

        assert app.exit_status is not None
        assert status == app.exit_status or isinstance(status.error, AppAlreadyExitedError)

    @pytest.mark.asyncio
    @pytest.mark.skipif(IS_WINDOWS, reason="POSIX-specific test")
    async def test_kill_logs_group_scope(self, caplog):
        """The kill log line says whether the whole group was signalled."""
        caplog.set_level(logging.DEBUG, logger="procshell")
        app = fake("--sleep", "60")
        await app.start()

        await asyncio.wait_for(app.kill(), timeout=10.0)

        assert any("group=True" in record.getMessage() for record in caplog.records)

    @pytest.mark.parametrize("strategy", [ProcessGroupKill(), SingleProcessKill()])
    def test_reaped_process_is_not_signalled(self, strategy, monkeypatch):
        """A reaped pid may be reused, so it is never looked up or signalled."""

        class Reaped:
            pid = 424242
            returncode = 0

            def kill(self):
                pytest.fail("kill() called on a reaped process")

            def send_signal(self, signum):
                pytest.fail("send_signal() called on a reaped process")

        def no_lookup(*args):
            pytest.fail("pid looked up after the process was reaped")

        monkeypatch.setattr(os, "getpgid", no_lookup, raising=False)
        monkeypatch.setattr(os, "killpg", no_lookup, raising=False)

        with pytest.raises(ProcessLookupError):
            strategy.kill(Reaped(), DEFAULT_KILL_SIGNAL)

    @pytest.mark.asyncio
    @pytest.mark.skipif(IS_WINDOWS, reason="POSIX-specific test")
    async def test_kill_raises_stream_error(self):
        """A sink failure captured by the watcher is raised from kill()."""
        calls: list[bytes] = []

        def broken(chunk: bytes) -> None:
            calls.append(chunk)
            raise RuntimeError("sink is broken")

        app = fake("--stdout", "x" * 100000, "--sleep", "60")
        await app.start(stdout=broken)

        loop = asyncio.get_running_loop()
        deadline = loop.time() + 10.0
        while not calls and loop.time() < deadline:
            await asyncio.sleep(0.05)
        assert calls

        with pytest.raises(AppStreamError) as exc_info:
            await asyncio.wait_for(app.kill(), timeout=10.0)
        assert isinstance(exc_info.value.__cause__, RuntimeError)
        assert app.finished is True

    @pytest.mark.asyncio
    @pytest.mark.skipif(IS_WINDOWS, reason="POSIX-specific test")
    async def test_kill_raises_foreign_signal(self):
        """Termination by a signal other than the kill signal is raised."""

        class TermGroup:
            group = True

            def kill(self, process, signum):
                os.killpg(os.getpgid(process.pid), signal.SIGTERM)

        app = fake("--sleep", "60", kill_signal=signal.SIGKILL, kill_strategy=TermGroup())
        await app.start()

        with pytest.raises(AppSignaledError) as exc_info:
            await asyncio.wait_for(app.kill(), timeout=10.0)
        assert exc_info.value.signal == signal.SIGTERM
