"""procshell exception classes.

Lifecycle misuse and launch problems are raised. Completion problems are
carried inside ``ExitStatus.error`` so callers can inspect them after the
fact.
"""

from __future__ import annotations

import signal as _signal

__all__ = [
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


class AppError(Exception):
    """Base exception for procshell."""
    pass


class AppLaunchError(AppError):
    """The OS refused to create the process.

    Attributes:
        name: Executable that failed to launch
        os_error: Underlying OSError (also chained as ``__cause__``)
    """

    def __init__(self, name: str, os_error: OSError) -> None:
        self.name = name
        self.os_error = os_error
        super().__init__(f"Failed to launch \"{name}\": {os_error}")


class AppStateError(AppError):
    """Operation is not valid in the controller's current state."""
    pass


class AppNotStartedError(AppStateError):
    """The app has not been started yet."""
    pass


class AppAlreadyStartedError(AppStateError):
    """The app was already started; one controller runs one process."""
    pass


class AppAlreadyExitedError(AppError):
    """The single completion delivery was already consumed."""

    def __init__(self, message: str = "Exited already") -> None:
        super().__init__(message)


class AppWaitError(AppError):
    """Process completion could not be interpreted as a normal exit."""
    pass


class AppSignaledError(AppWaitError):
    """Process was terminated by an uncaught signal.

    Attributes:
        signal: Terminating signal (``signal.Signals`` when known, else int)
    """

    def __init__(self, signum: int) -> None:
        try:
            self.signal: _signal.Signals | int = _signal.Signals(signum)
            label = self.signal.name
        except ValueError:
            self.signal = signum
            label = str(signum)
        super().__init__(f"Process terminated by signal {label}")


class AppStreamError(AppWaitError):
    """Copying the process's standard I/O failed."""
    pass


class AppNotInstalledError(AppError):
    """Executable could not be found on the search path.

    Attributes:
        name: Executable that was looked up
    """

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"App \"{name}\" does not exist")
