"""Runtime value types.

procshell runtime module v0.1.0
"""

from __future__ import annotations

from dataclasses import dataclass

__all__ = ["ExitStatus"]


@dataclass(frozen=True)
class ExitStatus:
    """Terminal result of one process lifetime.

    Exactly one of the two fields is meaningful:

    - normal exit: ``exit_code`` holds the code, ``error`` is None
      (a non-zero code is data, not an error)
    - launch failure or abnormal termination: ``error`` is set and
      ``exit_code`` is 0

    Always check ``error`` before trusting ``exit_code``.

    Attributes:
        exit_code: Numeric exit code of the process
        error: Exception describing why no exit code is available
    """

    exit_code: int = 0
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        """Process ran and exited with code 0."""
        return self.error is None and self.exit_code == 0

    @property
    def failed(self) -> bool:
        """No exit code is available; see ``error``."""
        return self.error is not None

    def raise_for_error(self) -> "ExitStatus":
        """Raise ``error`` if set, otherwise return self."""
        if self.error is not None:
            raise self.error
        return self

    def __repr__(self) -> str:
        if self.error is not None:
            return f"ExitStatus(error={type(self.error).__name__}: {self.error})"
        return f"ExitStatus(exit_code={self.exit_code})"
