"""
Cooperative cancellation for long-running simulations.

The engine polls the token between work units; it never interrupts a
unit midway. A token can also carry a deadline, after which it reports
itself cancelled with reason "timeout".
"""

import threading
import time
from typing import Optional


class CancellationToken:
    """Thread-safe cancellation flag with an optional deadline."""

    def __init__(self, timeout_seconds: Optional[float] = None):
        self._event = threading.Event()
        self._deadline: Optional[float] = (
            time.monotonic() + timeout_seconds if timeout_seconds is not None else None
        )
        self.timeout_seconds = timeout_seconds

    def cancel(self) -> None:
        self._event.set()

    @property
    def timed_out(self) -> bool:
        return self._deadline is not None and time.monotonic() >= self._deadline

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set() or self.timed_out

    @property
    def reason(self) -> Optional[str]:
        if self._event.is_set():
            return "cancelled"
        if self.timed_out:
            return "timeout"
        return None

    @classmethod
    def with_timeout(cls, timeout_seconds: float) -> "CancellationToken":
        return cls(timeout_seconds=timeout_seconds)

    def combined_with_timeout(self, timeout_seconds: Optional[float]) -> "CancellationToken":
        """A token that fires when either this token or the new deadline fires."""
        if timeout_seconds is None:
            return self
        return _LinkedToken(self, timeout_seconds)


class _LinkedToken(CancellationToken):
    def __init__(self, parent: CancellationToken, timeout_seconds: float):
        super().__init__(timeout_seconds=timeout_seconds)
        self._parent = parent

    def cancel(self) -> None:
        self._parent.cancel()
        super().cancel()

    @property
    def is_cancelled(self) -> bool:
        return self._parent.is_cancelled or super().is_cancelled

    @property
    def reason(self) -> Optional[str]:
        return self._parent.reason or super().reason
