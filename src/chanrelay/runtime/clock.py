"""Clock abstractions used by the channel supervisor.

The supervisor timestamps failures and pause deadlines in wall-clock epoch
seconds. Injecting the clock keeps the failure-window and pause-expiry logic
deterministic under test.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import datetime
from threading import Lock
from typing import Callable, Protocol, runtime_checkable

TimeFn = Callable[[], float]


@runtime_checkable
class Clock(Protocol):
    """Protocol implemented by supervisor clocks."""

    def now(self) -> float:
        """Return the current time in epoch seconds."""


@dataclass
class SystemClock:
    """Clock backed by :func:`time.time`.

    Parameters
    ----------
    time_fn:
        Injectable time source, defaults to :func:`time.time`.
    """

    time_fn: TimeFn = field(default=time.time)

    def now(self) -> float:
        """Return the current time in epoch seconds."""
        return self.time_fn()


class SteppedClock:
    """Deterministic clock used for tests.

    Time advances only when :meth:`advance` is called.
    """

    def __init__(self, start: float = 0.0) -> None:
        self._current = start
        self._lock = Lock()

    def now(self) -> float:
        with self._lock:
            return self._current

    def advance(self, seconds: float) -> float:
        """Advance the clock by ``seconds`` (must be non-negative)."""
        if seconds < 0.0:
            raise ValueError("seconds must be non-negative")
        with self._lock:
            self._current += seconds
            return self._current


def format_timestamp(epoch: float) -> str:
    """Render epoch seconds as local ``YYYY-MM-DD HH:MM:SS``."""
    return datetime.fromtimestamp(epoch).strftime("%Y-%m-%d %H:%M:%S")
