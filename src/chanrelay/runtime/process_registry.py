"""
Process registry: finds relay processes bound to an output target.

The supervisor does not rely on holding a handle to the engine process;
relays may be killed or replaced from outside. Liveness is decided by
scanning the OS process table for an engine process whose argv contains the
channel's output target as an exact token.
"""

from __future__ import annotations

import logging
import os
import signal
from dataclasses import dataclass
from typing import Protocol

import psutil

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BoundProcess:
    """An engine process observed in the process table."""

    pid: int
    argv: tuple[str, ...]


class ProcessRegistry(Protocol):
    """Capability used by the supervisor and launcher to observe relays."""

    def find_bound(self, target: str) -> list[BoundProcess]:
        """Return every running engine process whose argv contains ``target``."""
        ...

    def kill_bound(self, target: str) -> list[int]:
        """Force-kill every process bound to ``target``; return the killed pids."""
        ...


class PsutilProcessRegistry:
    """
    ProcessRegistry backed by psutil.

    Args:
        engine_name: Substring identifying engine processes (matched against
            the process name and argv[0])
    """

    def __init__(self, engine_name: str = "ffmpeg"):
        self.engine_name = os.path.basename(engine_name)

    def _is_engine(self, name: str, argv: list[str]) -> bool:
        if self.engine_name in (name or ""):
            return True
        return bool(argv) and self.engine_name in os.path.basename(argv[0])

    def find_bound(self, target: str) -> list[BoundProcess]:
        found: list[BoundProcess] = []
        for proc in psutil.process_iter(["pid", "name", "cmdline"]):
            try:
                info = proc.info
                argv = info.get("cmdline") or []
                if not self._is_engine(info.get("name") or "", argv):
                    continue
                if target in argv[1:]:
                    found.append(BoundProcess(pid=info["pid"], argv=tuple(argv)))
            except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
                continue
        return found

    def kill_bound(self, target: str) -> list[int]:
        killed: list[int] = []
        for bound in self.find_bound(target):
            try:
                psutil.Process(bound.pid).send_signal(signal.SIGKILL)
                killed.append(bound.pid)
            except psutil.NoSuchProcess:
                _logger.debug("Process %d exited before it could be killed", bound.pid)
            except psutil.AccessDenied:
                _logger.warning("Not permitted to kill process %d bound to %s", bound.pid, target)
        return killed
