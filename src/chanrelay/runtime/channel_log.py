"""
Bounded per-channel log files.

Every channel writes its operator log (launch decisions, diagnostics, the
engine's own stdout/stderr) to ``<log_dir>/<name>.log``. After each write, and
on every supervisor poll, the file is trimmed to a maximum line count and
then to a maximum byte size, so it stays bounded no matter how long the
channel runs.

Trimming rewrites the file in place instead of replacing it: the engine
process holds an O_APPEND descriptor on the same file and keeps writing to
the end of the trimmed content.
"""

from __future__ import annotations

import logging
from pathlib import Path
from threading import Lock

from .clock import Clock, SystemClock, format_timestamp

_LEVELS = {
    "INFO": logging.INFO,
    "WARN": logging.WARNING,
    "ERROR": logging.ERROR,
}


def _split_lines(data: bytes) -> list[bytes]:
    """Split on newlines only; carriage-return progress updates stay inside one line."""
    lines = [line + b"\n" for line in data.split(b"\n")]
    last = lines.pop()[:-1]
    if last:
        lines.append(last)
    return lines


def trim_content(data: bytes, max_lines: int, max_bytes: int) -> bytes:
    """Keep the most recent ``max_lines`` lines, then the last ``max_bytes`` bytes."""
    lines = _split_lines(data)
    if len(lines) > max_lines:
        data = b"".join(lines[-max_lines:]) if max_lines > 0 else b""
    if len(data) > max_bytes:
        data = data[-max_bytes:] if max_bytes > 0 else b""
    return data


class ChannelLog:
    """
    Append-only, size-bounded log for a single channel.

    Lines are written as ``YYYY-MM-DD HH:MM:SS [LEVEL] message`` and mirrored
    to a stdlib logger named after the channel.
    """

    def __init__(
        self,
        path: Path | str,
        *,
        max_lines: int = 2000,
        max_bytes: int = 81920,
        clock: Clock | None = None,
        channel: str | None = None,
    ):
        self.path = Path(path)
        self.max_lines = max_lines
        self.max_bytes = max_bytes
        self._clock = clock or SystemClock()
        self._lock = Lock()
        self._logger = logging.getLogger(f"{__name__}.{channel or self.path.stem}")

    def info(self, message: str) -> None:
        self.write("INFO", message)

    def warning(self, message: str) -> None:
        self.write("WARN", message)

    def error(self, message: str) -> None:
        self.write("ERROR", message)

    def write(self, level: str, message: str) -> None:
        """Append one timestamped line and enforce the bounds."""
        line = f"{format_timestamp(self._clock.now())} [{level}] {message}\n"
        self._append(line.encode("utf-8", errors="replace"))
        self._logger.log(_LEVELS.get(level, logging.INFO), "%s", message)

    def append_output(self, text: str) -> None:
        """Append raw tool output (ffprobe, host status) verbatim."""
        if not text:
            return
        if not text.endswith("\n"):
            text += "\n"
        self._append(text.encode("utf-8", errors="replace"))

    def open_for_engine(self):
        """Open the log for the engine's stdout/stderr. Caller closes after spawn."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        return open(self.path, "ab", buffering=0)

    def enforce_limits(self) -> bool:
        """
        Trim the file to the configured bounds.

        Returns:
            True if the file was rewritten
        """
        with self._lock:
            return self._enforce_locked()

    def read_lines(self) -> list[str]:
        if not self.path.exists():
            return []
        return self.path.read_text(encoding="utf-8", errors="replace").splitlines()

    def _append(self, payload: bytes) -> None:
        with self._lock:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "ab") as f:
                f.write(payload)
            self._enforce_locked()

    def _enforce_locked(self) -> bool:
        if not self.path.exists():
            return False
        with open(self.path, "r+b") as f:
            data = f.read()
            trimmed = trim_content(data, self.max_lines, self.max_bytes)
            if len(trimmed) == len(data):
                return False
            # Carry over whatever the engine appended while we were trimming.
            # Bytes appended between this read and truncate() are still lost.
            late = f.read()
            f.seek(0)
            f.write(trimmed + late)
            f.truncate()
        return True


class ChannelLogFactory:
    """Creates ChannelLog instances rooted at one log directory."""

    def __init__(
        self,
        log_dir: Path | str,
        *,
        max_lines: int = 2000,
        max_bytes: int = 81920,
        clock: Clock | None = None,
    ):
        self.log_dir = Path(log_dir)
        self.max_lines = max_lines
        self.max_bytes = max_bytes
        self._clock = clock
        self._logs: dict[str, ChannelLog] = {}

    def for_channel(self, name: str) -> ChannelLog:
        log = self._logs.get(name)
        if log is None:
            log = ChannelLog(
                self.log_dir / f"{name}.log",
                max_lines=self.max_lines,
                max_bytes=self.max_bytes,
                clock=self._clock,
                channel=name,
            )
            self._logs[name] = log
        return log

    def purge(self) -> int:
        """Delete every ``*.log`` in the log directory. Returns the number removed."""
        self.log_dir.mkdir(parents=True, exist_ok=True)
        removed = 0
        for path in self.log_dir.glob("*.log"):
            if path.is_file():
                path.unlink()
                removed += 1
        return removed
