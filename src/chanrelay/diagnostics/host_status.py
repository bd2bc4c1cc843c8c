"""
Host status diagnostics for chanrelay.

Captures memory, disk and GPU state into a channel log right before a relay
is launched, so a crash can be correlated with resource exhaustion.
"""

from __future__ import annotations

import shutil
import subprocess
from pathlib import Path

import psutil


def _gib(value: float) -> str:
    return f"{value / (1024 ** 3):.1f}G"


def memory_report() -> str:
    mem = psutil.virtual_memory()
    swap = psutil.swap_memory()
    return (
        f"Mem:  total={_gib(mem.total)} used={_gib(mem.used)} available={_gib(mem.available)} "
        f"({mem.percent:.0f}% used)\n"
        f"Swap: total={_gib(swap.total)} used={_gib(swap.used)} ({swap.percent:.0f}% used)"
    )


def disk_report(paths: list[Path | str] | None = None) -> str:
    """Usage of each path's filesystem (defaults to ``/``)."""
    lines = []
    for path in paths or ["/"]:
        try:
            usage = psutil.disk_usage(str(path))
        except OSError as e:
            lines.append(f"Disk {path}: unavailable ({e})")
            continue
        lines.append(
            f"Disk {path}: total={_gib(usage.total)} used={_gib(usage.used)} "
            f"free={_gib(usage.free)} ({usage.percent:.0f}% used)"
        )
    return "\n".join(lines)


def gpu_report(timeout: float = 8.0) -> str | None:
    """Output of ``nvidia-smi`` when it is installed, else None."""
    exe = shutil.which("nvidia-smi")
    if exe is None:
        return None
    try:
        result = subprocess.run(
            [exe],
            capture_output=True,
            text=True,
            errors="replace",
            timeout=timeout,
            stdin=subprocess.DEVNULL,
        )
    except (subprocess.TimeoutExpired, OSError) as e:
        return f"nvidia-smi unavailable: {e}"
    return (result.stdout or "") + (result.stderr or "")


def collect_host_status(paths: list[Path | str] | None = None) -> str:
    """Combined memory, disk and GPU report."""
    sections = [memory_report(), disk_report(paths)]
    gpu = gpu_report()
    if gpu:
        sections.append(gpu.rstrip())
    return "\n".join(sections)
