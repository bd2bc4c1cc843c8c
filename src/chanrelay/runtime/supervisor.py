"""Channel supervisor: keeps every channel's relay running.

Launches all channels, then polls the process registry on a fixed interval.
A channel whose relay is gone is relaunched, unless it has failed more than
``max_fails`` times inside the trailing ``fail_window``; such a channel is
paused for ``pause_seconds`` and skipped until the pause expires.

State per channel:
    LAUNCHING -> RUNNING -> (CRASHED | MISSING) -> RELAUNCHING -> RUNNING
                                   |
                                   +-> PAUSED -> (expiry) -> normal liveness check

Failure history and pause deadlines belong to the supervisor instance and
live exactly as long as it does. History is pruned to the failure window on
every write.

Lifecycle: run_forever() blocks until stop(); poll_once() can be called
manually for testing.
"""

from __future__ import annotations

import enum
import logging
import threading
from dataclasses import dataclass
from typing import Any

from ..infra.exceptions import ChannelNotFoundError, LaunchError
from ..usecases.channel_launch import ChannelLauncher, LaunchResult
from .clock import Clock, SystemClock, format_timestamp
from .config import ChannelSpec, SupervisorPolicy
from .process_registry import ProcessRegistry

logger = logging.getLogger(__name__)


class ChannelState(str, enum.Enum):
    LAUNCHING = "launching"
    RUNNING = "running"
    CRASHED = "crashed"  # our own spawned relay exited
    MISSING = "missing"  # no relay bound to the output target
    RELAUNCHING = "relaunching"
    PAUSED = "paused"


@dataclass
class ChannelStatus:
    """Point-in-time view of one supervised channel."""
    name: str
    state: ChannelState
    recent_failures: int
    paused_until: float | None
    pid: int | None
    launches: int


class ChannelSupervisor:
    """Poll-driven supervisor for a fixed set of channels.

    Not thread-safe for concurrent poll_once() calls; relaunch() may be called
    from another thread because the launcher serializes kill+spawn per output
    target.
    """

    def __init__(
        self,
        channels: list[ChannelSpec],
        *,
        launcher: ChannelLauncher,
        registry: ProcessRegistry,
        policy: SupervisorPolicy | None = None,
        clock: Clock | None = None,
    ):
        self._channels: dict[str, ChannelSpec] = {}
        for channel in channels:
            self._channels.setdefault(channel.name, channel)
        self._launcher = launcher
        self._registry = registry
        self._policy = policy or SupervisorPolicy()
        self._clock = clock or SystemClock()

        # Per-channel state, keyed by channel name
        self._state: dict[str, ChannelState] = {
            name: ChannelState.LAUNCHING for name in self._channels
        }
        self._failures: dict[str, list[float]] = {name: [] for name in self._channels}
        self._paused_until: dict[str, float] = {}
        self._processes: dict[str, Any] = {}
        self._launches: dict[str, int] = {name: 0 for name in self._channels}

        # Lifecycle
        self._stop_event = threading.Event()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def launcher(self) -> ChannelLauncher:
        return self._launcher

    @property
    def policy(self) -> SupervisorPolicy:
        return self._policy

    @property
    def channel_names(self) -> list[str]:
        return list(self._channels)

    def state_of(self, name: str) -> ChannelState:
        self._require(name)
        return self._state[name]

    def failure_history(self, name: str) -> list[float]:
        self._require(name)
        return list(self._failures[name])

    def paused_until(self, name: str) -> float | None:
        self._require(name)
        return self._paused_until.get(name)

    def launch_all(self) -> list[LaunchResult]:
        """Launch every channel in definition order."""
        results = []
        for name, channel in self._channels.items():
            self._state[name] = ChannelState.LAUNCHING
            result = self._launch(channel)
            if result is not None:
                results.append(result)
        return results

    def relaunch(self, name: str) -> LaunchResult:
        """Manually relaunch one channel, killing its current relay first.

        Raises:
            ChannelNotFoundError: If ``name`` is not supervised
            LaunchError: If ffmpeg cannot be spawned
        """
        channel = self._require(name)
        log = self._launcher.logs.for_channel(name)
        self._state[name] = ChannelState.RELAUNCHING
        try:
            result = self._launcher.launch(channel, manual=True)
        except LaunchError:
            self._state[name] = ChannelState.MISSING
            raise
        self._record_launch(name, result)
        log.info(f"Channel {name} relaunched manually.")
        return result

    def poll_once(self) -> dict[str, ChannelState]:
        """Check every channel once and act on the ones that are down.

        Returns the state of every channel after the poll.
        """
        now = self._clock.now()
        for name, channel in self._channels.items():
            try:
                self._poll_channel(channel, now)
            except Exception as e:
                logger.exception("Channel %s: supervisor check failed", name)
                self._launcher.logs.for_channel(name).error(
                    f"Supervisor check failed for {name}: {e}"
                )
                self._state[name] = ChannelState.MISSING
        return dict(self._state)

    def run_forever(self, *, launch: bool = True) -> None:
        """Launch all channels (optionally) and poll until stop() is called."""
        self._stop_event.clear()
        if launch:
            self.launch_all()
        logger.info(
            "Supervising %d channels (poll every %.0fs, max %d failures per %.0fs)",
            len(self._channels),
            self._policy.poll_interval,
            self._policy.max_fails,
            self._policy.fail_window,
        )
        while not self._stop_event.wait(timeout=self._policy.poll_interval):
            try:
                self.poll_once()
            except Exception:
                logger.exception("Supervisor poll failed")

    def stop(self) -> None:
        self._stop_event.set()

    def snapshot(self) -> list[ChannelStatus]:
        now = self._clock.now()
        statuses = []
        for name in self._channels:
            process = self._processes.get(name)
            statuses.append(
                ChannelStatus(
                    name=name,
                    state=self._state[name],
                    recent_failures=self._count_recent(name, now),
                    paused_until=self._paused_until.get(name),
                    pid=getattr(process, "pid", None),
                    launches=self._launches[name],
                )
            )
        return statuses

    # ------------------------------------------------------------------
    # Internal: failure policy
    # ------------------------------------------------------------------

    def _poll_channel(self, channel: ChannelSpec, now: float) -> None:
        name = channel.name
        # Engine output bypasses ChannelLog, so bound the file on every tick
        self._launcher.logs.for_channel(name).enforce_limits()
        self._reap(name)
        if self._check_pause(name, now):
            return

        if self._registry.find_bound(self._launcher.target_for(channel)):
            self._state[name] = ChannelState.RUNNING
            return

        self._handle_down(channel, now)

    def _check_pause(self, name: str, now: float) -> bool:
        """True while the channel must be skipped this tick."""
        until = self._paused_until.get(name)
        if until is None:
            return False
        if now < until:
            self._state[name] = ChannelState.PAUSED
            self._launcher.logs.for_channel(name).info(
                f"Supervisor: channel {name} is paused until {format_timestamp(until)}"
            )
            return True
        # Pause expired; fall through to the normal liveness check
        del self._paused_until[name]
        logger.info("Channel %s: pause expired, resuming supervision", name)
        return False

    def _handle_down(self, channel: ChannelSpec, now: float) -> None:
        name = channel.name
        log = self._launcher.logs.for_channel(name)
        self._state[name] = ChannelState.CRASHED if self._exited(name) else ChannelState.MISSING
        logger.warning("Channel %s is down (%s)", name, self._state[name].value)

        fails = self._record_failure(name, now)
        if fails > self._policy.max_fails:
            until = now + self._policy.pause_seconds
            self._paused_until[name] = until
            self._state[name] = ChannelState.PAUSED
            log.error(
                f"Channel {name} went down {fails} times in the last "
                f"{self._policy.fail_window:.0f} seconds. Pausing relaunch for "
                f"{self._policy.pause_seconds / 60:.0f} minutes."
            )
            return

        log.error(f"Channel {name} is down. Relaunching...")
        self._state[name] = ChannelState.RELAUNCHING
        if self._launch(channel) is not None:
            log.info(f"Channel {name} relaunched by supervisor.")

    def _record_failure(self, name: str, now: float) -> int:
        """Append ``now`` to the history, prune it, and return the recent count."""
        window = self._policy.fail_window
        history = [ts for ts in self._failures[name] if now - ts <= window]
        history.append(now)
        self._failures[name] = history
        return len(history)

    def _count_recent(self, name: str, now: float) -> int:
        window = self._policy.fail_window
        return sum(1 for ts in self._failures[name] if now - ts <= window)

    # ------------------------------------------------------------------
    # Internal: launching and process handles
    # ------------------------------------------------------------------

    def _launch(self, channel: ChannelSpec) -> LaunchResult | None:
        try:
            result = self._launcher.launch(channel)
        except LaunchError as e:
            # Counted as a failure on the next poll, when no relay is found
            logger.error("Channel %s: %s", channel.name, e)
            self._state[channel.name] = ChannelState.MISSING
            return None
        except Exception as e:
            logger.exception("Channel %s: launch failed", channel.name)
            self._launcher.logs.for_channel(channel.name).error(
                f"Launch of {channel.name} failed: {e}"
            )
            self._state[channel.name] = ChannelState.MISSING
            return None
        self._record_launch(channel.name, result)
        return result

    def _record_launch(self, name: str, result: LaunchResult) -> None:
        self._processes[name] = result.process
        self._launches[name] += 1
        self._state[name] = ChannelState.RUNNING

    def _exited(self, name: str) -> bool:
        process = self._processes.get(name)
        poll = getattr(process, "poll", None)
        return poll is not None and poll() is not None

    def _reap(self, name: str) -> None:
        """Collect an exited child so it does not linger as a zombie."""
        process = self._processes.get(name)
        if process is not None and hasattr(process, "poll"):
            process.poll()

    def _require(self, name: str) -> ChannelSpec:
        channel = self._channels.get(name)
        if channel is None:
            raise ChannelNotFoundError(name)
        return channel
