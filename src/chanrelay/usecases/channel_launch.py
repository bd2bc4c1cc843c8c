"""
Relay (ffmpeg) process launching.

The supervisor and the ``relaunch`` command both go through ChannelLauncher:
resolve the channel's parameters, probe the source, plan the pipeline, pick
the audio track, kill any process already publishing to the channel's output
target, record diagnostics, and spawn ffmpeg detached from the supervisor.

Relay logging (stdout/stderr):
  ffmpeg output is appended to <log_dir>/<name>.log, the same bounded file
  the launcher writes its decisions to.
"""

from __future__ import annotations

import subprocess
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable

from ..diagnostics.host_status import collect_host_status
from ..infra.exceptions import LaunchError
from ..runtime.channel_log import ChannelLog, ChannelLogFactory
from ..runtime.config import ChannelSpec, ResolvedParams, resolve_params
from ..runtime.process_registry import ProcessRegistry
from ..streaming.audio_map import needs_audio_probe, select_audio_map
from ..streaming.ffmpeg_cmd import (
    PipelinePlan,
    build_relay_cmd,
    describe_cmd,
    normalize_source_uri,
    plan_pipeline,
    probe_filter_support,
)
from ..streaming.inspector import FFprobeInspector

# Type alias for subprocess.Process
ProcessHandle = subprocess.Popen[bytes]

SpawnFn = Callable[[list[str], ChannelLog], Any]
FilterProbeFn = Callable[[], frozenset[str]]


def spawn_detached(argv: list[str], log: ChannelLog) -> ProcessHandle:
    """Start ffmpeg in its own session with output appended to the channel log."""
    engine_log = log.open_for_engine()
    try:
        return subprocess.Popen(
            argv,
            stdout=engine_log,
            stderr=subprocess.STDOUT,
            stdin=subprocess.DEVNULL,
            start_new_session=True,
        )
    finally:
        engine_log.close()


@dataclass
class RelayInvocation:
    """Everything decided for one launch, before anything is killed or spawned."""

    channel: ChannelSpec
    params: ResolvedParams
    source_uri: str
    output_target: str
    plan: PipelinePlan
    audio_map: list[str]
    argv: list[str]


@dataclass
class LaunchResult:
    channel: ChannelSpec
    argv: list[str]
    process: Any = None
    killed: list[int] = field(default_factory=list)

    @property
    def pid(self) -> int | None:
        return getattr(self.process, "pid", None)


class ChannelLauncher:
    """
    Runs the launch sequence for a channel.

    Args:
        inspector: Stream inspector used for codec/audio probing and diagnostics
        registry: Process registry used by the duplicate guard
        logs: Factory for per-channel logs
        output_prefix: Ingest prefix; a channel publishes to <prefix>/<name>
        ffmpeg_path: ffmpeg executable
        kill_settle_seconds: Pause after killing duplicates before spawning
        diagnostics: Run ffprobe/host diagnostics before spawning
        spawn: Process spawner (defaults to spawn_detached)
        filter_probe: Engine filter probe (defaults to probe_filter_support)
        host_status: Host status collector
        sleep: Injectable sleep
    """

    def __init__(
        self,
        *,
        inspector: FFprobeInspector,
        registry: ProcessRegistry,
        logs: ChannelLogFactory,
        output_prefix: str,
        ffmpeg_path: str = "ffmpeg",
        kill_settle_seconds: float = 1.0,
        diagnostics: bool = True,
        spawn: SpawnFn | None = None,
        filter_probe: FilterProbeFn | None = None,
        host_status: Callable[[], str] | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.inspector = inspector
        self.registry = registry
        self.logs = logs
        self.output_prefix = output_prefix
        self.ffmpeg_path = ffmpeg_path
        self.kill_settle_seconds = kill_settle_seconds
        self.diagnostics = diagnostics
        self._spawn = spawn or spawn_detached
        self._filter_probe = filter_probe or (
            lambda: probe_filter_support(self.ffmpeg_path, self.inspector.timeout)
        )
        self._host_status = host_status or collect_host_status
        self._sleep = sleep
        self._target_locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def target_for(self, channel: ChannelSpec) -> str:
        return channel.output_target(self.output_prefix)

    def _lock_for(self, target: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._target_locks.get(target)
            if lock is None:
                lock = threading.Lock()
                self._target_locks[target] = lock
            return lock

    def prepare(self, channel: ChannelSpec) -> RelayInvocation:
        """
        Resolve, probe and plan a launch without touching any process.

        Parameters are resolved fresh on every call.
        """
        log = self.logs.for_channel(channel.name)
        params = resolve_params(channel.raw_params)
        source_uri = normalize_source_uri(channel.source_uri)
        target = self.target_for(channel)

        log.info(f"Parameters: {params.describe()}")

        video_codec = self.inspector.probe_video_codec(source_uri)
        if not video_codec:
            log.warning("Could not detect the source video codec")
        filters = self._filter_probe() if params.encoder == "qsv" else frozenset()
        plan = plan_pipeline(
            params.encoder,
            video_codec,
            nodeint=params.nodeint,
            scale=params.scale,
            screen=params.screen,
            deint=params.deint,
            filters=filters,
        )
        if plan.encoder != params.encoder:
            log.warning(f"Unknown encoder '{params.encoder}', using {plan.encoder}")

        tracks = []
        if needs_audio_probe(params):
            tracks = self.inspector.probe_audio_tracks(source_uri)
            for track in tracks:
                log.append_output(
                    f"      [audio_pos={track.pos}, index={track.index}, lang={track.lang}]"
                )
        audio_map = select_audio_map(params, tracks)

        argv = build_relay_cmd(source_uri, plan, audio_map, target, ffmpeg_path=self.ffmpeg_path)
        log.info(f"Generated FFmpeg command: {describe_cmd(argv)}")
        return RelayInvocation(
            channel=channel,
            params=params,
            source_uri=source_uri,
            output_target=target,
            plan=plan,
            audio_map=audio_map,
            argv=argv,
        )

    def kill_duplicates(self, channel: ChannelSpec, *, reason: str = "duplicate") -> list[int]:
        """Force-kill processes publishing to the channel's output target."""
        log = self.logs.for_channel(channel.name)
        killed = self.registry.kill_bound(self.target_for(channel))
        for pid in killed:
            log.warning(f"FFmpeg process (PID {pid}) killed ({reason}).")
        if killed and self.kill_settle_seconds > 0:
            self._sleep(self.kill_settle_seconds)
        return killed

    def run_diagnostics(self, channel: ChannelSpec, source_uri: str) -> None:
        log = self.logs.for_channel(channel.name)
        log.info("Pre-launch source check with ffprobe...")
        ok, output = self.inspector.diagnose(source_uri)
        log.append_output(output)
        if not ok:
            log.warning("ffprobe could not access the source.")
        log.info("Host status (memory/disk/GPU):")
        log.append_output(self._host_status())

    def launch(self, channel: ChannelSpec, *, manual: bool = False) -> LaunchResult:
        """
        Launch a relay for ``channel``.

        A manual launch force-kills the channel's current relay before
        planning; every launch kills duplicates right before spawning.

        Raises:
            LaunchError: If ffmpeg cannot be spawned
        """
        log = self.logs.for_channel(channel.name)
        target = self.target_for(channel)
        with self._lock_for(target):
            killed: list[int] = []
            if manual:
                killed += self.kill_duplicates(channel, reason="manual relaunch")

            log.info(f"Launching channel: {channel.name}")
            invocation = self.prepare(channel)
            killed += self.kill_duplicates(channel)

            if self.diagnostics:
                self.run_diagnostics(channel, invocation.source_uri)

            log.info(f"Starting FFmpeg in background for {channel.name}")
            try:
                process = self._spawn(invocation.argv, log)
            except OSError as e:
                log.error(f"Could not start FFmpeg for {channel.name}: {e}")
                raise LaunchError(f"Could not start ffmpeg for {channel.name}: {e}") from e

        return LaunchResult(channel=channel, argv=invocation.argv, process=process, killed=killed)


__all__ = [
    "ChannelLauncher",
    "LaunchResult",
    "ProcessHandle",
    "RelayInvocation",
    "spawn_detached",
]
