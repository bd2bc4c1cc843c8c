"""
Wiring of the runtime objects used by CLI commands.

Commands share one construction path so the supervisor, the manual relaunch
and the dry-run planner see identical launch behaviour.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from ....infra.settings import Settings, settings
from ....runtime.channel_log import ChannelLogFactory
from ....runtime.config import ChannelSpec, SupervisorPolicy
from ....runtime.process_registry import PsutilProcessRegistry
from ....runtime.providers import FileChannelConfigProvider
from ....runtime.supervisor import ChannelSupervisor
from ....streaming.inspector import FFprobeInspector
from ....usecases.channel_launch import ChannelLauncher


@dataclass
class CliOptions:
    """Global options collected by the root callback."""

    channels_file: Path
    log_dir: Path


def default_options() -> CliOptions:
    return CliOptions(channels_file=settings.channels_file, log_dir=settings.log_dir)


def load_channels(options: CliOptions) -> list[ChannelSpec]:
    """
    Raises:
        ChannelListError: If the definition file is missing or unreadable
    """
    return FileChannelConfigProvider(options.channels_file).list_channels()


def build_launcher(options: CliOptions, cfg: Settings = settings) -> ChannelLauncher:
    registry = PsutilProcessRegistry(cfg.ffmpeg_path)
    logs = ChannelLogFactory(
        options.log_dir,
        max_lines=cfg.max_log_lines,
        max_bytes=cfg.max_log_bytes,
    )
    return ChannelLauncher(
        inspector=FFprobeInspector(cfg.ffprobe_path, timeout=cfg.probe_timeout),
        registry=registry,
        logs=logs,
        output_prefix=cfg.output_prefix,
        ffmpeg_path=cfg.ffmpeg_path,
        kill_settle_seconds=cfg.kill_settle_seconds,
    )


def build_supervisor(
    channels: list[ChannelSpec],
    options: CliOptions,
    cfg: Settings = settings,
) -> ChannelSupervisor:
    launcher = build_launcher(options, cfg)
    return ChannelSupervisor(
        channels,
        launcher=launcher,
        registry=launcher.registry,
        policy=SupervisorPolicy.from_settings(cfg),
    )
