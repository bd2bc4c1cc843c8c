"""
Channel configuration data structures and protocols.

Defines ChannelSpec (one line of the channel definition file), ResolvedParams
(the per-launch parameter set), the override resolver, SupervisorPolicy, and
the ChannelConfigProvider protocol for accessing channel definitions.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from pathlib import Path
from typing import Protocol

from ..infra.exceptions import ConfigurationError

# Override keys accepted in the third field of a channel definition
OVERRIDE_KEYS = ("nodeint", "encoder", "map", "audio", "bitrate", "scale", "screen", "deint")

_FLAG_KEYS = frozenset({"nodeint", "screen", "deint"})


@dataclass(frozen=True)
class ChannelSpec:
    """
    One supervised channel as declared in the channel definition file.

    Combines:
    - Network source the relay pulls from
    - Channel name (derives the log path and the output target)
    - Raw override string (``key=value`` pairs, comma separated)
    """
    source_uri: str
    name: str
    raw_params: str = ""

    def output_target(self, prefix: str) -> str:
        """Ingest target this channel publishes to; also the duplicate-detection key."""
        return f"{prefix.rstrip('/')}/{self.name}"

    def log_path(self, log_dir: Path | str) -> Path:
        return Path(log_dir) / f"{self.name}.log"


@dataclass(frozen=True)
class ResolvedParams:
    """
    Parameters for a single launch of a channel.

    Built fresh for every launch from DEFAULT_PARAMS and the channel's raw
    override string; instances are never mutated.
    """
    nodeint: bool = False      # True disables every deinterlace stage
    encoder: str = "nvenc"     # nvenc | qsv | cuda | cpu
    map: str = ""              # manual ffmpeg stream map, e.g. "-map 0:v -map 0:a:1"
    audio: str = "auto"        # "auto" (prefer spa) or a 1-based audio track index
    bitrate: str = "2M"
    scale: str = "1280:720"    # output resolution, width:height
    screen: bool = False       # cinema crop
    deint: bool = False        # disable cuvid decoder-side deinterlace

    @property
    def width(self) -> str:
        return self.scale.split(":", 1)[0]

    @property
    def height(self) -> str:
        parts = self.scale.split(":", 1)
        return parts[1] if len(parts) > 1 else ""

    def describe(self) -> str:
        """One-line summary written to the channel log on launch."""
        return (
            f"nodeint={int(self.nodeint)}, encoder={self.encoder}, map='{self.map}', "
            f"audio={self.audio}, bitrate={self.bitrate}, scale={self.scale}, "
            f"screen={int(self.screen)}, deint={int(self.deint)}"
        )


# Immutable template; resolve_params() always returns a new object
DEFAULT_PARAMS = ResolvedParams()


def parse_overrides(raw: str) -> dict[str, str]:
    """
    Split a raw override string into recognized ``key -> value`` pairs.

    Unknown keys and items without ``=`` are dropped silently. Later
    occurrences of a key win.
    """
    overrides: dict[str, str] = {}
    if not raw:
        return overrides
    for item in raw.split(","):
        item = item.strip()
        if "=" not in item:
            continue
        key, value = item.split("=", 1)
        key = key.strip()
        if key in OVERRIDE_KEYS:
            overrides[key] = value.strip()
    return overrides


def resolve_params(raw: str, defaults: ResolvedParams = DEFAULT_PARAMS) -> ResolvedParams:
    """
    Merge a channel's override string over the defaults.

    Args:
        raw: Override string from the channel definition (may be empty)
        defaults: Template supplying every field the overrides do not name

    Returns:
        A new ResolvedParams; ``defaults`` is left untouched
    """
    changes: dict[str, object] = {}
    for key, value in parse_overrides(raw).items():
        if key in _FLAG_KEYS:
            changes[key] = value == "1"
        else:
            changes[key] = value
    return replace(defaults, **changes)


@dataclass(frozen=True)
class SupervisorPolicy:
    """Failure and backoff policy applied by the channel supervisor."""

    poll_interval: float = 60.0
    max_fails: int = 5
    fail_window: float = 600.0
    pause_seconds: float = 600.0

    def __post_init__(self) -> None:
        if self.poll_interval <= 0:
            raise ConfigurationError("poll_interval must be greater than zero")
        if self.max_fails < 0:
            raise ConfigurationError("max_fails must be non-negative")
        if self.fail_window <= 0 or self.pause_seconds <= 0:
            raise ConfigurationError("fail_window and pause_seconds must be greater than zero")

    @classmethod
    def from_settings(cls, settings) -> SupervisorPolicy:
        return cls(
            poll_interval=settings.poll_interval,
            max_fails=settings.max_fails,
            fail_window=settings.fail_window,
            pause_seconds=settings.pause_seconds,
        )


class ChannelConfigProvider(Protocol):
    """
    Protocol for providing channel definitions.
    """

    def list_channels(self) -> list[ChannelSpec]:
        """
        List every channel definition in declaration order.
        """
        ...

    def get_channel(self, name: str) -> ChannelSpec | None:
        """
        Get a channel definition by name.

        Returns:
            ChannelSpec if found, None otherwise
        """
        ...


class InlineChannelConfigProvider:
    """
    ChannelConfigProvider backed by an in-memory list.

    Useful for tests and for embedding the supervisor.
    """

    def __init__(self, channels: list[ChannelSpec] | None = None):
        self._channels = list(channels or [])

    def list_channels(self) -> list[ChannelSpec]:
        return list(self._channels)

    def get_channel(self, name: str) -> ChannelSpec | None:
        for channel in self._channels:
            if channel.name == name:
                return channel
        return None
