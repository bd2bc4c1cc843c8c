"""
File-based channel configuration provider.

Loads channel definitions from a pipe-delimited text file.
"""

from __future__ import annotations

import logging
from pathlib import Path

from ...infra.exceptions import ChannelListError
from ..config import ChannelSpec

_logger = logging.getLogger(__name__)


def parse_channel_line(line: str) -> ChannelSpec | None:
    """
    Parse one line of the channel definition file.

    Returns None for blank lines, ``#`` comments and lines that lack a
    source or a name.
    """
    line = line.replace("\r", "").strip()
    if not line or line.startswith("#"):
        return None

    fields = [part.strip() for part in line.split("|", 2)]
    while len(fields) < 3:
        fields.append("")
    source_uri, name, raw_params = fields

    if not source_uri or not name:
        _logger.warning("Skipping channel definition without source or name: %r", line)
        return None
    return ChannelSpec(source_uri=source_uri, name=name, raw_params=raw_params)


class FileChannelConfigProvider:
    """
    ChannelConfigProvider that loads definitions from a text file.

    Expected format, one channel per line::

        # source | name | overrides
        udp://239.0.0.1:1234 | canal1 | encoder=cpu
        udp://239.0.0.2:1234 | canal2 | encoder=qsv,nodeint=1,scale=1920:1080
        http://origin/live.ts | canal3
    """

    def __init__(self, config_path: Path | str):
        """
        Initialize the provider.

        Args:
            config_path: Path to the channel definition file
        """
        self._config_path = Path(config_path)
        self._channels: list[ChannelSpec] = []
        self._loaded = False

    @property
    def path(self) -> Path:
        return self._config_path

    def _ensure_loaded(self) -> None:
        """Load definitions from file if not already loaded."""
        if self._loaded:
            return

        if not self._config_path.is_file():
            raise ChannelListError(f"Channel definition file not found: {self._config_path}")

        try:
            with open(self._config_path, "r", encoding="utf-8") as f:
                lines = f.readlines()
        except OSError as e:
            raise ChannelListError(
                f"Failed to read channel definition file {self._config_path}: {e}"
            ) from e

        seen: set[str] = set()
        for line in lines:
            channel = parse_channel_line(line)
            if channel is None:
                continue
            if channel.name in seen:
                _logger.warning(
                    "Duplicate channel name %s in %s; keeping both entries",
                    channel.name,
                    self._config_path,
                )
            seen.add(channel.name)
            self._channels.append(channel)
            _logger.debug("Loaded channel definition: %s (%s)", channel.name, channel.source_uri)

        _logger.info(
            "Loaded %d channel definitions from %s",
            len(self._channels),
            self._config_path,
        )
        self._loaded = True

    def reload(self) -> None:
        """Force reload of definitions from file."""
        self._loaded = False
        self._channels = []
        self._ensure_loaded()

    def list_channels(self) -> list[ChannelSpec]:
        """
        List every channel definition in file order.

        Raises:
            ChannelListError: If the file is missing or unreadable
        """
        self._ensure_loaded()
        return list(self._channels)

    def get_channel(self, name: str) -> ChannelSpec | None:
        """
        Get a channel definition by name (first match wins).

        Args:
            name: Channel name as written in the definition file

        Returns:
            ChannelSpec if found, None otherwise
        """
        self._ensure_loaded()
        for channel in self._channels:
            if channel.name == name:
                return channel
        return None
