"""
FFprobe client for inspecting live sources before launch.

Reports the source's video codec and its audio tracks. Every call is bounded
by a hard timeout; a timeout, a missing executable or unreadable output is
logged as a warning and reported as "no data" so a broken source never
stalls the supervisor loop.
"""

from __future__ import annotations

import json
import logging
import subprocess
from dataclasses import dataclass, field
from typing import Any

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AudioTrack:
    """One audio stream of a probed source."""

    pos: int  # 0-based rank among audio streams; what ffmpeg's 0:a:N addresses
    index: int  # absolute stream index in the container
    lang: str = ""


@dataclass(frozen=True)
class SourceProbe:
    """What the inspector learned about a source for one launch attempt."""

    video_codec: str = ""
    audio_tracks: tuple[AudioTrack, ...] = field(default_factory=tuple)


def parse_audio_streams(data: dict[str, Any]) -> list[AudioTrack]:
    """
    Build AudioTrack entries from ffprobe ``-show_streams`` JSON.

    Non-audio streams are skipped and do not advance ``pos``.
    """
    tracks: list[AudioTrack] = []
    for stream in data.get("streams", []) or []:
        if stream.get("codec_type") != "audio":
            continue
        tags = stream.get("tags") or {}
        try:
            index = int(stream.get("index", len(tracks)))
        except (TypeError, ValueError):
            index = len(tracks)
        tracks.append(AudioTrack(pos=len(tracks), index=index, lang=str(tags.get("language", ""))))
    return tracks


def parse_video_codec(data: dict[str, Any]) -> str:
    """Codec name of the first video stream in ffprobe JSON, or ``""``."""
    for stream in data.get("streams", []) or []:
        if stream.get("codec_type", "video") == "video" and stream.get("codec_name"):
            return str(stream["codec_name"])
    return ""


class FFprobeInspector:
    """
    Stream inspector backed by the ffprobe executable.

    Args:
        ffprobe_path: Path to the ffprobe executable
        timeout: Hard limit in seconds for every probe
    """

    def __init__(self, ffprobe_path: str = "ffprobe", timeout: float = 8.0):
        self.ffprobe_path = ffprobe_path
        self.timeout = timeout

    def probe_video_codec(self, uri: str) -> str:
        data = self._run_json(uri, "v")
        return parse_video_codec(data) if data else ""

    def probe_audio_tracks(self, uri: str) -> list[AudioTrack]:
        data = self._run_json(uri, "a")
        return parse_audio_streams(data) if data else []

    def probe(self, uri: str, *, need_audio: bool = True) -> SourceProbe:
        """Probe the codec and, when asked, the audio tracks of ``uri``."""
        codec = self.probe_video_codec(uri)
        tracks = tuple(self.probe_audio_tracks(uri)) if need_audio else ()
        return SourceProbe(video_codec=codec, audio_tracks=tracks)

    def diagnose(self, uri: str) -> tuple[bool, str]:
        """
        Plain reachability probe run before launching a relay.

        Returns:
            (ok, combined stdout/stderr of ffprobe)
        """
        cmd = [self.ffprobe_path, "-hide_banner", uri]
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                errors="replace",
                timeout=self.timeout,
                stdin=subprocess.DEVNULL,
            )
        except subprocess.TimeoutExpired as e:
            output = _as_text(e.stdout) + _as_text(e.stderr)
            return False, output
        except OSError as e:
            return False, f"{self.ffprobe_path}: {e}"
        return result.returncode == 0, (result.stdout or "") + (result.stderr or "")

    def _run_json(self, uri: str, selector: str) -> dict[str, Any] | None:
        cmd = [
            self.ffprobe_path,
            "-v",
            "error",
            "-print_format",
            "json",
            "-show_streams",
            "-select_streams",
            selector,
            uri,
        ]
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                errors="replace",
                timeout=self.timeout,
                stdin=subprocess.DEVNULL,
            )
        except subprocess.TimeoutExpired:
            _logger.warning("ffprobe timed out after %.0fs on %s", self.timeout, uri)
            return None
        except FileNotFoundError:
            _logger.warning("ffprobe executable not found: %s", self.ffprobe_path)
            return None
        except OSError as e:
            _logger.warning("ffprobe could not run on %s: %s", uri, e)
            return None

        if result.returncode != 0:
            _logger.warning("ffprobe failed on %s: %s", uri, (result.stderr or "").strip())
            return None

        try:
            data = json.loads(result.stdout or "{}")
        except json.JSONDecodeError as e:
            _logger.warning("ffprobe returned unparsable output for %s: %s", uri, e)
            return None
        return data if isinstance(data, dict) else None


def _as_text(value: bytes | str | None) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return value
