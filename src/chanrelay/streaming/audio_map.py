"""
Audio track selection for relay invocations.

A relay always maps the first video stream and exactly one audio stream.
Which audio stream is chosen depends on the channel's ``map`` and ``audio``
parameters and, for ``audio=auto``, on the tracks the inspector reported.
"""

from __future__ import annotations

import logging
import shlex
from collections.abc import Sequence

from ..runtime.config import ResolvedParams
from .inspector import AudioTrack

_logger = logging.getLogger(__name__)

PREFERRED_LANGUAGE = "spa"


def has_manual_map(params: ResolvedParams) -> bool:
    return bool(params.map) and params.map != "auto"


def needs_audio_probe(params: ResolvedParams) -> bool:
    """True when selection depends on the source's audio tracks."""
    return not has_manual_map(params) and params.audio == "auto"


def auto_audio_position(tracks: Sequence[AudioTrack]) -> int:
    """First ``spa`` track, else the first track, else 0."""
    for track in tracks:
        if track.lang == PREFERRED_LANGUAGE:
            return track.pos
    if tracks:
        return tracks[0].pos
    return 0


def explicit_audio_position(selector: str) -> int:
    """Convert a 1-based audio selector into a 0-based position."""
    try:
        index = int(selector)
    except (TypeError, ValueError):
        _logger.warning("Invalid audio selector %r, using first audio track", selector)
        return 0
    if index < 1:
        _logger.warning("Audio selector %r is not 1-based, using first audio track", selector)
        return 0
    return index - 1


def select_audio_map(params: ResolvedParams, tracks: Sequence[AudioTrack] = ()) -> list[str]:
    """
    Derive the ``-map`` arguments for one launch.

    A manual ``map`` parameter is used verbatim and wins over any ``audio``
    selector, numeric or automatic.

    Args:
        params: Resolved channel parameters
        tracks: Audio tracks reported by the inspector (ignored unless
            ``audio=auto``)

    Returns:
        ffmpeg argv tokens, e.g. ``["-map", "0:v", "-map", "0:a:1"]``
    """
    if has_manual_map(params):
        return shlex.split(params.map)

    if params.audio == "auto":
        position = auto_audio_position(tracks)
    else:
        position = explicit_audio_position(params.audio)
    return ["-map", "0:v", "-map", f"0:a:{position}"]
