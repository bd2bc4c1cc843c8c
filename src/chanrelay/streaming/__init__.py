"""
Streaming module for chanrelay.

Plans and assembles the ffmpeg invocation for channel relays.
"""

from .audio_map import select_audio_map
from .ffmpeg_cmd import PipelinePlan, build_relay_cmd, normalize_source_uri, plan_pipeline
from .inspector import AudioTrack, FFprobeInspector, SourceProbe

__all__ = [
    "AudioTrack",
    "FFprobeInspector",
    "PipelinePlan",
    "SourceProbe",
    "build_relay_cmd",
    "normalize_source_uri",
    "plan_pipeline",
    "select_audio_map",
]
