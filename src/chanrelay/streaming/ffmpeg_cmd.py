"""
FFmpeg Command Builder for channel relays.

This module derives the ffmpeg invocation for a relay from the channel's
resolved parameters and the probed source codec: the decode path (software,
QSV, CUDA or CUVID), the filter chain, and the encode profile. Commands are
built as argv lists and never pass through a shell.
"""

from __future__ import annotations

import logging
import shlex
import subprocess
from dataclasses import dataclass

_logger = logging.getLogger(__name__)

DEFAULT_ENCODER = "nvenc"

# Encode profile per encoder class (video + audio + output format)
ENCODER_PRESETS: dict[str, tuple[str, ...]] = {
    "nvenc": (
        "-c:v", "h264_nvenc", "-b:v", "2M", "-bufsize", "4M", "-preset", "p2", "-tune", "3",
        "-g", "60", "-c:a", "aac", "-dts_delta_threshold", "1000", "-ab", "128k",
        "-ar", "44100", "-ac", "1", "-f", "flv",
    ),
    "qsv": (
        "-c:v", "h264_qsv", "-b:v", "2M", "-preset", "veryfast", "-c:a", "aac", "-ab", "128k",
        "-ar", "44100", "-ac", "1", "-f", "flv",
    ),
    "cuda": (
        "-c:v", "h264_nvenc", "-preset", "2", "-tune", "3", "-keyint_min", "30", "-b:v", "2048k",
        "-bt", "1", "-maxrate", "2048k", "-bufsize", "4096k", "-c:a", "aac", "-ar", "44100",
        "-ac", "1", "-ab", "192k", "-f", "flv",
    ),
    "cpu": (
        "-c:v", "libx264", "-b:v", "2M", "-preset", "veryfast", "-c:a", "aac", "-ab", "128k",
        "-ar", "44100", "-ac", "1", "-f", "flv",
    ),
}

# Hardware decoders whose names do not follow <codec>_<suffix>
QSV_DECODERS = {"mpeg2video": "mpeg2_qsv"}
CUVID_DECODERS = {"h264": "h264_cuvid", "mpeg2video": "mpeg2_cuvid"}

CINEMA_CROP_FILTER = "crop=w=ih*16/9:h=ih,scale=1280:720"

# Filters whose availability changes the QSV filter chain
QSV_FILTERS = ("deinterlace_qsv", "scale_qsv")

UDP_BUFFER_PARAMS = "fifo_size=524288&overrun_nonfatal=1"


@dataclass(frozen=True)
class PipelinePlan:
    """Decode, filter and encode arguments for one relay launch."""

    pre_input: tuple[str, ...]
    filters: tuple[str, ...]
    encode: tuple[str, ...]
    encoder: str

    @property
    def filter_chain(self) -> str:
        """The ``-vf`` value, or ``""`` when the plan has no filter stage."""
        if len(self.filters) >= 2 and self.filters[0] == "-vf":
            return self.filters[1]
        return ""


def _vf(chain: str) -> tuple[str, ...]:
    return ("-vf", chain)


def _split_scale(scale: str) -> tuple[str, str]:
    width, _, height = scale.partition(":")
    return width, height


def qsv_decoder(video_codec: str) -> str:
    return QSV_DECODERS.get(video_codec, f"{video_codec}_qsv")


def cuvid_decoder(video_codec: str) -> str:
    return CUVID_DECODERS.get(video_codec, f"{video_codec}_cuvid")


def _qsv_filter_chain(nodeint: bool, scale: str, filters: frozenset[str]) -> str:
    width, height = _split_scale(scale)
    hw_scale = f"scale_qsv=w={width}:h={height}"
    has_hw_scale = "scale_qsv" in filters
    if nodeint:
        return hw_scale if has_hw_scale else f"scale={scale}"
    if "deinterlace_qsv" in filters:
        return f"deinterlace_qsv,{hw_scale}"
    if has_hw_scale:
        return f"yadif,{hw_scale}"
    return f"yadif,scale={scale}"


def plan_pipeline(
    encoder: str,
    video_codec: str,
    *,
    nodeint: bool = False,
    scale: str = "1280:720",
    screen: bool = False,
    deint: bool = False,
    filters: frozenset[str] = frozenset(),
) -> PipelinePlan:
    """
    Derive the decode/filter/encode arguments for a relay.

    Pure function: the same inputs always produce the same plan.

    Args:
        encoder: Encoder class (nvenc, qsv, cuda, cpu or another preset name)
        video_codec: Codec reported by the inspector ("" when unknown)
        nodeint: Disable every deinterlace stage
        scale: Output resolution as ``width:height``
        screen: Cinema crop (QSV path only); forces a 16:9 crop and 1280:720
        deint: Disable CUVID decoder-side deinterlace
        filters: Engine filters known to be available (see probe_filter_support)

    Returns:
        PipelinePlan for the requested encoder, or for the default encoder
        when ``encoder`` is unknown
    """
    width, height = _split_scale(scale)

    if encoder == "cuda":
        return PipelinePlan(
            pre_input=("-y", "-hwaccel", "cuda", "-hwaccel_output_format", "cuda"),
            filters=_vf(f"yadif_cuda,scale_cuda=w={width}:h={height}"),
            encode=ENCODER_PRESETS["cuda"],
            encoder=encoder,
        )

    if encoder == "qsv":
        chain = CINEMA_CROP_FILTER if screen else _qsv_filter_chain(nodeint, scale, filters)
        return PipelinePlan(
            pre_input=("-y", "-hwaccel", "qsv", "-c:v", qsv_decoder(video_codec)),
            filters=_vf(chain),
            encode=ENCODER_PRESETS["qsv"],
            encoder=encoder,
        )

    if encoder == "nvenc":
        pre_input = ["-y", "-vsync", "0", "-hwaccel", "cuvid", "-c:v", cuvid_decoder(video_codec)]
        if not deint and not nodeint:
            pre_input += ["-deint", "1", "-drop_second_field", "1"]
        pre_input += ["-resize", f"{width}x{height}"]
        return PipelinePlan(
            pre_input=tuple(pre_input),
            filters=(),
            encode=ENCODER_PRESETS["nvenc"],
            encoder=encoder,
        )

    if encoder == "cpu":
        chain = f"scale={scale}" if nodeint else f"yadif,scale={scale}"
        return PipelinePlan(
            pre_input=("-y",),
            filters=_vf(chain),
            encode=ENCODER_PRESETS["cpu"],
            encoder=encoder,
        )

    if encoder and encoder in ENCODER_PRESETS:
        return PipelinePlan(
            pre_input=("-y",),
            filters=_vf(f"scale={scale}"),
            encode=ENCODER_PRESETS[encoder],
            encoder=encoder,
        )

    _logger.warning("Unknown encoder '%s', using %s", encoder, DEFAULT_ENCODER)
    return PipelinePlan(
        pre_input=("-y",),
        filters=_vf(f"scale={scale}"),
        encode=ENCODER_PRESETS[DEFAULT_ENCODER],
        encoder=DEFAULT_ENCODER,
    )


def probe_filter_support(ffmpeg_path: str = "ffmpeg", timeout: float = 8.0) -> frozenset[str]:
    """
    Report which QSV hardware filters the installed ffmpeg provides.

    Failure to run ffmpeg is reported as "no hardware filters".
    """
    try:
        result = subprocess.run(
            [ffmpeg_path, "-hide_banner", "-filters"],
            capture_output=True,
            text=True,
            errors="replace",
            timeout=timeout,
            stdin=subprocess.DEVNULL,
        )
    except subprocess.TimeoutExpired:
        _logger.warning("ffmpeg -filters timed out after %.0fs", timeout)
        return frozenset()
    except OSError as e:
        _logger.warning("Could not list ffmpeg filters: %s", e)
        return frozenset()

    listing = (result.stdout or "") + (result.stderr or "")
    available = set()
    for line in listing.splitlines():
        fields = line.split()
        # " TSC deinterlace_qsv  V->V  ..." -> filter name is the second column
        if len(fields) >= 2 and fields[1] in QSV_FILTERS:
            available.add(fields[1])
    return frozenset(available)


def normalize_source_uri(uri: str) -> str:
    """Add buffering options to ``udp://`` sources that do not set them."""
    if not uri.lower().startswith("udp://"):
        return uri
    if "fifo_size" in uri:
        return uri
    separator = "&" if "?" in uri else "?"
    return f"{uri}{separator}{UDP_BUFFER_PARAMS}"


def build_relay_cmd(
    source_uri: str,
    plan: PipelinePlan,
    audio_map: list[str],
    output_target: str,
    ffmpeg_path: str = "ffmpeg",
) -> list[str]:
    """
    Assemble the full ffmpeg argv for a relay.

    Example:
        >>> plan = plan_pipeline("cpu", "h264", nodeint=True)
        >>> build_relay_cmd("udp://239.0.0.1:1234", plan, ["-map", "0:v", "-map", "0:a:0"],
        ...                 "rtmp://ingest/live/canal1")[:4]
        ['ffmpeg', '-y', '-i', 'udp://239.0.0.1:1234']
    """
    cmd = [ffmpeg_path]
    cmd.extend(plan.pre_input)
    cmd.extend(["-i", source_uri])
    cmd.extend(plan.filters)
    cmd.extend(plan.encode)
    cmd.extend(audio_map)
    cmd.append(output_target)
    return cmd


def describe_cmd(cmd: list[str]) -> str:
    """Shell-quoted rendering of ``cmd`` for logs."""
    return shlex.join(cmd)


def get_cmd_summary(cmd: list[str]) -> str:
    """
    Get a human-readable summary of a relay command.

    Args:
        cmd: List of FFmpeg command arguments

    Returns:
        Formatted string summary of the command
    """
    if not cmd or "-i" not in cmd:
        return "Invalid FFmpeg command"

    input_uri = None
    decoder = "software"
    video_codec = "unknown"
    audio_map = "unknown"
    filter_chain = "none"

    for i, arg in enumerate(cmd):
        nxt = cmd[i + 1] if i + 1 < len(cmd) else None
        if arg == "-i" and nxt is not None:
            input_uri = nxt
        elif arg == "-c:v" and nxt is not None:
            # The first -c:v precedes -i when a hardware decoder is selected
            if input_uri is None:
                decoder = nxt
            else:
                video_codec = nxt
        elif arg == "-vf" and nxt is not None:
            filter_chain = nxt
        elif arg == "-map" and nxt is not None and nxt.startswith("0:a"):
            audio_map = nxt

    return (
        f"FFmpeg relay: decode={decoder}, filters={filter_chain}, video={video_codec}, "
        f"audio={audio_map}, input: {input_uri}, output: {cmd[-1]}"
    )
