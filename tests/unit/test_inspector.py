"""
Unit tests for the ffprobe inspector.

subprocess.run is patched; no ffprobe binary is needed.
"""

import json
import subprocess
from unittest.mock import MagicMock, patch

from chanrelay.streaming.inspector import (
    AudioTrack,
    FFprobeInspector,
    parse_audio_streams,
    parse_video_codec,
)

RUN = "chanrelay.streaming.inspector.subprocess.run"

STREAMS = {
    "streams": [
        {"index": 0, "codec_type": "video", "codec_name": "mpeg2video"},
        {"index": 1, "codec_type": "audio", "codec_name": "mp2", "tags": {"language": "eng"}},
        {"index": 2, "codec_type": "subtitle", "codec_name": "dvb_subtitle"},
        {"index": 3, "codec_type": "audio", "codec_name": "ac3", "tags": {"language": "spa"}},
        {"index": 4, "codec_type": "audio", "codec_name": "ac3"},
    ]
}


def _completed(payload, returncode=0, stderr=""):
    return MagicMock(stdout=json.dumps(payload), stderr=stderr, returncode=returncode)


class TestParsing:
    def test_audio_positions_count_audio_streams_only(self):
        assert parse_audio_streams(STREAMS) == [
            AudioTrack(pos=0, index=1, lang="eng"),
            AudioTrack(pos=1, index=3, lang="spa"),
            AudioTrack(pos=2, index=4, lang=""),
        ]

    def test_video_codec(self):
        assert parse_video_codec(STREAMS) == "mpeg2video"
        assert parse_video_codec({"streams": []}) == ""


class TestFFprobeInspector:
    def test_probe_video_codec_selects_video_streams(self):
        inspector = FFprobeInspector("/opt/ffprobe", timeout=5)
        payload = {"streams": [{"index": 0, "codec_name": "h264"}]}
        with patch(RUN, return_value=_completed(payload)) as run:
            assert inspector.probe_video_codec("udp://src") == "h264"

        argv = run.call_args.args[0]
        assert argv[0] == "/opt/ffprobe"
        assert argv[argv.index("-select_streams") + 1] == "v"
        assert argv[-1] == "udp://src"
        assert run.call_args.kwargs["timeout"] == 5

    def test_probe_audio_tracks(self):
        with patch(RUN, return_value=_completed(STREAMS)):
            tracks = FFprobeInspector().probe_audio_tracks("udp://src")
        assert [track.lang for track in tracks] == ["eng", "spa", ""]

    def test_timeout_reports_no_data(self, caplog):
        with patch(RUN, side_effect=subprocess.TimeoutExpired(cmd="ffprobe", timeout=8)):
            inspector = FFprobeInspector()
            assert inspector.probe_video_codec("udp://dead") == ""
            assert inspector.probe_audio_tracks("udp://dead") == []
        assert "timed out" in caplog.text

    def test_missing_executable_reports_no_data(self):
        with patch(RUN, side_effect=FileNotFoundError("ffprobe")):
            assert FFprobeInspector().probe_audio_tracks("udp://src") == []

    def test_nonzero_exit_and_bad_json_report_no_data(self):
        with patch(RUN, return_value=_completed({}, returncode=1, stderr="Connection refused")):
            assert FFprobeInspector().probe_video_codec("udp://src") == ""
        garbage = MagicMock(stdout="not json", stderr="", returncode=0)
        with patch(RUN, return_value=garbage):
            assert FFprobeInspector().probe_video_codec("udp://src") == ""

    def test_probe_skips_audio_when_not_needed(self):
        with patch(RUN, return_value=_completed(STREAMS)) as run:
            probe = FFprobeInspector().probe("udp://src", need_audio=False)
        assert probe.video_codec == "mpeg2video"
        assert probe.audio_tracks == ()
        assert run.call_count == 1

    def test_diagnose_never_raises(self):
        with patch(RUN, side_effect=subprocess.TimeoutExpired(cmd="ffprobe", timeout=8, output=b"partial")):
            ok, output = FFprobeInspector().diagnose("udp://src")
        assert ok is False
        assert output == "partial"

        completed = MagicMock(stdout="", stderr="Input #0, mpegts", returncode=0)
        with patch(RUN, return_value=completed):
            assert FFprobeInspector().diagnose("udp://src") == (True, "Input #0, mpegts")
