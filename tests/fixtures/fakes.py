"""
Test doubles for the process registry, the stream inspector and spawned relays.

The fake registry and spawner share an EventLog so tests can assert the
order of kills and spawns for an output target.
"""

from __future__ import annotations

from chanrelay.runtime.process_registry import BoundProcess
from chanrelay.streaming.inspector import AudioTrack


class EventLog(list):
    """Ordered ``(event, detail)`` tuples recorded by the fakes."""

    def kinds(self) -> list[str]:
        return [kind for kind, _ in self]


class FakeProcess:
    """Stands in for subprocess.Popen; exits only when told to."""

    def __init__(self, pid: int, argv: list[str]):
        self.pid = pid
        self.argv = argv
        self.returncode: int | None = None

    def poll(self) -> int | None:
        return self.returncode

    def exit(self, code: int = 1) -> None:
        self.returncode = code


class FakeRegistry:
    """In-memory process table keyed by output target."""

    def __init__(self, events: EventLog | None = None):
        self.events = events if events is not None else EventLog()
        self._bound: dict[str, list[BoundProcess]] = {}
        self.queries: list[str] = []

    def bind(self, target: str, pid: int, argv: list[str] | None = None) -> None:
        argv = argv or ["ffmpeg", "-i", "udp://src", target]
        self._bound.setdefault(target, []).append(BoundProcess(pid=pid, argv=tuple(argv)))

    def unbind(self, target: str) -> None:
        self._bound.pop(target, None)

    def find_bound(self, target: str) -> list[BoundProcess]:
        self.queries.append(target)
        return list(self._bound.get(target, []))

    def kill_bound(self, target: str) -> list[int]:
        killed = [bound.pid for bound in self._bound.pop(target, [])]
        for pid in killed:
            self.events.append(("kill", pid))
        return killed


class FakeInspector:
    """Inspector returning canned probe results."""

    def __init__(
        self,
        video_codec: str = "h264",
        tracks: list[AudioTrack] | None = None,
        diagnose_ok: bool = True,
    ):
        self.timeout = 8.0
        self.video_codec = video_codec
        self.tracks = tracks or []
        self.diagnose_ok = diagnose_ok
        self.codec_calls: list[str] = []
        self.audio_calls: list[str] = []
        self.diagnose_calls: list[str] = []

    def probe_video_codec(self, uri: str) -> str:
        self.codec_calls.append(uri)
        return self.video_codec

    def probe_audio_tracks(self, uri: str) -> list[AudioTrack]:
        self.audio_calls.append(uri)
        return list(self.tracks)

    def diagnose(self, uri: str) -> tuple[bool, str]:
        self.diagnose_calls.append(uri)
        if self.diagnose_ok:
            return True, "Input #0, mpegts, from 'udp://src':"
        return False, ""


class RecordingSpawner:
    """Spawn function that registers the new relay in the fake registry."""

    def __init__(self, registry: FakeRegistry, events: EventLog, first_pid: int = 1000):
        self.registry = registry
        self.events = events
        self.next_pid = first_pid
        self.spawned: list[FakeProcess] = []
        self.fail_with: OSError | None = None

    def __call__(self, argv, log) -> FakeProcess:
        if self.fail_with is not None:
            raise self.fail_with
        process = FakeProcess(self.next_pid, list(argv))
        self.next_pid += 1
        self.registry.bind(argv[-1], process.pid, list(argv))
        self.events.append(("spawn", process.pid))
        self.spawned.append(process)
        return process
