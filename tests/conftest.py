"""
Global test configuration for chanrelay.

This module provides global pytest configuration and fixtures.
"""

import sys
from pathlib import Path

import pytest

# Ensure the project src directory and test fakes are importable without relying on external environment.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = PROJECT_ROOT / "src"
FIXTURES_PATH = Path(__file__).resolve().parent / "fixtures"
for path in (SRC_PATH, FIXTURES_PATH):
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))

from chanrelay.runtime.channel_log import ChannelLogFactory  # noqa: E402
from chanrelay.runtime.clock import SteppedClock  # noqa: E402
from chanrelay.usecases.channel_launch import ChannelLauncher  # noqa: E402
from fakes import EventLog, FakeInspector, FakeRegistry, RecordingSpawner  # noqa: E402

OUTPUT_PREFIX = "rtmp://ingest.test:1935/live"


@pytest.fixture
def clock():
    return SteppedClock(start=1_700_000_000.0)


@pytest.fixture
def events():
    return EventLog()


@pytest.fixture
def registry(events):
    return FakeRegistry(events)


@pytest.fixture
def inspector():
    return FakeInspector()


@pytest.fixture
def spawner(registry, events):
    return RecordingSpawner(registry, events)


@pytest.fixture
def logs(tmp_path, clock):
    return ChannelLogFactory(tmp_path / "logs", max_lines=2000, max_bytes=81920, clock=clock)


@pytest.fixture
def launcher(inspector, registry, logs, spawner):
    return ChannelLauncher(
        inspector=inspector,
        registry=registry,
        logs=logs,
        output_prefix=OUTPUT_PREFIX,
        kill_settle_seconds=0,
        spawn=spawner,
        filter_probe=lambda: frozenset({"scale_qsv"}),
        host_status=lambda: "Mem: ok",
    )
