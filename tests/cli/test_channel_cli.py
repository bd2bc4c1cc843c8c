"""
CLI tests for chanrelay.

Runtime objects are swapped for the in-memory fakes by patching the CLI's
runtime factory, so no ffmpeg, ffprobe or process table access happens.
"""

from __future__ import annotations

import json

import pytest
import typer
from typer.testing import CliRunner

from chanrelay.cli import main as cli_main
from chanrelay.cli.commands._ops import runtime_factory
from chanrelay.cli.router import CliRouter
from chanrelay.runtime.supervisor import ChannelSupervisor

runner = CliRunner()

CHANNEL_FILE = (
    "# source | name | overrides\n"
    "udp://239.0.0.1:1234|canal1|encoder=cpu\n"
    "udp://239.0.0.2:1234|news1|encoder=qsv,nodeint=1,scale=1920:1080\n"
)


@pytest.fixture(autouse=True)
def quiet_logging(monkeypatch):
    monkeypatch.setattr(cli_main, "configure_logging", lambda **kwargs: None)


@pytest.fixture
def channel_file(tmp_path):
    path = tmp_path / "canales.txt"
    path.write_text(CHANNEL_FILE)
    return path


@pytest.fixture
def fake_runtime(monkeypatch, launcher, registry, clock):
    def build_supervisor(channels, options, cfg=None):
        return ChannelSupervisor(channels, launcher=launcher, registry=registry, clock=clock)

    monkeypatch.setattr(runtime_factory, "build_supervisor", build_supervisor)
    monkeypatch.setattr(runtime_factory, "build_launcher", lambda options, cfg=None: launcher)
    return launcher


def invoke(channel_file, *args):
    return runner.invoke(cli_main.app, ["--channels", str(channel_file), *args])


class TestRelaunch:
    def test_relaunch_known_channel(self, channel_file, fake_runtime, registry, spawner):
        registry.bind(f"{fake_runtime.output_prefix}/canal1", 55)

        result = invoke(channel_file, "relaunch", "canal1")

        assert result.exit_code == 0, result.output
        assert "FFmpeg process (PID 55) for canal1 killed." in result.output
        assert "Channel canal1 relaunched manually." in result.output
        assert [p.argv[-1] for p in spawner.spawned] == [f"{fake_runtime.output_prefix}/canal1"]

    def test_channel_group_relaunch(self, channel_file, fake_runtime, spawner):
        result = invoke(channel_file, "channel", "relaunch", "news1")
        assert result.exit_code == 0, result.output
        assert len(spawner.spawned) == 1

    def test_unknown_channel_exits_1(self, channel_file, fake_runtime, spawner):
        result = invoke(channel_file, "relaunch", "nope")
        assert result.exit_code == 1
        assert "Channel 'nope' not found" in result.output
        assert spawner.spawned == []

    def test_missing_channel_file_exits_1(self, tmp_path, fake_runtime):
        result = invoke(tmp_path / "missing.txt", "relaunch", "canal1")
        assert result.exit_code == 1
        assert "ERROR" in result.output

    def test_spawn_failure_exits_1(self, channel_file, fake_runtime, spawner):
        spawner.fail_with = FileNotFoundError("ffmpeg")
        result = invoke(channel_file, "relaunch", "canal1")
        assert result.exit_code == 1
        assert "Relaunch failed" in result.output


class TestList:
    def test_list_json(self, channel_file):
        result = invoke(channel_file, "channel", "list", "--json")
        assert result.exit_code == 0, result.output

        payload = json.loads(result.stdout)
        assert payload["status"] == "ok"
        assert [c["name"] for c in payload["channels"]] == ["canal1", "news1"]
        assert payload["channels"][1]["overrides"] == "encoder=qsv,nodeint=1,scale=1920:1080"
        assert payload["channels"][0]["target"].endswith("/canal1")

    def test_list_table(self, channel_file):
        result = invoke(channel_file, "channel", "list")
        assert result.exit_code == 0, result.output
        assert "canal1" in result.output
        assert "news1" in result.output


class TestPlan:
    def test_plan_json(self, channel_file, fake_runtime, spawner, events):
        result = invoke(channel_file, "channel", "plan", "news1", "--json")
        assert result.exit_code == 0, result.output

        payload = json.loads(result.stdout)
        assert payload["channel"] == "news1"
        assert payload["argv"][:4] == ["ffmpeg", "-y", "-hwaccel", "qsv"]
        assert "scale_qsv=w=1920:h=1080" in payload["argv"]
        assert payload["params"].startswith("nodeint=1, encoder=qsv")
        assert spawner.spawned == []
        assert events == []

    def test_plan_text(self, channel_file, fake_runtime):
        result = invoke(channel_file, "channel", "plan", "canal1")
        assert result.exit_code == 0, result.output
        assert result.stdout.startswith("FFmpeg relay: decode=software, filters=yadif,scale=1280:720")

    def test_plan_unknown_channel(self, channel_file, fake_runtime):
        assert invoke(channel_file, "channel", "plan", "nope").exit_code == 1


class TestRootCommand:
    def test_help_lists_commands(self):
        result = runner.invoke(cli_main.app, ["--help"])
        assert result.exit_code == 0
        for command in ("run", "relaunch", "channel"):
            assert command in result.output

    def test_run_supervises_until_interrupted(self, channel_file, fake_runtime, monkeypatch, spawner):
        def interrupt(self, *, launch=True):
            self.launch_all()
            raise KeyboardInterrupt

        monkeypatch.setattr(ChannelSupervisor, "run_forever", interrupt)
        result = invoke(channel_file, "run")

        assert result.exit_code == 0, result.output
        assert len(spawner.spawned) == 2
        assert "Shutting down supervisor" in result.output


class TestRouter:
    def test_channel_group_is_registered(self):
        assert [group.name for group in cli_main.router.groups()] == ["channel"]

    def test_duplicate_group_is_rejected(self):
        router = CliRouter(typer.Typer())
        router.register("channel", typer.Typer())
        with pytest.raises(ValueError):
            router.register("channel", typer.Typer())
