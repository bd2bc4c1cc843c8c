"""
Main CLI application using Typer with router-based command dispatch.

Invoked without a subcommand, chanrelay loads every channel definition,
launches all channels and supervises them forever. ``chanrelay relaunch NAME``
relaunches a single channel and exits.
"""

from __future__ import annotations

from pathlib import Path

import typer

from ..infra.logging import configure_logging, get_logger
from ..infra.settings import settings
from .commands import channel
from .commands._ops import runtime_factory as _factory
from .router import CliRouter

app = typer.Typer(help="chanrelay channel relay supervisor", invoke_without_command=True)

router = CliRouter(app)

router.register(
    "channel",
    channel.app,
    help_text="Channel relay operations (list, plan, relaunch)",
)


@app.callback()
def main(
    ctx: typer.Context,
    channels_file: Path = typer.Option(
        None, "--channels", "-c", help="Channel definition file (default: CHANRELAY_CHANNELS_FILE)"
    ),
    log_dir: Path = typer.Option(
        None, "--log-dir", help="Directory for per-channel logs (default: CHANRELAY_LOG_DIR)"
    ),
    log_level: str = typer.Option(None, "--log-level", help="Override LOG_LEVEL"),
):
    """Supervise channel relays. Without a command, runs the supervisor."""
    configure_logging(level=log_level)
    ctx.obj = _factory.CliOptions(
        channels_file=channels_file or settings.channels_file,
        log_dir=log_dir or settings.log_dir,
    )
    if ctx.invoked_subcommand is None:
        run_supervisor(ctx.obj)


def run_supervisor(options: _factory.CliOptions) -> None:
    """Launch all channels and supervise them until interrupted."""
    log = get_logger(__name__)
    channels = channel.load_or_exit(options)
    supervisor = _factory.build_supervisor(channels, options)

    removed = supervisor.launcher.logs.purge()
    log.info("logs_reset", log_dir=str(options.log_dir), removed=removed)
    log.info("supervisor_start", channels=len(channels), file=str(options.channels_file))
    try:
        supervisor.run_forever()
    except KeyboardInterrupt:
        typer.echo("\nShutting down supervisor (relays keep running)...")
        supervisor.stop()


@app.command("run")
def run(ctx: typer.Context):
    """Load all channels, launch them and supervise forever."""
    run_supervisor(ctx.obj)


@app.command("relaunch")
def relaunch(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Channel name as written in the channel file"),
):
    """Kill and relaunch a single channel, then exit."""
    channel.relaunch_channel(name, ctx.obj)


def cli() -> None:
    app()
