from __future__ import annotations

import json

import typer
from rich.console import Console
from rich.table import Table

from ...infra.exceptions import ChanRelayError, ChannelListError, ChannelNotFoundError
from ...infra.settings import settings
from ...streaming.ffmpeg_cmd import describe_cmd, get_cmd_summary
from ._ops import runtime_factory as _factory

app = typer.Typer(name="channel", help="Channel relay operations")

console = Console()
err_console = Console(stderr=True)


def _options(ctx: typer.Context) -> _factory.CliOptions:
    if isinstance(ctx.obj, _factory.CliOptions):
        return ctx.obj
    return _factory.default_options()


def load_or_exit(options: _factory.CliOptions):
    try:
        return _factory.load_channels(options)
    except ChannelListError as e:
        err_console.print(f"[red]ERROR: {e}[/red]")
        raise typer.Exit(1)


def relaunch_channel(name: str, options: _factory.CliOptions) -> None:
    """Relaunch one channel by name; exits 1 when it cannot be found or started."""
    channels = load_or_exit(options)
    if not any(channel.name == name for channel in channels):
        err_console.print(
            f"[red]Channel '{name}' not found in {options.channels_file}[/red]"
        )
        raise typer.Exit(1)

    supervisor = _factory.build_supervisor(channels, options)
    console.print(f"[cyan]Relaunching channel: [yellow]{name}[/yellow][/cyan]")
    try:
        result = supervisor.relaunch(name)
    except ChannelNotFoundError as e:
        err_console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)
    except ChanRelayError as e:
        err_console.print(f"[red]Relaunch failed: {e}[/red]")
        raise typer.Exit(1)

    for pid in result.killed:
        console.print(f"[red]FFmpeg process (PID {pid}) for {name} killed.[/red]")
    console.print(f"[green]Channel [yellow]{name}[/yellow] relaunched manually.[/green]")


@app.command("relaunch")
def relaunch(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Channel name as written in the channel file"),
):
    """Kill and relaunch a single channel, then exit."""
    relaunch_channel(name, _options(ctx))


@app.command("list")
def list_channels(
    ctx: typer.Context,
    json_output: bool = typer.Option(False, "--json", help="Output in JSON format"),
):
    """List channel definitions and their output targets."""
    options = _options(ctx)
    channels = load_or_exit(options)

    rows = [
        {
            "name": channel.name,
            "source": channel.source_uri,
            "overrides": channel.raw_params,
            "target": channel.output_target(settings.output_prefix),
        }
        for channel in channels
    ]

    if json_output:
        typer.echo(json.dumps({"status": "ok", "channels": rows}, indent=2))
        return

    table = Table(title=f"Channels ({options.channels_file})")
    table.add_column("Name", style="yellow")
    table.add_column("Source")
    table.add_column("Overrides")
    table.add_column("Output target", style="cyan")
    for row in rows:
        table.add_row(row["name"], row["source"], row["overrides"] or "-", row["target"])
    console.print(table)


@app.command("plan")
def plan(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Channel name as written in the channel file"),
    json_output: bool = typer.Option(False, "--json", help="Output in JSON format"),
):
    """Show the ffmpeg command a launch would run, without starting anything."""
    options = _options(ctx)
    channels = load_or_exit(options)
    channel = next((c for c in channels if c.name == name), None)
    if channel is None:
        err_console.print(f"[red]Channel '{name}' not found in {options.channels_file}[/red]")
        raise typer.Exit(1)

    invocation = _factory.build_launcher(options).prepare(channel)
    if json_output:
        payload = {
            "status": "ok",
            "channel": channel.name,
            "argv": invocation.argv,
            "params": invocation.params.describe(),
        }
        typer.echo(json.dumps(payload, indent=2))
        return

    typer.echo(get_cmd_summary(invocation.argv))
    typer.echo(describe_cmd(invocation.argv))
