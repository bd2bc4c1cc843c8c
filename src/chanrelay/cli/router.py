"""
Registration of chanrelay command groups on the root Typer app.

Each group is a Typer app owning its own subcommands; main.py registers the
groups once at import time.
"""

from __future__ import annotations

from dataclasses import dataclass

import typer


@dataclass(frozen=True)
class CommandGroup:
    name: str
    app: typer.Typer
    help_text: str | None = None


class CliRouter:
    """Attaches command groups to ``root_app`` and remembers what was attached."""

    def __init__(self, root_app: typer.Typer) -> None:
        self.root_app = root_app
        self._groups: dict[str, CommandGroup] = {}

    def register(
        self,
        name: str,
        command_group: typer.Typer,
        *,
        help_text: str | None = None,
    ) -> CommandGroup:
        """
        Raises:
            ValueError: If a group with ``name`` is already registered
        """
        if name in self._groups:
            raise ValueError(f"Command group '{name}' is already registered")
        group = CommandGroup(name=name, app=command_group, help_text=help_text)
        self.root_app.add_typer(command_group, name=name, help=help_text)
        self._groups[name] = group
        return group

    def groups(self) -> list[CommandGroup]:
        """Registered groups in registration order."""
        return list(self._groups.values())
