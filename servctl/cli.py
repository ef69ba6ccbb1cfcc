#!/usr/bin/env python3
"""servctl CLI - Storage planning for self-hosted servers."""

import typer
from rich.console import Console

from servctl.cli_storage_commands import register_storage_commands
from servctl.core.logger import get_logger

app = typer.Typer(
    name="servctl",
    help="""servctl - Turn raw disks into a safe storage layout

Quick start:
  servctl disks              # What is plugged in
  servctl plan               # Ranked storage strategies
  servctl apply --dry-run    # See every step first
  servctl apply              # Make it happen
""",
    add_completion=False,
)

console = Console()
logger = get_logger(__name__)

register_storage_commands(app, console)

if __name__ == "__main__":
    app()
