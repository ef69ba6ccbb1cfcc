"""Shared utilities for servctl CLI modules."""
from __future__ import annotations

from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape

from servctl.core.config import is_mock
from servctl.models.strategy import OperationResult


def setup_file_logging(log_file: Optional[str] = None, verbose: bool = False) -> None:
    """Set up file logging for CLI commands.

    Args:
        log_file: Path to log file (optional)
        verbose: Enable verbose logging
    """
    from servctl.core.logger import setup_file_logging as _setup_file_logging
    _setup_file_logging(log_file=log_file, verbose=verbose)


def confirm_action(message: str, yes_flag: bool = False, mock: Optional[bool] = None) -> bool:
    """Prompt user for confirmation unless --yes or mock mode.

    Args:
        message: Confirmation message to display
        yes_flag: Skip prompt if True (from --yes flag)
        mock: Skip prompt if True (defaults to SERVCTL_MOCK)

    Returns:
        True if confirmed, False otherwise
    """
    if mock is None:
        mock = is_mock()
    if yes_flag or mock:
        return True
    return typer.confirm(message)


def handle_cli_error(
    e: Exception,
    console: Console,
    verbose: bool = False,
    exit_code: int = 1
) -> None:
    """Print an error and exit with ``exit_code``."""
    console.print(f"[red]Error:[/red] {e}")
    if verbose:
        console.print_exception()
    raise typer.Exit(exit_code)


def print_success(console: Console, message: str, prefix: str = "✓") -> None:
    console.print(f"[green]{prefix}[/green] {message}")


def print_error(console: Console, message: str, prefix: str = "✗") -> None:
    console.print(f"[red]{prefix}[/red] {message}")


def print_warning(console: Console, message: str, prefix: str = "⚠") -> None:
    console.print(f"[yellow]{prefix}[/yellow] {message}")


def print_info(console: Console, message: str, prefix: str = "ℹ") -> None:
    console.print(f"[cyan]{prefix}[/cyan] {message}")


def print_result(console: Console, result: OperationResult, verbose: bool = False) -> None:
    """Render one step result plus its warning (and, if verbose, debug) events."""
    if not result.success:
        print_error(console, escape(result.message))
    elif result.skipped:
        print_info(console, escape(result.message))
    else:
        print_success(console, escape(result.message))

    for event in result.events:
        if event.message == result.message:
            continue
        if event.level == "warning":
            print_warning(console, escape(event.message), prefix="  ⚠")
        elif event.level == "error":
            print_error(console, escape(event.message), prefix="  ✗")
        elif verbose:
            console.print(f"  [dim]{escape(event.message)}[/dim]")
