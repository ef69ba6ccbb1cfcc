"""Storage CLI commands - disks, plan, apply, spindown, filesystems."""
import json
from typing import Any, List, Optional

import typer
import yaml
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from servctl.cli_support import (
    confirm_action,
    handle_cli_error,
    print_error,
    print_info,
    print_result,
    print_success,
    print_warning,
    setup_file_logging,
)
from servctl.core.applicator import StrategyApplicator
from servctl.core.config import is_mock, load_strategy_config
from servctl.core.lock import LockError, apply_lock
from servctl.core.power import PowerManager
from servctl.discovery.classifier import classify_disks
from servctl.discovery.hwdetect import SystemDetector
from servctl.discovery.recommender import generate_strategies
from servctl.discovery.scanner import DiskInventory
from servctl.models.disk import GIB, Disk, SystemInfo
from servctl.models.errors import ServctlError
from servctl.models.filesystem import FILESYSTEM_OPTIONS
from servctl.models.strategy import (
    OperationResult,
    Strategy,
    StrategyConfig,
    StrategyID,
    describe_schedule,
)

# Module-level console instance (will be set by register function)
console: Console = Console()


def register_storage_commands(app: typer.Typer, shared_console: Console) -> None:
    """Attach the storage commands to the root CLI."""
    global console
    console = shared_console
    app.command("disks")(disks)
    app.command("plan")(plan)
    app.command("apply")(apply)
    app.command("spindown")(spindown)
    app.command("filesystems")(filesystems)


def _discover(verbose: bool = False) -> List[Disk]:
    try:
        return DiskInventory().discover()
    except ServctlError as e:
        handle_cli_error(e, console, verbose)


def _emit(payload: Any, as_json: bool, as_yaml: bool) -> None:
    if as_json:
        typer.echo(json.dumps(payload, indent=2, ensure_ascii=False))
    else:
        typer.echo(yaml.safe_dump(payload, sort_keys=False, allow_unicode=True))


def _system_info(disk_list: List[Disk], ram_gb: Optional[float]) -> SystemInfo:
    info = SystemDetector().detect(disk_list)
    if ram_gb is not None:
        info = SystemInfo(total_ram=int(ram_gb * GIB), has_hardware_raid=info.has_hardware_raid)
    return info


def disks(
    as_json: bool = typer.Option(False, "--json", help="Print the inventory as JSON"),
):
    """List block devices and whether they can hold data."""
    disk_list = _discover()

    if as_json:
        _emit([d.to_dict() for d in disk_list], as_json=True, as_yaml=False)
        return

    if not disk_list:
        print_warning(console, "No disks found")
        return

    table = Table(title="Disks")
    table.add_column("Device", style="cyan")
    table.add_column("Type")
    table.add_column("Size", justify="right")
    table.add_column("Model")
    table.add_column("Status")

    for disk in disk_list:
        if disk.is_os_disk:
            status = "[yellow]OS disk[/yellow]"
        elif disk.removable:
            status = "[dim]removable[/dim]"
        elif disk.is_available:
            status = "[green]available[/green]"
        else:
            status = f"[dim]{len(disk.partitions)} partition(s)[/dim]"
        table.add_row(disk.path, disk.disk_type.label, disk.size_human, disk.model or "-", status)

    console.print(table)


def filesystems(
    as_json: bool = typer.Option(False, "--json", help="Print the catalogue as JSON"),
):
    """Compare the filesystems servctl knows about."""
    if as_json:
        _emit([option.to_dict() for option in FILESYSTEM_OPTIONS], as_json=True, as_yaml=False)
        return

    table = Table(title="Filesystems", show_lines=True)
    table.add_column("Filesystem", style="cyan")
    table.add_column("Pros", style="green")
    table.add_column("Cons", style="yellow")
    table.add_column("Notes")

    for option in FILESYSTEM_OPTIONS:
        notes = []
        if option.is_default:
            notes.append("[green]default[/green]")
        if option.min_ram_gb_per_tb:
            notes.append(f"needs {option.min_ram_gb_per_tb} GB RAM per TB")
        if not option.formattable:
            notes.append("[dim]mirror pools only[/dim]")
        table.add_row(
            f"{option.name}\n[dim]{option.description}[/dim]",
            "\n".join(f"+ {p}" for p in option.pros),
            "\n".join(f"- {c}" for c in option.cons),
            "\n".join(notes) or "-",
        )

    console.print(table)


def plan(
    ranks: bool = typer.Option(False, "--ranks", help="Show the 5 Ranks role recommendations"),
    as_json: bool = typer.Option(False, "--json", help="Print as JSON"),
    as_yaml: bool = typer.Option(False, "--yaml", help="Print as YAML"),
    ram_gb: Optional[float] = typer.Option(None, "--ram-gb", help="Override detected RAM (GiB)"),
):
    """Show the storage strategies for this host, best first."""
    disk_list = _discover()

    if ranks:
        result = classify_disks(disk_list)
        if as_json or as_yaml:
            _emit({
                "scenario": result.scenario.value,
                "os_disk": result.os_disk.path if result.os_disk else None,
                "recommendations": [r.to_dict() for r in result.recommendations],
            }, as_json, as_yaml)
            return

        console.print(f"\n[bold]Scenario:[/bold] {result.scenario.label}")
        for rec in result.recommendations:
            marker = " [green](default)[/green]" if rec.is_default else ""
            console.print(f"\n[cyan]{rec.rank.label}[/cyan]: [bold]{rec.name}[/bold]{marker}")
            console.print(f"  {rec.description}")
            for a in rec.assignments:
                mount = escape(f"[{a.mount}]")
                console.print(f"    • {a.disk.name} ({a.disk.disk_type.label} {a.disk.size_human}) → {a.role} {mount}")
            if rec.warning:
                print_warning(console, rec.warning, prefix="  ")
        return

    strategies = generate_strategies(disk_list, _system_info(disk_list, ram_gb))

    if as_json or as_yaml:
        _emit({
            "strategies": [s.to_dict() for s in strategies],
            "recommended": next((i for i, s in enumerate(strategies, start=1) if s.recommended), None),
        }, as_json, as_yaml)
        return

    table = Table(title="Storage strategies")
    table.add_column("#", justify="right")
    table.add_column("Strategy", style="bold")
    table.add_column("Capacity")
    table.add_column("Protection")
    table.add_column("Best for")
    table.add_column("Score", justify="right")

    for i, strategy in enumerate(strategies, start=1):
        name = f"★ {strategy.name}" if strategy.recommended else strategy.name
        table.add_row(str(i), name, strategy.capacity, strategy.protection, strategy.best_for, str(strategy.score))

    console.print(table)
    for strategy in strategies:
        if strategy.warning:
            print_warning(console, f"{strategy.name}: {strategy.warning}")


def _choose(strategies: List[Strategy], index: Optional[int]) -> Strategy:
    if index is None:
        return next(s for s in strategies if s.recommended)
    if index < 1 or index > len(strategies):
        print_error(console, f"Invalid strategy {index}: choose 1-{len(strategies)}")
        raise typer.Exit(1)
    return strategies[index - 1]


def _preview(strategy: Strategy, cfg: StrategyConfig) -> None:
    console.print(f"\n[bold]{strategy.name}[/bold]")
    console.print(f"  {strategy.description}")
    for disk in strategy.disks:
        console.print(f"  Disk: {disk.path} ({disk.disk_type.label} {disk.size_human})")
    console.print(f"  Mount: {cfg.mountpoint}")
    console.print(f"  Filesystem: {cfg.filesystem}")
    console.print(f"  Label: {cfg.label}")
    if strategy.id == StrategyID.BACKUP:
        console.print(f"  Schedule: {describe_schedule(cfg.backup_schedule)}")


def apply(
    strategy_index: Optional[int] = typer.Option(
        None, "--strategy", "-s", help="Strategy number from 'servctl plan' (default: recommended)",
    ),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Strategy config YAML file"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Show actions without applying"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
    log_file: Optional[str] = typer.Option(None, "--log-file", help="Path to log file"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
):
    """Format, mount and persist the chosen strategy."""
    setup_file_logging(log_file=log_file, verbose=verbose)

    try:
        cfg = load_strategy_config(config) if config else StrategyConfig()
    except (FileNotFoundError, ServctlError) as e:
        handle_cli_error(e, console, verbose)

    disk_list = _discover(verbose)
    strategies = generate_strategies(disk_list, _system_info(disk_list, None))
    strategy = _choose(strategies, strategy_index)

    if is_mock() and not dry_run:
        print_warning(console, "Mock mode: forcing --dry-run")
        dry_run = True

    _preview(strategy, cfg)

    if not dry_run and strategy.disks:
        targets = ", ".join(d.path for d in strategy.disks)
        if not confirm_action(f"\nThis will ERASE all data on {targets}. Continue?", yes_flag=yes):
            print_warning(console, "Apply cancelled")
            return

    applicator = StrategyApplicator()
    if dry_run:
        results = applicator.apply(strategy, cfg, dry_run=True)
    else:
        try:
            with apply_lock():
                results = applicator.apply(strategy, cfg, dry_run=False)
        except LockError as e:
            handle_cli_error(e, console, verbose)

    console.print()
    _report(results, verbose)
    if dry_run:
        print_warning(console, "DRY RUN - No changes applied")


def spindown(
    dry_run: bool = typer.Option(False, "--dry-run", help="Show actions without applying"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug events"),
):
    """Enable spindown on data HDDs and persist it in hdparm.conf."""
    disk_list = _discover(verbose)
    if is_mock() and not dry_run:
        print_warning(console, "Mock mode: forcing --dry-run")
        dry_run = True

    results = PowerManager().configure_all(disk_list, dry_run=dry_run)
    if not results:
        print_info(console, "No data HDDs found")
        return
    _report(results, verbose)


def _report(results: List[OperationResult], verbose: bool) -> None:
    for result in results:
        print_result(console, result, verbose)

    failed = [r for r in results if not r.success]
    if failed:
        print_error(console, f"{len(failed)} of {len(results)} step(s) failed")
        raise typer.Exit(1)
    print_success(console, f"{len(results)} step(s) completed")
