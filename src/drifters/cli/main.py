"""
Drifters CLI Main Entry Point.

Provides the command-line interface for syncing configuration files.
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click
import humanize
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table

from drifters import __version__
from drifters.core.config import (
    CONFIG_FILENAME,
    DEFAULT_CONFIG_DIRECTORY,
    DriftersConfig,
    detect_machine_id,
    load_config,
)
from drifters.core.errors import DriftersError
from drifters.core.logging import setup_logging
from drifters.store.lock import LockInfo
from drifters.sync.manager import SyncManager, SyncStatus

console = Console()

_STATE_STYLES = {
    "up to date": "[green]✓ up to date[/green]",
    "local changes": "[yellow]↑ local changes (run 'drifters push')[/yellow]",
    "remote changes": "[cyan]↓ remote changes (run 'drifters pull')[/cyan]",
    "not pushed": "[yellow]↑ not yet pushed[/yellow]",
    "unreadable": "[red]⚠ unreadable[/red]",
}


def _notify_waiting(info: LockInfo | None) -> None:
    holder = f" (PID {info.pid})" if info and info.pid else ""
    console.print(f"[yellow]Waiting for another drifters process{holder}...[/yellow]")


def get_manager(ctx: click.Context, require_init: bool = True) -> SyncManager:
    """Get or create the sync manager from context."""
    if "manager" not in ctx.obj:
        config = load_config(ctx.obj["config_path"], require_init=require_init)
        setup_logging(config.logging, level="DEBUG" if ctx.obj["verbose"] else None)
        ctx.obj["manager"] = SyncManager(config, on_wait=_notify_waiting)
    return ctx.obj["manager"]


def print_status(ctx: click.Context, status: SyncStatus, show_diff: bool = False) -> None:
    if ctx.obj.get("json_output"):
        click.echo(json.dumps(status.to_dict(), indent=2, default=str))
        return

    for change in status.changes:
        if change.action == "unchanged":
            continue
        line = escape(f"  [{change.app}] {change.path}: {change.action}")
        if change.sources:
            line += f" (from {change.sources} machine{'s' if change.sources != 1 else ''})"
        if change.reason:
            line += escape(f" - {change.reason}")
        console.print(line)
        if show_diff and change.diff:
            console.print(Syntax(change.diff, "diff", theme="ansi_dark"))

    for warning in status.warnings:
        console.print(f"! {warning}", style="yellow", markup=False)
    for error in status.errors:
        console.print(f"✗ {error}", style="red", markup=False)

    summary = status.summary
    console.print(
        f"\n{summary.changed} changed, {summary.unchanged} up to date, "
        f"{summary.skipped} skipped, {summary.errors} failed"
    )


@click.group()
@click.version_option(version=__version__, prog_name="drifters")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=DEFAULT_CONFIG_DIRECTORY / CONFIG_FILENAME,
    show_default=True,
    help="Path to configuration file",
)
@click.option("--json", "json_output", is_flag=True, help="Output in JSON format")
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging")
@click.pass_context
def cli(ctx: click.Context, config_path: Path, json_output: bool, verbose: bool) -> None:
    """
    Drifters - keep configuration files in sync across machines.
    """
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["json_output"] = json_output
    ctx.obj["verbose"] = verbose


@cli.command()
@click.argument("repo_url")
@click.option("--machine-id", help="Identifier for this machine (default: host name)")
@click.pass_context
def init(ctx: click.Context, repo_url: str, machine_id: str | None) -> None:
    """Connect this machine to a sync repository."""
    config_path: Path = ctx.obj["config_path"]
    config = DriftersConfig.load(config_path)
    config.repo_url = repo_url
    config.machine_id = machine_id or config.machine_id or detect_machine_id()
    config.ensure_directories()
    setup_logging(config.logging, level="DEBUG" if ctx.obj["verbose"] else None)

    manager = SyncManager(config, on_wait=_notify_waiting)
    with console.status("Setting up repository..."):
        manager.init(config_path)

    console.print(
        Panel(
            f"[cyan]Machine:[/cyan] {config.machine_id} ({manager.os_name})\n"
            f"[cyan]Repository:[/cyan] {repo_url}\n"
            f"[cyan]Config:[/cyan] {config_path}",
            title="Initialized",
        )
    )


@cli.command()
@click.argument("app")
@click.argument("patterns", nargs=-1, required=True)
@click.option("--exclude", "-x", multiple=True, help="Exclude pattern (repeatable)")
@click.pass_context
def add(ctx: click.Context, app: str, patterns: tuple[str, ...], exclude: tuple[str, ...]) -> None:
    """Track files of APP matching PATTERNS on every machine."""
    manager = get_manager(ctx)
    with console.status("Updating sync rules..."):
        changed = manager.add_app(app, list(patterns), list(exclude))
    if changed:
        console.print(f"[green]✓ Updated rules for '{app}'[/green]")
    else:
        console.print(f"Rules for '{app}' already contain these patterns")


@cli.command()
@click.argument("app")
@click.argument("filename")
@click.pass_context
def exclude(ctx: click.Context, app: str, filename: str) -> None:
    """Stop syncing FILENAME of APP on this machine."""
    manager = get_manager(ctx)
    with console.status("Updating sync rules..."):
        added = manager.exclude_file(app, filename)
    if added:
        console.print(f"[green]✓ Excluded '{filename}' from {app} on '{manager.machine_id}'[/green]")
    else:
        console.print(f"'{filename}' is already excluded from {app} on '{manager.machine_id}'")


@cli.command()
@click.argument("app", required=False)
@click.option("--force", "--yolo", is_flag=True, help="Skip push safety checks")
@click.pass_context
def push(ctx: click.Context, app: str | None, force: bool) -> None:
    """Push this machine's files to the repository."""
    manager = get_manager(ctx)
    with console.status("Pushing..."):
        status = manager.push(app, force=force)
    print_status(ctx, status)
    if not ctx.obj.get("json_output"):
        if status.committed:
            console.print("[green]✓ Changes committed and pushed[/green]")
        else:
            console.print("Nothing to push")


@cli.command()
@click.argument("app", required=False)
@click.option("--machine", "filter_machine", help="Only consider this machine's copies")
@click.option("--os", "filter_os", type=click.Choice(["macos", "linux", "windows"]), help="Resolve files using this OS's rules")
@click.option("--dry-run", is_flag=True, help="Show what would change without writing")
@click.pass_context
def pull(
    ctx: click.Context,
    app: str | None,
    filter_machine: str | None,
    filter_os: str | None,
    dry_run: bool,
) -> None:
    """Merge every machine's copies and apply the result locally."""
    manager = get_manager(ctx)
    with console.status("Pulling..."):
        status = manager.pull(app, filter_machine=filter_machine, filter_os=filter_os, dry_run=dry_run)
    print_status(ctx, status, show_diff=dry_run)


@cli.command()
@click.argument("app", required=False)
@click.pass_context
def diff(ctx: click.Context, app: str | None) -> None:
    """Show what a pull would change."""
    manager = get_manager(ctx)
    with console.status("Comparing..."):
        status = manager.pull(app, dry_run=True)
    print_status(ctx, status, show_diff=True)


@cli.command()
@click.argument("app", required=False)
@click.pass_context
def status(ctx: click.Context, app: str | None) -> None:
    """Show the sync state of every tracked file."""
    manager = get_manager(ctx)
    with console.status("Fetching latest sync rules..."):
        states = manager.status(app)

    if ctx.obj.get("json_output"):
        click.echo(
            json.dumps(
                [{"app": s.app, "path": str(s.path), "state": s.state} for s in states],
                indent=2,
            )
        )
        return

    table = Table(title=f"Drifters Status - {manager.machine_id} ({manager.os_name})")
    table.add_column("App", style="cyan")
    table.add_column("File")
    table.add_column("State")
    for state in states:
        table.add_row(state.app, str(state.path), _STATE_STYLES.get(state.state, state.state))
    console.print(table)

    if not states:
        console.print("No tracked files on this machine. Use 'drifters add <app> <pattern>'.")


@cli.command()
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def unlock(ctx: click.Context, yes: bool) -> None:
    """Remove a lock left behind by a crashed or interrupted command."""
    manager = get_manager(ctx, require_init=False)
    info = manager.lock_info()
    if info is None:
        console.print("No lock file found. Nothing to unlock.")
        return

    if info.pid is None:
        holder = "unknown"
    elif info.holder_alive:
        holder = f"PID {info.pid} [red](still running)[/red]"
    else:
        holder = f"PID {info.pid} (not running)"
    console.print(
        Panel(
            f"[cyan]Lock file:[/cyan] {info.path}\n"
            f"[cyan]Held by:[/cyan] {holder}\n"
            f"[cyan]Age:[/cyan] {humanize.naturaldelta(info.age_seconds)}",
            title="Working-copy lock",
        )
    )
    console.print("Only remove this if drifters crashed or was interrupted.")

    if not yes and not click.confirm("Remove lock file?", default=False):
        console.print("Cancelled.")
        return

    manager.unlock()
    console.print("[green]✓ Lock file removed[/green]")


def main() -> None:
    """Main entry point."""
    try:
        cli(obj={})
    except KeyboardInterrupt:
        console.print("\n[yellow]Operation cancelled[/yellow]")
        sys.exit(130)
    except DriftersError as e:
        console.print(f"Error: {e}", style="red", markup=False)
        if e.remediation:
            console.print(e.remediation, style="yellow", markup=False)
        sys.exit(1)


if __name__ == "__main__":
    main()
