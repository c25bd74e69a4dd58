# === NAVMAP v1 ===
# {
#   "module": "PropsAgent.PropertyLoad.cli",
#   "purpose": "Typer CLI for loading property sources and inspecting snapshots",
#   "sections": [
#     {
#       "id": "clicontext",
#       "name": "CliContext",
#       "anchor": "class-clicontext",
#       "kind": "class"
#     },
#     {
#       "id": "main",
#       "name": "main",
#       "anchor": "function-main",
#       "kind": "function"
#     },
#     {
#       "id": "load",
#       "name": "load",
#       "anchor": "function-load",
#       "kind": "function"
#     },
#     {
#       "id": "run",
#       "name": "run",
#       "anchor": "function-run",
#       "kind": "function"
#     },
#     {
#       "id": "cache-commands",
#       "name": "cache_app",
#       "anchor": "variable-cache-app",
#       "kind": "variable"
#     }
#   ]
# }
# === /NAVMAP ===

"""Typer CLI for the property loader.

Provides:

- ``propsagent load SPECS``: run the pipeline and print the loaded properties
- ``propsagent run SPECS -- CMD``: load into the environment and run ``CMD``
- ``propsagent cache ...``: inspect or clear local snapshots
- Global options (``--config``, ``--log-level``, ``--log-dir``, ``--version``)

Example:
    >>> from PropsAgent.PropertyLoad.cli import app
    >>> if __name__ == "__main__":
    ...     app()
"""

from __future__ import annotations

import json
import os
import subprocess
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.table import Table

from PropsAgent.PropertyLoad import __version__
from PropsAgent.PropertyLoad.cache import (
    cache_path_for,
    clear_snapshot,
    iter_snapshots,
    read_snapshot,
)
from PropsAgent.PropertyLoad.errors import CacheReadFailure, ConfigError
from PropsAgent.PropertyLoad.loader import LoadOutcome, PropertyLoader
from PropsAgent.PropertyLoad.logging_utils import setup_logging
from PropsAgent.PropertyLoad.namespace import EnvironNamespace, PropertyStore
from PropsAgent.PropertyLoad.properties import dump_properties
from PropsAgent.PropertyLoad.settings import LoaderSettings, load_settings

_console = Console()
_err_console = Console(stderr=True)


class CliContext:
    """Shared state for commands: resolved settings and consoles."""

    def __init__(self, settings: LoaderSettings, verbose: bool = False):
        self.settings = settings
        self.verbose = verbose
        self.console = _console
        self.err_console = _err_console

    def cache_path(self, location: str) -> Path:
        return cache_path_for(location, self.settings.cache_dir, self.settings.cache_suffix)


app = typer.Typer(
    name="propsagent",
    help="Load remote or local properties with a local snapshot fallback",
    no_args_is_help=True,
)
cache_app = typer.Typer(help="Inspect and clear local snapshots", no_args_is_help=True)
app.add_typer(cache_app, name="cache")

_context: Optional[CliContext] = None


def get_context() -> CliContext:
    """Return the context set up by :func:`main`."""

    if _context is None:
        raise RuntimeError("CLI context not initialized")
    return _context


def _version_callback(value: bool) -> None:
    if value:
        _console.print(f"propsagent {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        envvar="PROPSAGENT_CONFIG",
        help="YAML settings file",
    ),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="DEBUG, INFO, WARNING or ERROR"),
    log_dir: Optional[Path] = typer.Option(None, "--log-dir", help="Directory for JSON log files"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Print per-source details"),
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
) -> None:
    """Property loader CLI. Global options go before the subcommand."""

    global _context

    try:
        settings = load_settings(config)
        if log_level is not None:
            settings.logging.level = log_level
        if log_dir is not None:
            settings.logging.log_dir = log_dir
    except (ConfigError, ValueError) as exc:
        _err_console.print(f"[red]Error loading settings: {exc}[/red]")
        raise typer.Exit(code=2) from exc

    setup_logging(
        level=settings.logging.level,
        retention_days=settings.logging.retention_days,
        max_log_size_mb=settings.logging.max_log_size_mb,
        log_dir=settings.logging.resolved_log_dir(),
        console=verbose,
    )
    _context = CliContext(settings, verbose=verbose)


def _summarise(ctx: CliContext, outcomes: List[LoadOutcome]) -> None:
    table = Table(title="Property sources")
    table.add_column("Source")
    table.add_column("Force")
    table.add_column("Fetched")
    table.add_column("Applied", justify="right")
    table.add_column("Skipped", justify="right")
    table.add_column("Error")
    for outcome in outcomes:
        table.add_row(
            outcome.spec.location or "<empty>",
            "yes" if outcome.spec.force else "no",
            outcome.fetch_source or ("cache" if outcome.cache_loaded else "-"),
            str(len(outcome.applied)),
            str(len(outcome.skipped)),
            outcome.error or "",
        )
    ctx.err_console.print(table)


@app.command()
def load(
    specs: str = typer.Argument(..., help="Comma separated [!]location list"),
    use_env: bool = typer.Option(
        False, "--env", help="Treat the current environment as already-set properties"
    ),
    as_json: bool = typer.Option(False, "--json", help="Print JSON instead of properties text"),
) -> None:
    """Run the pipeline and print the properties it applied."""

    ctx = get_context()
    store = PropertyStore(dict(os.environ) if use_env else None)
    outcomes = PropertyLoader(store, ctx.settings).load(specs)
    if ctx.verbose:
        _summarise(ctx, outcomes)

    applied = {}
    for outcome in outcomes:
        for key in outcome.applied:
            value = store.get(key)
            if value is not None:
                applied[key] = value
    if as_json:
        typer.echo(json.dumps(applied, indent=2, sort_keys=True))
    else:
        typer.echo(dump_properties(applied), nl=False)


@app.command(context_settings={"allow_extra_args": True, "ignore_unknown_options": True})
def run(
    specs: str = typer.Argument(..., help="Comma separated [!]location list"),
    command: List[str] = typer.Argument(..., help="Command to run after loading"),
) -> None:
    """Load properties into the environment, then run COMMAND with it."""

    ctx = get_context()
    outcomes = PropertyLoader(EnvironNamespace(), ctx.settings).load(specs)
    if ctx.verbose:
        _summarise(ctx, outcomes)
    try:
        completed = subprocess.run(command, check=False)
    except OSError as exc:
        ctx.err_console.print(f"[red]Unable to run {command[0]}: {exc}[/red]")
        raise typer.Exit(code=127) from exc
    raise typer.Exit(code=completed.returncode)


@cache_app.command("path")
def cache_path(location: str = typer.Argument(..., help="Source location")) -> None:
    """Print the snapshot path used for LOCATION."""

    typer.echo(str(get_context().cache_path(location)))


@cache_app.command("show")
def cache_show(
    location: str = typer.Argument(..., help="Source location"),
    raw: bool = typer.Option(False, "--raw", help="Print the payload bytes only"),
) -> None:
    """Show the cached snapshot for LOCATION."""

    ctx = get_context()
    try:
        info = read_snapshot(ctx.cache_path(location))
    except CacheReadFailure as exc:
        ctx.err_console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1) from exc
    if not raw:
        ctx.err_console.print(f"[cyan]{info.path}[/cyan] captured {info.captured} ({info.size} bytes)")
    typer.echo(info.payload.decode(ctx.settings.encoding, errors="replace"), nl=False)


@cache_app.command("list")
def cache_list() -> None:
    """List snapshots in the cache directory."""

    ctx = get_context()
    table = Table(title=f"Snapshots in {ctx.settings.cache_dir}")
    table.add_column("File")
    table.add_column("Captured")
    table.add_column("Bytes", justify="right")
    for path in iter_snapshots(ctx.settings.cache_dir, ctx.settings.cache_suffix):
        try:
            info = read_snapshot(path)
        except CacheReadFailure:
            table.add_row(path.name, "[red]unreadable[/red]", "-")
            continue
        table.add_row(path.name, info.captured, str(info.size))
    ctx.console.print(table)


@cache_app.command("clear")
def cache_clear(location: str = typer.Argument(..., help="Source location")) -> None:
    """Delete the snapshot for LOCATION."""

    ctx = get_context()
    path = ctx.cache_path(location)
    try:
        removed = clear_snapshot(path)
    except OSError as exc:
        ctx.err_console.print(f"[red]Unable to remove {path}: {exc}[/red]")
        raise typer.Exit(code=1) from exc
    if removed:
        ctx.console.print(f"Removed {path}")
    else:
        ctx.console.print(f"No snapshot at {path}")


def cli_main() -> None:
    """Console script entry point."""

    app()


if __name__ == "__main__":  # pragma: no cover
    cli_main()
