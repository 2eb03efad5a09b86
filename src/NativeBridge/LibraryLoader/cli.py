# === NAVMAP v1 ===
# {
#   "module": "NativeBridge.LibraryLoader.cli",
#   "purpose": "Typer CLI for inspecting, resolving, and loading native libraries",
#   "sections": [
#     {"id": "clicontext", "name": "CliContext", "anchor": "class-clicontext", "kind": "class"},
#     {"id": "main", "name": "main", "anchor": "function-main", "kind": "function"},
#     {"id": "commands", "name": "Commands", "anchor": "CMD", "kind": "api"}
#   ]
# }
# === /NAVMAP ===

"""Command line interface for the native library loader.

Example:
    $ nativebridge host
    $ nativebridge -v resolve
    $ nativebridge --config loader.yaml load
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from . import __version__
from .api import load_library, resolve_library
from .cache import CacheStore
from .descriptor import PlatformDescriptor
from .errors import NativeLibraryError
from .logging_utils import setup_logging
from .settings import LoaderSettings, get_default_settings, load_settings

_console = Console()


class CliContext:
    """Shared state for one CLI invocation."""

    def __init__(self, settings: LoaderSettings, verbosity: int = 0) -> None:
        self.settings = settings
        self.verbosity = verbosity
        self.console = _console

    def host(self) -> PlatformDescriptor:
        return PlatformDescriptor.from_host(self.settings.flavor)


app = typer.Typer(
    name="nativebridge",
    help="Resolve, cache, and load platform-specific native libraries",
    no_args_is_help=True,
)

_context: Optional[CliContext] = None


def get_context() -> CliContext:
    """Return the current CLI context."""

    if _context is None:
        raise RuntimeError("CLI context not initialized")
    return _context


@app.callback(invoke_without_command=False)
def main(
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        envvar="NATIVEBRIDGE_CONFIG",
        help="Path to a YAML settings file",
    ),
    verbosity: int = typer.Option(
        0,
        "--verbose",
        "-v",
        count=True,
        help="Increase verbosity (-v for INFO, -vv for DEBUG)",
    ),
) -> None:
    """Native library resolution and loading."""

    global _context

    try:
        settings = load_settings(config) if config is not None else get_default_settings()
    except NativeLibraryError as exc:
        _console.print(f"[red]Error loading settings: {exc}[/red]")
        raise typer.Exit(1) from exc

    level = {0: settings.logging.level, 1: "INFO"}.get(verbosity, "DEBUG")
    setup_logging(level=level, log_file=settings.logging.log_file)
    _context = CliContext(settings, verbosity)


@app.command()
def host() -> None:
    """Show the platform descriptor of this machine."""

    ctx = get_context()
    descriptor = ctx.host()
    table = Table(title="Host platform")
    table.add_column("Field")
    table.add_column("Value")
    table.add_row("os", descriptor.os_family)
    table.add_row("arch", descriptor.arch)
    table.add_row("flavor", descriptor.normalized_flavor)
    table.add_row("classifier", descriptor.classifier)
    ctx.console.print(table)


@app.command()
def resolve() -> None:
    """Locate or materialise the native library without loading it."""

    ctx = get_context()
    try:
        resolved = resolve_library(ctx.settings, host=ctx.host())
    except NativeLibraryError as exc:
        ctx.console.print(f"[red]✗ {exc}[/red]")
        raise typer.Exit(1) from exc
    ctx.console.print(f"[green]✓[/green] {resolved.source}: {resolved.entry}", soft_wrap=True)


@app.command()
def load() -> None:
    """Resolve and load the native library into this process."""

    ctx = get_context()
    try:
        loaded = load_library(ctx.settings, host=ctx.host())
    except NativeLibraryError as exc:
        ctx.console.print(f"[red]✗ {exc}[/red]")
        raise typer.Exit(1) from exc
    for index, path in enumerate(loaded.order, start=1):
        ctx.console.print(f"{index:>3}. {path}", soft_wrap=True)
    ctx.console.print(f"[green]✓[/green] loaded {loaded.entry}", soft_wrap=True)


@app.command()
def cache() -> None:
    """List installed cache entries."""

    ctx = get_context()
    store = CacheStore(
        ctx.settings.resolved_cache_dir(), ctx.settings.native_library, ctx.host().os_family
    )
    entries = store.entries()
    if not entries:
        ctx.console.print(f"No cache entries under {store.root}", soft_wrap=True)
        return
    for entry in entries:
        ctx.console.print(str(entry), soft_wrap=True)


@app.command("version")
def version_cmd() -> None:
    """Show version information."""

    get_context().console.print(f"[bold]nativebridge[/bold] version {__version__}")


__all__ = ["app", "CliContext", "get_context", "main"]
