"""
CLI for inspecting persistent ff caches.

Commands:
    ff info - Show directory, namespace and size of a cache
    ff ls - List entries
    ff show KEY - Print one entry
    ff rm KEY - Delete one entry
    ff clear - Delete every entry in a namespace
    ff config - Show current configuration
    ff version - Print version
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Annotated, Optional

import orjson
import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ff import __version__
from ff.cache.base import MISSING
from ff.cache.file_cache import FileSystemCache
from ff.config import Settings, clear_settings_cache, get_settings
from ff.exceptions import StorageUnavailableError

app = typer.Typer(
    name="ff",
    help="ff - inspect and manage persistent memoization caches",
    no_args_is_help=True,
)

console = Console()
error_console = Console(stderr=True)

CacheDirOption = Annotated[
    Optional[Path],
    typer.Option("--cache-dir", "-d", help="Storage root (default: FF_CACHE_DIR)"),
]
NamespaceOption = Annotated[
    Optional[str],
    typer.Option("--namespace", "-n", help="Namespace (default: FF_NAMESPACE)"),
]


def _get_settings_safe() -> Settings | None:
    """Get settings, returning None if configuration is invalid."""
    try:
        clear_settings_cache()
        return get_settings()
    except Exception:
        return None


def _open_cache(cache_dir: Path | None, namespace: str | None) -> FileSystemCache:
    """Open the cache selected by CLI options, exiting on failure."""
    if _get_settings_safe() is None:
        error_console.print(
            "[red]Error:[/red] Configuration is invalid. "
            "Run 'ff config' to see what's wrong."
        )
        raise typer.Exit(1)
    try:
        return FileSystemCache(cache_dir=cache_dir, namespace=namespace)
    except (StorageUnavailableError, ValueError) as e:
        error_console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)


def _entry_name(cache: FileSystemCache, key: str) -> str:
    """Accept either an entry name from 'ff ls' or a raw cache key."""
    return key if cache.has_entry(key) else cache.entry_name(key)


def _format_size(size: int) -> str:
    if size < 1024:
        return f"{size} B"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f} KiB"
    return f"{size / (1024 * 1024):.1f} MiB"


@app.command()
def info(
    cache_dir: CacheDirOption = None,
    namespace: NamespaceOption = None,
) -> None:
    """Show the effective directory and size of a cache."""
    cache = _open_cache(cache_dir, namespace)

    sizes = [cache.named_path(name).stat().st_size for name in cache.keys()]

    console.print(
        Panel(
            f"[bold]Directory:[/bold] {cache.directory}\n"
            f"[bold]Namespace:[/bold] {cache.namespace}\n"
            f"[bold]Entries:[/bold] {len(sizes)}\n"
            f"[bold]Size:[/bold] {_format_size(sum(sizes))}",
            title="[bold cyan]ff cache[/bold cyan]",
            border_style="cyan",
        )
    )


@app.command("ls")
def list_entries(
    cache_dir: CacheDirOption = None,
    namespace: NamespaceOption = None,
) -> None:
    """List entries with size and modification time."""
    cache = _open_cache(cache_dir, namespace)

    table = Table(title=f"Entries in {cache.namespace}", show_header=True)
    table.add_column("Key", style="cyan", overflow="fold")
    table.add_column("Size", style="green", justify="right")
    table.add_column("Modified", style="dim")

    count = 0
    for name in cache.keys():
        stat = cache.named_path(name).stat()
        modified = datetime.fromtimestamp(stat.st_mtime).isoformat(timespec="seconds")
        table.add_row(name, _format_size(stat.st_size), modified)
        count += 1

    if count == 0:
        console.print(f"[yellow]No entries in {cache.directory}[/yellow]")
        return

    console.print(table)


@app.command()
def show(
    key: Annotated[str, typer.Argument(help="Cache key or entry name")],
    cache_dir: CacheDirOption = None,
    namespace: NamespaceOption = None,
) -> None:
    """Pretty-print one entry."""
    cache = _open_cache(cache_dir, namespace)
    name = _entry_name(cache, key)

    if not cache.has_entry(name):
        error_console.print(f"[red]No entry for key:[/red] {key}")
        raise typer.Exit(1)

    value = cache.load_entry(name)
    if value is MISSING:
        error_console.print(f"[red]Entry is corrupt:[/red] {cache.named_path(name)}")
        raise typer.Exit(1)

    console.print_json(orjson.dumps(value).decode("utf-8"))


@app.command("rm")
def remove(
    key: Annotated[str, typer.Argument(help="Cache key or entry name")],
    cache_dir: CacheDirOption = None,
    namespace: NamespaceOption = None,
) -> None:
    """Delete one entry."""
    cache = _open_cache(cache_dir, namespace)

    if not cache.remove_entry(_entry_name(cache, key)):
        error_console.print(f"[red]No entry for key:[/red] {key}")
        raise typer.Exit(1)

    console.print(f"Deleted {key}")


@app.command()
def clear(
    cache_dir: CacheDirOption = None,
    namespace: NamespaceOption = None,
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Do not ask for confirmation"),
    ] = False,
) -> None:
    """Delete every entry in a namespace."""
    cache = _open_cache(cache_dir, namespace)

    if not yes:
        typer.confirm(f"Delete all entries in {cache.directory}?", abort=True)

    removed = cache.clear()
    console.print(f"Removed {removed} entries from {cache.directory}")


@app.command()
def config() -> None:
    """Show current configuration."""
    settings = _get_settings_safe()

    if settings is None:
        error_console.print("[red]Configuration is invalid.[/red]")
        error_console.print()
        error_console.print("Check the FF_* environment variables:")
        error_console.print("  - FF_NAMESPACE must be a single path segment")
        error_console.print("  - FF_LOG_LEVEL must be DEBUG, INFO, WARNING, ERROR or CRITICAL")
        error_console.print("  - FF_WRITE_ATTEMPTS must be between 1 and 10")
        raise typer.Exit(1)

    table = Table(title="Settings", show_header=True)
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    for key, value in settings.display().items():
        display_value = str(value) if value is not None else "[dim]not set[/dim]"
        table.add_row(key, display_value)

    console.print(table)


@app.command()
def version() -> None:
    """Print the version number."""
    console.print(f"ff version {__version__}")


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
