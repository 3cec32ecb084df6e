import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table
from rich.traceback import install

from .actions import Dispatcher
from .citekey import generate_citekey
from .config import (
    LibrarySettings,
    get_config_path,
    load_config,
    resolve_settings,
    update_config,
)
from .decorators import handle_query_errors
from .exceptions import NoUsableTitleWord, NotFound
from .host import ConsoleHost, Host
from .links import follow_link
from .query import CalibreLibrary, create_executor

# Initialize Rich Traceback for better error messages
install(show_locals=True)

# Initialize Rich Console
console = Console()

# Configure logging to use Rich's RichHandler
logging.basicConfig(
    level=logging.INFO,
    format="%(message)s",
    datefmt="[%X]",
    handlers=[RichHandler(rich_tracebacks=True)]
)
logger = logging.getLogger("calibre_query")

# Main app
app = typer.Typer()

config_app = typer.Typer(help="Show or change calibre-query configuration")
app.add_typer(config_app, name="config")


@app.callback()
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose mode"),
    library: Optional[Path] = typer.Option(None, "--library", "-l", help="Calibre library directory"),
    backend: Optional[str] = typer.Option(None, "--backend", help="Query backend: sqlalchemy or sqlite3"),
):
    """
    calibre-query - find books in a Calibre library and act on them.

    Searches use a compact syntax: 'a:<author>', 't:<title>', or plain text
    matched against both author and title.
    """
    config = load_config()
    if not config.cli.color:
        console.no_color = True
    if verbose or config.cli.verbose:
        logger.setLevel(logging.DEBUG)
        console.print("[bold green]Verbose mode enabled.[/bold green]")
    if backend is not None:
        config.library.backend = backend

    ctx.obj = {"config": config, "library": library}


def get_settings(ctx: typer.Context) -> LibrarySettings:
    """Resolve settings once per invocation and cache them on the context."""
    obj = ctx.find_root().obj
    if "settings" not in obj:
        obj["settings"] = resolve_settings(obj["config"], obj["library"])
    return obj["settings"]


def open_library(settings: LibrarySettings) -> CalibreLibrary:
    return CalibreLibrary(settings, create_executor(settings))


def make_host(settings: LibrarySettings, selection: Optional[str] = None) -> Host:
    return ConsoleHost(settings, console=console, selection=selection)


@app.command()
def about():
    """Display information about calibre-query."""
    console.print("[bold cyan]calibre-query - Calibre library search and actions[/bold cyan]")
    console.print("")
    console.print("[bold]Search syntax:[/bold]")
    console.print("  a:<text>     Author contains <text>")
    console.print("  t:<text>     Title contains <text>")
    console.print("  <text>       Author or title contains <text>")
    console.print("")
    console.print("[bold]Commands:[/bold]")
    console.print("  calibre-query list <search>          Print matching file paths")
    console.print("  calibre-query find <search>          Pick a book and act on it")
    console.print("  calibre-query open-link <link>       Follow a calibre:<title> link")
    console.print("  calibre-query find-citekey <key>     Find the book behind a citation key")
    console.print("  calibre-query citekey <search>       Print citation keys")
    console.print("  calibre-query config show|set        Configuration")


@app.command(name="list")
@handle_query_errors
def list_books(
    ctx: typer.Context,
    search: str = typer.Argument("", help="Search text (a:<author>, t:<title> or plain)"),
    limit: Optional[int] = typer.Option(None, "--limit", "-n", help="Maximum number of books"),
):
    """
    Print the file paths of matching books.

    Examples:
        calibre-query list knuth
        calibre-query list "t:concrete mathematics"
    """
    settings = get_settings(ctx)
    with open_library(settings) as library:
        records = library.search(search, limit=limit)

    if not records:
        raise NotFound(f"No books found for: {search}")

    for record in records:
        console.print(str(record.file_path), markup=False, highlight=False, soft_wrap=True)


@app.command()
@handle_query_errors
def find(
    ctx: typer.Context,
    search: Optional[str] = typer.Argument(None, help="Search text; defaults to --selection"),
    where: Optional[str] = typer.Option(None, "--where", "-w", help="Custom SQL WHERE clause"),
    selection: Optional[str] = typer.Option(None, "--selection", "-s", help="Active selection text"),
    limit: Optional[int] = typer.Option(None, "--limit", "-n", help="Maximum number of books"),
):
    """
    Find books and open the action menu for one of them.

    With several matches a selection list is shown first. When --selection
    is given, text actions copy to the clipboard instead of printing.

    Examples:
        calibre-query find a:knuth
        calibre-query find --where "pubdate LIKE '1968%'"
        calibre-query find -s "Concrete Mathematics"
    """
    settings = get_settings(ctx)
    host = make_host(settings, selection)

    with open_library(settings) as library:
        if where:
            records = library.books_where(where, limit=limit)
        else:
            text = search if search is not None else (selection or "")
            records = library.search(text, limit=limit)
        Dispatcher(host, settings, library).dispatch(records)


@app.command(name="open-link")
@handle_query_errors
def open_link(
    ctx: typer.Context,
    link: str = typer.Argument(..., help="Link such as 'calibre:Concrete Mathematics'"),
    selection: Optional[str] = typer.Option(None, "--selection", "-s", help="Active selection text"),
):
    """Follow a calibre:<title> link to the action menu."""
    settings = get_settings(ctx)
    host = make_host(settings, selection)

    with open_library(settings) as library:
        follow_link(link, library, Dispatcher(host, settings, library))


@app.command(name="find-citekey")
@handle_query_errors
def find_citekey(
    ctx: typer.Context,
    key: str = typer.Argument(..., help="Citation key, e.g. knuth1968art"),
    selection: Optional[str] = typer.Option(None, "--selection", "-s", help="Active selection text"),
):
    """Find the book a citation key was generated from."""
    settings = get_settings(ctx)
    host = make_host(settings, selection)

    with open_library(settings) as library:
        Dispatcher(host, settings, library).dispatch(library.search_citekey(key))


@app.command()
@handle_query_errors
def citekey(
    ctx: typer.Context,
    search: str = typer.Argument("", help="Search text (a:<author>, t:<title> or plain)"),
    limit: Optional[int] = typer.Option(None, "--limit", "-n", help="Maximum number of books"),
):
    """Print the citation key of every matching book."""
    settings = get_settings(ctx)
    with open_library(settings) as library:
        records = library.search(search, limit=limit)

    if not records:
        raise NotFound(f"No books found for: {search}")

    for record in records:
        try:
            key = generate_citekey(record)
        except NoUsableTitleWord as e:
            logger.warning(str(e))
            continue
        console.print(f"{key}\t{record.display}", markup=False, highlight=False, soft_wrap=True)


@config_app.command("show")
def config_show(ctx: typer.Context):
    """Show the configuration file and the resolved library."""
    config = ctx.find_root().obj["config"]
    console.print(f"[bold]Config file:[/bold] {escape(str(get_config_path()))}")

    table = Table(title="Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")
    for section, values in config.to_dict().items():
        for name, value in values.items():
            table.add_row(f"{section}.{name}", escape(str(value)))
    console.print(table)

    try:
        settings = get_settings(ctx)
    except ValueError as e:
        console.print(f"[red]Invalid configuration: {escape(str(e))}[/red]")
        raise typer.Exit(code=1)

    console.print(f"[bold]Library:[/bold] {escape(str(settings.library_root))}")
    if not settings.db_path.exists():
        console.print(f"[yellow]Warning: no {settings.db_path.name} in the library directory[/yellow]")


@config_app.command("set")
@handle_query_errors
def config_set(
    library: Optional[str] = typer.Option(None, "--library", help="Default Calibre library directory"),
    backend: Optional[str] = typer.Option(None, "--backend", help="Query backend: sqlalchemy or sqlite3"),
    sqlite_executable: Optional[str] = typer.Option(None, "--sqlite", help="sqlite3 executable"),
    limit: Optional[int] = typer.Option(None, "--limit", help="Default row limit"),
    opener: Optional[str] = typer.Option(None, "--opener", help="Command opening files externally"),
    viewer: Optional[str] = typer.Option(None, "--viewer", help="Ebook viewer command"),
    editor: Optional[str] = typer.Option(None, "--editor", help="Editor command"),
    clipboard: Optional[str] = typer.Option(None, "--clipboard", help="Command reading the clipboard from stdin"),
    verbose: Optional[bool] = typer.Option(None, "--verbose/--quiet", help="Verbose by default"),
    color: Optional[bool] = typer.Option(None, "--color/--no-color", help="Colored output"),
):
    """
    Update configuration values; options not given are left unchanged.

    Example:
        calibre-query config set --library ~/Books --backend sqlite3
    """
    update_config(
        library_default_path=library,
        library_backend=backend,
        library_sqlite_executable=sqlite_executable,
        library_limit=limit,
        opener_default=opener,
        opener_viewer=viewer,
        opener_editor=editor,
        opener_clipboard=clipboard,
        cli_verbose=verbose,
        cli_color=color,
    )
    console.print(f"[green]✓ Configuration saved to {escape(str(get_config_path()))}[/green]")


if __name__ == "__main__":
    app()
