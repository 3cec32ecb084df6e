"""Decorators for calibre-query CLI commands."""

import functools
import logging
from typing import Callable, Any
import typer
from rich.console import Console
from rich.markup import escape

from .exceptions import (
    BadSearchSyntax,
    CalibreQueryError,
    MalformedRow,
    QueryExecutionError,
)

logger = logging.getLogger(__name__)
console = Console()


def handle_query_errors(func: Callable) -> Callable:
    """
    Decorator to handle errors raised while querying the library.

    Centralizes error handling for:
    - BadSearchSyntax: Unknown search command or malformed citation key
    - QueryExecutionError: Missing database or failing executor
    - MalformedRow: Executor output with the wrong column count
    - CalibreQueryError: Any other reported condition
    - ValueError: Invalid configuration values
    - General exceptions: Unexpected errors
    """
    @functools.wraps(func)
    def wrapper(*args, **kwargs) -> Any:
        try:
            return func(*args, **kwargs)
        except BadSearchSyntax as e:
            console.print(f"[bold red]Error:[/bold red] Bad search: {escape(str(e))}")
            raise typer.Exit(code=1)
        except QueryExecutionError as e:
            console.print(f"[bold red]Error:[/bold red] {escape(str(e))}")
            console.print("[yellow]Tip: Set the library with --library or 'calibre-query config set --library'[/yellow]")
            raise typer.Exit(code=1)
        except MalformedRow as e:
            console.print(f"[bold red]Error:[/bold red] Unexpected query output: {escape(str(e))}")
            raise typer.Exit(code=1)
        except CalibreQueryError as e:
            console.print(f"[bold red]Error:[/bold red] {escape(str(e))}")
            raise typer.Exit(code=1)
        except ValueError as e:
            console.print(f"[bold red]Error:[/bold red] Invalid input: {escape(str(e))}")
            raise typer.Exit(code=1)
        except KeyboardInterrupt:
            console.print("\n[yellow]Operation cancelled by user[/yellow]")
            raise typer.Exit(code=130)
        except typer.Exit:
            raise
        except Exception as e:
            logger.error(f"Unexpected error in {func.__name__}: {e}", exc_info=True)
            console.print(f"[bold red]Unexpected error:[/bold red] {escape(str(e))}")
            raise typer.Exit(code=1)

    return wrapper
