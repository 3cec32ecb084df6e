"""
Host interface: the UI primitives the dispatcher needs.

The dispatcher never touches the terminal, the clipboard or other processes
directly; it asks a Host. ConsoleHost is the terminal implementation used by
the CLI. Editors or tests provide their own.
"""

import logging
import subprocess
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from prompt_toolkit import PromptSession
from prompt_toolkit.application import Application
from prompt_toolkit.completion import Completer, Completion
from prompt_toolkit.key_binding import KeyBindings
from prompt_toolkit.layout import Layout
from prompt_toolkit.layout.containers import Window
from prompt_toolkit.layout.controls import FormattedTextControl
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .config import LibrarySettings

logger = logging.getLogger(__name__)


class Host(ABC):
    """Abstract UI collaborator of the dispatcher."""

    @abstractmethod
    def message(self, text: str):
        """Show an informational message."""
        pass

    @abstractmethod
    def error(self, text: str):
        """Show an error message."""
        pass

    @abstractmethod
    def choose(self, prompt: str, candidates: List[str]) -> Optional[int]:
        """
        Let the user pick one candidate.

        Returns:
            Index into candidates, or None when the choice was abandoned
        """
        pass

    @abstractmethod
    def read_key(self, prompt: str, entries: Sequence[Tuple[str, str]]) -> str:
        """Show (key, description) entries and return the key pressed."""
        pass

    @abstractmethod
    def open_file(self, path: Path, other_window: bool = False):
        pass

    @abstractmethod
    def spawn(self, argv: Sequence[str]):
        """Start a detached process and return immediately."""
        pass

    @abstractmethod
    def copy(self, text: str):
        pass

    @abstractmethod
    def insert(self, text: str):
        pass

    @abstractmethod
    def selection(self) -> Optional[str]:
        """Active selection text, or None when nothing is selected."""
        pass


def read_single_key(message: str, input=None, output=None) -> str:
    """
    Wait for one keypress and return it without needing Enter.

    Ctrl-C and Ctrl-D return an empty string; other special keys return
    their raw data, which no menu entry is bound to.
    """
    bindings = KeyBindings()

    @bindings.add("<any>")
    def _key(event):
        event.app.exit(result=event.data)

    @bindings.add("c-c")
    @bindings.add("c-d")
    def _abort(event):
        event.app.exit(result="")

    application = Application(
        layout=Layout(Window(FormattedTextControl(message), height=1)),
        key_bindings=bindings,
        input=input,
        output=output,
    )
    return application.run()


class CandidateCompleter(Completer):
    """Completes candidate display strings by substring."""

    def __init__(self, candidates: List[str]):
        self.candidates = candidates

    def get_completions(self, document, complete_event):
        word = document.text_before_cursor.lower()
        for candidate in self.candidates:
            if word in candidate.lower():
                yield Completion(candidate, start_position=-len(document.text_before_cursor))


class ConsoleHost(Host):
    """
    Terminal host.

    - Messages, tables and the key menu are rendered with rich; menu keys
      are read one keypress at a time with prompt_toolkit
    - Candidate selection uses a prompt_toolkit prompt with completion
    - Editors run in the foreground, other programs are detached
    - "Insert" writes to stdout, "copy" pipes into the clipboard command
    """

    def __init__(self, settings: LibrarySettings, console: Optional[Console] = None,
                 selection: Optional[str] = None):
        self.settings = settings
        self.console = console or Console()
        self._selection = selection

    def message(self, text: str):
        self.console.print(escape(text))

    def error(self, text: str):
        self.console.print(f"[red]{escape(text)}[/red]")

    def choose(self, prompt: str, candidates: List[str]) -> Optional[int]:
        table = Table(title=prompt)
        table.add_column("#", style="cyan", justify="right")
        table.add_column("Book", style="green")
        for i, candidate in enumerate(candidates, 1):
            table.add_row(str(i), escape(candidate))
        self.console.print(table)

        session = PromptSession()
        try:
            answer = session.prompt(
                "Select book (number or text): ",
                completer=CandidateCompleter(candidates),
            ).strip()
        except (EOFError, KeyboardInterrupt):
            return None

        if answer.isdigit() and 1 <= int(answer) <= len(candidates):
            return int(answer) - 1
        if answer in candidates:
            return candidates.index(answer)

        matches = [i for i, c in enumerate(candidates) if answer and answer.lower() in c.lower()]
        if len(matches) == 1:
            return matches[0]
        return None

    def read_key(self, prompt: str, entries: Sequence[Tuple[str, str]]) -> str:
        self.console.print(f"[bold]{escape(prompt)}[/bold]")
        for key, description in entries:
            self.console.print(f"  [cyan]{escape(key)}[/cyan]  {escape(description)}")
        return read_single_key("Action: ")

    def open_file(self, path: Path, other_window: bool = False):
        argv = list(self.settings.editor) + [str(path)]
        if other_window:
            self.spawn(argv)
            return
        logger.debug(f"Running editor: {argv}")
        subprocess.run(argv, check=False)

    def spawn(self, argv: Sequence[str]):
        logger.debug(f"Spawning: {list(argv)}")
        subprocess.Popen(
            list(argv),
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            start_new_session=True,
        )

    def copy(self, text: str):
        subprocess.run(list(self.settings.clipboard), input=text, text=True, check=True)
        self.console.print(f"[green]✓ Copied:[/green] {escape(text)}")

    def insert(self, text: str):
        self.console.print(text, markup=False, highlight=False)

    def selection(self) -> Optional[str]:
        return self._selection
