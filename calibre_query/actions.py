"""
Hotkey-driven action menu for a selected book.

The dispatcher has two states: idle, waiting for query results, and
menu-active, showing the ACTIONS table for one record. Every handler is a
terminal effect on the Host; none returns a value.
"""

import logging
import subprocess
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional

from .citekey import generate_citekey
from .config import LibrarySettings
from .exceptions import CalibreQueryError, MissingFile
from .host import Host
from .models import BookRecord
from .query import CalibreLibrary

logger = logging.getLogger(__name__)


class ActionId(Enum):
    OPEN = "open"
    OPEN_OTHER_WINDOW = "open-other-window"
    OPEN_EXTERNAL = "open-external"
    OPEN_VIEWER = "open-viewer"
    OPEN_DIRECTORY = "open-directory"
    COPY_PATH = "path"
    COPY_TITLE = "title"
    COPY_CITEKEY = "citekey"
    INFO = "info"
    CANCEL = "cancel"


class InfoId(Enum):
    IDENTIFIERS = "identifiers"
    PUBDATE = "pubdate"
    AUTHORS = "authors"
    CANCEL = "cancel"


@dataclass(frozen=True)
class ActionEntry:
    """One line of the action menu."""
    key: str
    description: str
    action: Enum


ACTIONS = (
    ActionEntry("o", "Open in this window", ActionId.OPEN),
    ActionEntry("O", "Open in other window", ActionId.OPEN_OTHER_WINDOW),
    ActionEntry("v", "Open with default application", ActionId.OPEN_EXTERNAL),
    ActionEntry("e", "Open with Calibre viewer", ActionId.OPEN_VIEWER),
    ActionEntry("d", "Open book directory", ActionId.OPEN_DIRECTORY),
    ActionEntry("p", "Copy/insert file path", ActionId.COPY_PATH),
    ActionEntry("t", "Copy/insert title", ActionId.COPY_TITLE),
    ActionEntry("c", "Copy/insert citation key", ActionId.COPY_CITEKEY),
    ActionEntry("i", "Get book information", ActionId.INFO),
    ActionEntry("q", "Cancel", ActionId.CANCEL),
)

INFO_ACTIONS = (
    ActionEntry("i", "Identifiers", InfoId.IDENTIFIERS),
    ActionEntry("d", "Publication date", InfoId.PUBDATE),
    ActionEntry("a", "Authors", InfoId.AUTHORS),
    ActionEntry("q", "Cancel", InfoId.CANCEL),
)


def lookup(entries, key: str, cancel: Enum) -> ActionEntry:
    """Entry bound to key; unknown keys resolve to the cancel entry."""
    for entry in entries:
        if entry.key == key:
            return entry
    return next(entry for entry in entries if entry.action is cancel)


class Dispatcher:
    """
    Route query results through the action menu.

    Example:
        dispatcher = Dispatcher(ConsoleHost(settings), settings, library)
        dispatcher.dispatch(library.search("a:knuth"))
    """

    def __init__(self, host: Host, settings: LibrarySettings, library: Optional[CalibreLibrary] = None):
        self.host = host
        self.settings = settings
        self.library = library
        self.handlers: Dict[ActionId, Callable[[BookRecord], None]] = {
            ActionId.OPEN: self.open_here,
            ActionId.OPEN_OTHER_WINDOW: self.open_other_window,
            ActionId.OPEN_EXTERNAL: self.open_external,
            ActionId.OPEN_VIEWER: self.open_viewer,
            ActionId.OPEN_DIRECTORY: self.open_directory,
            ActionId.COPY_PATH: self.copy_path,
            ActionId.COPY_TITLE: self.copy_title,
            ActionId.COPY_CITEKEY: self.copy_citekey,
            ActionId.INFO: self.info,
            ActionId.CANCEL: self.cancel,
        }
        self.info_handlers: Dict[InfoId, Callable[[BookRecord], None]] = {
            InfoId.IDENTIFIERS: self.info_identifiers,
            InfoId.PUBDATE: self.info_pubdate,
            InfoId.AUTHORS: self.info_authors,
            InfoId.CANCEL: self.cancel,
        }

    def dispatch(self, records: List[BookRecord]) -> Optional[BookRecord]:
        """
        Resolve records to a single book and run the menu for it.

        Returns:
            The record the menu ran for, or None when nothing was dispatched
        """
        if not records:
            self.host.message("Nothing found")
            return None

        if len(records) == 1:
            record = records[0]
        else:
            index = self.host.choose(f"{len(records)} books found", [r.display for r in records])
            if index is None:
                self.host.message("No book selected")
                return None
            record = records[index]

        try:
            self.menu(record)
        except CalibreQueryError as e:
            self.host.error(str(e))
            return None
        return record

    def menu(self, record: BookRecord):
        """
        Show the action menu for one record and run the chosen handler.

        Raises:
            MissingFile: If the book file is not on disk
        """
        if not record.file_path.exists():
            raise MissingFile(record.file_path)

        key = self.host.read_key(record.display, [(e.key, e.description) for e in ACTIONS])
        entry = lookup(ACTIONS, key, ActionId.CANCEL)
        logger.debug(f"Key {key!r} -> {entry.action.value} on book {record.id}")
        self.run(entry.action, record)

    def run(self, action: ActionId, record: BookRecord):
        try:
            self.handlers[action](record)
        except (OSError, subprocess.CalledProcessError) as e:
            self.host.error(f"{action.value} failed: {e}")

    def deliver(self, text: str):
        """Copy text when a selection is active, otherwise insert it."""
        if self.host.selection() is not None:
            self.host.copy(text)
        else:
            self.host.insert(text)

    # Handlers

    def open_here(self, record: BookRecord):
        self.host.open_file(record.file_path, other_window=False)

    def open_other_window(self, record: BookRecord):
        self.host.open_file(record.file_path, other_window=True)

    def open_external(self, record: BookRecord):
        self.host.spawn(list(self.settings.opener) + [str(record.file_path)])

    def open_viewer(self, record: BookRecord):
        self.host.spawn(list(self.settings.viewer) + [str(record.file_path)])

    def open_directory(self, record: BookRecord):
        self.host.spawn(list(self.settings.opener) + [str(record.directory)])

    def copy_path(self, record: BookRecord):
        self.deliver(str(record.file_path))

    def copy_title(self, record: BookRecord):
        self.deliver(record.title)

    def copy_citekey(self, record: BookRecord):
        self.deliver(generate_citekey(record))

    def info(self, record: BookRecord):
        key = self.host.read_key(f"Information on: {record.title}",
                                 [(e.key, e.description) for e in INFO_ACTIONS])
        entry = lookup(INFO_ACTIONS, key, InfoId.CANCEL)
        self.info_handlers[entry.action](record)

    def info_identifiers(self, record: BookRecord):
        if self.library is None:
            self.host.error("Identifiers need a library connection")
            return
        identifiers = self.library.identifiers(record.id)
        if not identifiers:
            self.host.message(f"No identifiers for {record.title}")
            return
        self.deliver(", ".join(f"{kind}:{value}" for kind, value in identifiers))

    def info_pubdate(self, record: BookRecord):
        self.deliver(record.pubdate[:10])

    def info_authors(self, record: BookRecord):
        self.deliver("; ".join(record.authors))

    def cancel(self, record: BookRecord):
        self.host.message("Cancelled")
