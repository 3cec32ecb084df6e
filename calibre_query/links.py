"""
calibre: links, as stored in notes, e.g. "calibre:The Art of Computer Programming".

Following a link runs a title search and opens the action menu for the result.
"""

import logging
from typing import Optional

from .actions import Dispatcher
from .models import BookRecord
from .query import CalibreLibrary

logger = logging.getLogger(__name__)

LINK_SCHEME = "calibre"


def link_target(link: str) -> str:
    """Title text of a link; text without the scheme prefix is used as-is."""
    prefix = f"{LINK_SCHEME}:"
    if link.startswith(prefix):
        return link[len(prefix):]
    return link


def follow_link(link: str, library: CalibreLibrary, dispatcher: Dispatcher) -> Optional[BookRecord]:
    """Resolve a calibre: link through the title search and dispatch it."""
    title = link_target(link).strip()
    logger.debug(f"Following link to title {title!r}")
    return dispatcher.dispatch(library.search_title(title))


def make_link(record: BookRecord) -> str:
    return f"{LINK_SCHEME}:{record.title}"


def export_link(path: str, description: Optional[str] = None, backend: Optional[str] = None) -> str:
    """
    Exported form of a link.

    Links are not rendered for any export backend; the description (or the
    link target) is returned as plain text.
    """
    target = link_target(path)
    return description or f"{target} (Calibre library)"
