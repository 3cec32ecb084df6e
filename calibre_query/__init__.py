"""
calibre-query - search a Calibre library and act on the matching books.

Main API:
    from calibre_query import CalibreLibrary, resolve_settings

    settings = resolve_settings()

    with CalibreLibrary(settings) as library:
        # Author, title or combined search
        for book in library.search("a:knuth"):
            print(book.file_path)

        # Citation keys
        from calibre_query.citekey import generate_citekey
        print(generate_citekey(library.search("t:concrete")[0]))
"""

from .config import LibrarySettings, resolve_settings
from .models import BookRecord
from .query import CalibreLibrary

__version__ = "0.1.0"
__all__ = ["BookRecord", "CalibreLibrary", "LibrarySettings", "resolve_settings"]
