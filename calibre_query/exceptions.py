"""Errors raised while querying the library or dispatching actions."""


class CalibreQueryError(Exception):
    """Base class for all user-visible calibre-query errors."""
    pass


class NotFound(CalibreQueryError):
    """A query returned no books."""
    pass


class BadSearchSyntax(CalibreQueryError):
    """Search text uses an unknown command letter or a malformed key."""
    pass


class MissingFile(CalibreQueryError):
    """The resolved book file does not exist on disk."""

    def __init__(self, path):
        super().__init__(f"File not found: {path}")
        self.path = path


class MalformedRow(CalibreQueryError):
    """A result row does not have the expected number of columns."""

    def __init__(self, line: str, count: int, expected: int = 7):
        super().__init__(
            f"Expected {expected} tab-separated columns, got {count}: {line!r}"
        )
        self.line = line
        self.count = count


class NoUsableTitleWord(CalibreQueryError):
    """Every word of the title is a stopword."""

    def __init__(self, title: str):
        super().__init__(f"No usable word for a citation key in title: {title!r}")
        self.title = title


class QueryExecutionError(CalibreQueryError):
    """The database or the external query executor failed."""
    pass
