"""
Book records built from Calibre query results.

Each row of the book query maps positionally onto a BookRecord:

    id, author_sort, path, name, format, pubdate, title

The file path is never stored; it is always derived from the record fields
and the library root the record was resolved against.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import List, Sequence, Any

from .exceptions import MalformedRow

# Column order of the book query; the row parser depends on it.
QUERY_COLUMNS = ("id", "author_sort", "path", "name", "format", "pubdate", "title")


@dataclass(frozen=True)
class BookRecord:
    """A single book file as returned by the library query."""
    id: str
    author_sort: str
    book_dir: str
    book_name: str
    book_format: str
    pubdate: str
    title: str
    library_root: Path

    @property
    def file_path(self) -> Path:
        """Full path of the book file: root/dir/name.format"""
        return Path(self.library_root) / self.book_dir / f"{self.book_name}.{self.book_format}"

    @property
    def directory(self) -> Path:
        return Path(self.library_root) / self.book_dir

    @property
    def authors(self) -> List[str]:
        """Authors in "Last, First" form, split on '&'."""
        return [a.strip() for a in self.author_sort.split("&") if a.strip()]

    @property
    def year(self) -> str:
        return self.pubdate[:4]

    @property
    def display(self) -> str:
        """Candidate string shown when several books match."""
        return f"({self.id}) [{self.book_format}] {self.author_sort} -- {self.title}"

    @classmethod
    def from_fields(cls, fields: Sequence[Any], library_root: Path) -> 'BookRecord':
        """
        Build a record from the seven query columns, in QUERY_COLUMNS order.

        NULL columns become empty strings and the format is lowercased.

        Raises:
            MalformedRow: If the number of fields is not seven
        """
        if len(fields) != len(QUERY_COLUMNS):
            raise MalformedRow("\t".join("" if f is None else str(f) for f in fields),
                               len(fields), len(QUERY_COLUMNS))

        values = ["" if f is None else str(f) for f in fields]
        book_id, author_sort, book_dir, book_name, book_format, pubdate, title = values
        return cls(
            id=book_id,
            author_sort=author_sort,
            book_dir=book_dir,
            book_name=book_name,
            book_format=book_format.lower(),
            pubdate=pubdate,
            title=title,
            library_root=Path(library_root),
        )


def parse_row(line: str, library_root: Path) -> BookRecord:
    """
    Parse one tab-separated result line into a BookRecord.

    Args:
        line: Output line of the query executor
        library_root: Root directory of the Calibre library

    Returns:
        BookRecord for the line

    Raises:
        MalformedRow: If the line does not have exactly seven columns
    """
    stripped = line.rstrip("\r\n")
    fields = stripped.split("\t")
    if len(fields) != len(QUERY_COLUMNS):
        raise MalformedRow(stripped, len(fields), len(QUERY_COLUMNS))
    return BookRecord.from_fields(fields, library_root)


def parse_rows(output: str, library_root: Path) -> List[BookRecord]:
    """Parse every non-blank line of executor output."""
    return [parse_row(line, library_root) for line in output.splitlines() if line.strip()]
