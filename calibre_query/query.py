"""
Query execution against a Calibre metadata.db.

Two executors share one interface:

- SQLAlchemyExecutor: embedded, read-only engine with bound parameters
  (the default).
- SqliteCliExecutor: runs the sqlite3 command-line tool and parses its
  tab-separated output. Parameters are rendered as SQL literals by
  SQLAlchemy's compiler before the statement is handed to the subprocess.

CalibreLibrary ties an executor to the library settings and exposes the
operations used by the CLI and the dispatcher.
"""

import logging
import sqlite3
import subprocess
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional, Dict, Any, Tuple

from sqlalchemy import create_engine, text
from sqlalchemy.dialects import sqlite
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from .citekey import generate_citekey
from .config import LibrarySettings
from .exceptions import NoUsableTitleWord, NotFound, QueryExecutionError
from .models import BookRecord, parse_rows
from .search_parser import (
    ByTitle,
    CitekeyParser,
    parse_search,
    to_sql_conditions,
)

logger = logging.getLogger(__name__)

BOOK_QUERY = (
    "SELECT books.id, author_sort, path, name, format, pubdate, title "
    "FROM data LEFT OUTER JOIN books ON data.book = books.id"
)

IDENTIFIER_QUERY = "SELECT type, val FROM identifiers WHERE book = :book ORDER BY type"


def build_query(where: str = "", limit: Optional[int] = None) -> str:
    """
    Build the full book query around a WHERE clause.

    Args:
        where: WHERE clause (including the WHERE keyword) or empty string
        limit: Optional row limit

    Returns:
        SQL string selecting the seven book columns
    """
    sql = BOOK_QUERY
    if where:
        sql += f" {where}"
    if limit is not None:
        sql += f" LIMIT {int(limit)}"
    return sql


def render_literal(sql: str, params: Dict[str, Any]) -> str:
    """Inline bound parameters as escaped SQLite literals."""
    if not params:
        return sql
    statement = text(sql).bindparams(**params)
    compiled = statement.compile(
        dialect=sqlite.dialect(), compile_kwargs={"literal_binds": True}
    )
    return str(compiled)


class QueryExecutor(ABC):
    """Runs a SQL statement and returns raw result rows."""

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)

    def check_database(self):
        if not self.db_path.exists():
            raise QueryExecutionError(f"Calibre database not found: {self.db_path}")

    @abstractmethod
    def fetch(self, sql: str, params: Optional[Dict[str, Any]] = None) -> List[Tuple]:
        """
        Execute a statement.

        Returns:
            List of row tuples, columns as strings or database values
        """
        pass

    def close(self):
        pass


class SQLAlchemyExecutor(QueryExecutor):
    """Embedded executor using a read-only SQLAlchemy engine."""

    def __init__(self, db_path: Path, echo: bool = False):
        super().__init__(db_path)
        self.echo = echo
        self._engine: Optional[Engine] = None

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            self.check_database()
            # Read-only URI connection; as_uri() escapes spaces in "Calibre Library"
            uri = f"{self.db_path.resolve().as_uri()}?mode=ro"
            self._engine = create_engine(
                "sqlite://", creator=lambda: sqlite3.connect(uri, uri=True), echo=self.echo
            )
        return self._engine

    def fetch(self, sql: str, params: Optional[Dict[str, Any]] = None) -> List[Tuple]:
        logger.debug(f"Executing: {sql} {params or {}}")
        try:
            with self.engine.connect() as conn:
                result = conn.execute(text(sql), params or {})
                return [tuple(row) for row in result]
        except SQLAlchemyError as e:
            raise QueryExecutionError(f"Query failed: {e}") from e

    def close(self):
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None


class SqliteCliExecutor(QueryExecutor):
    """Executor that shells out to the sqlite3 command-line tool."""

    def __init__(self, db_path: Path, executable: str = "sqlite3"):
        super().__init__(db_path)
        self.executable = executable

    def command(self, sql: str) -> List[str]:
        return [self.executable, "-readonly", "-separator", "\t", str(self.db_path), sql]

    def run(self, sql: str, params: Optional[Dict[str, Any]] = None) -> str:
        """Run the statement and return the raw tab-separated output."""
        self.check_database()
        statement = render_literal(sql, params or {})
        logger.debug(f"Running {self.executable}: {statement}")
        try:
            result = subprocess.run(
                self.command(statement), capture_output=True, text=True, check=True
            )
        except FileNotFoundError as e:
            raise QueryExecutionError(f"Query executor not found: {self.executable}") from e
        except subprocess.CalledProcessError as e:
            raise QueryExecutionError(
                f"{self.executable} exited with code {e.returncode}: {(e.stderr or '').strip()}"
            ) from e
        return result.stdout

    def fetch(self, sql: str, params: Optional[Dict[str, Any]] = None) -> List[Tuple]:
        output = self.run(sql, params)
        return [tuple(line.split("\t")) for line in output.splitlines() if line.strip()]


def create_executor(settings: LibrarySettings, echo: bool = False) -> QueryExecutor:
    """Create the executor selected by the settings backend."""
    if settings.backend == "sqlite3":
        return SqliteCliExecutor(settings.db_path, settings.sqlite_executable)
    if settings.backend == "sqlalchemy":
        return SQLAlchemyExecutor(settings.db_path, echo=echo)
    raise ValueError(f"Unknown query backend: {settings.backend}")


class CalibreLibrary:
    """
    Read-only view of a Calibre library.

    Example:
        library = CalibreLibrary(settings)
        for book in library.search("t:art of computer"):
            print(book.file_path)
        library.close()
    """

    def __init__(self, settings: LibrarySettings, executor: Optional[QueryExecutor] = None):
        self.settings = settings
        self.executor = executor or create_executor(settings)

    def books_where(self, where: str = "", params: Optional[Dict[str, Any]] = None,
                    limit: Optional[int] = None) -> List[BookRecord]:
        """
        Run the book query with a WHERE clause.

        Args:
            where: WHERE clause, or a bare condition (WHERE is prepended)
            params: Bound parameters used by the clause
            limit: Row limit, defaults to the configured limit
        """
        if limit is None:
            limit = self.settings.limit
        return self._fetch_books(where, params, limit)

    def _fetch_books(self, where: str, params: Optional[Dict[str, Any]],
                     limit: Optional[int]) -> List[BookRecord]:
        where = where.strip()
        if where and not where.upper().startswith("WHERE"):
            where = f"WHERE {where}"

        sql = build_query(where, limit)
        root = self.settings.library_root

        if isinstance(self.executor, SqliteCliExecutor):
            return parse_rows(self.executor.run(sql, params), root)
        return [BookRecord.from_fields(row, root) for row in self.executor.fetch(sql, params)]

    def search(self, command, limit: Optional[int] = None) -> List[BookRecord]:
        """
        Find books matching a search string or parsed SearchCommand.

        Raises:
            BadSearchSyntax: For an unknown command letter
        """
        if isinstance(command, str):
            command = parse_search(command)
        where, params = to_sql_conditions(command)
        records = self.books_where(where, params, limit)
        logger.debug(f"{command} matched {len(records)} books")
        return records

    def search_title(self, title: str) -> List[BookRecord]:
        return self.search(ByTitle(title))

    def search_citekey(self, key: str) -> List[BookRecord]:
        """
        Find the books whose citation key is exactly key.

        Candidates are narrowed in SQL by year and title word, then each one
        is kept only if generate_citekey() reproduces the key. The configured
        limit applies to the matches, not to the candidates.

        Raises:
            BadSearchSyntax: If key is not shaped like a citation key
        """
        parser = CitekeyParser()
        where, params = parser.to_sql_conditions(key)
        wanted = parser.normalize(key)

        matches = []
        for record in self._fetch_books(where, params, None):
            try:
                if generate_citekey(record) == wanted:
                    matches.append(record)
            except NoUsableTitleWord:
                continue
        logger.debug(f"Citation key {wanted} matched {len(matches)} books")

        if self.settings.limit is not None:
            matches = matches[:self.settings.limit]
        return matches

    def identifiers(self, book_id: str) -> List[Tuple[str, str]]:
        """
        Identifier (type, value) pairs of a book, e.g. ('isbn', '978...').

        Raises:
            NotFound: If book_id is not a book id (a file row without a book)
        """
        try:
            book = int(book_id)
        except (TypeError, ValueError) as e:
            raise NotFound(f"No book id for this file: {book_id!r}") from e
        rows = self.executor.fetch(IDENTIFIER_QUERY, {"book": book})
        return [(str(row[0]), str(row[1])) for row in rows]

    def close(self):
        self.executor.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
