"""Shared fixtures: a small Calibre-shaped library and a recording host."""

from pathlib import Path

import pytest
from sqlalchemy import create_engine, text

from calibre_query.config import LibrarySettings
from calibre_query.host import Host


BOOKS = [
    # id, title, author_sort, path, pubdate
    (1, "The Great Escape", "Smith, John", "John Smith/The Great Escape (1)", "1999-05-01 00:00:00+00:00"),
    (2, "Deep Learning Basics", "Lee, A & Ng, B", "A Lee/Deep Learning Basics (2)", "2004-01-01 00:00:00+00:00"),
    (3, "The Art of Computer Programming", "Knuth, Donald E.", "Donald E. Knuth/The Art of Computer Programming (3)", "1968-01-01 00:00:00+00:00"),
]

DATA = [
    # id, book, format, name
    (1, 1, "EPUB", "The Great Escape - John Smith"),
    (2, 2, "PDF", "Deep Learning Basics - A Lee"),
    (3, 3, "PDF", "The Art of Computer Programming - Donald E. Knuth"),
    (4, 3, "EPUB", "The Art of Computer Programming - Donald E. Knuth"),
]

IDENTIFIERS = [
    (1, 1, "isbn", "9780000000001"),
    (2, 1, "goodreads", "123"),
]


@pytest.fixture
def library_root(tmp_path):
    """Calibre library with metadata.db; files exist for books 1 and 2 only."""
    root = tmp_path / "Calibre Library"
    root.mkdir()

    engine = create_engine(f"sqlite:///{root / 'metadata.db'}")
    with engine.begin() as conn:
        conn.execute(text(
            "CREATE TABLE books (id INTEGER PRIMARY KEY, title TEXT, author_sort TEXT, "
            "path TEXT, pubdate TIMESTAMP)"
        ))
        conn.execute(text(
            "CREATE TABLE data (id INTEGER PRIMARY KEY, book INTEGER, format TEXT, "
            "uncompressed_size INTEGER DEFAULT 0, name TEXT)"
        ))
        conn.execute(text(
            "CREATE TABLE identifiers (id INTEGER PRIMARY KEY, book INTEGER, type TEXT, val TEXT)"
        ))
        for book_id, title, author_sort, path, pubdate in BOOKS:
            conn.execute(
                text("INSERT INTO books (id, title, author_sort, path, pubdate) "
                     "VALUES (:id, :title, :author_sort, :path, :pubdate)"),
                {"id": book_id, "title": title, "author_sort": author_sort,
                 "path": path, "pubdate": pubdate},
            )
        for data_id, book, fmt, name in DATA:
            conn.execute(
                text("INSERT INTO data (id, book, format, name) VALUES (:id, :book, :format, :name)"),
                {"id": data_id, "book": book, "format": fmt, "name": name},
            )
        for ident_id, book, kind, value in IDENTIFIERS:
            conn.execute(
                text("INSERT INTO identifiers (id, book, type, val) VALUES (:id, :book, :type, :val)"),
                {"id": ident_id, "book": book, "type": kind, "val": value},
            )
    engine.dispose()

    for _, book, fmt, name in DATA[:2]:
        book_dir = root / BOOKS[book - 1][3]
        book_dir.mkdir(parents=True, exist_ok=True)
        (book_dir / f"{name}.{fmt.lower()}").write_text("book content")

    return root


def make_settings(root: Path, backend: str = "sqlalchemy") -> LibrarySettings:
    return LibrarySettings(
        library_root=root,
        db_path=root / "metadata.db",
        opener=("xdg-open",),
        viewer=("ebook-viewer",),
        editor=("vi",),
        clipboard=("xclip", "-selection", "clipboard"),
        backend=backend,
    )


@pytest.fixture
def settings(library_root):
    return make_settings(library_root)


class FakeHost(Host):
    """Host that records every call and answers from preset keys."""

    def __init__(self, keys=None, choice=0, selected=None):
        self.keys = list(keys or [])
        self.choice = choice
        self.selected = selected
        self.messages = []
        self.errors = []
        self.prompts = []
        self.candidates = []
        self.opened = []
        self.spawned = []
        self.copied = []
        self.inserted = []

    def message(self, text):
        self.messages.append(text)

    def error(self, text):
        self.errors.append(text)

    def choose(self, prompt, candidates):
        self.candidates = list(candidates)
        return self.choice

    def read_key(self, prompt, entries):
        self.prompts.append(prompt)
        return self.keys.pop(0) if self.keys else ""

    def open_file(self, path, other_window=False):
        self.opened.append((path, other_window))

    def spawn(self, argv):
        self.spawned.append(list(argv))

    def copy(self, text):
        self.copied.append(text)

    def insert(self, text):
        self.inserted.append(text)

    def selection(self):
        return self.selected


@pytest.fixture
def host():
    return FakeHost()
