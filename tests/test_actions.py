"""Tests for the action menu dispatcher."""

import pytest

from calibre_query.actions import (
    ACTIONS,
    INFO_ACTIONS,
    ActionId,
    Dispatcher,
    InfoId,
    lookup,
)
from calibre_query.models import BookRecord
from calibre_query.query import CalibreLibrary


@pytest.fixture
def records(library_root):
    """Records for the fixture library: smith (epub), lee (pdf), knuth (pdf, file missing)."""
    rows = [
        ["1", "Smith, John", "John Smith/The Great Escape (1)", "The Great Escape - John Smith",
         "EPUB", "1999-05-01 00:00:00+00:00", "The Great Escape"],
        ["2", "Lee, A & Ng, B", "A Lee/Deep Learning Basics (2)", "Deep Learning Basics - A Lee",
         "PDF", "2004-01-01 00:00:00+00:00", "Deep Learning Basics"],
        ["3", "Knuth, Donald E.", "Donald E. Knuth/The Art of Computer Programming (3)",
         "The Art of Computer Programming - Donald E. Knuth", "PDF", "1968-01-01 00:00:00+00:00",
         "The Art of Computer Programming"],
    ]
    return [BookRecord.from_fields(row, library_root) for row in rows]


@pytest.fixture
def dispatcher(host, settings):
    return Dispatcher(host, settings)


class TestActionTable:

    def test_keys_are_unique(self):
        keys = [entry.key for entry in ACTIONS]
        assert len(keys) == len(set(keys))

    def test_every_action_has_an_entry_and_handler(self, dispatcher):
        assert {entry.action for entry in ACTIONS} == set(ActionId)
        assert set(dispatcher.handlers) == set(ActionId)
        assert set(dispatcher.info_handlers) == set(InfoId)

    def test_lookup_known_key(self):
        assert lookup(ACTIONS, "o", ActionId.CANCEL).action is ActionId.OPEN

    def test_lookup_unknown_key_falls_back_to_cancel(self):
        assert lookup(ACTIONS, "z", ActionId.CANCEL).action is ActionId.CANCEL
        assert lookup(INFO_ACTIONS, "", InfoId.CANCEL).action is InfoId.CANCEL


class TestDispatchStates:
    """Idle -> menu transitions."""

    def test_no_records_reports_nothing_found(self, dispatcher, host):
        assert dispatcher.dispatch([]) is None

        assert host.messages == ["Nothing found"]
        assert host.prompts == []
        assert host.opened == [] and host.spawned == []

    def test_single_record_goes_straight_to_menu(self, dispatcher, host, records):
        host.keys = ["o"]
        result = dispatcher.dispatch(records[:1])

        assert result is records[0]
        assert host.candidates == []
        assert host.prompts == [records[0].display]

    def test_several_records_are_offered_for_selection(self, dispatcher, host, records):
        host.keys = ["p"]
        host.choice = 1

        result = dispatcher.dispatch(records[:2])

        assert host.candidates == [records[0].display, records[1].display]
        assert result is records[1]
        assert host.inserted == [str(records[1].file_path)]

    def test_abandoned_selection(self, dispatcher, host, records):
        host.choice = None

        assert dispatcher.dispatch(records[:2]) is None
        assert host.messages == ["No book selected"]
        assert host.prompts == []

    def test_missing_file_skips_menu(self, dispatcher, host, records):
        host.keys = ["o"]

        assert dispatcher.dispatch([records[2]]) is None
        assert host.prompts == []
        assert host.opened == []
        assert "File not found" in host.errors[0]

    def test_unknown_key_cancels(self, dispatcher, host, records):
        host.keys = ["z"]
        dispatcher.dispatch(records[:1])

        assert host.messages == ["Cancelled"]
        assert host.opened == [] and host.spawned == []
        assert host.inserted == [] and host.copied == []


class TestHandlers:
    """Each menu key and its effect."""

    def run(self, dispatcher, host, record, *keys):
        host.keys = list(keys)
        dispatcher.dispatch([record])

    def test_open_in_this_window(self, dispatcher, host, records):
        self.run(dispatcher, host, records[0], "o")
        assert host.opened == [(records[0].file_path, False)]

    def test_open_in_other_window(self, dispatcher, host, records):
        self.run(dispatcher, host, records[0], "O")
        assert host.opened == [(records[0].file_path, True)]

    def test_open_with_default_application(self, dispatcher, host, records):
        self.run(dispatcher, host, records[0], "v")
        assert host.spawned == [["xdg-open", str(records[0].file_path)]]

    def test_open_with_viewer(self, dispatcher, host, records):
        self.run(dispatcher, host, records[0], "e")
        assert host.spawned == [["ebook-viewer", str(records[0].file_path)]]

    def test_open_directory(self, dispatcher, host, records):
        self.run(dispatcher, host, records[0], "d")
        assert host.spawned == [["xdg-open", str(records[0].directory)]]

    def test_path_is_inserted_without_selection(self, dispatcher, host, records):
        self.run(dispatcher, host, records[0], "p")
        assert host.inserted == [str(records[0].file_path)]
        assert host.copied == []

    def test_path_is_copied_with_selection(self, dispatcher, host, records):
        host.selected = "great escape"
        self.run(dispatcher, host, records[0], "p")
        assert host.copied == [str(records[0].file_path)]
        assert host.inserted == []

    def test_title(self, dispatcher, host, records):
        self.run(dispatcher, host, records[1], "t")
        assert host.inserted == ["Deep Learning Basics"]

    def test_citekey(self, dispatcher, host, records):
        self.run(dispatcher, host, records[0], "c")
        assert host.inserted == ["smith1999great"]

    def test_citekey_etal(self, dispatcher, host, records):
        self.run(dispatcher, host, records[1], "c")
        assert host.inserted == ["leeetal2004deep"]

    def test_citekey_without_usable_word_is_reported(self, dispatcher, host, records, library_root):
        fields = ["9", "Smith, John", records[0].book_dir, records[0].book_name,
                  "epub", "1999", "The A On"]
        record = BookRecord.from_fields(fields, library_root)

        self.run(dispatcher, host, record, "c")

        assert host.inserted == []
        assert "No usable word" in host.errors[0]

    def test_spawn_failure_is_reported(self, dispatcher, host, records):
        def fail(argv):
            raise FileNotFoundError(2, "No such file or directory", argv[0])

        host.spawn = fail
        self.run(dispatcher, host, records[0], "v")

        assert "open-external failed" in host.errors[0]


class TestInfoMenu:
    """The nested information menu."""

    def test_pubdate(self, dispatcher, host, records):
        host.keys = ["i", "d"]
        dispatcher.dispatch([records[0]])
        assert host.inserted == ["1999-05-01"]
        assert host.prompts[1] == "Information on: The Great Escape"

    def test_authors(self, dispatcher, host, records):
        host.keys = ["i", "a"]
        dispatcher.dispatch([records[1]])
        assert host.inserted == ["Lee, A; Ng, B"]

    def test_identifiers(self, host, settings, records):
        with CalibreLibrary(settings) as library:
            host.keys = ["i", "i"]
            Dispatcher(host, settings, library).dispatch([records[0]])
        assert host.inserted == ["goodreads:123, isbn:9780000000001"]

    def test_no_identifiers(self, host, settings, records):
        with CalibreLibrary(settings) as library:
            host.keys = ["i", "i"]
            Dispatcher(host, settings, library).dispatch([records[1]])
        assert host.inserted == []
        assert host.messages == ["No identifiers for Deep Learning Basics"]

    def test_identifiers_without_library(self, dispatcher, host, records):
        host.keys = ["i", "i"]
        dispatcher.dispatch([records[0]])
        assert host.errors == ["Identifiers need a library connection"]

    def test_unknown_info_key_cancels(self, dispatcher, host, records):
        host.keys = ["i", "x"]
        dispatcher.dispatch([records[0]])
        assert host.messages == ["Cancelled"]
        assert host.inserted == []

    def test_identifiers_of_file_without_book_is_reported(self, host, settings, records, library_root):
        # Given: a file row whose book is missing, so every books column is empty
        fields = [None, None, records[0].book_dir, records[0].book_name, "EPUB", None, None]
        record = BookRecord.from_fields(fields, library_root)

        with CalibreLibrary(settings) as library:
            host.keys = ["i", "i"]
            Dispatcher(host, settings, library).dispatch([record])

        assert host.inserted == []
        assert "No book id" in host.errors[0]
