"""
Search string parser for calibre-query.

A search is either a single-letter field command or a plain pattern:

Examples:
    a:knuth          author_sort contains "knuth"
    t:concrete       title contains "concrete"
    knuth            author_sort or title contains "knuth"
    (empty)          every book

Matching is case-insensitive: the pattern is lowercased and compared
against the lowercased column.
"""

import re
from typing import Dict, Any, Tuple, Union
from dataclasses import dataclass

from .exceptions import BadSearchSyntax


@dataclass(frozen=True)
class ByAuthor:
    """Match the author_sort column only."""
    text: str


@dataclass(frozen=True)
class ByTitle:
    """Match the title column only."""
    text: str


@dataclass(frozen=True)
class Combined:
    """Match author_sort OR title."""
    text: str


SearchCommand = Union[ByAuthor, ByTitle, Combined]


class SearchParser:
    """
    Parser for the compact search grammar.

    Syntax:
        - Field command: <letter>:<text> (a = author, t = title)
        - Anything else is matched against author and title

    Only the first ':' separates a command, so "t:Foo: a Bar" searches
    titles for "foo: a bar".
    """

    COMMANDS = {
        'a': ByAuthor,
        't': ByTitle,
    }

    # Column each command tests
    COLUMNS = {
        ByAuthor: ('author_sort',),
        ByTitle: ('title',),
        Combined: ('author_sort', 'title'),
    }

    def parse(self, text: str) -> SearchCommand:
        """
        Parse search text into a SearchCommand.

        Args:
            text: Raw search string

        Returns:
            ByAuthor, ByTitle or Combined

        Raises:
            BadSearchSyntax: For a single-letter command other than a/t
        """
        text = text or ""
        parts = text.split(':', 1)

        if len(parts) == 2 and len(parts[0]) == 1:
            command = self.COMMANDS.get(parts[0])
            if command is None:
                raise BadSearchSyntax(
                    f"Unknown search command '{parts[0]}:' "
                    f"(use {', '.join(c + ':' for c in self.COMMANDS)})"
                )
            return command(parts[1])

        return Combined(text)

    def to_sql_conditions(self, command: SearchCommand) -> Tuple[str, Dict[str, Any]]:
        """
        Convert a SearchCommand to a parameterized WHERE clause.

        Returns:
            Tuple of (where_clause, params_dict)
        """
        columns = self.COLUMNS[type(command)]
        conditions = [f"lower({column}) LIKE :pattern" for column in columns]
        params = {'pattern': f"%{command.text.lower()}%"}
        return "WHERE " + " OR ".join(conditions), params


class CitekeyParser:
    """
    Reverse a citation key into search conditions.

    A key looks like <author>[etal]<year><titleword>, for example
    smith1999great or leeetal2004deep. The title word may be empty for
    titles whose first usable word starts with punctuation.

    The author part cannot be matched in SQL: the key drops spaces and
    punctuation from the surname ("Le Guin" becomes "leguin") and "etal"
    is indistinguishable from a surname ending ("metal"). The conditions
    only narrow by year and title word; CalibreLibrary.search_citekey
    keeps the books whose regenerated key equals the input.
    """

    key_pattern = re.compile(r'^(?P<author>[^\d]+)(?P<year>\d{4})(?P<word>\w*)$')

    def normalize(self, key: str) -> str:
        return (key or "").strip().lower()

    def parse(self, key: str) -> Dict[str, Any]:
        """
        Split a citation key into its parts.

        The author part keeps any etal suffix.

        Raises:
            BadSearchSyntax: If the key does not have the citekey shape
        """
        match = self.key_pattern.match(self.normalize(key))
        if not match:
            raise BadSearchSyntax(f"Not a citation key: {key!r}")
        return {
            'author': match.group('author'),
            'year': match.group('year'),
            'word': match.group('word'),
        }

    def to_sql_conditions(self, key: str) -> Tuple[str, Dict[str, Any]]:
        parts = self.parse(key)
        conditions = ["pubdate LIKE :year"]
        params = {'year': f"{parts['year']}%"}
        # SQLite LIKE folds ASCII case only
        if parts['word'] and parts['word'].isascii():
            conditions.append("title LIKE :word")
            params['word'] = f"%{parts['word']}%"
        return "WHERE " + " AND ".join(conditions), params


# Convenience functions
def parse_search(text: str) -> SearchCommand:
    """Parse a search string."""
    return SearchParser().parse(text)


def to_sql_conditions(command: SearchCommand) -> Tuple[str, Dict[str, Any]]:
    """Build the WHERE clause and parameters for a parsed search."""
    return SearchParser().to_sql_conditions(command)
