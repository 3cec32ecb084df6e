"""Citation keys derived from book metadata, e.g. smith1999great."""

import re

from .exceptions import NoUsableTitleWord
from .models import BookRecord

STOPWORDS = {"the", "on", "a"}


def author_fragment(author_sort: str) -> str:
    """
    Last name of the first author, lowercased, non-word chars removed.

    "Lee, A & Ng, B" gives "leeetal".
    """
    authors = author_sort.split("&")
    last_name = authors[0].split(",", 1)[0]
    fragment = re.sub(r'\W', '', last_name).lower()
    if len(authors) > 1:
        fragment += "etal"
    return fragment


def title_fragment(title: str) -> str:
    """
    First title word that is not a stopword, cut at its first non-word char.

    Raises:
        NoUsableTitleWord: If every word is a stopword
    """
    for word in title.split():
        if word.lower() in STOPWORDS:
            continue
        return re.sub(r'\W.*', '', word).lower()
    raise NoUsableTitleWord(title)


def generate_citekey(record: BookRecord) -> str:
    """
    Build the citation key for a book.

    Format: <first author last name>[etal]<year><first title word>

    Raises:
        NoUsableTitleWord: If the title has only stopwords
    """
    return author_fragment(record.author_sort) + record.year + title_fragment(record.title)
