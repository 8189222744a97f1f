"""
Query Entity - What the user asked for.

A Query is frozen: once it has been dispatched to the sources nobody
(adapter, normalizer, scorer) can change it under the other tasks.

Example:
    >>> q = Query(text="Pride and Prejudice", search_type=SearchType.TITLE)
    >>> q.search_text
    'Pride and Prejudice'
    >>> Query(text="978-0-14-143951-8").isbn
    '9780141439518'
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from library_search.shared.text import looks_like_isbn, normalize_isbn


class SearchType(Enum):
    """Which index the user wants searched."""

    TITLE = "title"
    AUTHOR = "author"
    ISBN = "isbn"
    SUBJECT = "subject"
    KEYWORD = "keyword"
    ALL = "all"


@dataclass(frozen=True)
class QueryFields:
    """Optional structured search fields."""

    title: str | None = None
    author: str | None = None
    isbn: str | None = None
    year: int | None = None


@dataclass(frozen=True)
class Query:
    """A single federated search request."""

    text: str = ""
    fields: QueryFields = field(default_factory=QueryFields)
    search_type: SearchType = SearchType.ALL

    def __post_init__(self) -> None:
        if isinstance(self.search_type, str):
            object.__setattr__(self, "search_type", SearchType(self.search_type.lower()))
        if self.text is None:
            object.__setattr__(self, "text", "")

    def _first_field(self) -> tuple[str, SearchType] | None:
        for value, search_type in (
            (self.fields.isbn, SearchType.ISBN),
            (self.fields.title, SearchType.TITLE),
            (self.fields.author, SearchType.AUTHOR),
        ):
            if value and value.strip():
                return value.strip(), search_type
        return None

    @property
    def search_text(self) -> str:
        """
        Term to send to a source.

        Free text wins. Without it, the first structured field set is used,
        in the order isbn, title, author.
        """
        text = self.text.strip()
        if text:
            return text
        picked = self._first_field()
        return picked[0] if picked else ""

    @property
    def effective_search_type(self) -> SearchType:
        """``search_type``, or the index of the structured field ``search_text`` picked."""
        if self.text.strip() or self.search_type != SearchType.ALL:
            return self.search_type
        picked = self._first_field()
        return picked[1] if picked else self.search_type

    @property
    def isbn(self) -> str:
        """Normalized ISBN-13 carried by the query, or ""."""
        if self.fields.isbn:
            return normalize_isbn(self.fields.isbn)
        if self.search_type == SearchType.ISBN or looks_like_isbn(self.text):
            return normalize_isbn(self.text)
        return ""

    @property
    def is_empty(self) -> bool:
        return not self.search_text

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "text": self.text,
            "search_type": self.search_type.value,
        }
        fields = {k: v for k, v in vars(self.fields).items() if v is not None}
        if fields:
            result["fields"] = fields
        return result
