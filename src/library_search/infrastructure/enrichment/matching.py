"""Helpers shared by the enrichment providers."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from library_search.shared.text import title_similarity

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from library_search.domain.entities import BibliographicRecord

# A title search hit is only trusted when it is this close to the record's title
MIN_TITLE_SIMILARITY = 0.85

DEFAULT_EMAIL = "library-search@example.com"


def best_title_match(
    record: BibliographicRecord,
    candidates: Iterable[dict[str, Any]],
    get_title: Callable[[dict[str, Any]], str | None],
) -> dict[str, Any] | None:
    """First candidate whose title is similar enough to the record's."""
    for candidate in candidates:
        if title_similarity(record.title, get_title(candidate)) >= MIN_TITLE_SIMILARITY:
            return candidate
    return None


def first_author(record: BibliographicRecord) -> str | None:
    return record.authors[0] if record.authors else None
