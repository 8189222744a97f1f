"""
RelevanceScorer - Deterministic additive relevance.

    query text in title         +10
    query text in an author      +8
    query text in a subject      +6
    query text in description    +4
    exact ISBN match            +15   (independent of the text matches)

Without free text, a structured title is matched against the title and a
structured author against the authors.

Matching is case- and accent-insensitive, with the Turkish dotted and
dotless i folded to "i". The weights are configuration
(ScoringWeights), not protocol.
"""

from __future__ import annotations

import dataclasses
from typing import TYPE_CHECKING

from library_search.application.search.config import ScoringWeights
from library_search.domain.entities import MergedRecord
from library_search.shared.text import fold

if TYPE_CHECKING:
    from library_search.domain.entities import BibliographicRecord, Query


class RelevanceScorer:
    def __init__(self, weights: ScoringWeights | None = None) -> None:
        self.weights = weights or ScoringWeights()

    def score(self, record: BibliographicRecord, query: Query) -> float:
        w = self.weights
        total = 0.0

        text = fold(query.text.strip())
        title_needle = text or fold(query.fields.title or "")
        author_needle = text or fold(query.fields.author or "")
        if title_needle and title_needle in fold(record.title):
            total += w.title
        if author_needle and any(author_needle in fold(a) for a in record.authors):
            total += w.author
        if text:
            if any(text in fold(s) for s in record.subjects):
                total += w.subject
            if record.description and text in fold(record.description):
                total += w.description

        query_isbn = query.isbn
        if query_isbn:
            isbns = {record.isbn}
            if isinstance(record, MergedRecord):
                isbns.update(record.alternate_isbns)
            if query_isbn in isbns:
                total += w.isbn_exact

        return total

    @staticmethod
    def sort_key(record: MergedRecord) -> tuple[float, int, str]:
        """Score desc, then number of contributing sources desc, then folded title asc."""
        return (-record.relevance_score, -len(record.contributing_source_ids), fold(record.title))

    def rank(self, records: list[MergedRecord], query: Query) -> list[MergedRecord]:
        """Copies carrying ``relevance_score``, in final order."""
        scored = [dataclasses.replace(r, relevance_score=self.score(r, query)) for r in records]
        return sorted(scored, key=self.sort_key)
