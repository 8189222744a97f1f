"""
Deduplicator - Cluster records that describe the same work and merge them.

Two records are mergeable when:
    (a) their normalized ISBN-13s are equal and non-empty, or
    (b) title similarity >= threshold (1 - Levenshtein / max length on
        folded titles) AND at least one shared author token AND the
        publication years differ by at most ``max_year_gap``
        (UNKNOWN_YEAR matches any year).

The relation is closed transitively with Union-Find, so A~B and B~C put
A, B and C into one cluster even when A and C do not match directly.

Merging never drops provenance: every member's identifiers, ISBNs and
holdings survive on the MergedRecord.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from library_search.domain.entities import (
    BibliographicRecord,
    LibraryInfo,
    MergedRecord,
    SourceIdentifier,
)
from library_search.shared.text import author_tokens, fold, match_key, title_similarity

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from library_search.application.search.scorer import RelevanceScorer
    from library_search.domain.entities import Query

logger = logging.getLogger(__name__)


# =============================================================================
# Union-Find
# =============================================================================


class UnionFind:
    """
    Union-Find (Disjoint Set Union) with path compression and union by rank.

    find / union are O(α(n)) amortized.
    """

    def __init__(self, n: int):
        self.parent = list(range(n))
        self.rank = [0] * n
        self.size = [1] * n

    def find(self, x: int) -> int:
        """Find root with path compression."""
        root = x
        while self.parent[root] != root:
            root = self.parent[root]
        while self.parent[x] != root:
            self.parent[x], x = root, self.parent[x]
        return root

    def union(self, x: int, y: int) -> bool:
        """Union by rank. Returns True if x and y were in different sets."""
        px, py = self.find(x), self.find(y)
        if px == py:
            return False

        if self.rank[px] < self.rank[py]:
            px, py = py, px
        self.parent[py] = px
        self.size[px] += self.size[py]

        if self.rank[px] == self.rank[py]:
            self.rank[px] += 1

        return True

    def get_groups(self) -> dict[int, list[int]]:
        """All groups as {root: [members]}, members in index order."""
        groups: dict[int, list[int]] = {}
        for i in range(len(self.parent)):
            groups.setdefault(self.find(i), []).append(i)
        return groups


# =============================================================================
# Results
# =============================================================================


@dataclass(frozen=True)
class MergeAmbiguity:
    """A near-miss pair the scorer could not tell apart."""

    left_id: str
    right_id: str
    similarity: float
    score: float


@dataclass
class MergeReport:
    records: list[MergedRecord] = field(default_factory=list)
    clusters_merged: int = 0
    ambiguities: list[MergeAmbiguity] = field(default_factory=list)


@dataclass(frozen=True)
class _MatchView:
    """Precomputed comparison keys for one record."""

    isbn: str
    title: str
    authors: frozenset[str]
    year: int | None


# =============================================================================
# Deduplicator
# =============================================================================


class Deduplicator:
    """
    Args:
        scorer: used to flag ambiguous near-misses against the query.
        similarity_threshold: minimum title similarity for a title edge.
        max_year_gap: maximum |year difference| for a title edge.
        ambiguity_margin: how far below the threshold a pair still counts
            as a near-miss.
        source_priority: ``source_id -> priority``; higher wins canonical ties.
    """

    def __init__(
        self,
        scorer: RelevanceScorer | None = None,
        similarity_threshold: float = 0.85,
        max_year_gap: int = 1,
        ambiguity_margin: float = 0.10,
        source_priority: Mapping[str, int] | None = None,
    ) -> None:
        self._scorer = scorer
        self._threshold = similarity_threshold
        self._max_year_gap = max_year_gap
        self._ambiguity_margin = ambiguity_margin
        self._priority = dict(source_priority or {})

    def merge(self, records: Sequence[BibliographicRecord], query: Query | None = None) -> list[MergedRecord]:
        return self.merge_with_report(records, query, self._priority).records

    def merge_with_report(
        self,
        records: Sequence[BibliographicRecord],
        query: Query | None = None,
        source_priority: Mapping[str, int] | None = None,
    ) -> MergeReport:
        priority = dict(source_priority) if source_priority is not None else self._priority
        n = len(records)
        if n == 0:
            return MergeReport()

        views = [self._view(r) for r in records]
        uf = UnionFind(n)
        edges: list[tuple[int, int, float]] = []

        # ISBN edges
        first_with_isbn: dict[str, int] = {}
        for i, view in enumerate(views):
            if not view.isbn:
                continue
            if view.isbn in first_with_isbn:
                j = first_with_isbn[view.isbn]
                if uf.union(j, i):
                    edges.append((j, i, 1.0))
            else:
                first_with_isbn[view.isbn] = i

        # Title edges
        near_misses: list[tuple[int, int, float]] = []
        for i in range(n):
            for j in range(i + 1, n):
                similarity = self._title_edge(views[i], views[j])
                if similarity is None:
                    continue
                if similarity >= self._threshold:
                    if uf.union(i, j):
                        edges.append((i, j, similarity))
                elif similarity >= self._threshold - self._ambiguity_margin:
                    near_misses.append((i, j, similarity))

        report = MergeReport()
        if query is not None:
            report.ambiguities = self._ambiguities(records, near_misses, uf, query)

        edge_strengths: dict[int, list[float]] = {}
        for i, _j, strength in edges:
            edge_strengths.setdefault(uf.find(i), []).append(strength)

        groups = sorted(uf.get_groups().items(), key=lambda item: item[1][0])
        for root, members in groups:
            cluster = [records[i] for i in members]
            strengths = edge_strengths.get(root, [])
            merge_score = sum(strengths) / len(strengths) if strengths else 1.0
            report.records.append(self._merge_cluster(cluster, members, merge_score, priority))
            if len(members) > 1:
                report.clusters_merged += 1

        if report.clusters_merged:
            logger.debug(f"Merged {n} records into {len(report.records)} ({report.clusters_merged} clusters)")
        return report

    # -------------------------------------------------------------------------
    # Matching
    # -------------------------------------------------------------------------

    @staticmethod
    def _view(record: BibliographicRecord) -> _MatchView:
        return _MatchView(
            isbn=record.isbn,
            title=match_key(record.title),
            authors=frozenset(author_tokens(record.authors)),
            year=record.year if isinstance(record.year, int) else None,
        )

    def _title_edge(self, a: _MatchView, b: _MatchView) -> float | None:
        """Title similarity when the author/year guards pass, else None."""
        if not a.authors or not (a.authors & b.authors):
            return None
        if a.year is not None and b.year is not None and abs(a.year - b.year) > self._max_year_gap:
            return None
        return title_similarity(a.title, b.title)

    def is_mergeable(self, left: BibliographicRecord, right: BibliographicRecord) -> bool:
        """Direct (non-transitive) match test for one pair."""
        a, b = self._view(left), self._view(right)
        if a.isbn and a.isbn == b.isbn:
            return True
        similarity = self._title_edge(a, b)
        return similarity is not None and similarity >= self._threshold

    def _ambiguities(
        self,
        records: Sequence[BibliographicRecord],
        near_misses: list[tuple[int, int, float]],
        uf: UnionFind,
        query: Query,
    ) -> list[MergeAmbiguity]:
        if self._scorer is None:
            return []
        found: list[MergeAmbiguity] = []
        for i, j, similarity in near_misses:
            if uf.find(i) == uf.find(j):
                continue
            left_score = self._scorer.score(records[i], query)
            if left_score != self._scorer.score(records[j], query):
                continue
            found.append(MergeAmbiguity(records[i].id, records[j].id, similarity, left_score))
            logger.warning(
                f"Merge ambiguity: {records[i].id} / {records[j].id} "
                f"title similarity {similarity:.3f} just below {self._threshold}, equal score {left_score}"
            )
        return found

    # -------------------------------------------------------------------------
    # Merging
    # -------------------------------------------------------------------------

    def _merge_cluster(
        self,
        cluster: list[BibliographicRecord],
        positions: list[int],
        merge_score: float,
        priority: Mapping[str, int],
    ) -> MergedRecord:
        order = sorted(
            range(len(cluster)),
            key=lambda k: (
                -cluster[k].raw_confidence.rank,
                -priority.get(cluster[k].source_id, 0),
                -cluster[k].completeness,
                positions[k],
            ),
        )
        ranked = [cluster[k] for k in order]
        canonical = ranked[0]

        def first(attr: str) -> object:
            for member in ranked:
                value = getattr(member, attr)
                if value:
                    return value
            return getattr(canonical, attr)

        year = canonical.year
        if not canonical.has_known_year:
            year = next((m.year for m in ranked if m.has_known_year), canonical.year)

        isbn = canonical.isbn or first("isbn")
        alternate_isbns: list[str] = []
        for member in ranked:
            if member.isbn and member.isbn != isbn and member.isbn not in alternate_isbns:
                alternate_isbns.append(member.isbn)

        holdings: list[LibraryInfo] = []
        for member in cluster:
            if member.library_info and member.library_info not in holdings:
                holdings.append(member.library_info)

        subjects: list[str] = []
        seen_subjects: set[str] = set()
        for member in ranked:
            for subject in member.subjects:
                key = fold(subject)
                if key not in seen_subjects:
                    seen_subjects.add(key)
                    subjects.append(subject)

        return MergedRecord(
            id=canonical.id,
            title=canonical.title,
            source_id=canonical.source_id,
            authors=list(canonical.authors or first("authors")),
            isbn=isbn,
            issn=canonical.issn or first("issn"),
            year=year,
            publisher=canonical.publisher or first("publisher"),
            format=canonical.format,
            raw_confidence=canonical.raw_confidence,
            library_info=canonical.library_info or first("library_info"),
            subjects=subjects,
            description=canonical.description or first("description"),
            doi=canonical.doi or first("doi"),
            language=canonical.language or first("language"),
            url=canonical.url or first("url"),
            native_id=canonical.native_id,
            citation_info=canonical.citation_info or first("citation_info"),
            pdf_access=canonical.pdf_access or first("pdf_access"),
            contributing_source_ids=frozenset(m.source_id for m in cluster),
            merge_score=merge_score,
            member_ids=[m.id for m in cluster],
            identifiers=[
                SourceIdentifier(
                    source_id=m.source_id,
                    record_id=m.id,
                    isbn=m.isbn,
                    issn=m.issn,
                    call_number=m.library_info.call_number if m.library_info else "",
                )
                for m in cluster
            ],
            alternate_isbns=alternate_isbns,
            holdings=holdings,
        )
