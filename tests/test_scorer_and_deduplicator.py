"""Tests for RelevanceScorer and Deduplicator."""

from __future__ import annotations

import pytest
from conftest import make_record

from library_search.application.search.config import ScoringWeights
from library_search.application.search.deduplicator import Deduplicator, UnionFind
from library_search.application.search.scorer import RelevanceScorer
from library_search.domain.entities import (
    UNKNOWN_YEAR,
    Confidence,
    LibraryInfo,
    MergedRecord,
    Query,
    QueryFields,
    SearchType,
)

# ============================================================
# RelevanceScorer
# ============================================================


class TestRelevanceScorer:
    def test_additive_weights(self):
        scorer = RelevanceScorer()
        record = make_record(
            title="Yapay Zekâ",
            authors=["Yapay Zeka Derneği"],
            subjects=["yapay zeka"],
            description="Yapay zeka tarihi",
        )
        assert scorer.score(record, Query(text="yapay zeka")) == 10 + 8 + 6 + 4

    def test_turkish_case_folding(self):
        scorer = RelevanceScorer()
        assert scorer.score(make_record(title="IŞIK VE GÖLGE"), Query(text="ışık")) == 10

    def test_isbn_exact_match(self):
        scorer = RelevanceScorer()
        record = make_record(isbn="9780141439518")
        query = Query(text="0-14-143951-3", search_type=SearchType.ISBN)
        assert scorer.score(record, query) == 15

    def test_isbn_matches_alternate(self):
        merged = MergedRecord(id="a:1", title="T", source_id="a", isbn="9780000000002", alternate_isbns=["9780141439518"])
        assert RelevanceScorer().score(merged, Query(text="9780141439518")) == 15

    def test_custom_weights(self):
        scorer = RelevanceScorer(ScoringWeights(title=1.0))
        assert scorer.score(make_record(title="Emma"), Query(text="emma")) == 1.0

    def test_structured_title_and_author(self):
        scorer = RelevanceScorer()
        record = make_record(title="Pride and Prejudice", authors=["Jane Austen"])
        query = Query(fields=QueryFields(title="Pride and Prejudice", author="Jane Austen"))
        assert scorer.score(record, query) == 10 + 8
        assert scorer.score(record, Query(fields=QueryFields(author="austen"))) == 8
        assert scorer.score(make_record(title="Emma"), query) == 0

    def test_no_match(self):
        assert RelevanceScorer().score(make_record(title="Emma"), Query(text="persuasion")) == 0

    def test_rank_order(self):
        scorer = RelevanceScorer()
        records = [
            MergedRecord(id="a:1", title="Zebra", source_id="a", contributing_source_ids=frozenset({"a"})),
            MergedRecord(id="b:1", title="Emma", source_id="b", contributing_source_ids=frozenset({"b"})),
            MergedRecord(id="c:1", title="Apple", source_id="c", contributing_source_ids=frozenset({"c", "d"})),
            MergedRecord(id="e:1", title="Banana", source_id="e", contributing_source_ids=frozenset({"e"})),
        ]
        ranked = scorer.rank(records, Query(text="emma"))
        assert [r.id for r in ranked] == ["b:1", "c:1", "e:1", "a:1"]
        assert ranked[0].relevance_score == 10
        # input untouched
        assert records[1].relevance_score == 0.0


# ============================================================
# UnionFind
# ============================================================


class TestUnionFind:
    def test_groups(self):
        uf = UnionFind(5)
        assert uf.union(0, 1)
        assert uf.union(1, 2)
        assert not uf.union(0, 2)
        assert uf.get_groups()[uf.find(0)] == [0, 1, 2]
        assert uf.find(3) != uf.find(4)


# ============================================================
# Deduplicator
# ============================================================


@pytest.fixture
def dedup():
    return Deduplicator(scorer=RelevanceScorer())


class TestDeduplicator:
    def test_isbn_merge_across_three_sources(self, dedup):
        records = [
            make_record(
                "loc_sru:1",
                "Pride and prejudice",
                isbn="9780141439518",
                authors=["Austen, Jane"],
                year=2003,
                raw_confidence=Confidence.HIGH,
                library_info=LibraryInfo(institution="Library of Congress", call_number="PR4034"),
            ),
            make_record("open_library:2", "Pride & Prejudice (Penguin Classics)", isbn="9780141439518", year=2003),
            make_record("google_books:3", "Pride and Prejudice", isbn="9780141439518", authors=["Jane Austen"]),
        ]
        [merged] = dedup.merge(records, Query(text="9780141439518"))
        assert merged.contributing_source_ids == {"loc_sru", "open_library", "google_books"}
        assert merged.id == "loc_sru:1"
        assert merged.member_ids == ["loc_sru:1", "open_library:2", "google_books:3"]
        assert [i.record_id for i in merged.identifiers] == merged.member_ids
        assert merged.holdings[0].call_number == "PR4034"
        assert merged.merge_score == 1.0

    def test_title_author_year_merge(self, dedup):
        a = make_record("a:1", "Pride and Prejudice", authors=["Jane Austen"], year=1813)
        b = make_record("b:1", "Pride and prejudice.", authors=["Austen, Jane"], year=1814)
        [merged] = dedup.merge([a, b])
        assert merged.source_count == 2

    def test_year_gap_blocks_merge(self, dedup):
        a = make_record("a:1", "Pride and Prejudice", authors=["Jane Austen"], year=1813)
        b = make_record("b:1", "Pride and Prejudice", authors=["Jane Austen"], year=2003)
        assert len(dedup.merge([a, b])) == 2

    def test_unknown_year_matches_any(self, dedup):
        a = make_record("a:1", "Pride and Prejudice", authors=["Jane Austen"], year=1813)
        b = make_record("b:1", "Pride and Prejudice", authors=["Jane Austen"])
        [merged] = dedup.merge([a, b])
        assert merged.year == 1813

    def test_no_shared_author_blocks_merge(self, dedup):
        a = make_record("a:1", "Collected Poems", authors=["Sylvia Plath"])
        b = make_record("b:1", "Collected Poems", authors=["Philip Larkin"])
        assert len(dedup.merge([a, b])) == 2

    def test_authorless_records_never_title_merge(self, dedup):
        a = make_record("a:1", "Annual Report")
        b = make_record("b:1", "Annual Report")
        assert len(dedup.merge([a, b])) == 2

    def test_transitive_closure(self, dedup):
        # A~B by ISBN, B~C by title/author; A and C share nothing directly
        a = make_record("a:1", "Completely different cataloguing", isbn="9780141439518", authors=["X Y"])
        b = make_record("b:1", "Emma", isbn="9780141439518", authors=["Jane Austen"])
        c = make_record("c:1", "Emma", authors=["Austen, Jane"])
        assert not dedup.is_mergeable(a, c)
        [merged] = dedup.merge([a, b, c])
        assert set(merged.member_ids) == {"a:1", "b:1", "c:1"}

    def test_alternate_isbns_kept(self, dedup):
        a = make_record("a:1", "Emma", isbn="9780141439587", authors=["Jane Austen"], raw_confidence=Confidence.HIGH)
        b = make_record("b:1", "Emma", isbn="9780199535521", authors=["Jane Austen"])
        [merged] = dedup.merge([a, b])
        assert merged.isbn == "9780141439587"
        assert merged.alternate_isbns == ["9780199535521"]

    def test_canonical_prefers_confidence_then_priority(self):
        dedup = Deduplicator(source_priority={"low": 0, "high": 10})
        a = make_record("low:1", "Emma", isbn="9780141439587", raw_confidence=Confidence.HIGH)
        b = make_record("high:1", "Emma", isbn="9780141439587", raw_confidence=Confidence.HIGH)
        c = make_record("scraped:1", "Emma", isbn="9780141439587", raw_confidence=Confidence.LOW)
        [merged] = dedup.merge([c, a, b])
        assert merged.id == "high:1"

    def test_merge_fills_missing_fields_from_members(self, dedup):
        a = make_record("a:1", "Emma", isbn="9780141439587", raw_confidence=Confidence.HIGH)
        b = make_record("b:1", "Emma", isbn="9780141439587", authors=["Jane Austen"], publisher="Penguin", year=2003)
        [merged] = dedup.merge([a, b])
        assert merged.authors == ["Jane Austen"]
        assert merged.publisher == "Penguin"
        assert merged.year == 2003

    def test_merge_score_is_mean_edge_strength(self, dedup):
        a = make_record("a:1", "Pride and Prejudice", authors=["Jane Austen"], isbn="9780141439518")
        b = make_record("b:1", "Pride and Prejudice", authors=["Jane Austen"], isbn="9780141439518")
        c = make_record("c:1", "Pride and Prejudices", authors=["Jane Austen"])
        [merged] = dedup.merge([a, b, c])
        assert 0.9 < merged.merge_score < 1.0

    def test_singletons_keep_input_order(self, dedup):
        records = [make_record(f"s:{i}", title) for i, title in enumerate(["Zeta", "Alpha", "Mu"])]
        assert [r.id for r in dedup.merge(records)] == ["s:0", "s:1", "s:2"]
        assert all(r.year == UNKNOWN_YEAR for r in dedup.merge(records))

    def test_empty(self, dedup):
        assert dedup.merge([]) == []

    def test_ambiguity_flagged(self):
        # similarity 0.885, below a 0.99 threshold, equal scores, shared author
        a = make_record("a:1", "The history of the decline", authors=["Edward Gibbon"])
        b = make_record("b:1", "The history of a decline!!", authors=["Edward Gibbon"])
        strict = Deduplicator(scorer=RelevanceScorer(), similarity_threshold=0.99, ambiguity_margin=0.2)
        report = strict.merge_with_report([a, b], Query(text="gibbon"))
        assert len(report.records) == 2
        assert len(report.ambiguities) == 1
        assert report.ambiguities[0].score == 8
