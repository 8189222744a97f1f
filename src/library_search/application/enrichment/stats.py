"""
Citation and PDF access statistics over an enriched record list.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from library_search.domain.entities import AccessType, CitationStats, EnrichmentSummary, PdfStats

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from library_search.domain.entities import BibliographicRecord


def h_index(counts: Sequence[int]) -> int:
    """Largest h such that h records have at least h citations each."""
    h = 0
    for i, count in enumerate(sorted(counts, reverse=True), start=1):
        if count >= i:
            h = i
        else:
            break
    return h


def citation_stats(records: Sequence[BibliographicRecord]) -> CitationStats:
    """Totals over records with a positive citation count; "0" bucket counts the rest."""
    counts = [r.citation_info.count for r in records if r.citation_info and r.citation_info.count > 0]
    distribution = {
        "0": len(records) - len(counts),
        "1-10": sum(1 for c in counts if 1 <= c <= 10),
        "11-50": sum(1 for c in counts if 11 <= c <= 50),
        "51-100": sum(1 for c in counts if 51 <= c <= 100),
        "100+": sum(1 for c in counts if c > 100),
    }
    if not counts:
        return CitationStats(total_records=len(records), distribution=distribution)

    total = sum(counts)
    return CitationStats(
        total_records=len(records),
        records_with_citations=len(counts),
        total_citations=total,
        average_citations=total / len(counts),
        max_citations=max(counts),
        h_index=h_index(counts),
        distribution=distribution,
    )


def pdf_stats(records: Sequence[BibliographicRecord]) -> PdfStats:
    """PDF availability; ``access_rate`` is a percentage of all records."""
    with_pdf = [r.pdf_access for r in records if r.pdf_access and r.pdf_access.has_pdf]
    by_source: dict[str, int] = {}
    for access in with_pdf:
        for link in access.links:
            by_source[link.source] = by_source.get(link.source, 0) + 1

    return PdfStats(
        total_records=len(records),
        records_with_pdf=len(with_pdf),
        free=sum(1 for a in with_pdf if a.access_type == AccessType.FREE),
        subscription=sum(1 for a in with_pdf if a.access_type == AccessType.SUBSCRIPTION),
        purchase=sum(1 for a in with_pdf if a.access_type == AccessType.PURCHASE),
        by_source=by_source,
        access_rate=(len(with_pdf) / len(records) * 100) if records else 0.0,
    )


def summarize(
    records: Sequence[BibliographicRecord],
    *,
    provider_failures: Mapping[str, int] | None = None,
    abandoned_calls: int = 0,
    elapsed_ms: float = 0.0,
) -> EnrichmentSummary:
    return EnrichmentSummary(
        citations=citation_stats(records),
        pdf=pdf_stats(records),
        provider_failures=dict(provider_failures or {}),
        abandoned_calls=abandoned_calls,
        elapsed_ms=elapsed_ms,
    )
