"""
Aggregation Entities - The single response handed back to the caller.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .enrichment import EnrichmentSummary
    from .query import Query
    from .record import MergedRecord
    from .source import SourceStatusEntry


@dataclass
class AggregationStats:
    """Counters collected while one query moves through the pipeline."""

    sources_queried: int = 0
    sources_ok: int = 0
    sources_failed: int = 0
    sources_timed_out: int = 0
    raw_records: int = 0
    normalized_records: int = 0
    skipped_records: int = 0
    unique_records: int = 0
    merged_clusters: int = 0
    merge_ambiguities: int = 0

    @property
    def duplicates_removed(self) -> int:
        return self.normalized_records - self.unique_records

    @property
    def deduplication_rate(self) -> float:
        if self.normalized_records == 0:
            return 0.0
        return self.duplicates_removed / self.normalized_records

    def to_dict(self) -> dict[str, Any]:
        return {
            "sources_queried": self.sources_queried,
            "sources_ok": self.sources_ok,
            "sources_failed": self.sources_failed,
            "sources_timed_out": self.sources_timed_out,
            "raw_records": self.raw_records,
            "normalized_records": self.normalized_records,
            "skipped_records": self.skipped_records,
            "unique_records": self.unique_records,
            "merged_clusters": self.merged_clusters,
            "merge_ambiguities": self.merge_ambiguities,
            "duplicates_removed": self.duplicates_removed,
            "deduplication_rate": round(self.deduplication_rate, 3),
        }


@dataclass(frozen=True)
class AggregationResult:
    """
    Final, immutable answer to one query.

    ``per_source_status`` has exactly one entry per dispatched source, in
    dispatch order. ``records`` are sorted by relevance.
    """

    query: Query
    records: tuple[MergedRecord, ...]
    per_source_status: tuple[SourceStatusEntry, ...]
    total_elapsed_ms: float
    timestamp: str
    stats: AggregationStats = field(default_factory=AggregationStats)
    enrichment: EnrichmentSummary | None = None

    @property
    def total_results(self) -> int:
        return len(self.records)

    def status_for(self, source_id: str) -> SourceStatusEntry | None:
        for entry in self.per_source_status:
            if entry.source_id == source_id:
                return entry
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "query": self.query.to_dict(),
            "total_results": self.total_results,
            "records": [r.to_dict() for r in self.records],
            "per_source_status": [s.to_dict() for s in self.per_source_status],
            "total_elapsed_ms": round(self.total_elapsed_ms, 1),
            "timestamp": self.timestamp,
            "stats": self.stats.to_dict(),
            "enrichment": self.enrichment.to_dict() if self.enrichment else None,
        }
