"""
AggregationReport - Package the pipeline's output into one frozen result.

Pure assembly: records are ranked by the scorer, statuses are copied into
a tuple and never touched again.
"""

from __future__ import annotations

import time
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from library_search.application.search.scorer import RelevanceScorer
from library_search.domain.entities import AggregationResult, AggregationStats, SourceStatusEntry

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from library_search.domain.entities import EnrichmentSummary, MergedRecord, Query, RawSourceResult


def status_entry(raw: RawSourceResult, count: int = 0, skipped: int = 0) -> SourceStatusEntry:
    """Status line for one dispatched source; ``count`` is the number of normalized records."""
    return SourceStatusEntry(
        source_id=raw.source_id,
        status=raw.status,
        count=count,
        elapsed_ms=raw.elapsed_ms,
        error_detail=raw.error_detail,
        skipped=skipped,
    )


class AggregationReport:
    def __init__(self, scorer: RelevanceScorer | None = None) -> None:
        self._scorer = scorer or RelevanceScorer()

    def build(
        self,
        query: Query,
        merged_records: Sequence[MergedRecord],
        per_source_statuses: Iterable[SourceStatusEntry],
        start_time: float,
        *,
        stats: AggregationStats | None = None,
        enrichment: EnrichmentSummary | None = None,
        now: datetime | None = None,
    ) -> AggregationResult:
        """
        Assemble the final result.

        Args:
            start_time: ``time.monotonic()`` taken when the query arrived.
            now: wall-clock timestamp override (UTC).
        """
        records = self._scorer.rank(list(merged_records), query)
        timestamp = (now or datetime.now(timezone.utc)).isoformat()
        return AggregationResult(
            query=query,
            records=tuple(records),
            per_source_status=tuple(per_source_statuses),
            total_elapsed_ms=(time.monotonic() - start_time) * 1000,
            timestamp=timestamp,
            stats=stats or AggregationStats(unique_records=len(records)),
            enrichment=enrichment,
        )
