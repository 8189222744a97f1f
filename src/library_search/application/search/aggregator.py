"""
LibrarySearchAggregator - The federated search pipeline.

    query
      -> FanOutCoordinator   (every source in the registry snapshot, concurrently)
      -> ResultNormalizer    (ok results only, one strategy per family)
      -> Deduplicator        (union-find clusters, scorer flags ambiguities)
      -> EnrichmentOverlay   (optional, budget-bounded)
      -> AggregationReport   (frozen AggregationResult)

Source and provider failures never raise out of ``search``: they show up
as per-source status entries. Only contract violations raise (a missing
query, an unknown source id).

Example:
    >>> aggregator = LibrarySearchAggregator(registry)
    >>> result = await aggregator.search(Query(text="pride and prejudice"))
    >>> [s.status.value for s in result.per_source_status]
    ['ok', 'timeout', 'ok']
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

from library_search.application.search.config import AggregationConfig
from library_search.application.search.deduplicator import Deduplicator
from library_search.application.search.fan_out import FanOutCoordinator
from library_search.application.search.normalizer import ResultNormalizer
from library_search.application.search.report import AggregationReport, status_entry
from library_search.application.search.scorer import RelevanceScorer
from library_search.domain.entities import (
    AggregationStats,
    BibliographicRecord,
    Query,
    SourceHealth,
    SourceStatus,
    SourceStatusEntry,
)
from library_search.shared.exceptions import InvalidQueryError

if TYPE_CHECKING:
    from collections.abc import Iterable

    from library_search.application.enrichment.overlay import EnrichmentOverlay
    from library_search.application.search.registry import SourceRegistry
    from library_search.domain.entities import AggregationResult, EnrichmentSummary, MergedRecord

logger = logging.getLogger(__name__)


class LibrarySearchAggregator:
    def __init__(
        self,
        registry: SourceRegistry,
        config: AggregationConfig | None = None,
        *,
        overlay: EnrichmentOverlay | None = None,
        fan_out: FanOutCoordinator | None = None,
        normalizer: ResultNormalizer | None = None,
        scorer: RelevanceScorer | None = None,
    ) -> None:
        self.registry = registry
        self.config = config or AggregationConfig()
        self.scorer = scorer or RelevanceScorer(self.config.scoring)
        self.fan_out = fan_out or FanOutCoordinator(
            default_timeout=self.config.default_timeout,
            max_records=self.config.max_records_per_source,
        )
        self.normalizer = normalizer or ResultNormalizer(registry.descriptor)
        self.deduplicator = Deduplicator(
            scorer=self.scorer,
            similarity_threshold=self.config.title_similarity_threshold,
            max_year_gap=self.config.max_year_gap,
            ambiguity_margin=self.config.ambiguity_margin,
        )
        self.overlay = overlay
        self.report = AggregationReport(self.scorer)

    async def search(
        self,
        query: Query,
        *,
        source_ids: Iterable[str] | None = None,
        enrich: bool | None = None,
        per_source_timeout: float | None = None,
    ) -> AggregationResult:
        """
        Run one federated search.

        Args:
            query: what to search for
            source_ids: restrict the call to these registered sources
            enrich: override ``config.enrichment_enabled``
            per_source_timeout: deadline for sources without their own timeout

        Raises:
            InvalidQueryError: ``query`` is None or not a Query
            UnknownSourceError: a requested source id is not registered
        """
        if query is None or not isinstance(query, Query):
            raise InvalidQueryError(query)

        start = time.monotonic()
        sources = self.registry.select(source_ids) if source_ids is not None else self.registry.snapshot()
        stats = AggregationStats(sources_queried=len(sources))

        raw_results = await self.fan_out.dispatch(query, sources, per_source_timeout)
        descriptors = {s.id: s.descriptor for s in sources}

        statuses: list[SourceStatusEntry] = []
        normalized: list[BibliographicRecord] = []
        for raw in raw_results:
            if raw.status == SourceStatus.OK:
                records, skipped = self.normalizer.normalize_with_count(
                    raw.records, raw.source_id, descriptors[raw.source_id]
                )
                stats.sources_ok += 1
                stats.raw_records += len(raw.records)
                stats.skipped_records += skipped
                normalized.extend(records)
                statuses.append(status_entry(raw, count=len(records), skipped=skipped))
            else:
                if raw.status == SourceStatus.TIMEOUT:
                    stats.sources_timed_out += 1
                else:
                    stats.sources_failed += 1
                statuses.append(status_entry(raw))
        stats.normalized_records = len(normalized)

        priority = {s.id: s.descriptor.priority for s in sources}
        merge = self.deduplicator.merge_with_report(normalized, query, priority)
        stats.unique_records = len(merge.records)
        stats.merged_clusters = merge.clusters_merged
        stats.merge_ambiguities = len(merge.ambiguities)

        merged: list[MergedRecord] = merge.records
        enrichment: EnrichmentSummary | None = None
        if self.overlay is not None and self._should_enrich(enrich) and merged:
            merged, enrichment = await self.overlay.enrich_with_summary(merged, self.config.enrichment_budget)

        result = self.report.build(query, merged, statuses, start, stats=stats, enrichment=enrichment)
        logger.info(
            f"Search '{query.search_text}': {result.total_results} records from "
            f"{stats.sources_ok}/{stats.sources_queried} sources in {result.total_elapsed_ms:.0f}ms"
        )
        return result

    def _should_enrich(self, enrich: bool | None) -> bool:
        if self.overlay is None:
            return False
        return self.config.enrichment_enabled if enrich is None else enrich

    async def check_sources(self, probe: str = "test", timeout: float | None = None) -> list[SourceHealth]:
        """
        Probe every registered source with a tiny query.

        A source is "online" when it answers (even with zero records)
        within its deadline.
        """
        sources = self.registry.snapshot()
        raw_results = await self.fan_out.dispatch(Query(text=probe), sources, timeout)
        health = [
            SourceHealth(
                source_id=raw.source_id,
                status="online" if raw.status == SourceStatus.OK else "offline",
                elapsed_ms=raw.elapsed_ms,
                error=raw.error_detail,
            )
            for raw in raw_results
        ]
        online = sum(1 for h in health if h.online)
        logger.info(f"Source health: {online}/{len(health)} online")
        return health
