"""
EnrichmentOverlay - Attach citation counts and PDF links after aggregation.

For every record, every provider is asked concurrently. Three limits
apply at once:

    per call      ``provider_timeout``; a late answer is dropped
    per provider  minimum spacing between requests (shared clock, asyncio.Lock)
    whole pass    ``budget`` seconds; calls still pending are abandoned

At most ``max_in_flight`` calls run at the same time.

The overlay is strictly additive: it returns copies of the input records
(same length, same order) with ``citation_info`` / ``pdf_access`` filled
in where the record had none. Provider failures are logged and dropped;
they never reach the caller.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
import time
from typing import TYPE_CHECKING, Any

from library_search.application.enrichment.stats import summarize
from library_search.domain.entities import (
    AccessType,
    CitationInfo,
    CitationLookup,
    PdfAccess,
    PdfLink,
    PdfLookup,
    ProviderKind,
)
from library_search.shared.async_utils import MinIntervalLimiter, run_with_deadline
from library_search.shared.exceptions import EnrichmentFailure

if TYPE_CHECKING:
    from collections.abc import Sequence

    from library_search.domain.entities import BibliographicRecord, EnrichmentSummary, MergedRecord
    from library_search.domain.ports import EnrichmentProvider

logger = logging.getLogger(__name__)


def merge_citations(lookups: Sequence[CitationLookup]) -> CitationInfo | None:
    """Highest count wins; ties go to the earlier provider."""
    if not lookups:
        return None
    best = lookups[0]
    for lookup in lookups[1:]:
        if lookup.count > best.count:
            best = lookup
    influential = [lk.influential_count for lk in lookups if lk.influential_count is not None]
    return CitationInfo(
        count=best.count,
        primary_source=best.provider,
        sources=tuple(lookups),
        influential_count=max(influential) if influential else None,
    )


def merge_pdf_links(lookups: Sequence[PdfLookup]) -> PdfAccess | None:
    """Links deduplicated by URL, sorted by quality then access type."""
    if not lookups:
        return None
    links: list[PdfLink] = []
    seen: set[str] = set()
    for lookup in lookups:
        for link in lookup.links:
            if link.url not in seen:
                seen.add(link.url)
                links.append(link)
    links.sort(key=lambda link: (link.quality.rank, link.access_type.rank))
    access_type = min((link.access_type for link in links), key=lambda a: a.rank, default=AccessType.NONE)
    return PdfAccess(links=tuple(links), access_type=access_type)


class EnrichmentOverlay:
    def __init__(
        self,
        providers: Sequence[EnrichmentProvider] = (),
        *,
        provider_timeout: float = 5.0,
        min_interval: float = 0.1,
        max_in_flight: int = 8,
    ) -> None:
        self._providers = list(providers)
        self._provider_timeout = provider_timeout
        self._max_in_flight = max_in_flight
        self._limiters = {p.name: MinIntervalLimiter(min_interval=min_interval) for p in self._providers}

    @property
    def providers(self) -> list[EnrichmentProvider]:
        return list(self._providers)

    async def enrich(self, records: Sequence[MergedRecord], budget: float) -> list[MergedRecord]:
        enriched, _summary = await self.enrich_with_summary(records, budget)
        return enriched

    async def enrich_with_summary(
        self,
        records: Sequence[MergedRecord],
        budget: float,
    ) -> tuple[list[MergedRecord], EnrichmentSummary]:
        start = time.monotonic()
        records = list(records)
        failures: dict[str, int] = {}

        semaphore = asyncio.Semaphore(self._max_in_flight)
        jobs: list[tuple[int, EnrichmentProvider, asyncio.Task[Any]]] = []
        for index, record in enumerate(records):
            for provider in self._providers:
                if not self._wants(record, provider):
                    continue
                task = asyncio.create_task(self._call(provider, record, semaphore))
                jobs.append((index, provider, task))

        if not jobs:
            return records, summarize(records, elapsed_ms=(time.monotonic() - start) * 1000)

        _done, pending = await asyncio.wait([task for _, _, task in jobs], timeout=max(budget, 0.0))
        for task in pending:
            task.cancel()
            task.add_done_callback(_drop_outcome)
        if pending:
            logger.warning(f"Enrichment budget of {budget}s exhausted, abandoned {len(pending)} calls")

        citations: dict[int, list[CitationLookup]] = {}
        pdfs: dict[int, list[PdfLookup]] = {}
        for index, provider, task in jobs:
            if task in pending or task.cancelled():
                continue
            exc = task.exception()
            if exc is not None:
                failures[provider.name] = failures.get(provider.name, 0) + 1
                logger.debug(f"{provider.name} enrichment skipped for {records[index].id}: {exc}")
                continue
            lookup = task.result()
            if isinstance(lookup, CitationLookup):
                citations.setdefault(index, []).append(lookup)
            elif isinstance(lookup, PdfLookup):
                pdfs.setdefault(index, []).append(lookup)
            elif lookup is not None:
                logger.debug(f"{provider.name} returned {type(lookup).__name__}, ignored")

        enriched: list[MergedRecord] = []
        for index, record in enumerate(records):
            changes: dict[str, Any] = {}
            if record.citation_info is None and index in citations:
                changes["citation_info"] = merge_citations(citations[index])
            if record.pdf_access is None and index in pdfs:
                changes["pdf_access"] = merge_pdf_links(pdfs[index])
            enriched.append(dataclasses.replace(record, **changes) if changes else record)

        summary = summarize(
            enriched,
            provider_failures=failures,
            abandoned_calls=len(pending),
            elapsed_ms=(time.monotonic() - start) * 1000,
        )
        return enriched, summary

    @staticmethod
    def _wants(record: BibliographicRecord, provider: EnrichmentProvider) -> bool:
        if provider.kind == ProviderKind.CITATION:
            return record.citation_info is None
        if provider.kind == ProviderKind.PDF:
            return record.pdf_access is None
        return False

    async def _call(
        self,
        provider: EnrichmentProvider,
        record: BibliographicRecord,
        semaphore: asyncio.Semaphore,
    ) -> CitationLookup | PdfLookup | None:
        async with semaphore:
            await self._limiters[provider.name].acquire()
            try:
                return await run_with_deadline(provider.lookup(record), self._provider_timeout)
            except TimeoutError as e:
                raise EnrichmentFailure(provider.name, f"no answer within {self._provider_timeout}s") from e
            except EnrichmentFailure:
                raise
            except Exception as e:
                raise EnrichmentFailure(provider.name, f"{type(e).__name__}: {e}", record_id=record.id) from e


def _drop_outcome(task: asyncio.Task[Any]) -> None:
    if not task.cancelled():
        task.exception()
