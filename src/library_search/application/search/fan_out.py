"""
FanOutCoordinator - Concurrent, deadline-bounded dispatch to every source.

Each source gets its own task and its own deadline. A source that is slow
or broken only ever affects its own RawSourceResult:

    ok       -> records returned by the adapter
    timeout  -> deadline passed; the call is abandoned, late data dropped
    error    -> adapter raised; message captured

``dispatch`` returns once every source has one of these outcomes, so its
wall time is bounded by the largest per-source deadline. Results come
back in dispatch order regardless of completion order. There are no
retries at this level.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING, Any

from library_search.domain.entities import RawSourceResult, SourceStatus
from library_search.domain.ports import SearchOptions
from library_search.shared.async_utils import call_maybe_async, run_with_deadline
from library_search.shared.exceptions import ErrorKind, SourceTimeout

if TYPE_CHECKING:
    from collections.abc import Sequence

    from library_search.domain.entities import Query, RegisteredSource

logger = logging.getLogger(__name__)


class FanOutCoordinator:
    """Dispatch one query to many sources at once."""

    def __init__(self, default_timeout: float = 10.0, max_records: int = 25) -> None:
        self._default_timeout = default_timeout
        self._max_records = max_records

    @property
    def default_timeout(self) -> float:
        return self._default_timeout

    def timeout_for(self, source: RegisteredSource, per_source_timeout: float | None = None) -> float:
        """Descriptor timeout, else the per-call override, else the default."""
        if source.descriptor.timeout is not None:
            return source.descriptor.timeout
        if per_source_timeout is not None:
            return per_source_timeout
        return self._default_timeout

    async def dispatch(
        self,
        query: Query,
        sources: Sequence[RegisteredSource],
        per_source_timeout: float | None = None,
    ) -> list[RawSourceResult]:
        """Run every adapter concurrently; one RawSourceResult per source, in input order."""
        if not sources:
            return []

        logger.info(f"Dispatching '{query.search_text}' to {len(sources)} sources")
        results = await asyncio.gather(
            *(self._call_source(query, source, self.timeout_for(source, per_source_timeout)) for source in sources)
        )

        ok = sum(1 for r in results if r.status == SourceStatus.OK)
        logger.info(f"Fan-out finished: {ok}/{len(results)} sources answered")
        return list(results)

    async def _call_source(self, query: Query, source: RegisteredSource, timeout: float) -> RawSourceResult:
        """Never raises (except on cancellation of the whole dispatch)."""
        source_id = source.id
        options = SearchOptions(max_records=self._max_records, timeout=timeout)
        start = time.monotonic()

        try:
            raw = await run_with_deadline(call_maybe_async(source.adapter.search, query, options), timeout)
        except TimeoutError:
            elapsed = (time.monotonic() - start) * 1000
            error = SourceTimeout(source_id, timeout)
            logger.warning(f"Source {source_id} timed out after {elapsed:.0f}ms")
            return RawSourceResult(
                source_id=source_id,
                status=SourceStatus.TIMEOUT,
                error=ErrorKind.SOURCE_TIMEOUT,
                error_detail=str(error),
                elapsed_ms=elapsed,
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            elapsed = (time.monotonic() - start) * 1000
            logger.warning(f"Source {source_id} failed: {type(e).__name__}: {e}")
            return RawSourceResult(
                source_id=source_id,
                status=SourceStatus.ERROR,
                error=ErrorKind.SOURCE_ERROR,
                error_detail=f"{type(e).__name__}: {e}" if str(e) else type(e).__name__,
                elapsed_ms=elapsed,
            )

        elapsed = (time.monotonic() - start) * 1000
        records = _as_record_list(raw)
        if records is None:
            logger.warning(f"Source {source_id} returned {type(raw).__name__}, expected a list")
            return RawSourceResult(
                source_id=source_id,
                status=SourceStatus.ERROR,
                error=ErrorKind.SOURCE_ERROR,
                error_detail=f"adapter returned {type(raw).__name__}, expected a list of records",
                elapsed_ms=elapsed,
            )

        logger.debug(f"Source {source_id}: {len(records)} raw records in {elapsed:.0f}ms")
        return RawSourceResult(
            source_id=source_id,
            status=SourceStatus.OK,
            records=records,
            elapsed_ms=elapsed,
        )


def _as_record_list(raw: Any) -> list[Any] | None:
    if raw is None:
        return []
    if isinstance(raw, (list, tuple)):
        return list(raw)
    return None
