"""
Ports - What the core needs from the outside world.

The aggregation core only ever sees these protocols. A source adapter is
"a function query -> records, fallible, slow"; an enrichment provider is
"a function record -> lookup or None".
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from library_search.domain.entities import (
        BibliographicRecord,
        CitationLookup,
        PdfLookup,
        ProviderKind,
        Query,
    )


@dataclass(frozen=True)
class SearchOptions:
    """Per-call options handed to every adapter."""

    max_records: int = 25
    timeout: float | None = None


@runtime_checkable
class SourceAdapter(Protocol):
    """
    One remote catalog.

    ``search`` may be a coroutine function or a plain function (run on a
    daemon thread and abandoned at the deadline). It returns the source's
    raw records, untouched, and raises on any transport or parse failure.
    """

    def search(self, query: Query, options: SearchOptions) -> Any: ...


@runtime_checkable
class EnrichmentProvider(Protocol):
    """A secondary service that annotates records after aggregation."""

    name: str
    kind: ProviderKind

    async def lookup(self, record: BibliographicRecord) -> CitationLookup | PdfLookup | None: ...
