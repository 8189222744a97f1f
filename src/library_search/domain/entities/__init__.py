"""Domain entities."""

from .aggregation import AggregationResult, AggregationStats
from .enrichment import (
    AccessType,
    CitationInfo,
    CitationLookup,
    CitationStats,
    EnrichmentSummary,
    PdfAccess,
    PdfLink,
    PdfLookup,
    PdfQuality,
    PdfStats,
    ProviderKind,
)
from .query import Query, QueryFields, SearchType
from .record import (
    UNKNOWN_YEAR,
    BibliographicRecord,
    Confidence,
    LibraryInfo,
    MergedRecord,
    RecordFormat,
    SourceIdentifier,
)
from .source import (
    AdapterFamily,
    RawSourceResult,
    RegisteredSource,
    SourceDescriptor,
    SourceHealth,
    SourceStatus,
    SourceStatusEntry,
)

__all__ = [
    "UNKNOWN_YEAR",
    "AccessType",
    "AdapterFamily",
    "AggregationResult",
    "AggregationStats",
    "BibliographicRecord",
    "CitationInfo",
    "CitationLookup",
    "CitationStats",
    "Confidence",
    "EnrichmentSummary",
    "LibraryInfo",
    "MergedRecord",
    "PdfAccess",
    "PdfLink",
    "PdfLookup",
    "PdfQuality",
    "PdfStats",
    "ProviderKind",
    "Query",
    "QueryFields",
    "RawSourceResult",
    "RecordFormat",
    "RegisteredSource",
    "SearchType",
    "SourceDescriptor",
    "SourceHealth",
    "SourceIdentifier",
    "SourceStatus",
    "SourceStatusEntry",
]
