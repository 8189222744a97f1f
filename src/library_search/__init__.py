"""
Library Search - Federated search across library catalogs

Sends one query to many catalogs at once (MARC21/SRU, JSON catalog APIs,
bibliographic APIs), normalizes every answer to a common record, merges
duplicates, ranks the merged set and optionally adds citation counts and
open access PDF links.

Usage:
    from library_search import ApplicationContainer, Query

    container = ApplicationContainer()
    container.config.from_dict({"email": "you@example.com"})

    result = await container.aggregator().search(Query(text="pride and prejudice"))
    for record in result.records:
        print(f"{record.title} ({record.year}) - {', '.join(record.contributing_source_ids)}")
"""

from .application.enrichment.overlay import EnrichmentOverlay
from .application.search import (
    AggregationConfig,
    LibrarySearchAggregator,
    ScoringWeights,
    SourceRegistry,
)
from .container import ApplicationContainer
from .domain.entities import (
    AggregationResult,
    BibliographicRecord,
    MergedRecord,
    Query,
    QueryFields,
    SearchType,
    SourceDescriptor,
)

__version__ = "0.1.0"

__all__ = [
    # Pipeline
    "AggregationConfig",
    "ApplicationContainer",
    "EnrichmentOverlay",
    "LibrarySearchAggregator",
    "ScoringWeights",
    "SourceRegistry",
    # Entities
    "AggregationResult",
    "BibliographicRecord",
    "MergedRecord",
    "Query",
    "QueryFields",
    "SearchType",
    "SourceDescriptor",
]
