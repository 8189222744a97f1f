"""Domain layer: entities and the ports the core depends on."""

from .ports import EnrichmentProvider, SearchOptions, SourceAdapter

__all__ = ["EnrichmentProvider", "SearchOptions", "SourceAdapter"]
