"""
Federated search pipeline.

Components:
- SourceRegistry: copy-on-write set of registered sources
- FanOutCoordinator: concurrent, deadline-bounded dispatch
- ResultNormalizer: per-family mapping onto BibliographicRecord
- RelevanceScorer: additive relevance score
- Deduplicator: union-find clustering and merge
- AggregationReport: frozen AggregationResult assembly
- LibrarySearchAggregator: the whole pipeline
"""

from .aggregator import LibrarySearchAggregator
from .config import AggregationConfig, ScoringWeights
from .deduplicator import Deduplicator, MergeAmbiguity, MergeReport, UnionFind
from .fan_out import FanOutCoordinator
from .normalizer import (
    BibliographicApiStrategy,
    JsonCatalogStrategy,
    Marc21Strategy,
    NormalizationStrategy,
    ResultNormalizer,
)
from .registry import SourceRegistry
from .report import AggregationReport, status_entry
from .scorer import RelevanceScorer

__all__ = [
    "AggregationConfig",
    "AggregationReport",
    "BibliographicApiStrategy",
    "Deduplicator",
    "FanOutCoordinator",
    "JsonCatalogStrategy",
    "LibrarySearchAggregator",
    "Marc21Strategy",
    "MergeAmbiguity",
    "MergeReport",
    "NormalizationStrategy",
    "RelevanceScorer",
    "ResultNormalizer",
    "ScoringWeights",
    "SourceRegistry",
    "UnionFind",
    "status_entry",
]
