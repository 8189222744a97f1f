"""
Enrichment Entities - Citation counts and PDF access attached post-hoc.

Providers answer with a CitationLookup or PdfLookup; the overlay folds
all answers for one record into a CitationInfo / PdfAccess.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ProviderKind(Enum):
    CITATION = "citation"
    PDF = "pdf"


class AccessType(Enum):
    """How a PDF can be obtained, best first."""

    FREE = "free"
    SUBSCRIPTION = "subscription"
    PURCHASE = "purchase"
    NONE = "none"

    @property
    def rank(self) -> int:
        return _ACCESS_RANK[self]


class PdfQuality(Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        return _QUALITY_RANK[self]


_ACCESS_RANK = {AccessType.FREE: 0, AccessType.SUBSCRIPTION: 1, AccessType.PURCHASE: 2, AccessType.NONE: 3}
_QUALITY_RANK = {PdfQuality.HIGH: 0, PdfQuality.MEDIUM: 1, PdfQuality.LOW: 2}


# =============================================================================
# Provider answers
# =============================================================================


@dataclass(frozen=True)
class CitationLookup:
    """One provider's citation count for one record."""

    provider: str
    count: int
    influential_count: int | None = None
    url: str | None = None


@dataclass(frozen=True)
class PdfLink:
    url: str
    source: str
    access_type: AccessType = AccessType.FREE
    quality: PdfQuality = PdfQuality.MEDIUM
    version: str | None = None  # "publishedVersion", "acceptedVersion", ...
    license: str | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "url": self.url,
            "source": self.source,
            "access_type": self.access_type.value,
            "quality": self.quality.value,
        }
        if self.version:
            result["version"] = self.version
        if self.license:
            result["license"] = self.license
        return result


@dataclass(frozen=True)
class PdfLookup:
    provider: str
    links: tuple[PdfLink, ...] = ()


# =============================================================================
# Merged annotations
# =============================================================================


@dataclass(frozen=True)
class CitationInfo:
    """
    Citation count merged across providers.

    ``count`` is the highest count any provider reported and
    ``primary_source`` names that provider. ``sources`` keeps every
    answering provider with its own count.
    """

    count: int
    primary_source: str
    sources: tuple[CitationLookup, ...] = ()
    influential_count: int | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "count": self.count,
            "primary_source": self.primary_source,
            "sources": [{"provider": s.provider, "count": s.count} for s in self.sources],
        }
        if self.influential_count is not None:
            result["influential_count"] = self.influential_count
        return result


@dataclass(frozen=True)
class PdfAccess:
    """Candidate PDF links sorted best quality first."""

    links: tuple[PdfLink, ...]
    access_type: AccessType

    @property
    def best_url(self) -> str | None:
        return self.links[0].url if self.links else None

    @property
    def has_pdf(self) -> bool:
        return bool(self.links)

    def to_dict(self) -> dict[str, Any]:
        return {
            "access_type": self.access_type.value,
            "best_url": self.best_url,
            "links": [link.to_dict() for link in self.links],
        }


# =============================================================================
# Statistics
# =============================================================================


@dataclass(frozen=True)
class CitationStats:
    total_records: int = 0
    records_with_citations: int = 0
    total_citations: int = 0
    average_citations: float = 0.0
    max_citations: int = 0
    h_index: int = 0
    distribution: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_records": self.total_records,
            "records_with_citations": self.records_with_citations,
            "total_citations": self.total_citations,
            "average_citations": round(self.average_citations, 2),
            "max_citations": self.max_citations,
            "h_index": self.h_index,
            "distribution": dict(self.distribution),
        }


@dataclass(frozen=True)
class PdfStats:
    total_records: int = 0
    records_with_pdf: int = 0
    free: int = 0
    subscription: int = 0
    purchase: int = 0
    by_source: dict[str, int] = field(default_factory=dict)
    access_rate: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_records": self.total_records,
            "records_with_pdf": self.records_with_pdf,
            "free": self.free,
            "subscription": self.subscription,
            "purchase": self.purchase,
            "by_source": dict(self.by_source),
            "access_rate": round(self.access_rate, 1),
        }


@dataclass(frozen=True)
class EnrichmentSummary:
    """What the enrichment pass achieved for one aggregation."""

    citations: CitationStats = field(default_factory=CitationStats)
    pdf: PdfStats = field(default_factory=PdfStats)
    provider_failures: dict[str, int] = field(default_factory=dict)
    abandoned_calls: int = 0
    elapsed_ms: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "citations": self.citations.to_dict(),
            "pdf": self.pdf.to_dict(),
            "provider_failures": dict(self.provider_failures),
            "abandoned_calls": self.abandoned_calls,
            "elapsed_ms": round(self.elapsed_ms, 1),
        }
