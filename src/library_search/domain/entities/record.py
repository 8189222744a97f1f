"""
Record Entities - The canonical bibliographic schema.

Every source, whatever it returns on the wire, ends up as a
BibliographicRecord. The deduplicator folds clusters of them into a
MergedRecord, which is what callers receive.

Absent values are explicit and never guessed:
    - no authors  -> []
    - no ISBN     -> ""
    - no year     -> UNKNOWN_YEAR (never 0, never the current year)

Records are frozen; enrichment attaches citation/PDF data by building a
copy with ``dataclasses.replace``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .enrichment import CitationInfo, PdfAccess

UNKNOWN_YEAR = "unknown"


class RecordFormat(Enum):
    BOOK = "book"
    JOURNAL = "journal"
    THESIS = "thesis"
    ARTICLE = "article"
    DIGITAL = "digital"
    OTHER = "other"


class Confidence(Enum):
    """How much the normalizer trusts a record's fields."""

    HIGH = "high"  # Well-typed identifiers present (ISBN / ISSN / DOI / MARC 020/022)
    MEDIUM = "medium"
    LOW = "low"  # Fields scraped from free text

    @property
    def rank(self) -> int:
        return {"high": 2, "medium": 1, "low": 0}[self.value]


@dataclass(frozen=True)
class LibraryInfo:
    """Where a physical copy lives."""

    institution: str = ""
    country: str = ""
    city: str = ""
    call_number: str = ""

    def to_dict(self) -> dict[str, str]:
        return {
            "institution": self.institution,
            "country": self.country,
            "city": self.city,
            "call_number": self.call_number,
        }


@dataclass(frozen=True)
class SourceIdentifier:
    """Identifiers one contributing record carried into a merge."""

    source_id: str
    record_id: str
    isbn: str = ""
    issn: str = ""
    call_number: str = ""

    def to_dict(self) -> dict[str, str]:
        return {
            "source_id": self.source_id,
            "record_id": self.record_id,
            "isbn": self.isbn,
            "issn": self.issn,
            "call_number": self.call_number,
        }


@dataclass(frozen=True)
class BibliographicRecord:
    """One normalized record from one source."""

    id: str
    title: str
    source_id: str
    authors: list[str] = field(default_factory=list)
    isbn: str = ""
    issn: str = ""
    year: int | str = UNKNOWN_YEAR
    publisher: str | None = None
    format: RecordFormat = RecordFormat.BOOK
    raw_confidence: Confidence = Confidence.MEDIUM
    library_info: LibraryInfo | None = None
    subjects: list[str] = field(default_factory=list)
    description: str | None = None
    doi: str | None = None
    language: str | None = None
    url: str | None = None
    native_id: str | None = None
    citation_info: CitationInfo | None = None
    pdf_access: PdfAccess | None = None

    @property
    def has_known_year(self) -> bool:
        return isinstance(self.year, int)

    @property
    def completeness(self) -> int:
        """Number of populated optional fields, used as a merge tie-breaker."""
        values = (
            self.authors,
            self.isbn,
            self.issn,
            self.has_known_year,
            self.publisher,
            self.library_info,
            self.subjects,
            self.description,
            self.doi,
            self.language,
            self.url,
        )
        return sum(1 for v in values if v)

    def to_dict(self) -> dict[str, Any]:
        """Serialize; ``authors`` and ``isbn`` are always present."""
        result: dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "authors": list(self.authors),
            "isbn": self.isbn,
            "issn": self.issn,
            "year": self.year,
            "publisher": self.publisher,
            "format": self.format.value,
            "source_id": self.source_id,
            "raw_confidence": self.raw_confidence.value,
            "subjects": list(self.subjects),
        }
        if self.library_info:
            result["library_info"] = self.library_info.to_dict()
        for key in ("description", "doi", "language", "url", "native_id"):
            value = getattr(self, key)
            if value:
                result[key] = value
        if self.citation_info:
            result["citation_info"] = self.citation_info.to_dict()
        if self.pdf_access:
            result["pdf_access"] = self.pdf_access.to_dict()
        return result


@dataclass(frozen=True)
class MergedRecord(BibliographicRecord):
    """
    A cluster of records judged to describe the same work.

    ``source_id`` / ``id`` are the canonical member's; every member's
    identifiers survive in ``identifiers`` and every holding in ``holdings``.
    """

    contributing_source_ids: frozenset[str] = frozenset()
    merge_score: float = 1.0
    member_ids: list[str] = field(default_factory=list)
    identifiers: list[SourceIdentifier] = field(default_factory=list)
    alternate_isbns: list[str] = field(default_factory=list)
    holdings: list[LibraryInfo] = field(default_factory=list)
    relevance_score: float = 0.0

    @property
    def source_count(self) -> int:
        return len(self.contributing_source_ids)

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result.update(
            {
                "contributing_source_ids": sorted(self.contributing_source_ids),
                "merge_score": round(self.merge_score, 4),
                "member_ids": list(self.member_ids),
                "identifiers": [ident.to_dict() for ident in self.identifiers],
                "alternate_isbns": list(self.alternate_isbns),
                "holdings": [h.to_dict() for h in self.holdings],
                "relevance_score": self.relevance_score,
            }
        )
        return result
