"""
ResultNormalizer - Map heterogeneous raw records onto one schema.

One mapping strategy per adapter family:

    Marc21Strategy           MARC-in-JSON ({"leader", "fields": [...]})
    JsonCatalogStrategy      Open Library docs, Google Books volumes, loc.gov JSON
    BibliographicApiStrategy OpenAlex / CrossRef style work metadata

The strategy is chosen by ``source_id`` through the family declared in the
source's descriptor. Normalization is pure: no I/O, no clock, no
randomness, so the same raw record always yields an equal record.

Missing values are explicit: authors -> [], isbn -> "", year -> UNKNOWN_YEAR.
A record a strategy cannot map raises NormalizationError; the normalizer
skips it, logs it, and keeps the rest of that source's records.
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING, Any, ClassVar

from library_search.domain.entities import (
    UNKNOWN_YEAR,
    AdapterFamily,
    BibliographicRecord,
    Confidence,
    LibraryInfo,
    RecordFormat,
    SourceDescriptor,
)
from library_search.shared.exceptions import ConfigurationError, NormalizationError
from library_search.shared.text import clean_title, extract_year, normalize_isbn

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

logger = logging.getLogger(__name__)

# Author scraped out of free text, e.g. "... edited by Jane Austen, 1813"
_BY_AUTHOR = re.compile(r"\bby\s+([^,\.;]+)", re.IGNORECASE)
_ISSN = re.compile(r"^\d{4}-?\d{3}[\dXx]$")
_DOI_PREFIX = re.compile(r"^(?:https?://(?:dx\.)?doi\.org/|doi:)", re.IGNORECASE)
_TRAILING_ISBD = re.compile(r"[\s/:;,=.]+$")


def _text(value: Any) -> str:
    """First string out of a str / list / {"value": str} shape, stripped."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, (list, tuple)):
        for item in value:
            text = _text(item)
            if text:
                return text
        return ""
    if isinstance(value, dict):
        return _text(value.get("value") or value.get("name") or value.get("display_name"))
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return ""


def _texts(value: Any) -> list[str]:
    """Every non-empty string out of a str / list shape, order kept, duplicates dropped."""
    if value is None:
        return []
    items = value if isinstance(value, (list, tuple)) else [value]
    result: list[str] = []
    for item in items:
        text = _text(item)
        if text and text not in result:
            result.append(text)
    return result


def _strip_isbd(value: str) -> str:
    """Drop trailing ISBD punctuation (" /", " :", ",", ".") from a MARC subfield."""
    return _TRAILING_ISBD.sub("", value).strip()


def _normalize_issn(value: str) -> str:
    value = value.strip().split(" ")[0]
    if not _ISSN.match(value):
        return ""
    value = value.replace("-", "").upper()
    return f"{value[:4]}-{value[4:]}"


def _normalize_doi(value: str) -> str:
    return _DOI_PREFIX.sub("", value.strip()).lower()


def _first_isbn(candidates: Iterable[str]) -> str:
    for candidate in candidates:
        isbn = normalize_isbn(candidate)
        if isbn:
            return isbn
    return ""


def _first_issn(candidates: Iterable[str]) -> str:
    for candidate in candidates:
        issn = _normalize_issn(candidate)
        if issn:
            return issn
    return ""


def _format_from_label(label: str, default: RecordFormat = RecordFormat.BOOK) -> RecordFormat:
    label = label.lower()
    if not label:
        return default
    if "thesis" in label or "dissertation" in label:
        return RecordFormat.THESIS
    if any(k in label for k in ("journal", "periodical", "serial", "magazine", "newspaper")):
        return RecordFormat.JOURNAL
    if "article" in label or "chapter" in label:
        return RecordFormat.ARTICLE
    if any(k in label for k in ("web", "digital", "electronic", "online", "software")):
        return RecordFormat.DIGITAL
    if "book" in label or "monograph" in label or "text" in label:
        return RecordFormat.BOOK
    return RecordFormat.OTHER


class _RecordIds:
    """Deterministic record ids: ``<source>:<native id>`` or ``<source>:#<position>``."""

    def __init__(self, source_id: str) -> None:
        self._source_id = source_id
        self._seen: set[str] = set()

    def make(self, native_id: str | None, position: int) -> str:
        record_id = f"{self._source_id}:{native_id}" if native_id else f"{self._source_id}:#{position}"
        if record_id in self._seen:
            record_id = f"{record_id}#{position}"
        self._seen.add(record_id)
        return record_id


# =============================================================================
# Strategies
# =============================================================================


class NormalizationStrategy:
    """Maps one raw record of a given family; raises NormalizationError when it cannot."""

    family: ClassVar[AdapterFamily]

    def map_record(self, raw: Any, descriptor: SourceDescriptor, record_id: str) -> BibliographicRecord:
        raise NotImplementedError

    def native_id(self, raw: Any) -> str | None:
        return None

    @staticmethod
    def _library_info(descriptor: SourceDescriptor, call_number: str = "") -> LibraryInfo | None:
        if not descriptor.institution and not call_number:
            return None
        return LibraryInfo(
            institution=descriptor.institution,
            country=descriptor.country,
            city=descriptor.city,
            call_number=call_number,
        )


class Marc21Strategy(NormalizationStrategy):
    """
    MARC-in-JSON records.

    Field map: 001 control number, 020$a ISBN, 022$a ISSN, 245$a title,
    100$a / 110$a main entry + 700$a added entries, 260 / 264 $b publisher
    and $c date (008/07-10 fallback), 041$a language (008/35-37 fallback),
    650$a subjects, 520$a summary, 852$h / 050$a / 090$a call number,
    leader/06-07 record type.
    """

    family = AdapterFamily.MARC21

    @staticmethod
    def _fields(raw: Any) -> list[dict[str, Any]]:
        if not isinstance(raw, dict) or not isinstance(raw.get("fields"), list):
            raise NormalizationError("MARC record has no field list", record=raw)
        return [f for f in raw["fields"] if isinstance(f, dict)]

    @staticmethod
    def _control(fields: list[dict[str, Any]], tag: str) -> str:
        for f in fields:
            value = f.get(tag)
            if isinstance(value, str):
                return value
        return ""

    @staticmethod
    def _subfields(fields: list[dict[str, Any]], tag: str, code: str) -> list[str]:
        values: list[str] = []
        for f in fields:
            data = f.get(tag)
            if not isinstance(data, dict):
                continue
            for sub in data.get("subfields", []):
                if isinstance(sub, dict) and isinstance(sub.get(code), str) and sub[code].strip():
                    values.append(sub[code].strip())
        return values

    def _first(self, fields: list[dict[str, Any]], *specs: tuple[str, str]) -> str:
        for tag, code in specs:
            values = self._subfields(fields, tag, code)
            if values:
                return values[0]
        return ""

    def native_id(self, raw: Any) -> str | None:
        if not isinstance(raw, dict):
            return None
        return self._control(self._fields(raw), "001").strip() or None

    def map_record(self, raw: Any, descriptor: SourceDescriptor, record_id: str) -> BibliographicRecord:
        fields = self._fields(raw)
        title = clean_title(_strip_isbd(self._first(fields, ("245", "a"))))
        if not title:
            raise NormalizationError("MARC record has no 245$a title", source_id=descriptor.id, record=raw)

        authors: list[str] = []
        for name in (
            self._subfields(fields, "100", "a") + self._subfields(fields, "110", "a") + self._subfields(fields, "700", "a")
        ):
            name = _strip_isbd(name)
            if name and name not in authors:
                authors.append(name)

        isbn_values = self._subfields(fields, "020", "a")
        issn_values = self._subfields(fields, "022", "a")
        isbn = _first_isbn(isbn_values)
        issn = _first_issn(issn_values)

        fixed = self._control(fields, "008")
        year = extract_year(self._first(fields, ("260", "c"), ("264", "c"))) or extract_year(fixed[7:11])
        language = self._first(fields, ("041", "a")) or fixed[35:38].strip() or None

        publisher = _strip_isbd(self._first(fields, ("260", "b"), ("264", "b"))) or None
        call_number = self._call_number(fields)
        leader = raw.get("leader") if isinstance(raw.get("leader"), str) else ""

        return BibliographicRecord(
            id=record_id,
            title=title,
            source_id=descriptor.id,
            authors=authors,
            isbn=isbn,
            issn=issn,
            year=year if year is not None else UNKNOWN_YEAR,
            publisher=publisher,
            format=self._format(leader, fields),
            raw_confidence=Confidence.HIGH if (isbn or issn) else Confidence.MEDIUM,
            library_info=self._library_info(descriptor, call_number),
            subjects=[_strip_isbd(s) for s in dict.fromkeys(self._subfields(fields, "650", "a"))],
            description=self._first(fields, ("520", "a")) or None,
            language=language,
            native_id=self._control(fields, "001").strip() or None,
        )

    def _call_number(self, fields: list[dict[str, Any]]) -> str:
        local = self._first(fields, ("852", "h"))
        if local:
            return local
        lc_class = self._first(fields, ("050", "a"), ("090", "a"))
        item = self._first(fields, ("050", "b"), ("090", "b"))
        return f"{lc_class} {item}".strip() if lc_class else ""

    def _format(self, leader: str, fields: list[dict[str, Any]]) -> RecordFormat:
        if self._subfields(fields, "502", "a"):
            return RecordFormat.THESIS
        if len(leader) < 8:
            return RecordFormat.BOOK
        record_type, level = leader[6], leader[7]
        if record_type in ("a", "t"):
            if level == "s":
                return RecordFormat.JOURNAL
            if level in ("a", "b"):
                return RecordFormat.ARTICLE
            return RecordFormat.BOOK
        if record_type == "m":
            return RecordFormat.DIGITAL
        return RecordFormat.OTHER


class JsonCatalogStrategy(NormalizationStrategy):
    """
    Library catalog JSON.

    Understands Google Books volumes (``volumeInfo``), Open Library search
    docs (``author_name``, ``first_publish_year``) and loc.gov search
    results, where authors only appear inside the free-text description
    and have to be scraped (``raw_confidence`` low).
    """

    family = AdapterFamily.JSON_CATALOG

    def native_id(self, raw: Any) -> str | None:
        if not isinstance(raw, dict):
            return None
        return _text(raw.get("key") or raw.get("id")) or None

    def map_record(self, raw: Any, descriptor: SourceDescriptor, record_id: str) -> BibliographicRecord:
        if not isinstance(raw, dict):
            raise NormalizationError(f"expected an object, got {type(raw).__name__}", source_id=descriptor.id)
        info = raw.get("volumeInfo") if isinstance(raw.get("volumeInfo"), dict) else raw

        title = clean_title(_text(info.get("title")))
        if not title:
            raise NormalizationError("record has no title", source_id=descriptor.id, record=raw)

        description = _text(info.get("description")) or None
        authors = _texts(info.get("authors") or info.get("author_name") or info.get("author") or info.get("creator"))
        scraped = False
        if not authors and description:
            match = _BY_AUTHOR.search(description)
            if match:
                authors = [match.group(1).strip()]
                scraped = True

        isbn_candidates = _texts(info.get("isbn")) + _texts(info.get("isbn_13")) + _texts(info.get("isbn_10"))
        for ident in info.get("industryIdentifiers") or []:
            if isinstance(ident, dict) and str(ident.get("type", "")).startswith("ISBN"):
                isbn_candidates.append(_text(ident.get("identifier")))
        isbn = _first_isbn(sorted(isbn_candidates, key=lambda v: len(v.replace("-", "")) != 13))
        issn = _first_issn(_texts(info.get("issn")))
        doi = _normalize_doi(_text(info.get("doi"))) or None

        year = extract_year(
            info.get("year")
            or info.get("first_publish_year")
            or info.get("publishedDate")
            or info.get("date")
            or _earliest(info.get("publish_year"))
        )

        format_label = _text(info.get("format") or info.get("original_format") or info.get("printType"))
        call_number = _text(info.get("call_number") or info.get("lcc"))

        if scraped:
            confidence = Confidence.LOW
        elif isbn or issn or doi:
            confidence = Confidence.HIGH
        else:
            confidence = Confidence.MEDIUM

        return BibliographicRecord(
            id=record_id,
            title=title,
            source_id=descriptor.id,
            authors=authors,
            isbn=isbn,
            issn=issn,
            year=year if year is not None else UNKNOWN_YEAR,
            publisher=_text(info.get("publisher")) or None,
            format=_format_from_label(format_label),
            raw_confidence=confidence,
            library_info=self._library_info(descriptor, call_number),
            subjects=_texts(info.get("subjects") or info.get("subject") or info.get("categories")),
            description=description,
            doi=doi,
            language=_text(info.get("language")) or None,
            url=_text(info.get("url") or info.get("infoLink")) or None,
            native_id=self.native_id(raw),
        )


class BibliographicApiStrategy(NormalizationStrategy):
    """
    Scholarly metadata APIs.

    OpenAlex works (``display_name``, ``authorships``, ``publication_year``)
    and CrossRef works (``title`` list, ``author`` given/family,
    ``issued.date-parts``).
    """

    family = AdapterFamily.BIBLIOGRAPHIC_API

    _TYPE_MAP: ClassVar[dict[str, RecordFormat]] = {
        "article": RecordFormat.ARTICLE,
        "journal-article": RecordFormat.ARTICLE,
        "book": RecordFormat.BOOK,
        "monograph": RecordFormat.BOOK,
        "edited-book": RecordFormat.BOOK,
        "book-chapter": RecordFormat.ARTICLE,
        "dissertation": RecordFormat.THESIS,
        "journal": RecordFormat.JOURNAL,
        "dataset": RecordFormat.DIGITAL,
    }

    def native_id(self, raw: Any) -> str | None:
        if not isinstance(raw, dict):
            return None
        native = _text(raw.get("id"))
        return native.rsplit("/", 1)[-1] if native else None

    def map_record(self, raw: Any, descriptor: SourceDescriptor, record_id: str) -> BibliographicRecord:
        if not isinstance(raw, dict):
            raise NormalizationError(f"expected an object, got {type(raw).__name__}", source_id=descriptor.id)

        title = clean_title(_text(raw.get("display_name") or raw.get("title")))
        if not title:
            raise NormalizationError("work has no title", source_id=descriptor.id, record=raw)

        location = raw.get("primary_location") if isinstance(raw.get("primary_location"), dict) else {}
        venue = location.get("source") if isinstance(location.get("source"), dict) else {}

        doi = _normalize_doi(_text(raw.get("doi") or raw.get("DOI"))) or None
        isbn = _first_isbn(_texts(raw.get("ISBN") or raw.get("isbn")))
        issn = _first_issn(_texts(raw.get("ISSN") or venue.get("issn_l") or venue.get("issn")))

        year = extract_year(raw.get("publication_year")) or _crossref_year(raw)
        subjects = _texts(raw.get("subject")) or [
            _text(t.get("display_name")) for t in raw.get("topics") or raw.get("concepts") or [] if isinstance(t, dict)
        ]

        return BibliographicRecord(
            id=record_id,
            title=title,
            source_id=descriptor.id,
            authors=self._authors(raw),
            isbn=isbn,
            issn=issn,
            year=year if year is not None else UNKNOWN_YEAR,
            publisher=_text(raw.get("publisher") or venue.get("host_organization_name")) or None,
            format=self._TYPE_MAP.get(_text(raw.get("type")).lower(), RecordFormat.ARTICLE),
            raw_confidence=Confidence.HIGH if (doi or isbn or issn) else Confidence.MEDIUM,
            library_info=None,
            subjects=[s for s in subjects if s],
            description=_abstract(raw),
            doi=doi,
            language=_text(raw.get("language")) or None,
            url=_text(location.get("landing_page_url") or raw.get("URL")) or (f"https://doi.org/{doi}" if doi else None),
            native_id=self.native_id(raw),
        )

    @staticmethod
    def _authors(raw: dict[str, Any]) -> list[str]:
        authors: list[str] = []
        for authorship in raw.get("authorships") or []:
            if isinstance(authorship, dict):
                name = _text((authorship.get("author") or {}).get("display_name"))
                if name:
                    authors.append(name)
        for author in raw.get("author") or []:
            if isinstance(author, dict):
                name = " ".join(p for p in (_text(author.get("given")), _text(author.get("family"))) if p)
                name = name or _text(author.get("name"))
                if name:
                    authors.append(name)
        return authors


def _earliest(values: Any) -> int | None:
    years = [y for y in (extract_year(v) for v in values or []) if y is not None] if isinstance(values, list) else []
    return min(years) if years else None


def _crossref_year(raw: dict[str, Any]) -> int | None:
    for key in ("issued", "published", "published-print", "published-online"):
        parts = (raw.get(key) or {}).get("date-parts") if isinstance(raw.get(key), dict) else None
        if parts and isinstance(parts[0], list) and parts[0]:
            year = extract_year(parts[0][0])
            if year is not None:
                return year
    return None


def _abstract(raw: dict[str, Any]) -> str | None:
    """Plain abstract, or one rebuilt from OpenAlex's inverted index."""
    plain = _text(raw.get("abstract"))
    if plain:
        return plain
    index = raw.get("abstract_inverted_index")
    if not isinstance(index, dict) or not index:
        return None
    positions: dict[int, str] = {}
    for word, places in index.items():
        for place in places if isinstance(places, list) else []:
            if isinstance(place, int):
                positions[place] = word
    return " ".join(positions[i] for i in sorted(positions)) or None


# =============================================================================
# Normalizer
# =============================================================================


DEFAULT_STRATEGIES: dict[AdapterFamily, NormalizationStrategy] = {
    AdapterFamily.MARC21: Marc21Strategy(),
    AdapterFamily.JSON_CATALOG: JsonCatalogStrategy(),
    AdapterFamily.BIBLIOGRAPHIC_API: BibliographicApiStrategy(),
}


class ResultNormalizer:
    """
    Turn one source's raw records into BibliographicRecords.

    Args:
        descriptor_lookup: ``source_id -> SourceDescriptor`` (usually
            ``SourceRegistry.descriptor``); an unknown id is a contract
            violation and raises ConfigurationError.
        strategies: family -> strategy override.
    """

    def __init__(
        self,
        descriptor_lookup: Callable[[str], SourceDescriptor],
        strategies: dict[AdapterFamily, NormalizationStrategy] | None = None,
    ) -> None:
        self._lookup = descriptor_lookup
        self._strategies = {**DEFAULT_STRATEGIES, **(strategies or {})}

    def strategy_for(self, source_id: str) -> NormalizationStrategy:
        return self._strategy(self._lookup(source_id))

    def _strategy(self, descriptor: SourceDescriptor) -> NormalizationStrategy:
        strategy = self._strategies.get(descriptor.family)
        if strategy is None:
            raise ConfigurationError(f"No normalization strategy for family {descriptor.family.value}")
        return strategy

    def normalize(self, raw: list[Any], source_id: str) -> list[BibliographicRecord]:
        records, _skipped = self.normalize_with_count(raw, source_id)
        return records

    def normalize_with_count(
        self,
        raw: list[Any],
        source_id: str,
        descriptor: SourceDescriptor | None = None,
    ) -> tuple[list[BibliographicRecord], int]:
        """
        Normalize and also report how many malformed records were skipped.

        ``descriptor`` pins the source metadata (e.g. from a registry
        snapshot) instead of looking it up again.
        """
        descriptor = descriptor or self._lookup(source_id)
        strategy = self._strategy(descriptor)
        ids = _RecordIds(source_id)

        records: list[BibliographicRecord] = []
        skipped = 0
        for position, item in enumerate(raw):
            try:
                record_id = ids.make(strategy.native_id(item), position)
                records.append(strategy.map_record(item, descriptor, record_id))
            except NormalizationError as e:
                skipped += 1
                logger.warning(f"Skipping record {position} from {source_id}: {e}")
            except (KeyError, TypeError, ValueError, AttributeError, IndexError) as e:
                skipped += 1
                logger.warning(f"Skipping malformed record {position} from {source_id}: {type(e).__name__}: {e}")

        if skipped:
            logger.info(f"{source_id}: normalized {len(records)} records, skipped {skipped}")
        return records, skipped
