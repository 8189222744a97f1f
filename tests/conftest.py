"""
Pytest configuration and shared fixtures.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any

import pytest

from library_search.application.search.registry import SourceRegistry
from library_search.domain.entities import (
    AdapterFamily,
    BibliographicRecord,
    CitationLookup,
    PdfLink,
    PdfLookup,
    ProviderKind,
    RegisteredSource,
    SourceDescriptor,
)

# ============================================================
# Fake Source Adapters
# ============================================================


class StaticAdapter:
    """Async adapter returning a fixed list of raw records."""

    def __init__(self, records: list[Any] | None = None, delay: float = 0.0) -> None:
        self.records = records or []
        self.delay = delay
        self.calls: list[Any] = []

    async def search(self, query, options):
        self.calls.append((query, options))
        if self.delay:
            await asyncio.sleep(self.delay)
        return list(self.records)


class SyncAdapter:
    """Blocking adapter (run on a daemon thread by the coordinator)."""

    def __init__(self, records: list[Any] | None = None, delay: float = 0.0) -> None:
        self.records = records or []
        self.delay = delay

    def search(self, query, options):
        if self.delay:
            time.sleep(self.delay)
        return list(self.records)


class FailingAdapter:
    def __init__(self, exc: Exception | None = None) -> None:
        self.exc = exc or ConnectionError("connection refused")

    async def search(self, query, options):
        raise self.exc


class SlowAdapter:
    """Never answers within any reasonable deadline."""

    def __init__(self, delay: float = 5.0) -> None:
        self.delay = delay
        self.cancelled = False

    async def search(self, query, options):
        try:
            await asyncio.sleep(self.delay)
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        return [{"title": "too late"}]


# ============================================================
# Fake Enrichment Providers
# ============================================================


class FakeCitationProvider:
    kind = ProviderKind.CITATION

    def __init__(self, name: str = "fake_citations", counts: dict[str, int] | None = None, delay: float = 0.0):
        self.name = name
        self.counts = counts or {}
        self.delay = delay
        self.calls: list[tuple[str, float]] = []

    async def lookup(self, record):
        self.calls.append((record.id, time.monotonic()))
        if self.delay:
            await asyncio.sleep(self.delay)
        if record.id not in self.counts:
            return None
        return CitationLookup(provider=self.name, count=self.counts[record.id])


class FakePdfProvider:
    kind = ProviderKind.PDF

    def __init__(self, name: str = "fake_pdf", urls: dict[str, str] | None = None):
        self.name = name
        self.urls = urls or {}

    async def lookup(self, record):
        url = self.urls.get(record.id)
        links = (PdfLink(url=url, source=self.name),) if url else ()
        return PdfLookup(provider=self.name, links=links)


class BrokenProvider:
    kind = ProviderKind.CITATION

    def __init__(self, name: str = "broken"):
        self.name = name

    async def lookup(self, record):
        raise RuntimeError("provider exploded")


# ============================================================
# Builders
# ============================================================


def make_descriptor(
    source_id: str,
    family: AdapterFamily = AdapterFamily.JSON_CATALOG,
    *,
    timeout: float | None = None,
    priority: int = 0,
    institution: str = "",
) -> SourceDescriptor:
    return SourceDescriptor(
        id=source_id,
        display_name=source_id.replace("_", " ").title(),
        family=family,
        institution=institution,
        timeout=timeout,
        priority=priority,
    )


def make_source(source_id: str, adapter: Any, **kwargs: Any) -> RegisteredSource:
    return RegisteredSource(descriptor=make_descriptor(source_id, **kwargs), adapter=adapter)


def make_record(record_id: str = "src:1", title: str = "Pride and Prejudice", **kwargs: Any) -> BibliographicRecord:
    kwargs.setdefault("source_id", record_id.split(":", 1)[0])
    return BibliographicRecord(id=record_id, title=title, **kwargs)


def marc_record(
    control: str,
    title: str,
    *,
    author: str | None = None,
    isbn: str | None = None,
    date: str | None = None,
    leader: str = "00000cam a2200000 a 4500",
) -> dict[str, Any]:
    """Minimal MARC-in-JSON record."""
    fields: list[dict[str, Any]] = [{"001": control}]
    if isbn:
        fields.append({"020": {"ind1": " ", "ind2": " ", "subfields": [{"a": isbn}]}})
    if author:
        fields.append({"100": {"ind1": "1", "ind2": " ", "subfields": [{"a": author}]}})
    fields.append({"245": {"ind1": "1", "ind2": "0", "subfields": [{"a": title}]}})
    if date:
        fields.append({"260": {"ind1": " ", "ind2": " ", "subfields": [{"b": "Penguin,"}, {"c": date}]}})
    return {"leader": leader, "fields": fields}


# ============================================================
# Fixtures
# ============================================================


@pytest.fixture
def json_descriptor():
    return make_descriptor("open_library", AdapterFamily.JSON_CATALOG, institution="Internet Archive")


@pytest.fixture
def marc_descriptor():
    return make_descriptor("loc_sru", AdapterFamily.MARC21, institution="Library of Congress", priority=10)


@pytest.fixture
def pride_marc():
    return marc_record(
        "12345",
        "Pride and prejudice /",
        author="Austen, Jane,",
        isbn="0141439513 (pbk.)",
        date="c2003.",
    )


@pytest.fixture
def pride_open_library():
    return {
        "key": "/works/OL66554W",
        "title": "Pride and Prejudice",
        "author_name": ["Jane Austen"],
        "isbn": ["9780141439518", "0141439513"],
        "first_publish_year": 1813,
        "publisher": ["Penguin"],
    }


@pytest.fixture
def registry():
    return SourceRegistry(
        [
            make_source("alpha", StaticAdapter([{"key": "a1", "title": "Alpha Book", "author_name": ["Ann Smith"]}])),
            make_source("beta", StaticAdapter([{"key": "b1", "title": "Beta Book", "author_name": ["Bob Jones"]}])),
        ]
    )
