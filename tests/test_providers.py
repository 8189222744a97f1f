"""Tests for the citation and PDF enrichment providers (httpx.MockTransport)."""

from __future__ import annotations

import httpx
from conftest import make_record

from library_search.domain.entities import AccessType, PdfQuality, ProviderKind
from library_search.infrastructure.enrichment import (
    CrossRefCitationProvider,
    OpenAlexCitationProvider,
    OpenAlexClient,
    OpenAlexPdfProvider,
    SemanticScholarCitationProvider,
    UnpaywallPdfProvider,
)

DOI = "10.1000/xyz123"


def mock_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def json_handler(payload, status: int = 200, seen: list | None = None):
    def handler(request):
        if seen is not None:
            seen.append(request)
        return httpx.Response(status, json=payload)

    return handler


# ============================================================
# CrossRef
# ============================================================


class TestCrossRef:
    async def test_doi_lookup(self):
        seen = []
        payload = {"status": "ok", "message": {"is-referenced-by-count": 42, "URL": "https://doi.org/" + DOI}}
        provider = CrossRefCitationProvider(email="me@example.com", client=mock_client(json_handler(payload, seen=seen)))

        lookup = await provider.lookup(make_record(doi=DOI))
        assert lookup.provider == "crossref"
        assert lookup.count == 42
        assert lookup.url == "https://doi.org/" + DOI
        assert seen[0].url.host == "api.crossref.org"
        assert seen[0].url.params["mailto"] == "me@example.com"
        assert provider.kind == ProviderKind.CITATION

    async def test_title_search_requires_close_match(self):
        seen = []
        payload = {
            "message": {
                "items": [
                    {"title": ["Sense and Sensibility"], "is-referenced-by-count": 5},
                    {"title": ["Pride and Prejudice"], "is-referenced-by-count": 9},
                ]
            }
        }
        provider = CrossRefCitationProvider(client=mock_client(json_handler(payload, seen=seen)))
        lookup = await provider.lookup(make_record(title="Pride and Prejudice", authors=["Jane Austen"]))
        assert lookup.count == 9
        assert seen[0].url.params["query.bibliographic"] == "Pride and Prejudice"
        assert seen[0].url.params["query.author"] == "Jane Austen"

    async def test_no_matching_title(self):
        payload = {"message": {"items": [{"title": ["Something else entirely"], "is-referenced-by-count": 5}]}}
        provider = CrossRefCitationProvider(client=mock_client(json_handler(payload)))
        assert await provider.lookup(make_record(title="Pride and Prejudice")) is None

    async def test_404_is_none(self):
        provider = CrossRefCitationProvider(client=mock_client(json_handler({}, status=404)))
        assert await provider.lookup(make_record(doi=DOI)) is None

    async def test_server_error_is_none(self):
        provider = CrossRefCitationProvider(client=mock_client(json_handler({}, status=500)))
        assert await provider.lookup(make_record(doi=DOI)) is None


# ============================================================
# OpenAlex
# ============================================================

WORK = {
    "id": "https://openalex.org/W1",
    "display_name": "Pride and Prejudice",
    "cited_by_count": 120,
    "best_oa_location": {
        "pdf_url": "https://repo.example.org/pp.pdf",
        "version": "acceptedVersion",
        "license": "cc-by",
    },
    "open_access": {"is_oa": True, "oa_url": "https://repo.example.org/landing"},
}


class TestOpenAlex:
    async def test_citation_by_doi(self):
        seen = []
        client = OpenAlexClient(client=mock_client(json_handler(WORK, seen=seen)))
        lookup = await OpenAlexCitationProvider(client).lookup(make_record(doi=DOI))
        assert lookup.provider == "openalex"
        assert lookup.count == 120
        assert lookup.url == "https://openalex.org/W1"
        assert seen[0].url.path == f"/works/doi:{DOI}"

    async def test_title_search(self):
        client = OpenAlexClient(client=mock_client(json_handler({"results": [WORK]})))
        lookup = await OpenAlexCitationProvider(client).lookup(make_record(title="Pride and prejudice"))
        assert lookup.count == 120

    async def test_pdf_links(self):
        client = OpenAlexClient(client=mock_client(json_handler(WORK)))
        provider = OpenAlexPdfProvider(client)
        lookup = await provider.lookup(make_record(doi=DOI))
        assert provider.name == "openalex_pdf"
        assert [link.url for link in lookup.links] == ["https://repo.example.org/pp.pdf", "https://repo.example.org/landing"]
        assert lookup.links[0].quality == PdfQuality.MEDIUM
        assert lookup.links[0].license == "cc-by"
        assert lookup.links[1].quality == PdfQuality.LOW

    def test_extract_links_closed_access(self):
        assert OpenAlexPdfProvider.extract_links({"open_access": {"is_oa": False}}) == []

    def test_extract_links_no_duplicate_oa_url(self):
        work = {
            "best_oa_location": {"pdf_url": "https://x/a.pdf", "version": "publishedVersion"},
            "open_access": {"is_oa": True, "oa_url": "https://x/a.pdf"},
        }
        [link] = OpenAlexPdfProvider.extract_links(work)
        assert link.quality == PdfQuality.HIGH

    async def test_not_found(self):
        client = OpenAlexClient(client=mock_client(json_handler({}, status=404)))
        assert await OpenAlexCitationProvider(client).lookup(make_record(doi=DOI)) is None
        assert await OpenAlexPdfProvider(client).lookup(make_record(doi=DOI)) is None


# ============================================================
# Semantic Scholar
# ============================================================


class TestSemanticScholar:
    async def test_doi_lookup_with_key(self):
        seen = []
        payload = {"title": "T", "citationCount": 30, "influentialCitationCount": 4, "url": "https://s2/p"}
        provider = SemanticScholarCitationProvider(api_key="secret", client=mock_client(json_handler(payload, seen=seen)))
        lookup = await provider.lookup(make_record(doi=DOI))
        assert (lookup.count, lookup.influential_count, lookup.url) == (30, 4, "https://s2/p")
        assert seen[0].url.path == f"/graph/v1/paper/DOI:{DOI}"

    async def test_search_fallback(self):
        payload = {"data": [{"title": "Pride and Prejudice", "citationCount": 11}]}
        provider = SemanticScholarCitationProvider(client=mock_client(json_handler(payload)))
        lookup = await provider.lookup(make_record(title="Pride and Prejudice"))
        assert lookup.count == 11
        assert lookup.influential_count is None

    async def test_missing_count(self):
        provider = SemanticScholarCitationProvider(client=mock_client(json_handler({"title": "T"})))
        assert await provider.lookup(make_record(doi=DOI)) is None


# ============================================================
# Unpaywall
# ============================================================

UNPAYWALL = {
    "doi": DOI,
    "is_oa": True,
    "best_oa_location": {"url_for_pdf": "https://pub.example.org/a.pdf", "version": "publishedVersion"},
    "oa_locations": [
        {"url_for_pdf": "https://pub.example.org/a.pdf", "version": "publishedVersion"},
        {"url_for_pdf": "https://arxiv.org/pdf/1.pdf", "version": "submittedVersion", "license": "cc-by"},
        {"url_for_pdf": None, "url": "https://landing"},
    ],
}


class TestUnpaywall:
    async def test_links(self):
        seen = []
        provider = UnpaywallPdfProvider(email="me@example.com", client=mock_client(json_handler(UNPAYWALL, seen=seen)))
        lookup = await provider.lookup(make_record(doi=DOI))
        assert [link.url for link in lookup.links] == ["https://pub.example.org/a.pdf", "https://arxiv.org/pdf/1.pdf"]
        assert [link.quality for link in lookup.links] == [PdfQuality.HIGH, PdfQuality.LOW]
        assert all(link.access_type == AccessType.FREE for link in lookup.links)
        assert seen[0].url.params["email"] == "me@example.com"
        assert provider.kind == ProviderKind.PDF

    async def test_no_doi_no_request(self):
        seen = []
        provider = UnpaywallPdfProvider(client=mock_client(json_handler(UNPAYWALL, seen=seen)))
        assert await provider.lookup(make_record()) is None
        assert seen == []

    async def test_closed_access_gives_empty_lookup(self):
        provider = UnpaywallPdfProvider(client=mock_client(json_handler({"is_oa": False})))
        lookup = await provider.lookup(make_record(doi=DOI))
        assert lookup.links == ()

    async def test_404_is_none(self):
        provider = UnpaywallPdfProvider(client=mock_client(json_handler({}, status=404)))
        assert await provider.lookup(make_record(doi=DOI)) is None
