"""
OpenAlex citation and PDF providers.

API Documentation: https://docs.openalex.org/

One client, two providers:
- OpenAlexCitationProvider: ``cited_by_count``
- OpenAlexPdfProvider: ``best_oa_location.pdf_url`` / ``open_access.oa_url``
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from library_search.domain.entities import (
    AccessType,
    CitationLookup,
    PdfLink,
    PdfLookup,
    PdfQuality,
    ProviderKind,
)
from library_search.infrastructure.enrichment.matching import DEFAULT_EMAIL, best_title_match
from library_search.infrastructure.sources.base_client import _CONTINUE, BaseAPIClient

if TYPE_CHECKING:
    import httpx

    from library_search.domain.entities import BibliographicRecord

logger = logging.getLogger(__name__)

OA_API_BASE = "https://api.openalex.org"

_VERSION_QUALITY = {
    "publishedVersion": PdfQuality.HIGH,
    "acceptedVersion": PdfQuality.MEDIUM,
    "submittedVersion": PdfQuality.LOW,
}


class OpenAlexClient(BaseAPIClient):
    """Works lookup by DOI or by title search."""

    _service_name = "OpenAlex"

    def __init__(self, email: str | None = None, timeout: float = 5.0, **kwargs: Any) -> None:
        self._email = email or DEFAULT_EMAIL
        super().__init__(
            base_url=OA_API_BASE,
            timeout=timeout,
            min_interval=0.1,
            headers={
                "User-Agent": f"library-search/1.0 (mailto:{self._email})",
                "Accept": "application/json",
            },
            **kwargs,
        )

    def _handle_expected_status(self, response: httpx.Response, url: str) -> Any:
        if response.status_code == 404:
            logger.debug(f"OpenAlex: not found - {url}")
            return None
        return _CONTINUE

    async def get_work_by_doi(self, doi: str) -> dict[str, Any] | None:
        result = await self._make_request(f"/works/doi:{doi}", params={"mailto": self._email})
        return result if isinstance(result, dict) else None

    async def search_works(self, title: str, limit: int = 3) -> list[dict[str, Any]]:
        params = {"search": title, "per-page": limit, "mailto": self._email}
        data = await self._make_request("/works", params=params)
        if not isinstance(data, dict):
            return []
        return list(data.get("results") or [])

    async def find_work(self, record: BibliographicRecord) -> dict[str, Any] | None:
        if record.doi:
            return await self.get_work_by_doi(record.doi)
        candidates = await self.search_works(record.title)
        return best_title_match(record, candidates, lambda c: c.get("display_name") or c.get("title"))


class OpenAlexCitationProvider:
    name = "openalex"
    kind = ProviderKind.CITATION

    def __init__(self, client: OpenAlexClient) -> None:
        self._client = client

    async def close(self) -> None:
        await self._client.close()

    async def lookup(self, record: BibliographicRecord) -> CitationLookup | None:
        work = await self._client.find_work(record)
        if not work or work.get("cited_by_count") is None:
            return None
        return CitationLookup(provider=self.name, count=int(work["cited_by_count"]), url=work.get("id"))


class OpenAlexPdfProvider:
    name = "openalex_pdf"
    kind = ProviderKind.PDF

    def __init__(self, client: OpenAlexClient) -> None:
        self._client = client

    async def close(self) -> None:
        await self._client.close()

    async def lookup(self, record: BibliographicRecord) -> PdfLookup | None:
        work = await self._client.find_work(record)
        if not work:
            return None
        return PdfLookup(provider=self.name, links=tuple(self.extract_links(work)))

    @staticmethod
    def extract_links(work: dict[str, Any]) -> list[PdfLink]:
        links: list[PdfLink] = []
        best = work.get("best_oa_location") or {}
        if best.get("pdf_url"):
            links.append(
                PdfLink(
                    url=best["pdf_url"],
                    source="openalex",
                    access_type=AccessType.FREE,
                    quality=_VERSION_QUALITY.get(best.get("version") or "", PdfQuality.MEDIUM),
                    version=best.get("version"),
                    license=best.get("license"),
                )
            )
        open_access = work.get("open_access") or {}
        oa_url = open_access.get("oa_url")
        if open_access.get("is_oa") and oa_url and all(link.url != oa_url for link in links):
            links.append(PdfLink(url=oa_url, source="openalex", access_type=AccessType.FREE, quality=PdfQuality.LOW))
        return links
