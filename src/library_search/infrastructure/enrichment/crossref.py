"""
CrossRef citation provider.

API Documentation: https://api.crossref.org/swagger-ui/index.html

Citation count comes from ``is-referenced-by-count``. Records with a DOI
are looked up directly; others through a bibliographic title + author
query whose top hits must match the record's title.

Rate Limits:
- Polite pool (with email): ~50 req/sec
- Anonymous: ~1 req/sec (strongly discouraged)
"""

from __future__ import annotations

import logging
import urllib.parse
from typing import TYPE_CHECKING, Any

from library_search.domain.entities import CitationLookup, ProviderKind
from library_search.infrastructure.enrichment.matching import DEFAULT_EMAIL, best_title_match, first_author
from library_search.infrastructure.sources.base_client import _CONTINUE, BaseAPIClient

if TYPE_CHECKING:
    import httpx

    from library_search.domain.entities import BibliographicRecord

logger = logging.getLogger(__name__)

CROSSREF_API_BASE = "https://api.crossref.org"


class CrossRefCitationProvider(BaseAPIClient):
    """
    Usage:
        provider = CrossRefCitationProvider(email="your@email.com")
        lookup = await provider.lookup(record)
        if lookup:
            print(lookup.count)
    """

    _service_name = "CrossRef"
    name = "crossref"
    kind = ProviderKind.CITATION

    def __init__(self, email: str | None = None, timeout: float = 5.0, **kwargs: Any) -> None:
        self._email = email or DEFAULT_EMAIL
        super().__init__(
            base_url=CROSSREF_API_BASE,
            timeout=timeout,
            min_interval=0.05,
            headers={
                "User-Agent": f"library-search/1.0 (mailto:{self._email})",
                "Accept": "application/json",
            },
            **kwargs,
        )

    def _handle_expected_status(self, response: httpx.Response, url: str) -> Any:
        """Handle 404 (DOI not found)."""
        if response.status_code == 404:
            logger.debug(f"CrossRef: not found - {url}")
            return None
        return _CONTINUE

    def _parse_response(self, response: httpx.Response, expect_json: bool) -> Any:
        """Extract 'message' key from CrossRef JSON responses."""
        data = response.json()
        return data.get("message", data) if isinstance(data, dict) else data

    async def get_work(self, doi: str) -> dict[str, Any] | None:
        url = f"/works/{urllib.parse.quote(doi, safe='')}"
        result = await self._make_request(url, params={"mailto": self._email})
        return result if isinstance(result, dict) else None

    async def search_works(self, title: str, author: str | None = None, rows: int = 3) -> list[dict[str, Any]]:
        params: dict[str, Any] = {"query.bibliographic": title, "rows": rows, "mailto": self._email}
        if author:
            params["query.author"] = author
        data = await self._make_request("/works", params=params)
        if not isinstance(data, dict):
            return []
        return list(data.get("items") or [])

    async def lookup(self, record: BibliographicRecord) -> CitationLookup | None:
        work: dict[str, Any] | None
        if record.doi:
            work = await self.get_work(record.doi)
        else:
            candidates = await self.search_works(record.title, first_author(record))
            work = best_title_match(record, candidates, lambda c: (c.get("title") or [None])[0])
        if not work or "is-referenced-by-count" not in work:
            return None
        return CitationLookup(
            provider=self.name,
            count=int(work["is-referenced-by-count"]),
            url=work.get("URL"),
        )
