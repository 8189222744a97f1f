"""
Semantic Scholar citation provider.

API Documentation: https://api.semanticscholar.org/api-docs/graph

Reports ``citationCount`` and ``influentialCitationCount``. The public
API allows roughly one request per second without a key, so the default
spacing is conservative.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from library_search.domain.entities import CitationLookup, ProviderKind
from library_search.infrastructure.enrichment.matching import best_title_match
from library_search.infrastructure.sources.base_client import _CONTINUE, BaseAPIClient

if TYPE_CHECKING:
    import httpx

    from library_search.domain.entities import BibliographicRecord

logger = logging.getLogger(__name__)

S2_API_BASE = "https://api.semanticscholar.org/graph/v1"
S2_FIELDS = "title,citationCount,influentialCitationCount,url"


class SemanticScholarCitationProvider(BaseAPIClient):
    _service_name = "SemanticScholar"
    name = "semantic_scholar"
    kind = ProviderKind.CITATION

    def __init__(self, api_key: str | None = None, timeout: float = 5.0, **kwargs: Any) -> None:
        headers = {"Accept": "application/json"}
        if api_key:
            headers["x-api-key"] = api_key
        super().__init__(
            base_url=S2_API_BASE,
            timeout=timeout,
            min_interval=0.1 if api_key else 0.5,
            headers=headers,
            **kwargs,
        )

    def _handle_expected_status(self, response: httpx.Response, url: str) -> Any:
        if response.status_code == 404:
            logger.debug(f"Semantic Scholar: not found - {url}")
            return None
        return _CONTINUE

    async def get_paper(self, doi: str) -> dict[str, Any] | None:
        result = await self._make_request(f"/paper/DOI:{doi}", params={"fields": S2_FIELDS})
        return result if isinstance(result, dict) else None

    async def search_papers(self, title: str, limit: int = 3) -> list[dict[str, Any]]:
        data = await self._make_request("/paper/search", params={"query": title, "limit": limit, "fields": S2_FIELDS})
        if not isinstance(data, dict):
            return []
        return list(data.get("data") or [])

    async def lookup(self, record: BibliographicRecord) -> CitationLookup | None:
        if record.doi:
            paper = await self.get_paper(record.doi)
        else:
            paper = best_title_match(record, await self.search_papers(record.title), lambda p: p.get("title"))
        if not paper or paper.get("citationCount") is None:
            return None
        influential = paper.get("influentialCitationCount")
        return CitationLookup(
            provider=self.name,
            count=int(paper["citationCount"]),
            influential_count=int(influential) if influential is not None else None,
            url=paper.get("url"),
        )
