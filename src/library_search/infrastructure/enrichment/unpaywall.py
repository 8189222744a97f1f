"""
Unpaywall PDF provider.

API Documentation: https://unpaywall.org/products/api

Finds open access copies by DOI; records without a DOI are skipped.
Every OA location with a PDF URL becomes a link; version decides quality
(published > accepted > submitted).

Rate Limits:
- 100,000 requests/day with email
- No API key required, just email
"""

from __future__ import annotations

import logging
import urllib.parse
from typing import TYPE_CHECKING, Any

from library_search.domain.entities import AccessType, PdfLink, PdfLookup, PdfQuality, ProviderKind
from library_search.infrastructure.enrichment.matching import DEFAULT_EMAIL
from library_search.infrastructure.sources.base_client import _CONTINUE, BaseAPIClient

if TYPE_CHECKING:
    import httpx

    from library_search.domain.entities import BibliographicRecord

logger = logging.getLogger(__name__)

UNPAYWALL_API_BASE = "https://api.unpaywall.org/v2"

_VERSION_QUALITY = {
    "publishedVersion": PdfQuality.HIGH,
    "acceptedVersion": PdfQuality.MEDIUM,
    "submittedVersion": PdfQuality.LOW,
}


class UnpaywallPdfProvider(BaseAPIClient):
    _service_name = "Unpaywall"
    name = "unpaywall"
    kind = ProviderKind.PDF

    def __init__(self, email: str | None = None, timeout: float = 5.0, **kwargs: Any) -> None:
        self._email = email or DEFAULT_EMAIL
        super().__init__(
            base_url=UNPAYWALL_API_BASE,
            timeout=timeout,
            min_interval=0.1,
            headers={"Accept": "application/json"},
            **kwargs,
        )

    def _handle_expected_status(self, response: httpx.Response, url: str) -> Any:
        """Handle 404 (DOI not in Unpaywall)."""
        if response.status_code == 404:
            logger.debug(f"Unpaywall: DOI not found - {url}")
            return None
        return _CONTINUE

    async def get_oa_status(self, doi: str) -> dict[str, Any] | None:
        url = f"/{urllib.parse.quote(doi, safe='/')}"
        result = await self._make_request(url, params={"email": self._email})
        return result if isinstance(result, dict) else None

    async def lookup(self, record: BibliographicRecord) -> PdfLookup | None:
        if not record.doi:
            return None
        data = await self.get_oa_status(record.doi)
        if data is None:
            return None
        return PdfLookup(provider=self.name, links=tuple(self.extract_links(data)))

    @staticmethod
    def extract_links(data: dict[str, Any]) -> list[PdfLink]:
        """Best OA location first, then the other locations with a PDF."""
        if not data.get("is_oa"):
            return []
        locations: list[dict[str, Any]] = []
        best = data.get("best_oa_location")
        if isinstance(best, dict):
            locations.append(best)
        locations.extend(loc for loc in data.get("oa_locations") or [] if isinstance(loc, dict))

        links: list[PdfLink] = []
        seen: set[str] = set()
        for location in locations:
            url = location.get("url_for_pdf")
            if not url or url in seen:
                continue
            seen.add(url)
            links.append(
                PdfLink(
                    url=url,
                    source="unpaywall",
                    access_type=AccessType.FREE,
                    quality=_VERSION_QUALITY.get(location.get("version") or "", PdfQuality.MEDIUM),
                    version=location.get("version"),
                    license=location.get("license"),
                )
            )
        return links
