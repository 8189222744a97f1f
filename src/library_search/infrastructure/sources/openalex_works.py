"""
OpenAlex Works search adapter.

API Documentation: https://docs.openalex.org/api-entities/works

Supplies scholarly works (articles, books, dissertations) alongside the
library catalogs; normalized by the bibliographic API strategy.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from library_search.domain.entities import SearchType
from library_search.infrastructure.sources.base_client import _CONTINUE, BaseAPIClient

if TYPE_CHECKING:
    import httpx

    from library_search.domain.entities import Query
    from library_search.domain.ports import SearchOptions

logger = logging.getLogger(__name__)

OPENALEX_API_BASE = "https://api.openalex.org"

# OpenAlex caps per-page at 200
_MAX_PER_PAGE = 200


class OpenAlexWorksAdapter(BaseAPIClient):
    _service_name = "OpenAlex"
    _raise_errors = True
    _MAX_RETRIES = 1

    def __init__(
        self,
        email: str | None = None,
        timeout: float = 10.0,
        min_interval: float = 0.1,
        **kwargs: Any,
    ) -> None:
        self._email = email
        super().__init__(
            base_url=OPENALEX_API_BASE,
            timeout=timeout,
            min_interval=min_interval,
            headers={"Accept": "application/json"},
            **kwargs,
        )

    def build_params(self, query: Query, limit: int) -> dict[str, Any]:
        params: dict[str, Any] = {"per-page": min(limit, _MAX_PER_PAGE)}
        text = query.search_text
        filters = []
        if query.effective_search_type == SearchType.TITLE:
            filters.append(f"title.search:{text}")
        elif query.effective_search_type == SearchType.AUTHOR:
            filters.append(f"raw_author_name.search:{text}")
        else:
            params["search"] = text
        if query.fields.year:
            filters.append(f"publication_year:{query.fields.year}")
        if filters:
            params["filter"] = ",".join(filters)
        if self._email:
            params["mailto"] = self._email
        return params

    def _handle_expected_status(self, response: httpx.Response, url: str) -> Any:
        """A 404 from the search endpoint means no works."""
        if response.status_code == 404:
            return {"results": []}
        return _CONTINUE

    async def search(self, query: Query, options: SearchOptions) -> list[dict[str, Any]]:
        data = await self._make_request("/works", params=self.build_params(query, options.max_records))
        if not isinstance(data, dict):
            return []
        return list(data.get("results") or [])
