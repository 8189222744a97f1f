"""
Google Books Volumes API adapter.

API Documentation: https://developers.google.com/books/docs/v1/using

Search-type prefixes: intitle:, inauthor:, isbn:, subject:. An API key is
optional (anonymous quota is small).
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from library_search.domain.entities import SearchType
from library_search.infrastructure.sources.base_client import BaseAPIClient

if TYPE_CHECKING:
    from library_search.domain.entities import Query
    from library_search.domain.ports import SearchOptions

logger = logging.getLogger(__name__)

GOOGLE_BOOKS_API_BASE = "https://www.googleapis.com/books/v1"

# Google Books caps maxResults at 40
_MAX_RESULTS = 40

_PREFIX_BY_TYPE = {
    SearchType.TITLE: "intitle:",
    SearchType.AUTHOR: "inauthor:",
    SearchType.ISBN: "isbn:",
    SearchType.SUBJECT: "subject:",
}


class GoogleBooksAdapter(BaseAPIClient):
    _service_name = "GoogleBooks"
    _raise_errors = True
    _MAX_RETRIES = 1

    def __init__(
        self,
        api_key: str | None = None,
        timeout: float = 10.0,
        min_interval: float = 0.1,
        **kwargs: Any,
    ) -> None:
        self._api_key = api_key
        super().__init__(
            base_url=GOOGLE_BOOKS_API_BASE,
            timeout=timeout,
            min_interval=min_interval,
            headers={"Accept": "application/json"},
            **kwargs,
        )

    def build_params(self, query: Query, limit: int) -> dict[str, Any]:
        prefix = _PREFIX_BY_TYPE.get(query.effective_search_type, "")
        term = query.isbn if query.effective_search_type == SearchType.ISBN and query.isbn else query.search_text
        params: dict[str, Any] = {
            "q": f"{prefix}{term}",
            "maxResults": min(limit, _MAX_RESULTS),
            "printType": "all",
        }
        if self._api_key:
            params["key"] = self._api_key
        return params

    async def search(self, query: Query, options: SearchOptions) -> list[dict[str, Any]]:
        data = await self._make_request("/volumes", params=self.build_params(query, options.max_records))
        if not isinstance(data, dict):
            return []
        return list(data.get("items") or [])
