"""
Open Library Search API adapter.

API Documentation: https://openlibrary.org/dev/docs/api/search

Returns Open Library search ``docs`` untouched; the JSON catalog
normalization strategy maps them.
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

OPEN_LIBRARY_SEARCH_URL = "https://openlibrary.org/search.json"

_FIELDS = ",".join(
    [
        "key",
        "title",
        "author_name",
        "isbn",
        "first_publish_year",
        "publisher",
        "language",
        "subject",
        "lcc",
    ]
)

_PARAM_BY_TYPE = {
    SearchType.TITLE: "title",
    SearchType.AUTHOR: "author",
    SearchType.ISBN: "isbn",
    SearchType.SUBJECT: "subject",
}


class OpenLibraryAdapter(BaseAPIClient):
    """Search-type aware client for openlibrary.org/search.json."""

    _service_name = "OpenLibrary"
    _raise_errors = True
    _MAX_RETRIES = 1

    def __init__(self, timeout: float = 10.0, min_interval: float = 0.1, **kwargs: Any) -> None:
        super().__init__(timeout=timeout, min_interval=min_interval, headers={"Accept": "application/json"}, **kwargs)

    @staticmethod
    def build_params(query: Query, limit: int) -> dict[str, Any]:
        params: dict[str, Any] = {"limit": limit, "fields": _FIELDS}
        key = _PARAM_BY_TYPE.get(query.effective_search_type, "q")
        params[key] = query.isbn if key == "isbn" and query.isbn else query.search_text
        if query.fields.year:
            params["first_publish_year"] = query.fields.year
        return params

    async def search(self, query: Query, options: SearchOptions) -> list[dict[str, Any]]:
        data = await self._make_request(OPEN_LIBRARY_SEARCH_URL, params=self.build_params(query, options.max_records))
        if not isinstance(data, dict):
            return []
        docs = data.get("docs") or []
        logger.debug(f"OpenLibrary: {len(docs)} docs for '{query.search_text}'")
        return docs[: options.max_records]
