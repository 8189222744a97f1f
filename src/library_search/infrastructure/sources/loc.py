"""
Library of Congress loc.gov JSON search adapter.

API Documentation: https://www.loc.gov/apis/json-and-yaml/

The loc.gov search API has no structured author field for most items;
authors are only recoverable from the free-text description, so records
from this adapter usually normalize with low confidence.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from library_search.infrastructure.sources.base_client import BaseAPIClient

if TYPE_CHECKING:
    from library_search.domain.entities import Query
    from library_search.domain.ports import SearchOptions

logger = logging.getLogger(__name__)

LOC_SEARCH_URL = "https://www.loc.gov/books/"


class LocSearchAdapter(BaseAPIClient):
    _service_name = "LOC"
    _raise_errors = True
    _MAX_RETRIES = 1

    def __init__(
        self,
        search_url: str = LOC_SEARCH_URL,
        timeout: float = 10.0,
        min_interval: float = 0.1,
        **kwargs: Any,
    ) -> None:
        self._search_url = search_url
        super().__init__(timeout=timeout, min_interval=min_interval, headers={"Accept": "application/json"}, **kwargs)

    async def search(self, query: Query, options: SearchOptions) -> list[dict[str, Any]]:
        params = {"q": query.search_text, "fo": "json", "c": options.max_records}
        data = await self._make_request(self._search_url, params=params)
        if isinstance(data, list):
            return data
        if not isinstance(data, dict):
            return []
        return list(data.get("results") or data.get("items") or [])
